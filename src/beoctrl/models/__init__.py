"""Data models for devices, tracks, sources, playlists, and playback state."""

from beoctrl.models.device import Device
from beoctrl.models.playback import PlaybackState, PlayMode, PlayState
from beoctrl.models.playlist import Playlist, create_playlist
from beoctrl.models.source import LOCAL_SOURCE_ID, Source
from beoctrl.models.track import Track

__all__ = [
    "Device",
    "LOCAL_SOURCE_ID",
    "PlaybackState",
    "PlayMode",
    "PlayState",
    "Playlist",
    "Source",
    "Track",
    "create_playlist",
]
