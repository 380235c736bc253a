"""Tests for data models."""

import pytest

from beoctrl.models.device import Device
from beoctrl.models.playback import (
    DEFAULT_VOLUME,
    PlaybackState,
    PlayMode,
    PlayState,
)
from beoctrl.models.playlist import Playlist, create_playlist
from beoctrl.models.source import LOCAL_SOURCE_ID, Source
from beoctrl.models.track import DEFAULT_ART_URL, Track


class TestTrack:
    """Tests for Track."""

    def test_defaults(self) -> None:
        """Test optional fields default sensibly."""
        track = Track(id="t1", title="Song")
        assert track.artist == "Unknown Artist"
        assert track.art_url == DEFAULT_ART_URL
        assert track.duration == 0
        assert not track.is_local

    def test_negative_duration_clamped(self) -> None:
        """Test negative durations become unknown (0)."""
        assert Track(id="t1", title="Song", duration=-5).duration == 0

    def test_is_frozen(self) -> None:
        """Test tracks are immutable."""
        track = Track(id="t1", title="Song")
        with pytest.raises(AttributeError):
            track.title = "Other"  # type: ignore[misc]

    def test_placeholder(self) -> None:
        """Test placeholder tracks for external sources."""
        track = Track.placeholder("spotify", "Spotify")
        assert track.is_placeholder
        assert track.duration == 0
        assert "Spotify" in track.title
        assert not Track(id="t1", title="Song").is_placeholder

    def test_display_duration(self) -> None:
        """Test m:ss formatting."""
        assert Track(id="t1", title="Song", duration=185).display_duration == "3:05"


class TestDevice:
    """Tests for Device."""

    def test_display_name_fallback(self) -> None:
        """Test address is shown when name is empty."""
        assert Device(id="d", name="", address="10.0.0.1").display_name == "10.0.0.1"
        assert Device(id="d", name="Kitchen", address="10.0.0.1").display_name == "Kitchen"

    def test_with_online(self) -> None:
        """Test with_online returns an updated copy."""
        device = Device(id="d", name="Kitchen", address="10.0.0.1")
        online = device.with_online(True)
        assert online.online is True
        assert device.online is False
        assert online.id == device.id


class TestSource:
    """Tests for Source."""

    def test_local(self) -> None:
        """Test local-queue source detection."""
        assert Source(id=LOCAL_SOURCE_ID).is_local
        assert not Source(id="spotify", name="Spotify").is_local

    def test_display_name(self) -> None:
        """Test id fallback for display."""
        assert Source(id="linein").display_name == "linein"


class TestPlaylist:
    """Tests for Playlist."""

    def test_duplicates_preserved(self) -> None:
        """Test duplicate track ids are allowed."""
        playlist = Playlist(id="p", name="Loop", track_ids=("a", "a", "b"))
        assert len(playlist) == 3

    def test_create_playlist(self) -> None:
        """Test generated ids are unique."""
        first = create_playlist("One", ["a"])
        second = create_playlist("Two")
        assert first.id != second.id
        assert first.track_ids == ("a",)
        assert second.track_ids == ()


class TestPlayMode:
    """Tests for PlayMode."""

    def test_cycle_order(self) -> None:
        """Test the fixed cycle order."""
        mode = PlayMode.SEQUENTIAL
        seen = []
        for _ in range(5):
            seen.append(mode)
            mode = mode.next()
        assert seen == [
            PlayMode.SEQUENTIAL,
            PlayMode.REPEAT_LIST,
            PlayMode.REPEAT_ONE,
            PlayMode.SHUFFLE,
            PlayMode.SEQUENTIAL,
        ]

    def test_from_shuffle(self) -> None:
        """Test the device shuffle flag mapping."""
        assert PlayMode.from_shuffle(True) == PlayMode.SHUFFLE
        assert PlayMode.from_shuffle(False) == PlayMode.SEQUENTIAL

    def test_label(self) -> None:
        """Test human-readable labels."""
        assert PlayMode.REPEAT_LIST.label == "repeat list"


class TestPlayState:
    """Tests for PlayState parsing."""

    def test_from_string(self) -> None:
        """Test known and unknown wire values."""
        assert PlayState.from_string("playing") == PlayState.PLAYING
        assert PlayState.from_string("Paused") == PlayState.PAUSED
        assert PlayState.from_string("rewinding") is None
        assert PlayState.from_string(None) is None


class TestPlaybackState:
    """Tests for PlaybackState invariants."""

    def test_defaults(self) -> None:
        """Test the reset state."""
        state = PlaybackState.defaults()
        assert state.play_state == PlayState.STOPPED
        assert state.progress == 0
        assert state.volume == DEFAULT_VOLUME
        assert state.active_source_id == LOCAL_SOURCE_ID
        assert state.play_mode == PlayMode.SEQUENTIAL
        assert state.current_track is None

    def test_volume_clamped(self) -> None:
        """Test volume stays within 0-100."""
        assert PlaybackState(volume=150).volume == 100
        assert PlaybackState(volume=-3).volume == 0

    def test_progress_zero_without_track(self) -> None:
        """Test progress is 0 when no track is present."""
        assert PlaybackState(progress=42).progress == 0

    def test_progress_clamped_to_duration(self) -> None:
        """Test progress stays within the track duration."""
        track = Track(id="t", title="Song", duration=100)
        assert PlaybackState(progress=150, current_track=track).progress == 100
        assert PlaybackState(progress=-1, current_track=track).progress == 0
        assert PlaybackState(progress=30, current_track=track).progress == 30

    def test_field_names(self) -> None:
        """Test the field name set used for update validation."""
        assert PlaybackState.field_names() == {
            "play_state",
            "progress",
            "volume",
            "active_source_id",
            "play_mode",
            "current_track",
        }

    def test_display_progress(self) -> None:
        """Test m:ss formatting."""
        track = Track(id="t", title="Song", duration=300)
        assert PlaybackState(progress=61, current_track=track).display_progress == "1:01"
