"""Track catalogue and playlists persisted in QSettings.

The catalogue is whatever the caller last stored with set_tracks(); scanning
folders and reading file tags happen elsewhere.
"""

import logging
from typing import cast

from PySide6.QtCore import QSettings

from beoctrl.models.playlist import Playlist
from beoctrl.models.track import DEFAULT_ART_URL, Track

logger = logging.getLogger(__name__)

_KEY_TRACKS = "library/tracks"
_KEY_PLAYLISTS = "library/playlists"


def _track_to_dict(track: Track) -> dict[str, object]:
    return {
        "id": track.id,
        "title": track.title,
        "artist": track.artist,
        "art_url": track.art_url,
        "duration": track.duration,
        "path": track.path,
    }


def _track_from_dict(item: dict[str, object]) -> Track | None:
    track_id = item.get("id")
    title = item.get("title")
    if not track_id or not title:
        return None
    duration = item.get("duration", 0)
    try:
        duration_val = float(duration)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        duration_val = 0
    return Track(
        id=str(track_id),
        title=str(title),
        artist=str(item.get("artist") or "Unknown Artist"),
        art_url=str(item.get("art_url") or DEFAULT_ART_URL),
        duration=duration_val,
        path=str(item.get("path") or ""),
    )


class Library:
    """Catalogue of playable tracks plus the user's playlists.

    Example:
        library = Library(config.settings)
        library.set_tracks(scanned)
        library.save_playlist(create_playlist("Evening", [t.id for t in scanned]))
    """

    def __init__(self, settings: QSettings) -> None:
        """Initialize the library.

        Args:
            settings: QSettings instance to persist into.
        """
        self._settings = settings

    def _load(self, key: str) -> list[dict[str, object]]:
        raw_data = self._settings.value(key, [], list)
        if not isinstance(raw_data, list):
            return []
        return [
            cast(dict[str, object], item)
            for item in cast(list[object], raw_data)
            if isinstance(item, dict)
        ]

    # -- Tracks ----------------------------------------------------------------

    def list_tracks(self) -> list[Track]:
        """Return the catalogue in stored order."""
        tracks: list[Track] = []
        for item in self._load(_KEY_TRACKS):
            track = _track_from_dict(item)
            if track is None:
                logger.warning("Skipping invalid track entry: %r", item)
                continue
            tracks.append(track)
        return tracks

    def set_tracks(self, tracks: list[Track]) -> None:
        """Replace the catalogue."""
        self._settings.setValue(_KEY_TRACKS, [_track_to_dict(t) for t in tracks])
        logger.debug("Catalogue now holds %d tracks", len(tracks))

    def get_track(self, track_id: str) -> Track | None:
        """Return the catalogue track with the given ID, or None."""
        for track in self.list_tracks():
            if track.id == track_id:
                return track
        return None

    # -- Playlists -------------------------------------------------------------

    def playlists(self) -> list[Playlist]:
        """Return all playlists in stored order."""
        result: list[Playlist] = []
        for item in self._load(_KEY_PLAYLISTS):
            playlist_id = item.get("id")
            if not playlist_id:
                continue
            raw_ids = item.get("track_ids") or []
            track_ids = (
                tuple(str(t) for t in cast(list[object], raw_ids))
                if isinstance(raw_ids, list)
                else ()
            )
            result.append(
                Playlist(id=str(playlist_id), name=str(item.get("name") or ""), track_ids=track_ids)
            )
        return result

    def get_playlist(self, playlist_id: str) -> Playlist | None:
        """Return the playlist with the given ID, or None."""
        for playlist in self.playlists():
            if playlist.id == playlist_id:
                return playlist
        return None

    def _save_playlists(self, playlists: list[Playlist]) -> None:
        data = [{"id": p.id, "name": p.name, "track_ids": list(p.track_ids)} for p in playlists]
        self._settings.setValue(_KEY_PLAYLISTS, data)

    def save_playlist(self, playlist: Playlist) -> None:
        """Add a playlist, replacing one with the same ID in place."""
        playlists = self.playlists()
        for index, existing in enumerate(playlists):
            if existing.id == playlist.id:
                playlists[index] = playlist
                break
        else:
            playlists.append(playlist)
        self._save_playlists(playlists)

    def delete_playlist(self, playlist_id: str) -> bool:
        """Remove a playlist.

        Returns:
            True if a playlist was removed, False if not found.
        """
        playlists = self.playlists()
        remaining = [p for p in playlists if p.id != playlist_id]
        if len(remaining) == len(playlists):
            return False
        self._save_playlists(remaining)
        return True
