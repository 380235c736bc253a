"""Local track queue and play-mode advance rules.

The queue is derived from a playlist by resolving its track ids against the
library catalogue. Advancing is purely local: it needs no device round-trip.

Advance rules:

    mode          forward                 backward
    sequential    index+1, STOP past end  index-1, wraps
    repeat-list   index+1, wraps          index-1, wraps
    repeat-one    same track              index-1, wraps
    shuffle       random index            random index
"""

import logging
import random
from collections.abc import Iterable, Sequence
from enum import StrEnum
from typing import Final

from PySide6.QtCore import QObject, Signal

from beoctrl.models.playback import PlayMode
from beoctrl.models.playlist import Playlist
from beoctrl.models.track import Track

logger = logging.getLogger(__name__)


class Direction(StrEnum):
    """Direction of a queue advance."""

    FORWARD = "forward"
    BACKWARD = "backward"


class _Stop:
    """Sentinel returned when the queue has run out."""

    _instance: "_Stop | None" = None

    def __new__(cls) -> "_Stop":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "STOP"

    def __bool__(self) -> bool:
        return False


STOP: Final = _Stop()


def resolve_queue(playlist: Playlist, catalogue: Iterable[Track]) -> list[Track]:
    """Resolve a playlist's track ids against the catalogue.

    Unknown ids are dropped silently; order and duplicates are preserved.

    Args:
        playlist: The playlist to resolve.
        catalogue: All available tracks.

    Returns:
        Ordered list of tracks.
    """
    by_id = {track.id: track for track in catalogue}
    queue = [by_id[track_id] for track_id in playlist.track_ids if track_id in by_id]
    dropped = len(playlist.track_ids) - len(queue)
    if dropped:
        logger.debug("Playlist %s: %d track ids not in catalogue", playlist.id, dropped)
    return queue


def _index_of(track: Track | None, queue: Sequence[Track]) -> int:
    """Return the queue index of a track by id, or -1."""
    if track is None:
        return -1
    for index, candidate in enumerate(queue):
        if candidate.id == track.id:
            return index
    return -1


def advance(
    direction: Direction,
    current_track: Track | None,
    queue: Sequence[Track],
    mode: PlayMode,
    *,
    rng: random.Random | None = None,
) -> Track | _Stop:
    """Pick the track to play after a next/previous command.

    A current track that is not in the queue (e.g., set by a device event)
    counts as sitting before the first track. Repeat-one replays the current
    track whether or not it is queued.

    Args:
        direction: Forward (next) or backward (previous).
        current_track: The track playing now, or None.
        queue: The resolved queue.
        mode: Active play mode.
        rng: Random source for shuffle (module-level random if omitted).

    Returns:
        The track to play, or STOP when a sequential queue runs out.
    """
    if not queue:
        return STOP

    length = len(queue)

    if mode == PlayMode.SHUFFLE:
        chooser = rng or random
        return queue[chooser.randrange(length)]

    index = _index_of(current_track, queue)

    if direction == Direction.BACKWARD:
        return queue[(max(index, 0) - 1) % length]

    if mode == PlayMode.REPEAT_ONE:
        return current_track if current_track is not None else queue[0]

    next_index = index + 1
    if next_index >= length:
        if mode == PlayMode.SEQUENTIAL:
            return STOP
        next_index %= length
    return queue[next_index]


class QueueController(QObject):
    """Holds the active playlist's resolved queue.

    Independent of device connectivity; the controller consults it for
    next/previous on the local source.

    Example:
        queue = QueueController()
        queue.load_playlist(playlist, library.list_tracks())
        track = queue.next_track(state.current_track, state.play_mode)
    """

    # Emitted with the new list of tracks whenever the queue changes
    queue_changed = Signal(object)

    def __init__(self, rng: random.Random | None = None, parent: QObject | None = None) -> None:
        """Initialize an empty queue.

        Args:
            rng: Random source for shuffle (tests pass a seeded one).
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._rng = rng
        self._playlist: Playlist | None = None
        self._queue: list[Track] = []

    @property
    def playlist(self) -> Playlist | None:
        """Return the loaded playlist."""
        return self._playlist

    @property
    def tracks(self) -> list[Track]:
        """Return a copy of the resolved queue."""
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def load_playlist(self, playlist: Playlist, catalogue: Iterable[Track]) -> list[Track]:
        """Resolve and load a playlist.

        Returns:
            The resolved queue.
        """
        self._playlist = playlist
        self._set_queue(resolve_queue(playlist, catalogue))
        return self.tracks

    def refresh(self, catalogue: Iterable[Track]) -> list[Track]:
        """Re-resolve the loaded playlist (e.g., after a library rescan)."""
        if self._playlist is None:
            return []
        return self.load_playlist(self._playlist, catalogue)

    def clear(self) -> None:
        """Unload the playlist."""
        self._playlist = None
        self._set_queue([])

    def find(self, track_id: str) -> Track | None:
        """Return the queued track with the given id, or None."""
        for track in self._queue:
            if track.id == track_id:
                return track
        return None

    def next_track(self, current: Track | None, mode: PlayMode) -> Track | _Stop:
        """Return the track after ``current`` under ``mode``."""
        return advance(Direction.FORWARD, current, self._queue, mode, rng=self._rng)

    def previous_track(self, current: Track | None, mode: PlayMode) -> Track | _Stop:
        """Return the track before ``current`` under ``mode``."""
        return advance(Direction.BACKWARD, current, self._queue, mode, rng=self._rng)

    def _set_queue(self, queue: list[Track]) -> None:
        if queue != self._queue:
            self._queue = queue
            self.queue_changed.emit(self.tracks)
