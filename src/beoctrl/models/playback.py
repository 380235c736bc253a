"""Playback state model for a single device."""

import logging
from dataclasses import dataclass, fields
from enum import StrEnum
from typing import Self

from beoctrl.models.source import LOCAL_SOURCE_ID
from beoctrl.models.track import Track

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 50
MIN_VOLUME = 0
MAX_VOLUME = 100


class PlayState(StrEnum):
    """Transport state reported by a device."""

    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"

    @classmethod
    def from_string(cls, value: object) -> "PlayState | None":
        """Parse a wire value, returning None for unknown states."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class PlayMode(StrEnum):
    """Track-advance policy.

    The cycle order sequential -> repeat-list -> repeat-one -> shuffle is
    fixed and relied upon by the play-mode button.
    """

    SEQUENTIAL = "sequential"
    REPEAT_LIST = "repeat-list"
    REPEAT_ONE = "repeat-one"
    SHUFFLE = "shuffle"

    def next(self) -> "PlayMode":
        """Return the mode that follows this one in the cycle."""
        members = list(PlayMode)
        return members[(members.index(self) + 1) % len(members)]

    @classmethod
    def from_shuffle(cls, shuffle: bool) -> "PlayMode":
        """Map the device's boolean shuffle flag to a play mode."""
        return cls.SHUFFLE if shuffle else cls.SEQUENTIAL

    @property
    def label(self) -> str:
        """Return a human-readable label."""
        return self.value.replace("-", " ")


@dataclass(frozen=True, slots=True)
class PlaybackState:
    """Canonical playback status of one device.

    Attributes:
        play_state: Transport state.
        progress: Playhead position in seconds.
        volume: Output level 0-100.
        active_source_id: ID of the active source ("local" for the queue).
        play_mode: Track-advance policy.
        current_track: Track being played, or None.
    """

    play_state: PlayState = PlayState.STOPPED
    progress: float = 0
    volume: int = DEFAULT_VOLUME
    active_source_id: str = LOCAL_SOURCE_ID
    play_mode: PlayMode = PlayMode.SEQUENTIAL
    current_track: Track | None = None

    def __post_init__(self) -> None:
        """Clamp volume and progress into their valid ranges."""
        if self.volume < MIN_VOLUME or self.volume > MAX_VOLUME:
            clamped = max(MIN_VOLUME, min(MAX_VOLUME, self.volume))
            logger.debug("Volume %d out of range, clamped to %d", self.volume, clamped)
            object.__setattr__(self, "volume", clamped)

        upper = self.current_track.duration if self.current_track else 0
        if self.progress < 0 or self.progress > upper:
            object.__setattr__(self, "progress", max(0, min(upper, self.progress)))

    @classmethod
    def defaults(cls) -> Self:
        """Return the state shown before a device has reported anything."""
        return cls()

    @staticmethod
    def field_names() -> frozenset[str]:
        """Return the names of all state fields."""
        return frozenset(f.name for f in fields(PlaybackState))

    @property
    def is_playing(self) -> bool:
        """Return True if the device is playing."""
        return self.play_state == PlayState.PLAYING

    @property
    def is_local_source(self) -> bool:
        """Return True if playback comes from the local queue."""
        return self.active_source_id == LOCAL_SOURCE_ID

    @property
    def display_progress(self) -> str:
        """Return progress formatted as m:ss."""
        total = int(self.progress)
        return f"{total // 60}:{total % 60:02d}"
