"""Track model representing a playable audio item."""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Artwork used when neither the library nor the device supplies one
DEFAULT_ART_URL = "https://placehold.co/300x300.png"

# Prefix for synthetic tracks standing in for an external source
PLACEHOLDER_PREFIX = "source:"


@dataclass(frozen=True, slots=True)
class Track:
    """A single audio track.

    Attributes:
        id: Unique track identifier (library id or device-reported id).
        title: Track title.
        artist: Artist name.
        art_url: Album art URL.
        duration: Length in seconds (0 when unknown).
        path: Absolute file path for local library tracks, empty otherwise.
    """

    id: str
    title: str
    artist: str = "Unknown Artist"
    art_url: str = DEFAULT_ART_URL
    duration: float = 0
    path: str = ""

    def __post_init__(self) -> None:
        """Clamp negative durations to 0 (unknown)."""
        if self.duration < 0:
            logger.warning(
                "Track %s has negative duration %s, treating as unknown",
                self.id,
                self.duration,
            )
            object.__setattr__(self, "duration", 0)

    @classmethod
    def placeholder(cls, source_id: str, source_name: str = "") -> "Track":
        """Create the synthetic track shown while playing from an external source.

        Args:
            source_id: ID of the active source.
            source_name: Human-readable source name, if known.

        Returns:
            A zero-duration Track that is never part of a queue.
        """
        return cls(
            id=f"{PLACEHOLDER_PREFIX}{source_id}",
            title=f"Playing from {source_name or source_id}",
            artist="",
            duration=0,
        )

    @property
    def is_placeholder(self) -> bool:
        """Return True if this is a synthetic external-source track."""
        return self.id.startswith(PLACEHOLDER_PREFIX)

    @property
    def is_local(self) -> bool:
        """Return True if the track refers to a local file."""
        return bool(self.path)

    @property
    def display_duration(self) -> str:
        """Return duration formatted as m:ss."""
        total = int(self.duration)
        return f"{total // 60}:{total % 60:02d}"
