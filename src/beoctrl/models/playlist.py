"""Playlist model."""

import uuid
from dataclasses import dataclass, replace
from typing import Self


@dataclass(frozen=True, slots=True)
class Playlist:
    """A user playlist.

    Attributes:
        id: Unique playlist identifier.
        name: Playlist name.
        track_ids: Ordered track ids; order defines queue order and
            duplicates are allowed.
    """

    id: str
    name: str
    track_ids: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.track_ids)

    def with_tracks(self, track_ids: list[str] | tuple[str, ...]) -> Self:
        """Return a copy with a new track list."""
        return replace(self, track_ids=tuple(track_ids))


def create_playlist(name: str, track_ids: list[str] | None = None) -> Playlist:
    """Create a new Playlist with a generated ID.

    Args:
        name: Playlist name.
        track_ids: Initial ordered track ids.

    Returns:
        New Playlist.
    """
    return Playlist(id=uuid.uuid4().hex[:12], name=name, track_ids=tuple(track_ids or ()))
