"""Device model representing a controllable network audio endpoint."""

from dataclasses import dataclass, replace
from typing import Self


@dataclass(frozen=True, slots=True)
class Device:
    """A network audio device known to the registry.

    Attributes:
        id: Unique identifier assigned by the registry.
        name: Human-readable name (e.g., "Kitchen").
        address: IP address or hostname, unique within the registry.
        online: Reachability as of the last probe. Never persisted.
    """

    id: str
    name: str
    address: str
    online: bool = False

    @property
    def display_name(self) -> str:
        """Return name or address as fallback for display."""
        return self.name or self.address

    def with_online(self, online: bool) -> Self:
        """Return a copy with the online flag changed.

        Args:
            online: New reachability value.

        Returns:
            New Device with updated online flag.
        """
        return replace(self, online=online)
