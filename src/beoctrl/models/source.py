"""Source model for playback origins offered by a device."""

from dataclasses import dataclass

# Source id used for the locally managed queue
LOCAL_SOURCE_ID = "local"


@dataclass(frozen=True, slots=True)
class Source:
    """A playback source on a device (local queue, streaming service, line-in, ...).

    Attributes:
        id: Source identifier as reported by the device.
        name: Human-readable name ("friendlyName" on the wire).
        kind: Source type (e.g., "spotify", "line-in", "bluetooth").
    """

    id: str
    name: str = ""
    kind: str = ""

    @property
    def display_name(self) -> str:
        """Return name or id as fallback for display."""
        return self.name or self.id

    @property
    def is_local(self) -> bool:
        """Return True if this is the local-queue source."""
        return self.id == LOCAL_SOURCE_ID
