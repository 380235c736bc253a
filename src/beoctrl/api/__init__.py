"""HTTP API client and notification wire format for network audio devices."""

from beoctrl.api.client import DeviceClient
from beoctrl.api.errors import (
    BeoError,
    CommandRejectedError,
    CommandResult,
    ErrorKind,
    MalformedEventError,
    UnreachableError,
)
from beoctrl.api.protocol import EventType, NotificationEnvelope

__all__ = [
    "DeviceClient",
    "BeoError",
    "CommandRejectedError",
    "CommandResult",
    "ErrorKind",
    "EventType",
    "MalformedEventError",
    "NotificationEnvelope",
    "UnreachableError",
]
