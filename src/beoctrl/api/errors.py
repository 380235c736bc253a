"""Error kinds and command results for device communication."""

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification of failures talking to a device."""

    UNREACHABLE = "unreachable"  # probe/command/stream transport failure
    MALFORMED_EVENT = "malformed_event"  # stream payload failed to decode
    CANCELLED = "cancelled"  # intentional stream teardown, not a failure
    COMMAND_REJECTED = "command_rejected"  # device answered but refused


class BeoError(Exception):
    """Base class for device communication errors."""

    kind: ErrorKind = ErrorKind.UNREACHABLE


class UnreachableError(BeoError):
    """The device could not be reached (network error, timeout)."""

    kind = ErrorKind.UNREACHABLE


class MalformedEventError(BeoError):
    """A notification payload could not be decoded."""

    kind = ErrorKind.MALFORMED_EVENT


class CommandRejectedError(BeoError):
    """The device responded with a non-success status."""

    kind = ErrorKind.COMMAND_REJECTED

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a device command. Commands never raise; they return this.

    Attributes:
        ok: True if the device accepted the command.
        error: Failure kind, None on success.
        message: Human-readable detail for logs and notices.
    """

    ok: bool
    error: ErrorKind | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "CommandResult":
        """Return a successful result."""
        return cls(ok=True)

    @classmethod
    def failure(cls, error: ErrorKind, message: str = "") -> "CommandResult":
        """Return a failed result of the given kind."""
        return cls(ok=False, error=error, message=message)

    @classmethod
    def from_error(cls, error: BeoError) -> "CommandResult":
        """Convert a BeoError into a failed result."""
        return cls(ok=False, error=error.kind, message=str(error))
