"""Tagged state updates applied through PlaybackStateStore.apply().

Every write to playback state is one of:

- Optimistic: a local guess made when the user issues a command.
- Authoritative: a value reported by the device (stream event or fetch).
- Reset: back to defaults (device selection changed).
"""

import itertools
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from beoctrl.models.playback import PlaybackState

_write_ids = itertools.count(1)


@dataclass(frozen=True)
class _FieldUpdate:
    fields: Mapping[str, Any]

    def __post_init__(self) -> None:
        unknown = set(self.fields) - PlaybackState.field_names()
        if unknown:
            raise ValueError(f"Unknown playback state fields: {sorted(unknown)}")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def names(self) -> frozenset[str]:
        """Return the names of the fields this update writes."""
        return frozenset(self.fields)


@dataclass(frozen=True)
class Optimistic(_FieldUpdate):
    """Local guess for the fields a user command affects.

    Attributes:
        fields: Field name to value.
        write_id: Unique id used to match a later rollback to this write.
    """

    write_id: int = field(default_factory=lambda: next(_write_ids), compare=False)

    @classmethod
    def of(cls, **fields: Any) -> "Optimistic":
        """Create an optimistic update from keyword fields."""
        return cls(fields)


@dataclass(frozen=True)
class Authoritative(_FieldUpdate):
    """Device-reported values. Always overwrite the named fields."""

    @classmethod
    def of(cls, **fields: Any) -> "Authoritative":
        """Create an authoritative update from keyword fields."""
        return cls(fields)

    @classmethod
    def from_state(cls, state: PlaybackState) -> "Authoritative":
        """Create an update that overwrites every field with a fetched state."""
        return cls({name: getattr(state, name) for name in PlaybackState.field_names()})


@dataclass(frozen=True)
class Reset:
    """Return the store to defaults and forget pending guesses."""


StateUpdate = Optimistic | Authoritative | Reset
