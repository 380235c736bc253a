"""Per-device playback state store with Qt signals for reactive updates.

The store holds the canonical PlaybackState of the selected device. All writes
go through apply(), which serializes optimistic guesses (from user commands)
and authoritative values (from the device) under one precedence rule:

- An optimistic update only sets the fields of its command and marks them
  pending.
- An authoritative update always overwrites its fields and clears their
  pending marks, whatever guesses are outstanding.

One store exists per selected device. When the selection changes the old
store is closed, after which every write is dropped, so a late event from a
previous device can never leak into the new one.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from PySide6.QtCore import QObject, Signal

from beoctrl.core.updates import Authoritative, Optimistic, Reset, StateUpdate
from beoctrl.models.playback import PlaybackState

logger = logging.getLogger(__name__)


def _precedence(update: StateUpdate) -> int:
    """Sort key placing authoritative writes after optimistic ones in a batch."""
    return 1 if isinstance(update, Authoritative) else 0


class PlaybackStateStore(QObject):
    """Canonical playback state for one device.

    Example:
        store = PlaybackStateStore("dev-1")
        store.state_changed.connect(lambda s: print(s.volume))

        guess = Optimistic.of(volume=30)
        store.apply(guess)                          # volume 30, pending
        store.apply(Authoritative.of(volume=25))    # device wins: volume 25
    """

    # Emitted with the new PlaybackState whenever any field changes
    state_changed = Signal(object)

    # Emitted with the new current track (Track | None) when it changes
    track_changed = Signal(object)

    # Emitted after the store has been reset to defaults
    state_reset = Signal()

    def __init__(self, device_id: str = "", parent: QObject | None = None) -> None:
        """Initialize the store at default state.

        Args:
            device_id: ID of the device this store belongs to.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._device_id = device_id
        self._state = PlaybackState.defaults()
        self._pending: dict[str, Optimistic] = {}
        self._closed = False

    @property
    def device_id(self) -> str:
        """Return the owning device ID."""
        return self._device_id

    @property
    def state(self) -> PlaybackState:
        """Return the current state."""
        return self._state

    @property
    def pending_fields(self) -> frozenset[str]:
        """Return fields holding an unconfirmed optimistic value."""
        return frozenset(self._pending)

    @property
    def closed(self) -> bool:
        """Return True once the store no longer accepts writes."""
        return self._closed

    def close(self) -> None:
        """Stop accepting writes (device deselected)."""
        self._closed = True
        self._pending.clear()

    def apply(self, update: StateUpdate) -> PlaybackState:
        """Apply a single update.

        Args:
            update: Optimistic, Authoritative, or Reset.

        Returns:
            The resulting state.
        """
        return self.apply_all([update])

    def apply_all(self, updates: Iterable[StateUpdate]) -> PlaybackState:
        """Apply updates received in one processing step.

        Within a batch, authoritative writes land after optimistic ones so a
        device value wins for any field both touch; otherwise arrival order
        is kept. Only updates after the last Reset in the batch count.

        Args:
            updates: Updates in arrival order.

        Returns:
            The resulting state.
        """
        if self._closed:
            logger.debug("Dropping writes to closed store for %s", self._device_id)
            return self._state

        batch = list(updates)
        reset = False
        for index in range(len(batch) - 1, -1, -1):
            if isinstance(batch[index], Reset):
                batch = batch[index + 1 :]
                reset = True
                break

        old = self._state
        new = PlaybackState.defaults() if reset else old
        if reset:
            self._pending.clear()

        merged: dict[str, Any] = {}
        for update in sorted(batch, key=_precedence):
            if isinstance(update, Optimistic):
                merged.update(update.fields)
                for name in update.names:
                    self._pending[name] = update
            elif isinstance(update, Authoritative):
                merged.update(update.fields)
                for name in update.names:
                    self._pending.pop(name, None)

        if merged:
            new = replace(new, **merged)

        self._commit(old, new, reset=reset)
        return self._state

    def rollback(self, update: Optimistic, prior: PlaybackState) -> bool:
        """Undo an optimistic write after its command failed.

        Only fields still pending from this exact write are restored; any
        field since overwritten by the device or by a newer guess is left
        alone.

        Args:
            update: The optimistic update to undo.
            prior: State captured before the update was applied.

        Returns:
            True if any field was restored.
        """
        if self._closed:
            return False
        names = [n for n in update.names if self._pending.get(n) is update]
        if not names:
            return False
        for name in names:
            del self._pending[name]
        old = self._state
        new = replace(old, **{name: getattr(prior, name) for name in names})
        logger.debug("Rolled back %s for %s", names, self._device_id)
        self._commit(old, new)
        return True

    def reset(self) -> None:
        """Return to defaults and forget pending guesses."""
        self.apply(Reset())

    def _commit(self, old: PlaybackState, new: PlaybackState, *, reset: bool = False) -> None:
        """Store the new state and emit signals for what changed."""
        self._state = new
        if reset:
            self.state_reset.emit()
        if new != old:
            if new.current_track != old.current_track:
                self.track_changed.emit(new.current_track)
            self.state_changed.emit(new)
