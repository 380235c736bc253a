"""QThread worker hosting the engine's asyncio loop.

Qt objects on the main thread must not block on network I/O. The worker runs
an asyncio event loop in a background thread, creates the Controller there,
and exposes thread-safe methods that schedule controller coroutines on that
loop. Controller signals reach main-thread receivers via queued connections.
"""

import asyncio
import concurrent.futures
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import httpx
from PySide6.QtCore import QThread, Signal

from beoctrl.core.config import ConfigManager
from beoctrl.core.controller import Controller
from beoctrl.core.library import Library
from beoctrl.core.registry import DeviceRegistry
from beoctrl.models.device import Device
from beoctrl.models.playback import PlayMode

logger = logging.getLogger(__name__)


class EngineWorker(QThread):
    """Background thread running the sync engine.

    Example:
        worker = EngineWorker(config)
        worker.ready.connect(lambda c: c.state_changed.connect(on_state))
        worker.start()
        worker.select_device(device)
        ...
        worker.stop()
        worker.wait()
    """

    # Emitted with the Controller once it exists on the worker thread
    ready = Signal(object)

    # Emitted with an Exception when the loop dies unexpectedly
    error_occurred = Signal(object)

    def __init__(
        self,
        config: ConfigManager,
        *,
        restore_session: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            config: Config manager providing settings and session storage.
            restore_session: Reselect the last device on start.
            transport: Optional httpx transport (used by tests).
        """
        super().__init__()
        self._config = config
        self._restore_session = restore_session
        self._transport = transport
        self._controller: Controller | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._should_run = True

    @property
    def controller(self) -> Controller | None:
        """Return the controller, None until the worker is ready."""
        return self._controller

    @property
    def is_running_loop(self) -> bool:
        """Return True while the asyncio loop accepts work."""
        return self._loop is not None and self._loop.is_running()

    def stop(self) -> None:
        """Ask the worker to shut down (called from main thread)."""
        self._should_run = False
        if self._loop and self._loop.is_running() and self._stop_event is not None:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    def submit(
        self,
        factory: Callable[[Controller], Coroutine[Any, Any, Any]],
    ) -> concurrent.futures.Future[Any] | None:
        """Schedule a controller coroutine on the engine loop.

        Thread-safe call from main thread.

        Args:
            factory: Called with the controller, returns the coroutine to run.

        Returns:
            Future for the result, or None if the engine is not running.
        """
        if not self.is_running_loop or self._controller is None:
            logger.debug("Engine not running, dropping request")
            return None
        assert self._loop is not None
        future = asyncio.run_coroutine_threadsafe(factory(self._controller), self._loop)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: concurrent.futures.Future[Any]) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Engine request failed: %s", error)
            self.error_occurred.emit(error)

    # Thread-safe command surface

    def select_device(self, device: Device) -> None:
        """Select a device. Thread-safe."""
        self.submit(lambda c: c.select_device(device))

    def toggle_play(self) -> None:
        """Toggle play/pause. Thread-safe."""
        self.submit(lambda c: c.toggle_play())

    def seek(self, seconds: float) -> None:
        """Seek within the current track. Thread-safe."""
        self.submit(lambda c: c.seek(seconds))

    def set_volume(self, level: int) -> None:
        """Set the volume. Thread-safe."""
        self.submit(lambda c: c.set_volume(level))

    def next_track(self) -> None:
        """Advance to the next track. Thread-safe."""
        self.submit(lambda c: c.next_track())

    def previous_track(self) -> None:
        """Step back to the previous track. Thread-safe."""
        self.submit(lambda c: c.previous_track())

    def change_source(self, source_id: str) -> None:
        """Switch the active source. Thread-safe."""
        self.submit(lambda c: c.change_source(source_id))

    def set_play_mode(self, mode: PlayMode) -> None:
        """Set the play mode. Thread-safe."""
        self.submit(lambda c: c.set_play_mode(mode))

    def cycle_play_mode(self) -> None:
        """Move to the next play mode. Thread-safe."""
        self.submit(lambda c: c.cycle_play_mode())

    def select_playlist(self, playlist_id: str) -> None:
        """Load a playlist into the queue. Thread-safe."""
        self.submit(lambda c: _call(c.select_playlist, playlist_id))

    def select_track(self, track_id: str) -> None:
        """Play a queued track. Thread-safe."""
        self.submit(lambda c: c.select_track(track_id))

    def add_device(self, name: str, address: str) -> None:
        """Register and select a device. Thread-safe."""
        self.submit(lambda c: c.add_device(name, address))

    def delete_device(self, device_id: str) -> None:
        """Remove a device. Thread-safe."""
        self.submit(lambda c: c.delete_device(device_id))

    # Thread entry

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        try:
            self._loop.run_until_complete(self._main())
        except Exception as e:
            logger.exception("Engine loop failed")
            self.error_occurred.emit(e)
        finally:
            self._loop.close()
            self._loop = None
            self._controller = None
            self._stop_event = None

    async def _main(self) -> None:
        """Create the controller and serve requests until stopped."""
        self._stop_event = asyncio.Event()
        if not self._should_run:
            return

        settings = self._config.settings
        self._controller = Controller(
            DeviceRegistry(settings),
            Library(settings),
            self._config,
            transport=self._transport,
        )
        logger.info("Engine started")
        self.ready.emit(self._controller)

        try:
            if self._restore_session:
                await self._controller.restore_session()
            await self._stop_event.wait()
        finally:
            await self._controller.shutdown()
            logger.info("Engine stopped")


async def _call(func: Callable[[str], Any], arg: str) -> Any:
    """Run a synchronous controller method on the engine loop."""
    return func(arg)
