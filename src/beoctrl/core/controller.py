"""Controller - wires device selection, commands, and the notification stream.

The controller owns the working set for the selected device: one
PlaybackStateStore, at most one NotificationStream, one HealthMonitor, and
one DeviceClient. All of it lives on the engine's asyncio loop.

Command flow:
    user action -> Controller.<command>
    -> PlaybackStateStore.apply(Optimistic)   (immediate)
    -> DeviceClient.<command>                 (device call)
    -> warning_reported on failure, rollback for play/pause only

Event flow:
    NotificationStream -> Controller.handle_notification
    -> PlaybackStateStore.apply(Authoritative)
"""

import asyncio
import functools
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import httpx
from PySide6.QtCore import QObject, Signal

from beoctrl.api.client import DeviceClient
from beoctrl.api.errors import CommandResult, ErrorKind
from beoctrl.api.protocol import NotificationEnvelope, event_to_fields
from beoctrl.core.config import ConfigManager, EngineSettings
from beoctrl.core.discovery import DeviceDiscovery, DiscoveredDevice
from beoctrl.core.health import HealthMonitor, probe, probe_all
from beoctrl.core.library import Library
from beoctrl.core.queue import STOP, QueueController
from beoctrl.core.registry import DeviceRegistry
from beoctrl.core.state import PlaybackStateStore
from beoctrl.core.stream import NotificationStream
from beoctrl.core.updates import Authoritative, Optimistic, Reset
from beoctrl.models.device import Device
from beoctrl.models.playback import MAX_VOLUME, MIN_VOLUME, PlaybackState, PlayMode, PlayState
from beoctrl.models.source import LOCAL_SOURCE_ID, Source
from beoctrl.models.track import Track

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Device], DeviceClient]
DiscoverFunc = Callable[[float], list[DiscoveredDevice]]


@dataclass(frozen=True, slots=True)
class CommandWarning:
    """A failed command, reported for user-visible notice.

    Attributes:
        command: Name of the command (e.g., "set_volume").
        error: Failure kind.
        message: Detail from the client.
    """

    command: str
    error: ErrorKind | None
    message: str = ""

    @classmethod
    def from_result(cls, command: str, result: CommandResult) -> "CommandWarning":
        """Build a warning from a failed CommandResult."""
        return cls(command=command, error=result.error, message=result.message)


class Controller(QObject):
    """Orchestrates the selected device and exposes the command surface.

    Example:
        controller = Controller(registry, library, config)
        controller.state_changed.connect(on_state)
        await controller.select_device(registry.list()[0])
        await controller.toggle_play()
    """

    # Emitted with the selected Device (or None after deselect)
    device_changed = Signal(object)

    # Emitted with the PlaybackState of the selected device
    state_changed = Signal(object)

    # Emitted with the list of Source offered by the selected device
    sources_changed = Signal(list)

    # Emitted with the resolved queue (list of Track)
    queue_changed = Signal(list)

    # Emitted with a CommandWarning when a device command fails
    warning_reported = Signal(object)

    # Emitted when the selected device goes online or offline
    online_changed = Signal(bool)

    def __init__(
        self,
        registry: DeviceRegistry,
        library: Library,
        config: ConfigManager | None = None,
        *,
        settings: EngineSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client_factory: ClientFactory | None = None,
        discover: DiscoverFunc | None = None,
        queue: QueueController | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            registry: Known devices.
            library: Track catalogue and playlists.
            config: Session persistence; nothing is remembered if omitted.
            settings: Engine settings (read from config when omitted).
            transport: Optional httpx transport shared by every device
                connection (used by tests).
            client_factory: Builds the command client for a device.
            discover: Blocking discovery function, run in an executor.
            queue: Queue controller (a fresh one if omitted).
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._registry = registry
        self._library = library
        self._config = config
        if settings is None:
            settings = config.engine_settings() if config else EngineSettings()
        self._settings = settings
        self._transport = transport
        self._client_factory = client_factory or self._default_client
        self._discover = discover or DeviceDiscovery.discover

        self._queue = queue or QueueController()
        self._queue.queue_changed.connect(self.queue_changed.emit)

        self._device: Device | None = None
        self._store = self._new_store("")
        self._client: DeviceClient | None = None
        self._stream: NotificationStream | None = None
        self._monitor: HealthMonitor | None = None
        self._sources: list[Source] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._select_lock = asyncio.Lock()
        self._generation = 0

    # -- Properties ------------------------------------------------------------

    @property
    def device(self) -> Device | None:
        """Return the selected device."""
        return self._device

    @property
    def store(self) -> PlaybackStateStore:
        """Return the store of the selected device."""
        return self._store

    @property
    def state(self) -> PlaybackState:
        """Return the playback state of the selected device."""
        return self._store.state

    @property
    def stream(self) -> NotificationStream | None:
        """Return the live notification stream, if any."""
        return self._stream

    @property
    def sources(self) -> list[Source]:
        """Return the sources offered by the selected device."""
        return list(self._sources)

    @property
    def queue(self) -> QueueController:
        """Return the queue controller."""
        return self._queue

    @property
    def settings(self) -> EngineSettings:
        """Return the engine settings."""
        return self._settings

    @property
    def is_online(self) -> bool:
        """Return True if a device is selected and reachable."""
        return self._device is not None and self._device.online

    # -- Selection -------------------------------------------------------------

    async def select_device(self, device: Device) -> None:
        """Make a device the selected one.

        The previous device's stream is cancelled and its store closed before
        anything else happens; the new store starts at defaults. When the
        device answers the probe, its state and sources are fetched and its
        notification stream is started.

        Selections are serialized: when several overlap, the last one wins and
        every superseded one releases what it opened.

        Args:
            device: Device to select.
        """
        self._generation += 1
        generation = self._generation
        async with self._select_lock:
            if generation != self._generation:
                logger.debug("Selection of %s superseded before it started", device.id)
                return
            if (
                self._device is not None
                and self._device.id == device.id
                and self._client is not None
            ):
                logger.debug("Device %s already selected", device.id)
                return

            await self._teardown()
            logger.info("Selecting device %s (%s)", device.display_name, device.address)

            self._device = device.with_online(False)
            store = self._new_store(device.id)
            self._set_sources([])
            if self._config:
                self._config.set_last_device_id(device.id)
            self.device_changed.emit(device)
            self.state_changed.emit(store.state)

            self._client = self._client_factory(device)
            online = await probe(
                device.address,
                port=self._settings.device_port,
                timeout=self._settings.probe_timeout,
                transport=self._transport,
            )
            if generation != self._generation:
                logger.debug("Selection of %s superseded during probe", device.id)
                await self._teardown()
                return

            self._set_online(online)
            self._start_monitor(device, online)
            if online:
                await self._connect(store)

    async def deselect(self) -> None:
        """Release the selected device."""
        self._generation += 1
        async with self._select_lock:
            if self._device is None:
                return
            await self._teardown()
            self._device = None
            self._new_store("")
            self._set_sources([])
            if self._config:
                self._config.set_last_device_id(None)
            self.device_changed.emit(None)
            self.state_changed.emit(self._store.state)

    async def shutdown(self) -> None:
        """Stop every stream, monitor, and background task."""
        logger.info("Controller shutting down")
        self._generation += 1
        async with self._select_lock:
            await self._teardown()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def handle_online_changed(self, online: bool) -> None:
        """React to the selected device becoming reachable or unreachable.

        Args:
            online: New reachability.
        """
        device = self._device
        if device is None:
            return
        self._set_online(online)
        store = self._store

        if not online:
            stream, self._stream = self._stream, None
            if stream is not None:
                stream.stop()
            store.apply(Reset())
            self._set_sources([])
            if stream is not None:
                await stream.aclose()
            return

        if self._stream is None:
            await self._connect(store)

    async def _connect(self, store: PlaybackStateStore) -> None:
        """Fetch state and sources, then start the notification stream."""
        client = self._client
        device = self._device
        if client is None or device is None:
            return

        state, sources = await asyncio.gather(client.get_playback_state(), client.get_sources())
        if store is not self._store or store.closed or not self.is_online:
            logger.debug("Dropping fetched state for %s", device.id)
            return

        store.apply(Authoritative.from_state(state))
        self._set_sources(sources)
        self._start_stream(device)

    def _start_stream(self, device: Device) -> None:
        if self._stream is not None:
            # Exactly one live stream: the old one is cancelled before the new one starts
            self._stream.stop()
            self._spawn(self._stream.aclose())
        self._stream = NotificationStream(
            device.id,
            device.address,
            self.handle_notification,
            port=self._settings.device_port,
            retry_delay=self._settings.retry_delay,
            transport=self._transport,
        )
        self._stream.start()

    def _start_monitor(self, device: Device, online: bool) -> None:
        monitor = HealthMonitor(
            device.address,
            self._settings.health_interval,
            port=self._settings.device_port,
            timeout=self._settings.probe_timeout,
            transport=self._transport,
        )
        monitor.online_changed.connect(functools.partial(self._on_monitor_online, device.id))
        self._monitor = monitor
        monitor.start(initial=online)

    def _on_monitor_online(self, device_id: str, online: bool) -> None:
        if self._device is None or self._device.id != device_id:
            return
        self._spawn(self.handle_online_changed(online))

    async def _teardown(self) -> None:
        """Detach the current working set, cancelling synchronously first."""
        stream, client, monitor = self._stream, self._client, self._monitor
        self._stream = None
        self._client = None
        self._monitor = None

        if stream is not None:
            stream.stop()
        self._store.close()

        if monitor is not None:
            await monitor.aclose()
        if stream is not None:
            await stream.aclose()
        if client is not None:
            await client.close()

    def _new_store(self, device_id: str) -> PlaybackStateStore:
        store = PlaybackStateStore(device_id)
        store.state_changed.connect(self.state_changed.emit)
        self._store = store
        return store

    def _set_online(self, online: bool) -> None:
        if self._device is None or self._device.online == online:
            return
        self._device = self._device.with_online(online)
        self.online_changed.emit(online)

    def _set_sources(self, sources: list[Source]) -> None:
        if sources != self._sources:
            self._sources = list(sources)
            self.sources_changed.emit(self.sources)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _default_client(self, device: Device) -> DeviceClient:
        return DeviceClient(device.address, self._settings.device_port, transport=self._transport)

    # -- Notifications ---------------------------------------------------------

    def handle_notification(self, device_id: str, envelope: NotificationEnvelope) -> None:
        """Apply a device notification to the selected device's store.

        Events for any device other than the selected one, or arriving after
        its store was closed, are dropped.

        Args:
            device_id: Device the event came from.
            envelope: Decoded notification.
        """
        store = self._store
        if self._device is None or device_id != self._device.id or store.device_id != device_id:
            logger.debug("Dropping %s from %s: not the selected device", envelope.type, device_id)
            return
        if store.closed:
            logger.debug("Dropping %s from %s: store closed", envelope.type, device_id)
            return

        fields = event_to_fields(envelope, store.state.current_track)
        if fields:
            store.apply(Authoritative(fields))

    # -- Commands --------------------------------------------------------------

    def _command_target(self, command: str) -> tuple[DeviceClient, PlaybackStateStore] | None:
        """Return the client and store for a command, or None to ignore it."""
        if self._device is None or self._client is None:
            logger.debug("Ignoring %s: no device selected", command)
            return None
        if not self._device.online:
            logger.debug("Ignoring %s: %s is offline", command, self._device.id)
            return None
        return self._client, self._store

    def _report(self, command: str, result: CommandResult) -> None:
        warning = CommandWarning.from_result(command, result)
        logger.warning("Command %s failed: %s", command, warning.message or warning.error)
        self.warning_reported.emit(warning)

    async def toggle_play(self) -> None:
        """Toggle play/pause, rolling back the guess if the device refuses."""
        target = self._command_target("toggle_play")
        if target is None:
            return
        client, store = target

        prior = store.state
        new_state = PlayState.PAUSED if prior.is_playing else PlayState.PLAYING
        guess = Optimistic.of(play_state=new_state)
        store.apply(guess)

        result = await client.set_playing(new_state == PlayState.PLAYING)
        if not result:
            store.rollback(guess, prior)
            self._report("toggle_play", result)

    async def seek(self, seconds: float) -> None:
        """Move the playhead. Ignored when no track is loaded.

        Args:
            seconds: Absolute position, clamped to the track duration.
        """
        target = self._command_target("seek")
        if target is None:
            return
        client, store = target

        track = store.state.current_track
        if track is None:
            logger.debug("Ignoring seek: no current track")
            return
        position = max(0.0, min(float(track.duration), float(seconds)))
        store.apply(Optimistic.of(progress=position))

        result = await client.seek(position)
        if not result:
            self._report("seek", result)

    async def set_volume(self, level: int) -> None:
        """Set the output level. The guess is kept even if the device fails.

        Args:
            level: Volume 0-100 (clamped).
        """
        target = self._command_target("set_volume")
        if target is None:
            return
        client, store = target

        level = max(MIN_VOLUME, min(MAX_VOLUME, int(level)))
        store.apply(Optimistic.of(volume=level))
        if self._config:
            self._config.set_volume(level)

        result = await client.set_volume(level)
        if not result:
            self._report("set_volume", result)

    async def next_track(self) -> None:
        """Advance to the next track."""
        await self._advance("next_track")

    async def previous_track(self) -> None:
        """Step back to the previous track."""
        await self._advance("previous_track")

    async def _advance(self, command: str) -> None:
        """Pick the next/previous track locally or ask the device to.

        On the local source with a loaded queue the track is resolved here
        without a device round-trip; any other source is advanced by the
        device's own transport queue.
        """
        target = self._command_target(command)
        if target is None:
            return
        client, store = target
        state = store.state

        if state.is_local_source and len(self._queue):
            if command == "next_track":
                picked = self._queue.next_track(state.current_track, state.play_mode)
            else:
                picked = self._queue.previous_track(state.current_track, state.play_mode)
            if picked is STOP:
                logger.debug("Queue exhausted, stopping")
                store.apply(Optimistic.of(play_state=PlayState.STOPPED))
            elif isinstance(picked, Track):
                store.apply(Optimistic.of(current_track=picked, progress=0))
            return

        if command == "next_track":
            result = await client.next_track()
        else:
            result = await client.previous_track()
        if not result:
            self._report(command, result)

    async def change_source(self, source_id: str) -> None:
        """Switch the active source.

        The current track is cleared (or replaced by a placeholder for an
        external source) and progress returns to 0.

        Args:
            source_id: ID of the source to activate.
        """
        target = self._command_target("change_source")
        if target is None:
            return
        client, store = target

        track: Track | None = None
        if source_id != LOCAL_SOURCE_ID:
            name = next((s.display_name for s in self._sources if s.id == source_id), "")
            track = Track.placeholder(source_id, name)
        store.apply(Optimistic.of(active_source_id=source_id, current_track=track, progress=0))

        result = await client.change_source(source_id)
        if not result:
            self._report("change_source", result)

    async def set_play_mode(self, mode: PlayMode) -> None:
        """Set the track-advance policy.

        Args:
            mode: New play mode.
        """
        target = self._command_target("set_play_mode")
        if target is None:
            return
        client, store = target

        store.apply(Optimistic.of(play_mode=mode))
        if self._config:
            self._config.set_play_mode(mode)

        result = await client.set_play_mode(mode)
        if not result:
            self._report("set_play_mode", result)
        else:
            logger.info("Play mode set to %s", mode.label)

    async def cycle_play_mode(self) -> None:
        """Move to the next play mode in the fixed cycle."""
        await self.set_play_mode(self._store.state.play_mode.next())

    # -- Queue -----------------------------------------------------------------

    def select_playlist(self, playlist_id: str) -> bool:
        """Load a playlist into the queue and cue its first track.

        The first track is only cued while the local source is active; under
        an external source the queue is loaded and current_track is left to
        the source.

        Args:
            playlist_id: ID of the playlist.

        Returns:
            True if the playlist exists.
        """
        playlist = self._library.get_playlist(playlist_id)
        if playlist is None:
            logger.warning("Unknown playlist %s", playlist_id)
            return False

        tracks = self._queue.load_playlist(playlist, self._library.list_tracks())
        if self._store.state.is_local_source:
            self._store.apply(Optimistic.of(current_track=tracks[0] if tracks else None))
        if self._config:
            self._config.set_last_playlist_id(playlist_id)
        logger.info("Playlist %s selected (%d tracks)", playlist.name, len(tracks))
        return True

    async def select_track(self, track_id: str) -> bool:
        """Play a queued track directly.

        Under an external source the device is switched back to the local
        source first, so a queue track only ever plays from the queue.

        Args:
            track_id: ID of a track in the queue.

        Returns:
            True if the track was cued.
        """
        if self._device is None:
            logger.debug("Ignoring select_track: no device selected")
            return False
        track = self._queue.find(track_id)
        if track is None:
            logger.warning("Track %s is not in the queue", track_id)
            return False

        store = self._store
        fields: dict[str, Any] = {
            "current_track": track,
            "progress": 0,
            "play_state": PlayState.PLAYING,
        }
        if store.state.is_local_source:
            store.apply(Optimistic(fields))
            return True

        target = self._command_target("select_track")
        if target is None:
            return False
        client, store = target
        fields["active_source_id"] = LOCAL_SOURCE_ID
        store.apply(Optimistic(fields))

        result = await client.change_source(LOCAL_SOURCE_ID)
        if not result:
            self._report("change_source", result)
        return True

    def refresh_catalogue(self) -> list[Track]:
        """Re-resolve the loaded playlist against the current catalogue."""
        return self._queue.refresh(self._library.list_tracks())

    # -- Registry --------------------------------------------------------------

    async def list_devices(self) -> list[Device]:
        """Return every registered device with fresh reachability."""
        return await probe_all(
            self._registry.list(),
            port=self._settings.device_port,
            timeout=self._settings.probe_timeout,
            transport=self._transport,
        )

    async def add_device(self, name: str, address: str) -> Device:
        """Register a device and select it.

        Returns:
            The registered device (existing one for a known address).
        """
        device = self._registry.add(name, address)
        await self.select_device(device)
        return device

    async def delete_device(self, device_id: str) -> bool:
        """Remove a device, falling back to the first remaining one if it was selected.

        Returns:
            True if the device was removed.
        """
        if not self._registry.delete(device_id):
            return False
        if self._device is not None and self._device.id == device_id:
            await self.deselect()
            remaining = self._registry.list()
            if remaining:
                await self.select_device(remaining[0])
        return True

    async def discover_devices(self, timeout: float = 3.0) -> list[DiscoveredDevice]:
        """Browse the network for devices without blocking the loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._discover, timeout)

    async def restore_session(self) -> None:
        """Reselect the last device and playlist remembered in config."""
        if self._config is None:
            return
        device_id = self._config.get_last_device_id()
        device = self._registry.get(device_id) if device_id else None
        if device is None:
            devices = self._registry.list()
            device = devices[0] if devices else None
        if device is not None:
            await self.select_device(device)
        playlist_id = self._config.get_last_playlist_id()
        if playlist_id:
            self.select_playlist(playlist_id)
