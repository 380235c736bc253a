"""Device reachability probes.

A probe is a bounded-timeout GET against the device's info endpoint. Probes
never raise: any network error, timeout, or non-success status means offline.

Note: a device can answer the probe and still refuse commands, and a busy
device may miss the one-second window. Reachability is a hint that is
re-checked, never trusted from storage.
"""

import asyncio
import logging
from collections.abc import Iterable
from contextlib import suppress

import httpx
from PySide6.QtCore import QObject, Signal

from beoctrl.api.client import DEFAULT_PORT, DEVICE_PATH, device_url
from beoctrl.models.device import Device

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 1.0  # seconds
DEFAULT_HEALTH_INTERVAL = 15.0  # seconds


async def probe(
    address: str,
    *,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Check whether a device answers on its control surface.

    Args:
        address: Device IP address or hostname.
        port: HTTP port of the device.
        timeout: Timeout in seconds for the whole request.
        transport: Optional httpx transport (used by tests).

    Returns:
        True if the device answered with a success status.
    """
    url = f"{device_url(address, port)}/{DEVICE_PATH}"
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as http:
            response = await http.get(url)
    except httpx.TimeoutException:
        logger.debug("Probe of %s timed out after %.1fs", address, timeout)
        return False
    except httpx.HTTPError as e:
        logger.debug("Probe of %s failed: %s", address, e)
        return False
    except Exception as e:  # noqa: BLE001
        logger.warning("Probe of %s failed unexpectedly: %s", address, e)
        return False

    if not response.is_success:
        logger.debug("Probe of %s returned status %d", address, response.status_code)
    return response.is_success


async def probe_all(
    devices: Iterable[Device],
    *,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Device]:
    """Probe every device concurrently.

    Args:
        devices: Devices to probe.
        port: HTTP port of the devices.
        timeout: Per-probe timeout in seconds.
        transport: Optional httpx transport (used by tests).

    Returns:
        Copies of the devices with ``online`` filled in, in input order.
    """
    device_list = list(devices)
    results = await asyncio.gather(
        *(probe(d.address, port=port, timeout=timeout, transport=transport) for d in device_list)
    )
    return [d.with_online(online) for d, online in zip(device_list, results, strict=True)]


class HealthMonitor(QObject):
    """Periodically probe one device and report online/offline transitions.

    Runs as a task on the caller's asyncio loop. ``online_changed`` is only
    emitted when the reachability differs from the last known value.

    Example:
        monitor = HealthMonitor("192.168.1.50", interval_sec=15)
        monitor.online_changed.connect(lambda online: print(online))
        monitor.start(initial=True)
    """

    online_changed = Signal(bool)

    def __init__(
        self,
        address: str,
        interval_sec: float = DEFAULT_HEALTH_INTERVAL,
        *,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            address: Device IP address or hostname.
            interval_sec: Interval between probes in seconds.
            port: HTTP port of the device.
            timeout: Probe timeout in seconds.
            transport: Optional httpx transport (used by tests).
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._address = address
        self._interval_sec = interval_sec
        self._port = port
        self._timeout = timeout
        self._transport = transport
        self._online: bool | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def address(self) -> str:
        """Return the monitored address."""
        return self._address

    @property
    def online(self) -> bool | None:
        """Return the last known reachability, None before the first probe."""
        return self._online

    @property
    def is_running(self) -> bool:
        """Return True while the probe task is alive."""
        return self._task is not None and not self._task.done()

    def start(self, initial: bool | None = None) -> None:
        """Start probing on the running event loop.

        Args:
            initial: Reachability already known to the caller, so the first
                probe only emits if it differs.
        """
        if self.is_running:
            return
        if initial is not None:
            self._online = initial
        self._task = asyncio.get_running_loop().create_task(self._monitor_loop())
        logger.debug("HealthMonitor started for %s", self._address)

    def stop(self) -> None:
        """Stop probing."""
        if self._task:
            self._task.cancel()
            self._task = None
            logger.debug("HealthMonitor stopped for %s", self._address)

    async def aclose(self) -> None:
        """Stop probing and wait for the probe task to finish."""
        task = self._task
        self.stop()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def check_now(self) -> bool:
        """Probe immediately, emitting on a transition.

        Returns:
            Current reachability.
        """
        online = await probe(
            self._address,
            port=self._port,
            timeout=self._timeout,
            transport=self._transport,
        )
        if online != self._online:
            self._online = online
            logger.info("Device %s is now %s", self._address, "online" if online else "offline")
            self.online_changed.emit(online)
        return online

    async def _monitor_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_sec)
            await self.check_now()
