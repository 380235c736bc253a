"""mDNS/Zeroconf discovery for network audio devices."""

from __future__ import annotations

import ipaddress
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from zeroconf import ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

logger = logging.getLogger(__name__)

# Service type advertised by the devices' control surface
BEOREMOTE_SERVICE_TYPE = "_beoremote._tcp.local."

DEFAULT_DISCOVERY_TIMEOUT = 3.0  # seconds


@dataclass(frozen=True, slots=True)
class DiscoveredDevice:
    """A device found on the local network.

    Attributes:
        name: Advertised instance name, without the service suffix.
        address: Preferred address (IPv4 when one is advertised).
    """

    name: str
    address: str


def _instance_name(name: str) -> str:
    """Strip the service type suffix from an mDNS instance name."""
    suffix = f".{BEOREMOTE_SERVICE_TYPE}"
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name


def _preferred_address(info: ServiceInfo) -> str | None:
    """Return the first IPv4 address, else the first IPv6 one."""
    parsed: list[ipaddress.IPv4Address | ipaddress.IPv6Address] = []
    for raw in info.addresses:
        try:
            parsed.append(ipaddress.ip_address(raw))
        except ValueError as e:
            logger.debug("Could not parse address for %s: %s", info.name, e)
    if not parsed:
        return None
    parsed.sort(key=lambda a: a.version)
    return str(parsed[0])


class BeoServiceListener(ServiceListener):
    """Listener collecting device announcements."""

    def __init__(self, on_found: Callable[[DiscoveredDevice], None] | None = None) -> None:
        """Initialize the listener.

        Args:
            on_found: Callback when a device is discovered.
        """
        self._on_found = on_found
        self._devices: dict[str, DiscoveredDevice] = {}
        self._lock = threading.Lock()

    @property
    def devices(self) -> list[DiscoveredDevice]:
        """Return discovered devices."""
        with self._lock:
            return list(self._devices.values())

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Handle service discovery."""
        info = zc.get_service_info(type_, name)
        if info is None:
            logger.debug("Could not get info for service: %s", name)
            return

        address = _preferred_address(info)
        if address is None:
            logger.debug("No addresses found for service: %s", name)
            return

        device = DiscoveredDevice(name=_instance_name(name), address=address)
        logger.info("Discovered device: %s at %s", device.name, device.address)
        with self._lock:
            self._devices[name] = device

        if self._on_found:
            self._on_found(device)

    def remove_service(self, zc: Zeroconf, type_: str, name: str) -> None:  # noqa: ARG002
        """Handle service removal."""
        with self._lock:
            removed = self._devices.pop(name, None)
        if removed is not None:
            logger.info("Device removed: %s", removed.name)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Handle service update (re-add to refresh info)."""
        self.add_service(zc, type_, name)


class DeviceDiscovery:
    """Browses the local network for devices.

    Example:
        devices = DeviceDiscovery.discover(timeout=3.0)
        for device in devices:
            registry.add(device.name, device.address)
    """

    def __init__(self) -> None:
        """Initialize the discovery service."""
        self._zeroconf: Zeroconf | None = None
        self._browser: ServiceBrowser | None = None
        self._listener: BeoServiceListener | None = None

    @property
    def devices(self) -> list[DiscoveredDevice]:
        """Return devices discovered so far."""
        if self._listener:
            return self._listener.devices
        return []

    def start(self, on_found: Callable[[DiscoveredDevice], None] | None = None) -> None:
        """Start background discovery.

        Args:
            on_found: Callback when a device is discovered.
        """
        if self._zeroconf is not None:
            return

        self._zeroconf = Zeroconf()
        self._listener = BeoServiceListener(on_found=on_found)
        self._browser = ServiceBrowser(self._zeroconf, BEOREMOTE_SERVICE_TYPE, self._listener)
        logger.debug("Started mDNS discovery for %s", BEOREMOTE_SERVICE_TYPE)

    def stop(self) -> None:
        """Stop background discovery."""
        if self._browser:
            self._browser.cancel()
            self._browser = None

        if self._zeroconf:
            self._zeroconf.close()
            self._zeroconf = None

        self._listener = None
        logger.debug("Stopped mDNS discovery")

    @staticmethod
    def discover(timeout: float = DEFAULT_DISCOVERY_TIMEOUT) -> list[DiscoveredDevice]:
        """Collect every device announced within the timeout.

        Blocks the calling thread; run it in an executor from async code.

        Args:
            timeout: Time to wait for announcements in seconds.

        Returns:
            Discovered devices, empty if none answered or mDNS is unavailable.
        """
        discovery = DeviceDiscovery()
        try:
            discovery.start()
        except OSError as e:
            logger.warning("mDNS discovery unavailable: %s", e)
            discovery.stop()
            return []

        try:
            threading.Event().wait(timeout=timeout)
        finally:
            devices = discovery.devices
            discovery.stop()

        logger.info("Discovery found %d device(s)", len(devices))
        return devices
