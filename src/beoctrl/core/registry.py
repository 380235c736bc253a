"""Persistent registry of known devices."""

from __future__ import annotations

import logging
import uuid
from typing import cast

from PySide6.QtCore import QSettings

from beoctrl.models.device import Device

logger = logging.getLogger(__name__)

_KEY_DEVICES = "devices/list"


class DeviceRegistry:
    """Known devices stored in QSettings.

    Addresses are unique: adding an address that is already registered
    returns the existing entry. Reachability is never stored; every device
    loads as offline until probed.

    Example:
        registry = DeviceRegistry(config.settings)
        kitchen = registry.add("Kitchen", "192.168.1.50")
        registry.delete(kitchen.id)
    """

    def __init__(self, settings: QSettings) -> None:
        """Initialize the registry.

        Args:
            settings: QSettings instance to persist into.
        """
        self._settings = settings

    def list(self) -> list[Device]:
        """Load registered devices in insertion order."""
        raw_data = self._settings.value(_KEY_DEVICES, [], list)
        devices: list[Device] = []

        if not isinstance(raw_data, list):
            return devices

        for raw_item in cast(list[object], raw_data):
            if not isinstance(raw_item, dict):
                continue
            item = cast(dict[str, object], raw_item)
            device_id = item.get("id")
            address = item.get("address")
            if not device_id or not address:
                logger.warning("Skipping invalid device entry: %r", item)
                continue
            devices.append(
                Device(
                    id=str(device_id),
                    name=str(item.get("name") or ""),
                    address=str(address),
                )
            )
        return devices

    def _save(self, devices: list[Device]) -> None:
        data = [{"id": d.id, "name": d.name, "address": d.address} for d in devices]
        self._settings.setValue(_KEY_DEVICES, data)

    def add(self, name: str, address: str) -> Device:
        """Register a device.

        Args:
            name: Human-readable name.
            address: IP address or hostname.

        Returns:
            The new device, or the existing one with the same address.

        Raises:
            ValueError: If the address is empty.
        """
        address = address.strip()
        if not address:
            raise ValueError("Device address must not be empty")

        devices = self.list()
        for device in devices:
            if device.address == address:
                logger.debug("Device at %s already registered as %s", address, device.id)
                return device

        device = Device(id=uuid.uuid4().hex[:12], name=name.strip() or address, address=address)
        devices.append(device)
        self._save(devices)
        logger.info("Registered device %s at %s", device.name, device.address)
        return device

    def delete(self, device_id: str) -> bool:
        """Remove a device.

        Returns:
            True if a device was removed, False if not found.
        """
        devices = self.list()
        remaining = [d for d in devices if d.id != device_id]
        if len(remaining) == len(devices):
            return False
        self._save(remaining)
        logger.info("Removed device %s", device_id)
        return True

    def get(self, device_id: str) -> Device | None:
        """Return the device with the given ID, or None."""
        for device in self.list():
            if device.id == device_id:
                return device
        return None
