"""Configuration manager using QSettings for persistent storage."""

import logging
from dataclasses import dataclass

from PySide6.QtCore import QSettings

from beoctrl.api.client import DEFAULT_PORT
from beoctrl.core.health import DEFAULT_HEALTH_INTERVAL, DEFAULT_PROBE_TIMEOUT
from beoctrl.core.stream import DEFAULT_RETRY_DELAY
from beoctrl.models.playback import DEFAULT_VOLUME, PlayMode

logger = logging.getLogger(__name__)

# Engine
_KEY_DEVICE_PORT = "engine/device_port"
_KEY_PROBE_TIMEOUT = "engine/probe_timeout"
_KEY_RETRY_DELAY = "engine/retry_delay"
_KEY_HEALTH_INTERVAL = "engine/health_interval"

# Session
_KEY_LAST_DEVICE = "session/last_device_id"
_KEY_LAST_PLAYLIST = "session/last_playlist_id"
_KEY_VOLUME = "session/volume"
_KEY_PLAY_MODE = "session/play_mode"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Snapshot of the values the sync engine needs.

    Attributes:
        device_port: HTTP port of the devices' control surface.
        probe_timeout: Reachability probe timeout in seconds.
        retry_delay: Notification stream backoff in seconds.
        health_interval: Seconds between reachability checks.
    """

    device_port: int = DEFAULT_PORT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    retry_delay: float = DEFAULT_RETRY_DELAY
    health_interval: float = DEFAULT_HEALTH_INTERVAL


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\beoctrl\\beoctrl
    - macOS: ~/Library/Preferences/com.beoctrl.beoctrl.plist
    - Linux: ~/.config/beoctrl/beoctrl.conf

    Example:
        config = ConfigManager()
        settings = config.engine_settings()
        config.set_last_device_id(device.id)
    """

    def __init__(self, organization: str = "beoctrl", application: str = "beoctrl") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    # -- Engine settings -------------------------------------------------------

    def engine_settings(self) -> EngineSettings:
        """Return a snapshot of the engine settings."""
        return EngineSettings(
            device_port=self.get_device_port(),
            probe_timeout=self.get_probe_timeout(),
            retry_delay=self.get_retry_delay(),
            health_interval=self.get_health_interval(),
        )

    def get_device_port(self) -> int:
        """Return the device HTTP port (default 8080)."""
        value = self._settings.value(_KEY_DEVICE_PORT, DEFAULT_PORT, int)
        return max(1, min(65535, int(value)))  # type: ignore[arg-type]

    def set_device_port(self, port: int) -> None:
        """Set the device HTTP port (1-65535)."""
        self._settings.setValue(_KEY_DEVICE_PORT, max(1, min(65535, port)))

    def get_probe_timeout(self) -> float:
        """Return the probe timeout in seconds (default 1.0)."""
        value = self._settings.value(_KEY_PROBE_TIMEOUT, DEFAULT_PROBE_TIMEOUT, float)
        return max(0.2, min(10.0, float(value)))  # type: ignore[arg-type]

    def set_probe_timeout(self, seconds: float) -> None:
        """Set the probe timeout (0.2-10 seconds)."""
        self._settings.setValue(_KEY_PROBE_TIMEOUT, max(0.2, min(10.0, seconds)))

    def get_retry_delay(self) -> float:
        """Return the stream retry delay in seconds (default 5.0)."""
        value = self._settings.value(_KEY_RETRY_DELAY, DEFAULT_RETRY_DELAY, float)
        return max(1.0, min(60.0, float(value)))  # type: ignore[arg-type]

    def set_retry_delay(self, seconds: float) -> None:
        """Set the stream retry delay (1-60 seconds)."""
        self._settings.setValue(_KEY_RETRY_DELAY, max(1.0, min(60.0, seconds)))

    def get_health_interval(self) -> float:
        """Return the reachability check interval in seconds (default 15)."""
        value = self._settings.value(_KEY_HEALTH_INTERVAL, DEFAULT_HEALTH_INTERVAL, float)
        return max(5.0, min(120.0, float(value)))  # type: ignore[arg-type]

    def set_health_interval(self, seconds: float) -> None:
        """Set the reachability check interval (5-120 seconds)."""
        self._settings.setValue(_KEY_HEALTH_INTERVAL, max(5.0, min(120.0, seconds)))

    # -- Session ---------------------------------------------------------------

    def get_last_device_id(self) -> str | None:
        """Return the last selected device ID, or None."""
        value = self._settings.value(_KEY_LAST_DEVICE, None, str)
        return str(value) if value else None

    def set_last_device_id(self, device_id: str | None) -> None:
        """Remember the selected device ID (None clears it)."""
        if device_id:
            self._settings.setValue(_KEY_LAST_DEVICE, device_id)
        else:
            self._settings.remove(_KEY_LAST_DEVICE)

    def get_last_playlist_id(self) -> str | None:
        """Return the last selected playlist ID, or None."""
        value = self._settings.value(_KEY_LAST_PLAYLIST, None, str)
        return str(value) if value else None

    def set_last_playlist_id(self, playlist_id: str | None) -> None:
        """Remember the selected playlist ID (None clears it)."""
        if playlist_id:
            self._settings.setValue(_KEY_LAST_PLAYLIST, playlist_id)
        else:
            self._settings.remove(_KEY_LAST_PLAYLIST)

    def get_volume(self) -> int:
        """Return the last volume the user chose (default 50)."""
        value = self._settings.value(_KEY_VOLUME, DEFAULT_VOLUME, int)
        return max(0, min(100, int(value)))  # type: ignore[arg-type]

    def set_volume(self, volume: int) -> None:
        """Remember the last volume the user chose."""
        self._settings.setValue(_KEY_VOLUME, max(0, min(100, volume)))

    def get_play_mode(self) -> PlayMode:
        """Return the last play mode the user chose."""
        value = self._settings.value(_KEY_PLAY_MODE, PlayMode.SEQUENTIAL.value, str)
        try:
            return PlayMode(str(value))
        except ValueError:
            logger.warning("Ignoring invalid stored play mode %r", value)
            return PlayMode.SEQUENTIAL

    def set_play_mode(self, mode: PlayMode) -> None:
        """Remember the last play mode the user chose."""
        self._settings.setValue(_KEY_PLAY_MODE, mode.value)

    # -- General settings ------------------------------------------------------

    def clear(self) -> None:
        """Clear all settings (useful for testing or reset)."""
        self._settings.clear()

    def sync(self) -> None:
        """Force settings to be written to disk."""
        self._settings.sync()
