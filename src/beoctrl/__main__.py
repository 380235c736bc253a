"""Headless entry point: follow one device and log its playback state."""

import argparse
import logging
import signal
import sys

from PySide6.QtCore import QCoreApplication, QTimer

from beoctrl.api.errors import ErrorKind
from beoctrl.core.config import ConfigManager
from beoctrl.core.controller import CommandWarning, Controller
from beoctrl.core.discovery import DeviceDiscovery
from beoctrl.core.registry import DeviceRegistry
from beoctrl.core.worker import EngineWorker
from beoctrl.models.device import Device
from beoctrl.models.playback import PlaybackState
from beoctrl.models.source import Source

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="beoctrl",
        description="beoctrl - playback monitor for network audio devices",
    )
    parser.add_argument("address", nargs="?", default=None, help="device hostname or IP")
    parser.add_argument("--name", default="", help="display name when registering the device")
    parser.add_argument(
        "--discover", action="store_true", help="browse the network instead of reusing the last device"
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


def resolve_device(args: argparse.Namespace, config: ConfigManager) -> Device | None:
    """Pick the device to follow and make it the session device.

    Order: explicit address, last session device (unless --discover), first
    device found by mDNS.

    Returns:
        The registered device, or None if nothing could be found.
    """
    registry = DeviceRegistry(config.settings)
    device: Device | None = None

    if args.address:
        device = registry.add(args.name, args.address)
    elif not args.discover:
        last_id = config.get_last_device_id()
        device = registry.get(last_id) if last_id else None

    if device is None:
        logger.info("Searching for devices via mDNS...")
        found = DeviceDiscovery.discover()
        if not found:
            logger.warning("No devices found via mDNS")
            return None
        first = found[0]
        device = registry.add(args.name or first.name, first.address)

    config.set_last_device_id(device.id)
    return device


def _on_ready(controller: Controller) -> None:
    def on_device(device: Device | None) -> None:
        if device is not None:
            logger.info("Following %s at %s", device.display_name, device.address)

    def on_state(state: PlaybackState) -> None:
        track = state.current_track
        logger.info(
            "%s %s/%s vol=%d source=%s mode=%s track=%s",
            state.play_state,
            state.display_progress,
            track.display_duration if track else "-",
            state.volume,
            state.active_source_id,
            state.play_mode,
            f"{track.artist} - {track.title}" if track else "none",
        )

    def on_sources(sources: list[Source]) -> None:
        logger.info("Sources: %s", ", ".join(s.display_name for s in sources) or "none")

    def on_warning(warning: CommandWarning) -> None:
        if warning.error == ErrorKind.UNREACHABLE:
            logger.warning("Device unreachable during %s", warning.command)
        else:
            logger.warning("%s failed: %s", warning.command, warning.message)

    controller.device_changed.connect(on_device)
    controller.state_changed.connect(on_state)
    controller.sources_changed.connect(on_sources)
    controller.warning_reported.connect(on_warning)
    controller.online_changed.connect(
        lambda online: logger.info("Device is %s", "online" if online else "offline")
    )


def main() -> int:
    """Run the headless monitor.

    Returns:
        Exit code (0 for success).
    """
    QCoreApplication.setApplicationName("beoctrl")
    QCoreApplication.setOrganizationName("beoctrl")
    app = QCoreApplication(sys.argv)

    args = _parse_args(app.arguments()[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ConfigManager()
    device = resolve_device(args, config)
    if device is None:
        logger.error("No device to follow. Usage: beoctrl <address> [--name NAME]")
        return 1

    worker = EngineWorker(config)
    worker.ready.connect(_on_ready)
    worker.error_occurred.connect(lambda e: logger.error("Engine error: %s", e))

    # Let Python handle Ctrl+C while the Qt loop runs
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    interrupt_timer = QTimer()
    interrupt_timer.start(250)
    interrupt_timer.timeout.connect(lambda: None)

    worker.start()
    exit_code = app.exec()

    # Cleanup
    worker.stop()
    worker.wait()
    config.sync()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
