"""HTTP control client for a single device.

Each command is a request against the device's own control surface. Commands
never raise: transport failures and refusals come back as a CommandResult so
callers (the controller) decide how to report them. Nothing here mutates
shared state.
"""

import asyncio
import logging
from typing import Any, cast

import httpx

from beoctrl.api.errors import (
    BeoError,
    CommandRejectedError,
    CommandResult,
    UnreachableError,
)
from beoctrl.api.protocol import parse_sources, parse_stream_status
from beoctrl.models.playback import MAX_VOLUME, MIN_VOLUME, PlaybackState, PlayMode
from beoctrl.models.source import Source

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 5.0

# Device endpoints
DEVICE_PATH = "BeoDevice"
NOTIFICATIONS_PATH = "BeoNotify/Notifications"
STREAM_PATH = "BeoZone/Zone/Stream"
SOURCES_PATH = "BeoZone/Zone/Sources"
ACTIVE_SOURCE_PATH = "BeoZone/Zone/ActiveSource"
VOLUME_PATH = "BeoDevice/settings/volume"
PLAYER_PATH = "BeoZone/Zone/Player"


def device_url(address: str, port: int = DEFAULT_PORT) -> str:
    """Return the base URL of a device's HTTP surface."""
    return f"http://{address}:{port}"


class DeviceClient:
    """Async HTTP client for one device's control endpoints.

    Example:
        async with DeviceClient("192.168.1.50") as client:
            result = await client.set_volume(30)
            if not result:
                print(f"Volume failed: {result.message}")
    """

    def __init__(
        self,
        address: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            address: Device IP address or hostname.
            port: HTTP port of the device (default 8080).
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._address = address
        self._port = port
        self._http = httpx.AsyncClient(
            base_url=device_url(address, port),
            timeout=timeout,
            transport=transport,
            headers={"Cache-Control": "no-store"},
        )

    @property
    def address(self) -> str:
        """Return the device address."""
        return self._address

    @property
    def port(self) -> int:
        """Return the device port."""
        return self._port

    async def __aenter__(self) -> "DeviceClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def is_closed(self) -> bool:
        """Return True once close() has been called."""
        return self._http.is_closed

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request, raising on transport failure or refusal.

        Raises:
            UnreachableError: If the device could not be reached.
            CommandRejectedError: If the device answered with an error status.
        """
        logger.debug("%s %s/%s %s", method, self._address, path, body or "")
        try:
            response = await self._http.request(method, f"/{path}", json=body or {})
        except httpx.TimeoutException as e:
            raise UnreachableError(f"{path} timed out") from e
        except httpx.RequestError as e:
            raise UnreachableError(f"{path} failed: {e}") from e

        if not response.is_success:
            raise CommandRejectedError(
                f"{path} rejected with status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def _command(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> CommandResult:
        """Send a command request and classify the outcome."""
        try:
            await self._send(method, path, body)
        except BeoError as e:
            logger.warning("%s %s on %s: %s", method, path, self._address, e)
            return CommandResult.from_error(e)
        return CommandResult.success()

    async def _get_json(self, path: str) -> dict[str, Any]:
        """GET a JSON object, returning an empty dict on any failure."""
        try:
            response = await self._http.get(f"/{path}")
            if not response.is_success:
                logger.warning(
                    "GET %s on %s failed with status %d",
                    path,
                    self._address,
                    response.status_code,
                )
                return {}
            if not response.content:
                return {}
            data = response.json()
        except httpx.RequestError as e:
            logger.warning("GET %s on %s failed: %s", path, self._address, e)
            return {}
        except ValueError as e:
            logger.warning("GET %s on %s returned invalid JSON: %s", path, self._address, e)
            return {}
        return cast(dict[str, Any], data) if isinstance(data, dict) else {}

    # Commands

    async def set_playing(self, playing: bool) -> CommandResult:
        """Start or pause the transport."""
        command = "play" if playing else "pause"
        return await self._command("POST", f"{PLAYER_PATH}/{command}")

    async def seek(self, seconds: float) -> CommandResult:
        """Jump the playhead to an absolute position in seconds."""
        return await self._command("PUT", f"{PLAYER_PATH}/progress", {"progress": round(seconds)})

    async def set_volume(self, level: int) -> CommandResult:
        """Set the output level (clamped to 0-100)."""
        level = max(MIN_VOLUME, min(MAX_VOLUME, int(level)))
        return await self._command("PUT", VOLUME_PATH, {"level": level})

    async def next_track(self) -> CommandResult:
        """Advance the device's transport queue."""
        return await self._command("POST", f"{PLAYER_PATH}/forward")

    async def previous_track(self) -> CommandResult:
        """Step the device's transport queue back."""
        return await self._command("POST", f"{PLAYER_PATH}/backward")

    async def change_source(self, source_id: str) -> CommandResult:
        """Switch the active source."""
        return await self._command("POST", ACTIVE_SOURCE_PATH, {"id": source_id})

    async def set_play_mode(self, mode: PlayMode) -> CommandResult:
        """Set repeat/shuffle behavior.

        The device only knows a shuffle flag; repeat modes are resolved by
        the local queue.
        """
        return await self._command(
            "PUT",
            f"{PLAYER_PATH}/playQueue",
            {"shuffle": mode == PlayMode.SHUFFLE},
        )

    # Reads

    async def get_playback_state(self) -> PlaybackState:
        """Fetch the current playback state.

        Returns:
            PlaybackState built from the stream and volume endpoints, with
            defaults for anything the device did not report.
        """
        stream, volume = await asyncio.gather(
            self._get_json(STREAM_PATH),
            self._get_json(VOLUME_PATH),
        )
        return parse_stream_status(stream, volume)

    async def get_sources(self) -> list[Source]:
        """Fetch the sources the device offers.

        Returns:
            List of sources, empty on failure.
        """
        data = await self._get_json(SOURCES_PATH)
        sources = parse_sources(data)
        if not sources:
            logger.warning("No sources data received from %s", self._address)
        return sources
