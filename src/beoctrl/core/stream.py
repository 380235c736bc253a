"""Long-poll notification stream for one device.

The device exposes a notification endpoint that holds each request open until
an event is available. Re-issuing the request as soon as it completes turns
request/response into a continuous event stream.

State machine:

    Idle -> Connecting -> Streaming -> Connecting ...
                  |            |
                  +-> Backoff -+-> Connecting     (failure, retry after delay)
                  +-> Idle                        (cancelled or closed by device)
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress
from enum import StrEnum

import httpx

from beoctrl.api.client import DEFAULT_PORT, NOTIFICATIONS_PATH, device_url
from beoctrl.api.errors import MalformedEventError
from beoctrl.api.protocol import NotificationEnvelope

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 5.0  # seconds
DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds; reads are unbounded (long-poll)

# Called with (device_id, envelope) for every decoded notification
EventHandler = Callable[[str, NotificationEnvelope], None]
StateHandler = Callable[["StreamState"], None]


class StreamState(StrEnum):
    """Lifecycle state of a NotificationStream."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    BACKOFF = "backoff"


class CancellationToken:
    """One-shot cancellation flag that can also be awaited."""

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        """Return True once cancel() has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Safe to call more than once."""
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()


class NotificationStream:
    """Reconnecting long-poll loop delivering device notifications.

    A stream is single-use: once stopped it cannot be restarted. Its owner
    creates a new stream for the next selection.

    Example:
        stream = NotificationStream("dev-1", "192.168.1.50", on_event=handle)
        stream.start()
        ...
        stream.stop()          # synchronous: no further events are dispatched
        await stream.aclose()  # reap the task and close the connection pool
    """

    def __init__(
        self,
        device_id: str,
        address: str,
        on_event: EventHandler,
        *,
        port: int = DEFAULT_PORT,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
        token: CancellationToken | None = None,
        on_state_changed: StateHandler | None = None,
    ) -> None:
        """Initialize the stream.

        Args:
            device_id: ID of the device, passed back with every event.
            address: Device IP address or hostname.
            on_event: Handler called for every decoded notification.
            port: HTTP port of the device.
            retry_delay: Seconds to wait after a failure before reconnecting.
            transport: Optional httpx transport (used by tests).
            token: Cancellation token; a new one is created if omitted.
            on_state_changed: Optional observer for state transitions.
        """
        self._device_id = device_id
        self._address = address
        self._on_event = on_event
        self._on_state_changed = on_state_changed
        self._retry_delay = retry_delay
        self._token = token or CancellationToken()
        self._url = f"{device_url(address, port)}/{NOTIFICATIONS_PATH}"
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(DEFAULT_CONNECT_TIMEOUT, read=None),
            transport=transport,
            headers={"Cache-Control": "no-store"},
        )
        self._state = StreamState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._events_received = 0
        self._failures = 0

    @property
    def device_id(self) -> str:
        """Return the device ID."""
        return self._device_id

    @property
    def address(self) -> str:
        """Return the device address."""
        return self._address

    @property
    def state(self) -> StreamState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def token(self) -> CancellationToken:
        """Return the cancellation token."""
        return self._token

    @property
    def cancelled(self) -> bool:
        """Return True once the stream has been asked to stop."""
        return self._token.cancelled

    @property
    def is_running(self) -> bool:
        """Return True while the loop task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def events_received(self) -> int:
        """Return the number of notifications dispatched."""
        return self._events_received

    @property
    def failures(self) -> int:
        """Return the number of failed polls."""
        return self._failures

    def start(self) -> None:
        """Start the loop as a task on the running event loop."""
        if self.is_running:
            return
        if self._token.cancelled:
            logger.warning("Not starting cancelled stream for %s", self._address)
            return
        self._task = asyncio.get_running_loop().create_task(
            self.run(), name=f"notifications-{self._device_id}"
        )

    def stop(self) -> None:
        """Request cancellation.

        Takes effect synchronously: the token is set before returning, so no
        further event is dispatched even if a poll completes meanwhile. The
        in-flight request is abandoned by cancelling the task.
        """
        if not self._token.cancelled:
            logger.info("Stopping notification stream for %s", self._address)
        self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        """Stop the stream, wait for the loop to exit, and release the client."""
        self.stop()
        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._http.aclose()

    def _set_state(self, state: StreamState) -> None:
        if state == self._state:
            return
        self._state = state
        if self._on_state_changed:
            self._on_state_changed(state)

    async def run(self) -> None:
        """Run the poll loop until cancelled or closed by the device."""
        logger.info("Starting notification stream for %s", self._address)
        try:
            while not self._token.cancelled:
                self._set_state(StreamState.CONNECTING)
                try:
                    response = await self._http.get(self._url)
                except httpx.HTTPError as e:
                    if self._token.cancelled:
                        break
                    logger.warning(
                        "Notification request to %s failed: %s. Retrying in %.0fs.",
                        self._address,
                        e,
                        self._retry_delay,
                    )
                    await self._backoff()
                    continue

                if self._token.cancelled:
                    break

                if response.status_code == httpx.codes.NO_CONTENT:
                    logger.info("Notification channel for %s closed", self._address)
                    break

                if not response.is_success:
                    logger.warning(
                        "Notification request to %s failed with status %d. Retrying in %.0fs.",
                        self._address,
                        response.status_code,
                        self._retry_delay,
                    )
                    await self._backoff()
                    continue

                try:
                    envelope = NotificationEnvelope.from_json(response.content)
                except MalformedEventError as e:
                    logger.warning("Malformed notification from %s: %s", self._address, e)
                    await self._backoff()
                    continue

                self._set_state(StreamState.STREAMING)
                try:
                    self._dispatch(envelope)
                except Exception:
                    logger.exception("Notification handler failed for %s", self._address)
                    await self._backoff()
        finally:
            self._set_state(StreamState.IDLE)
            logger.info("Notification stream for %s stopped", self._address)

    def _dispatch(self, envelope: NotificationEnvelope) -> None:
        """Deliver one envelope unless cancellation happened meanwhile."""
        if self._token.cancelled:
            logger.debug("Dropping %s from %s after cancel", envelope.type, self._address)
            return
        self._events_received += 1
        logger.debug("Notification from %s: %s", self._address, envelope.type)
        self._on_event(self._device_id, envelope)

    async def _backoff(self) -> None:
        """Wait the retry delay, returning early if cancelled."""
        self._failures += 1
        if self._token.cancelled:
            return
        self._set_state(StreamState.BACKOFF)
        with suppress(TimeoutError):
            await asyncio.wait_for(self._token.wait(), timeout=self._retry_delay)
