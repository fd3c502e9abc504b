"""
Per-registry connectivity monitoring.

A ConnectivityMonitor opens one streaming channel to the registry's
test-connection endpoint and turns inbound status frames into a four-state
model (idle, connecting, connected, error). The state transitions are pure
functions of (status, event) so they can be exercised without a socket.

Consumers gate mutating registry actions (delete, edit, open images) on
`is_usable`, which is true only while the monitor is connected.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from cidash.api import RegistryApi
from cidash.config import settings
from cidash.core.tracing import TracingContext
from cidash.dtos import ConnectionStatusFrame
from cidash.entities import ConnectivityState, ConnectivityStatus
from cidash.services.exceptions import DashboardError, NetworkFailure
from cidash.utils.datetime import parse_datetime, utc_now

logger = logging.getLogger(__name__)

CONNECTING_MESSAGE = "Connecting to registry..."
PARSE_FAILURE_MESSAGE = "Failed to parse server response"
CHANNEL_ERROR_MESSAGE = "Failed to connect to WebSocket"
CHANNEL_CREATE_MESSAGE = "Failed to create WebSocket connection"
UNCLEAN_CLOSE_MESSAGE = "Connection closed unexpectedly"

_FRAME_STATES = {
    "connecting": ConnectivityState.CONNECTING,
    "connected": ConnectivityState.CONNECTED,
    "success": ConnectivityState.CONNECTED,
    "error": ConnectivityState.ERROR,
    "failed": ConnectivityState.ERROR,
}

FrameHandler = Callable[[Any], None]
ErrorHandler = Callable[[Optional[BaseException]], None]
CloseHandler = Callable[[bool], None]


class ConnectionChannel(Protocol):
    """
    A push channel delivering status frames.

    `open` starts the connection in the background and returns; callbacks
    fire on the event loop as frames, errors and closure arrive. A channel
    closed through `close` fires no further callbacks. `close` must also
    abort a connection that is still handshaking.
    """

    async def open(
        self,
        url: str,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> None: ...

    async def close(self) -> None: ...


# ----------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------


def start_connecting(now=None) -> ConnectivityStatus:
    return ConnectivityStatus(
        state=ConnectivityState.CONNECTING,
        message=CONNECTING_MESSAGE,
        last_checked=now or utc_now(),
    )


def apply_frame(status: ConnectivityStatus, raw: Any, now=None) -> ConnectivityStatus:
    """Status after one inbound frame; malformed frames become an error state."""
    now = now or utc_now()
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        frame = ConnectionStatusFrame.model_validate(data)
    except (ValueError, TypeError) as e:
        logger.warning(f"Malformed status frame {raw!r}: {e}")
        return ConnectivityStatus(state=ConnectivityState.ERROR, message=PARSE_FAILURE_MESSAGE, last_checked=now)

    return ConnectivityStatus(
        state=_FRAME_STATES[frame.status],
        message=frame.message,
        last_checked=parse_datetime(frame.time, default_now=False) or now,
    )


def apply_channel_error(status: ConnectivityStatus, now=None) -> ConnectivityStatus:
    return ConnectivityStatus(
        state=ConnectivityState.ERROR,
        message=CHANNEL_ERROR_MESSAGE,
        last_checked=now or utc_now(),
    )


def apply_close(status: ConnectivityStatus, clean: bool, now=None) -> ConnectivityStatus:
    """A clean closure keeps the last state; an unclean one is an error."""
    if clean:
        return status
    return ConnectivityStatus(
        state=ConnectivityState.ERROR,
        message=UNCLEAN_CLOSE_MESSAGE,
        last_checked=now or utc_now(),
    )


# ----------------------------------------------------------------------
# Monitor
# ----------------------------------------------------------------------


class ConnectivityMonitor:
    """
    Live status of one registry.

    At most one channel is open at a time: a new test closes the previous
    channel first, and callbacks from a replaced channel are ignored.

    `testing` mirrors the "Testing..." indicator. It clears on a terminal
    frame, on channel error or closure, or after `testing_timeout` seconds
    without any frame. The timeout only clears the flag; the channel stays
    open and later frames still update the status.
    """

    def __init__(
        self,
        registry_id: int,
        url: str,
        channel_factory: Callable[[], ConnectionChannel],
        on_status_change: Optional[Callable[[bool], None]] = None,
        testing_timeout: Optional[float] = None,
        clock: Callable[[], Any] = utc_now,
    ):
        self.registry_id = registry_id
        self.url = url
        self.channel_factory = channel_factory
        self.on_status_change = on_status_change
        self.testing_timeout = (
            settings.CONNECTION_TEST_TIMEOUT_SECONDS if testing_timeout is None else testing_timeout
        )
        self.clock = clock

        self.status = ConnectivityStatus()
        self.testing = False
        self.live_monitoring = False

        self._channel: Optional[ConnectionChannel] = None
        self._testing_timer: Optional[asyncio.TimerHandle] = None
        self._frame_seen = False
        self._pending_close: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ConnectivityMonitor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    @property
    def state(self) -> ConnectivityState:
        return self.status.state

    @property
    def is_usable(self) -> bool:
        return self.status.is_usable

    @property
    def channel_open(self) -> bool:
        return self._channel is not None

    def _set_status(self, status: ConnectivityStatus) -> None:
        previous = self.status
        self.status = status
        if previous.state != status.state:
            TracingContext.set(registry_id=str(self.registry_id))
            logger.info(
                f"Registry {self.registry_id}: {previous.state.value} -> {status.state.value}"
                + (f" ({status.message})" if status.message else "")
            )
        if self.on_status_change is not None:
            self.on_status_change(status.is_usable)

    # Lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Open (or reopen) the status channel."""
        await self.test_connection()

    async def test_connection(self) -> None:
        await self._close_channel()

        self.testing = True
        self._frame_seen = False
        self._set_status(start_connecting(self.clock()))

        channel = self.channel_factory()
        self._channel = channel
        self._arm_testing_timer(channel)

        logger.debug(f"Opening status channel {self.url}")
        try:
            await channel.open(
                self.url,
                on_frame=lambda raw: self._handle_frame(channel, raw),
                on_error=lambda exc: self._handle_error(channel, exc),
                on_close=lambda clean: self._handle_close(channel, clean),
            )
        except NetworkFailure as e:
            logger.error(f"Registry {self.registry_id}: could not open status channel: {e.message}")
            if self._channel is channel:
                self._channel = None
                self._cancel_testing_timer()
                self.testing = False
                self.live_monitoring = False
                self._set_status(
                    ConnectivityStatus(
                        state=ConnectivityState.ERROR,
                        message=CHANNEL_CREATE_MESSAGE,
                        last_checked=self.clock(),
                    )
                )

    async def toggle_live_monitoring(self) -> bool:
        """Start or stop live monitoring; returns whether it is now active."""
        if self.live_monitoring:
            await self.stop()
            return False
        await self.test_connection()
        # Opening may already have failed
        self.live_monitoring = self._channel is not None
        return self.live_monitoring

    async def stop(self) -> None:
        """Close the channel. Safe to call at any time, including mid-handshake."""
        await self._close_channel()
        self.testing = False
        self.live_monitoring = False

    async def check_once(self, registry_api: RegistryApi) -> ConnectivityStatus:
        """Run the one-shot connection test and apply its result like a frame."""
        try:
            result = await registry_api.test_connection(self.registry_id)
        except DashboardError as e:
            self._set_status(
                ConnectivityStatus(state=ConnectivityState.ERROR, message=e.message, last_checked=self.clock())
            )
            return self.status
        self._set_status(apply_frame(self.status, result.model_dump(), self.clock()))
        return self.status

    async def _close_channel(self) -> None:
        self._cancel_testing_timer()
        pending, self._pending_close = self._pending_close, None
        if pending is not None:
            await pending
        channel, self._channel = self._channel, None
        if channel is not None:
            logger.debug(f"Closing status channel for registry {self.registry_id}")
            await channel.close()

    # Testing flag timeout ------------------------------------------------

    def _arm_testing_timer(self, channel: ConnectionChannel) -> None:
        self._cancel_testing_timer()
        if self.testing_timeout <= 0:
            return
        loop = asyncio.get_running_loop()
        self._testing_timer = loop.call_later(self.testing_timeout, self._testing_timed_out, channel)

    def _cancel_testing_timer(self) -> None:
        if self._testing_timer is not None:
            self._testing_timer.cancel()
            self._testing_timer = None

    def _testing_timed_out(self, channel: ConnectionChannel) -> None:
        self._testing_timer = None
        if channel is self._channel and self.testing and not self._frame_seen:
            logger.info(f"Registry {self.registry_id}: no status after {self.testing_timeout}s")
            self.testing = False

    # Channel callbacks ---------------------------------------------------

    def _handle_frame(self, channel: ConnectionChannel, raw: Any) -> None:
        if channel is not self._channel:
            return
        self._frame_seen = True
        status = apply_frame(self.status, raw, self.clock())
        if status.state in (ConnectivityState.CONNECTED, ConnectivityState.ERROR):
            self.testing = False
            self._cancel_testing_timer()
        self._set_status(status)

    def _handle_error(self, channel: ConnectionChannel, exc: Optional[BaseException]) -> None:
        if channel is not self._channel:
            return
        logger.warning(f"Registry {self.registry_id}: status channel error: {exc}")
        # Errored channels deliver nothing further
        self._channel = None
        self._pending_close = asyncio.get_running_loop().create_task(channel.close())
        self.testing = False
        self.live_monitoring = False
        self._cancel_testing_timer()
        self._set_status(apply_channel_error(self.status, self.clock()))

    def _handle_close(self, channel: ConnectionChannel, clean: bool) -> None:
        if channel is not self._channel:
            return
        logger.debug(f"Registry {self.registry_id}: status channel closed (clean={clean})")
        self._channel = None
        self.testing = False
        self.live_monitoring = False
        self._cancel_testing_timer()
        self._set_status(apply_close(self.status, clean, self.clock()))


class RegistryMonitorPool:
    """One monitor per rendered registry; mounting starts it, unmounting tears it down."""

    def __init__(
        self,
        url_for: Callable[[int], str],
        channel_factory: Callable[[], ConnectionChannel],
        on_status_change: Optional[Callable[[int, bool], None]] = None,
        testing_timeout: Optional[float] = None,
    ):
        self.url_for = url_for
        self.channel_factory = channel_factory
        self.on_status_change = on_status_change
        self.testing_timeout = testing_timeout
        self.monitors: Dict[int, ConnectivityMonitor] = {}

    def _status_callback(self, registry_id: int) -> Optional[Callable[[bool], None]]:
        if self.on_status_change is None:
            return None
        return lambda usable: self.on_status_change(registry_id, usable)

    async def mount(self, registry_id: int) -> ConnectivityMonitor:
        monitor = self.monitors.get(registry_id)
        if monitor is None:
            monitor = ConnectivityMonitor(
                registry_id,
                self.url_for(registry_id),
                self.channel_factory,
                on_status_change=self._status_callback(registry_id),
                testing_timeout=self.testing_timeout,
            )
            self.monitors[registry_id] = monitor
            await monitor.start()
        return monitor

    async def unmount(self, registry_id: int) -> None:
        monitor = self.monitors.pop(registry_id, None)
        if monitor is not None:
            await monitor.stop()

    async def sync(self, registry_ids: Iterable[int]) -> None:
        """Mount monitors for `registry_ids` and tear down the rest."""
        wanted = list(dict.fromkeys(registry_ids))
        for registry_id in [r for r in self.monitors if r not in wanted]:
            await self.unmount(registry_id)
        for registry_id in wanted:
            await self.mount(registry_id)

    def is_usable(self, registry_id: int) -> bool:
        monitor = self.monitors.get(registry_id)
        return monitor is not None and monitor.is_usable

    async def close_all(self) -> None:
        await asyncio.gather(*(self.unmount(r) for r in list(self.monitors)))
