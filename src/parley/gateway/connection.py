"""Connection lifecycle with backoff, liveness probe and event dispatch."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from typing import Any

from parley.config import GatewaySettings, config
from parley.errors import (
    NotConnectedError,
    ParleyGatewayError,
    ProtocolError,
    TransportError,
    UnreachableError,
)
from parley.gateway.transport import AckCallback, Transport
from parley.models.events import parse_event
from parley.signals import Signal, Subscription
from parley.tasks import spawn

log = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    # Terminal until the user retries.
    UNREACHABLE = "unreachable"


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Seconds to wait before reconnect *attempt* (1-based)."""
    return min(base * 2 ** (attempt - 1), cap)


class ConnectionManager:
    """Owns the single live connection shared by every room.

    Usage::

        conn = ConnectionManager(WebSocketTransport(url))
        conn.on_state_change(lambda state: print(state))
        conn.on("receive_message", handle_message)
        await conn.connect()
    """

    def __init__(
        self,
        transport: Transport,
        *,
        settings: GatewaySettings | None = None,
        errors: Signal | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or config.gateway
        self.errors = errors if errors is not None else Signal("errors")

        self._state = ConnectionState.DISCONNECTED
        self.last_error: BaseException | None = None
        self.attempt_count = 0
        self.backoff_deadline: float | None = None

        self._state_changed = Signal("connection_state")
        self._handlers: dict[str, Signal] = {}
        # True between connect() and disconnect()
        self._wanted = False
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._probe_handle: asyncio.TimerHandle | None = None
        self._attempt_task: asyncio.Task | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def on_state_change(self, listener: Callable[[ConnectionState], Any]) -> Subscription:
        return self._state_changed.connect(listener)

    def on(self, event_type: str, handler: Callable[[Any], Any]) -> Subscription:
        """Register a handler for a parsed inbound event."""
        signal = self._handlers.get(event_type)
        if signal is None:
            signal = self._handlers[event_type] = Signal(event_type)
        return signal.connect(handler)

    def emit(self, event: str, data: Any, ack: AckCallback | None = None) -> Subscription | None:
        """Send on the live channel.  Disposing the returned handle forgets *ack*."""
        if not self.is_connected():
            raise NotConnectedError()
        return self._transport.emit(event, data, ack)

    # --- Lifecycle ---

    async def connect(self) -> None:
        """Open the transport.  Failures are retried in the background."""
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            return
        if self._attempt_task is not None and not self._attempt_task.done():
            return
        self._wanted = True
        self._cancel_reconnect()
        self._start_probe()
        await self._attempt(ConnectionState.CONNECTING)

    async def retry(self) -> None:
        """User-initiated retry, typically from UNREACHABLE."""
        self.attempt_count = 0
        await self.connect()

    async def disconnect(self) -> None:
        self._wanted = False
        self._cancel_reconnect()
        if self._probe_handle is not None:
            self._probe_handle.cancel()
            self._probe_handle = None
        task, self._attempt_task = self._attempt_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._transport.close()
        self.attempt_count = 0
        self.backoff_deadline = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def _attempt(self, state: ConnectionState) -> None:
        self._set_state(state)
        try:
            await self._transport.open(self._on_event, self._on_transport_close)
        except TransportError as e:
            if self._wanted:
                log.warning("Connect attempt failed: %s", e)
                self._on_failure(e)
            return
        if not self._wanted:
            # disconnect() raced the open
            await self._transport.close()
            return
        self.attempt_count = 0
        self.last_error = None
        self.backoff_deadline = None
        log.info("Connected")
        self._set_state(ConnectionState.CONNECTED)

    def _on_failure(self, error: TransportError) -> None:
        self.last_error = error
        if isinstance(error, ParleyGatewayError) and not error.can_reconnect:
            self._become_unreachable()
            return
        self.attempt_count += 1
        if self.attempt_count > self._settings.max_attempts:
            self._become_unreachable()
            return
        delay = backoff_delay(self.attempt_count, self._settings.backoff_base, self._settings.backoff_max)
        loop = asyncio.get_running_loop()
        self.backoff_deadline = loop.time() + delay
        self._set_state(ConnectionState.RECONNECTING)
        log.info("Reconnecting in %.2fs (attempt %d/%d)", delay, self.attempt_count, self._settings.max_attempts)
        self._cancel_reconnect()
        self._reconnect_handle = loop.call_later(delay, self._fire_reconnect)

    def _become_unreachable(self) -> None:
        self.backoff_deadline = None
        self._set_state(ConnectionState.UNREACHABLE)
        err = UnreachableError(self.attempt_count, self.last_error)
        log.error("%s", err)
        self.errors.emit(err)

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        if not self._wanted:
            return
        self._attempt_task = spawn(self._attempt(ConnectionState.RECONNECTING), name="parley-reconnect")

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_transport_close(self, error: TransportError) -> None:
        if not self._wanted or self._state is not ConnectionState.CONNECTED:
            return
        log.warning("Connection lost: %s", error)
        self._on_failure(error)

    # --- Liveness probe ---

    def _start_probe(self) -> None:
        if self._probe_handle is None:
            loop = asyncio.get_running_loop()
            self._probe_handle = loop.call_later(self._settings.probe_interval, self._probe)

    def _probe(self) -> None:
        self._probe_handle = None
        if not self._wanted:
            return
        self._start_probe()
        if self._state is ConnectionState.CONNECTED and not self._transport.connected:
            log.warning("Liveness probe found the transport down")
            self._on_failure(TransportError("Transport disconnected without notice"))

    # --- Dispatch ---

    def _on_event(self, event_type: str, data: Any) -> None:
        try:
            event = parse_event(event_type, data)
        except ProtocolError as e:
            log.warning("Dropping event: %s", e)
            return
        if event is None:
            log.debug("Ignoring unhandled event %s", event_type)
            return
        signal = self._handlers.get(event_type)
        if signal is not None:
            signal.emit(event)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        log.debug("Connection state %s -> %s", previous.value, state.value)
        self._state_changed.emit(state)
