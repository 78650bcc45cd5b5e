"""Optimistic sends with acknowledgement, timeout and rollback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from parley.config import MessagesSettings, config
from parley.errors import AckError, AckTimeoutError, NotConnectedError, ProtocolError
from parley.models import events
from parley.models.events import SendAck
from parley.models.messages import DeliveryState, Message
from parley.signals import Signal, Subscription

if TYPE_CHECKING:
    from parley.gateway.connection import ConnectionManager
    from parley.sync.stream import MessageStream

log = logging.getLogger(__name__)


def can_send(content: str | None) -> bool:
    """Whether the send affordance is enabled; independent of connection state."""
    return bool(content and content.strip())


@dataclass
class SendResult:
    state: DeliveryState | None
    message: Message | None = None
    # Original compose text to put back after a failed send.
    restore: str | None = None
    error: AckError | None = None

    @property
    def rejected(self) -> bool:
        return self.state is None

    @property
    def delivered(self) -> bool:
        return self.state is DeliveryState.SENT


class OutboundMessageTracker:
    def __init__(
        self,
        connection: ConnectionManager,
        stream: MessageStream,
        *,
        settings: MessagesSettings | None = None,
        errors: Signal | None = None,
    ) -> None:
        self._connection = connection
        self._stream = stream
        self._settings = settings or config.messages
        self._errors = errors if errors is not None else connection.errors
        self._failed = Signal("send_failed")
        self._in_flight: dict[str, asyncio.Future] = {}

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def on_failure(self, listener: Callable[[AckError], Any]) -> Subscription:
        return self._failed.connect(listener)

    async def send(self, room_id: str, sender_id: str, content: str) -> SendResult:
        """Send *content* optimistically and wait for the outcome.

        Blank content is rejected without side effects.  Raises
        ``NotConnectedError`` when offline, before touching the timeline.
        """
        text = content.strip() if content else ""
        if not text:
            return SendResult(state=None)
        if not self._connection.is_connected():
            raise NotConnectedError("Cannot send while disconnected.")

        pending = Message.pending(room_id, sender_id, text)
        client_id = pending.id
        loop = asyncio.get_running_loop()
        ack_future: asyncio.Future = loop.create_future()

        def on_ack(data: Any) -> None:
            # First of ack/timeout wins; a late ack finds the future done.
            if not ack_future.done():
                ack_future.set_result(data)

        self._stream.insert_pending(pending)
        self._in_flight[client_id] = ack_future
        ack_handle = None
        try:
            try:
                ack_handle = self._connection.emit(
                    events.SEND_MESSAGE,
                    events.send_message(room_id, sender_id, text),
                    ack=on_ack,
                )
            except NotConnectedError:
                return self._fail(room_id, client_id, content, AckError(room_id, content, "Connection lost while sending."))
            try:
                raw = await asyncio.wait_for(ack_future, timeout=self._settings.ack_timeout)
            except asyncio.TimeoutError:
                return self._fail(room_id, client_id, content, AckTimeoutError(room_id, content, self._settings.ack_timeout))
            except asyncio.CancelledError:
                self._stream.discard(room_id, client_id)
                raise
        finally:
            self._in_flight.pop(client_id, None)
            if ack_handle is not None:
                ack_handle.dispose()

        try:
            ack = events.parse_ack(raw)
        except ProtocolError as e:
            log.warning("Unreadable acknowledgement: %s", e)
            ack = SendAck()
        if ack.error:
            return self._fail(room_id, client_id, content, AckError(room_id, content, ack.error))

        sent = self._stream.confirm(room_id, client_id, ack.message or ack.server_id)
        if sent is None:
            # Already replaced by its live copy.
            sent = self._stream.find_by_client_id(room_id, client_id)
        return SendResult(state=DeliveryState.SENT, message=sent)

    def _fail(self, room_id: str, client_id: str, content: str, error: AckError) -> SendResult:
        superseded = self._stream.find_by_client_id(room_id, client_id)
        if superseded is not None and not superseded.is_local:
            # The live copy arrived, so the message did get through.
            log.info("Send %s had no ack but its live copy arrived", client_id)
            return SendResult(state=DeliveryState.SENT, message=superseded)
        failed = self._stream.discard(room_id, client_id)
        log.warning("Send to %s failed: %s", room_id, error)
        self._errors.emit(error)
        self._failed.emit(error)
        return SendResult(state=DeliveryState.FAILED, message=failed, restore=content, error=error)
