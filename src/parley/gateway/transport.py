"""Bidirectional event channel with acknowledgement callbacks."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import websockets
import websockets.asyncio.client
from websockets.protocol import State

from parley.errors import NotConnectedError, ParleyGatewayError, TransportError
from parley.signals import Subscription
from parley.tasks import spawn

log = logging.getLogger(__name__)

AckCallback = Callable[[Any], None]
EventCallback = Callable[[str, Any], None]
CloseCallback = Callable[[TransportError], None]

ACK_FRAME = "ack"


class Transport(abc.ABC):
    """What ConnectionManager needs from the wire.

    ``open`` registers the callbacks for the lifetime of that connection;
    ``on_close`` fires only when the connection drops without ``close()``
    having been called.
    """

    @property
    @abc.abstractmethod
    def connected(self) -> bool: ...

    @abc.abstractmethod
    async def open(self, on_event: EventCallback, on_close: CloseCallback) -> None: ...

    @abc.abstractmethod
    async def close(self) -> None: ...

    @abc.abstractmethod
    def emit(self, event: str, data: Any, ack: AckCallback | None = None) -> Subscription | None:
        """Send *event*.  With *ack*, returns a handle that drops the pending callback."""


class WebSocketTransport(Transport):
    """JSON frames over a WebSocket.

    Frames are ``{"type": event, "d": payload}``; a frame expecting an
    acknowledgement also carries ``"ack": n`` and the backend answers with
    ``{"type": "ack", "ack": n, "d": {...}}``.
    """

    def __init__(self, url: str, *, open_timeout: float = 10.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: Any = None
        self._recv_task: asyncio.Task | None = None
        self._ack_seq = 0
        self._acks: dict[int, AckCallback] = {}
        self._closing = False
        self._on_event: EventCallback | None = None
        self._on_close: CloseCallback | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def open(self, on_event: EventCallback, on_close: CloseCallback) -> None:
        if self._ws is not None:
            # Stale socket from a silently dropped connection
            await self.close()
        self._closing = False
        try:
            ws = await websockets.asyncio.client.connect(self._url, open_timeout=self._open_timeout)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise TransportError(f"Could not connect to {self._url}: {e}") from e
        self._ws = ws
        self._on_event = on_event
        self._on_close = on_close
        self._recv_task = spawn(self._receive_loop(ws), name="parley-recv")
        log.debug("WebSocket open: %s", self._url)

    async def close(self) -> None:
        self._closing = True
        self._acks.clear()
        task, self._recv_task = self._recv_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception:
                log.debug("Error closing WebSocket", exc_info=True)

    def emit(self, event: str, data: Any, ack: AckCallback | None = None) -> Subscription | None:
        if not self.connected:
            raise NotConnectedError()
        frame: dict[str, Any] = {"type": event, "d": data}
        handle = None
        if ack is not None:
            self._ack_seq += 1
            ack_id = self._ack_seq
            frame["ack"] = ack_id
            self._acks[ack_id] = ack
            handle = Subscription(lambda: self._acks.pop(ack_id, None))
        spawn(self._ws.send(json.dumps(frame)), name=f"parley-emit-{event}")
        return handle

    @property
    def pending_acks(self) -> int:
        return len(self._acks)

    async def _receive_loop(self, ws: Any) -> None:
        error: TransportError | None = None
        try:
            async for raw in ws:
                try:
                    self.handle_frame(raw)
                except Exception:
                    log.exception("Error handling frame")
        except websockets.exceptions.ConnectionClosedError as e:
            close = e.rcvd
            error = ParleyGatewayError(close.code if close else 1006, close.reason if close else "")
        except Exception as e:
            log.exception("Receive loop failed")
            error = TransportError(f"Receive loop failed: {e}")
        finally:
            if not self._closing and ws is self._ws:
                self._ws = None
                self._acks.clear()
                if error is not None:
                    try:
                        await ws.close()
                    except Exception:
                        log.debug("Error closing WebSocket", exc_info=True)
                if self._on_close is not None:
                    self._on_close(error or ParleyGatewayError(1000, "closed by server"))

    def handle_frame(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw.decode() if isinstance(raw, bytes) else raw)
        except ValueError:
            # JSONDecodeError and UnicodeDecodeError
            log.warning("Dropping undecodable frame")
            return
        if not isinstance(msg, dict) or not isinstance(msg.get("type"), str):
            log.warning("Dropping frame without a type")
            return
        if msg["type"] == ACK_FRAME:
            ack_id = msg.get("ack")
            valid = isinstance(ack_id, int) and not isinstance(ack_id, bool)
            callback = self._acks.pop(ack_id, None) if valid else None
            if callback is None:
                log.debug("Ack %r has no pending callback", ack_id)
                return
            callback(msg.get("d"))
            return
        if self._on_event is not None:
            self._on_event(msg["type"], msg.get("d"))
