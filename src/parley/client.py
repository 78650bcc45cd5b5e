"""High-level client: owns the connection and wires the sync components."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from parley.api.chat import ChatAPI
from parley.config import ClientConfig, config
from parley.errors import ParleyError
from parley.gateway.connection import ConnectionManager
from parley.gateway.transport import Transport, WebSocketTransport
from parley.http import HTTPClient
from parley.models.messages import Message
from parley.signals import Signal, Subscription
from parley.sync.membership import RoomMembership
from parley.sync.outbound import OutboundMessageTracker, SendResult, can_send
from parley.sync.rooms import RoomListSynchronizer
from parley.sync.stream import LoadResult, MessageStream
from parley.sync.typing_state import TypingAggregator

log = logging.getLogger(__name__)


class RoomSession:
    """The open conversation view of one room, handed out by ``ChatClient.room``."""

    def __init__(self, client: ChatClient, room_id: str) -> None:
        self._client = client
        self.room_id = room_id

    @property
    def messages(self) -> list[Message]:
        return self._client.stream.timeline(self.room_id)

    @property
    def has_more(self) -> bool:
        return self._client.stream.has_more(self.room_id)

    async def load_more(self) -> LoadResult:
        return await self._client.stream.load_next_page(self.room_id)

    async def send(self, content: str) -> SendResult:
        return await self._client.outbound.send(self.room_id, self._client.user_id, content)

    def input_changed(self, text: str) -> None:
        self._client.typing.on_input(self.room_id, self._client.user_id, text)

    def typing_text(self) -> str | None:
        room = self._client.rooms.get(self.room_id)
        return self._client.typing.describe(self.room_id, room.participants if room else [])

    can_send = staticmethod(can_send)


class ChatClient:
    """One live connection per client, shared by every room.

    Usage::

        async with ChatClient("1", api_url="http://chat.example.com") as client:
            async with client.room("42") as room:
                await room.send("hi")
    """

    def __init__(
        self,
        user_id: str,
        *,
        api_url: str | None = None,
        transport: Transport | None = None,
        http: HTTPClient | None = None,
        settings: ClientConfig | None = None,
    ) -> None:
        cfg = settings or config
        server = cfg.server.model_copy(update={"api_url": api_url}) if api_url else cfg.server
        self.user_id = user_id
        self.errors = Signal("errors")

        self.http = http or HTTPClient(user_id=user_id, settings=server)
        self.api = ChatAPI(self.http)
        if transport is None:
            transport = WebSocketTransport(server.gateway_url, open_timeout=cfg.gateway.open_timeout)
        self.connection = ConnectionManager(transport, settings=cfg.gateway, errors=self.errors)
        self.membership = RoomMembership(self.connection)
        self.stream = MessageStream(self.api, self.connection, settings=cfg.messages, errors=self.errors)
        self.outbound = OutboundMessageTracker(self.connection, self.stream, settings=cfg.messages, errors=self.errors)
        self.typing = TypingAggregator(self.connection, self.membership, settings=cfg.typing)
        self.rooms = RoomListSynchronizer(
            self.api, self.connection, self.stream, local_user_id=user_id, errors=self.errors,
        )

    def on_error(self, listener: Callable[[ParleyError], Any]) -> Subscription:
        return self.errors.connect(listener)

    async def start(self) -> None:
        await self.connection.connect()
        await self.rooms.refresh()

    async def close(self) -> None:
        self.typing.dispose()
        self.membership.dispose()
        self.rooms.dispose()
        self.stream.dispose()
        await self.connection.disconnect()
        await self.http.close()

    async def __aenter__(self) -> ChatClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @contextlib.asynccontextmanager
    async def room(self, room_id: str) -> AsyncIterator[RoomSession]:
        """Join *room_id* and load its first page; leave on every exit path."""
        async with self.membership.joined(room_id):
            try:
                await self.stream.load_initial_page(room_id)
                yield RoomSession(self, room_id)
            finally:
                self.typing.stop_all(room_id)
