"""Conversation list ordered by most recent activity."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from parley.errors import FetchError
from parley.models import events
from parley.models.messages import Message
from parley.models.rooms import Room
from parley.signals import Signal, Subscription, SubscriptionGroup

if TYPE_CHECKING:
    from parley.api.chat import ChatAPI
    from parley.gateway.connection import ConnectionManager
    from parley.sync.stream import MessageStream

log = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    rooms: list[Room]
    error: FetchError | None = None


class RoomListSynchronizer:
    def __init__(
        self,
        api: ChatAPI,
        connection: ConnectionManager,
        stream: MessageStream | None = None,
        *,
        local_user_id: str | None = None,
        errors: Signal | None = None,
    ) -> None:
        self._api = api
        self.local_user_id = local_user_id
        self._errors = errors if errors is not None else connection.errors
        self._rooms: list[Room] = []
        self._changed = Signal("room_list")
        self._subs = SubscriptionGroup()
        self._subs.add(connection.on(events.NEW_CHAT_ROOM, self.on_new_room))
        if stream is not None:
            self._subs.add(stream.on_activity(self.on_room_activity))

    @property
    def rooms(self) -> list[Room]:
        return list(self._rooms)

    def get(self, room_id: str) -> Room | None:
        for room in self._rooms:
            if room.id == room_id:
                return room
        return None

    def index_of(self, room_id: str) -> int:
        for i, room in enumerate(self._rooms):
            if room.id == room_id:
                return i
        return -1

    def display_name(self, room: Room) -> str:
        return room.display_name(self.local_user_id)

    def on_change(self, listener: Callable[[list[Room]], Any]) -> Subscription:
        return self._changed.connect(listener)

    async def refresh(self) -> RefreshResult:
        """Replace the list with the backend's.  On failure the list is kept."""
        try:
            rooms = await self._api.get_rooms()
        except FetchError as e:
            log.warning("Refreshing rooms failed: %s", e)
            self._errors.emit(e)
            return RefreshResult(rooms=[], error=e)
        self._rooms = list(rooms)
        self._notify()
        return RefreshResult(rooms=self.rooms)

    async def create_room(self, participant_ids: list[str], name: str | None = None) -> Room:
        ids = list(participant_ids)
        if self.local_user_id is not None and self.local_user_id not in ids:
            ids.append(self.local_user_id)
        try:
            room = await self._api.create_room(ids, name=name)
        except FetchError as e:
            self._errors.emit(e)
            raise
        self.on_new_room(room)
        return room

    def on_new_room(self, room: Room) -> None:
        i = self.index_of(room.id)
        if i >= 0:
            del self._rooms[i]
        self._rooms.insert(0, room)
        log.info("Room %s added", room.id)
        self._notify()

    def on_room_activity(self, room_id: str, message: Message) -> None:
        """Move the room to the head; the preview only ever shows its newest message."""
        i = self.index_of(room_id)
        if i < 0:
            log.debug("Activity for unknown room %s", room_id)
            return
        room = self._rooms.pop(i)
        latest = room.latest_message
        if latest is None or message.created_at >= latest.created_at:
            room = room.model_copy(update={"messages": [message]})
        self._rooms.insert(0, room)
        self._notify()

    def dispose(self) -> None:
        self._subs.dispose()

    def _notify(self) -> None:
        self._changed.emit(self.rooms)
