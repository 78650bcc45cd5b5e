"""Merges paged history with live messages into one timeline per room."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from parley.config import MessagesSettings, config
from parley.errors import FetchError
from parley.models import events
from parley.models.messages import DeliveryState, Message
from parley.signals import Signal, Subscription
from parley.sync.timeline import PaginationCursor, Timeline

if TYPE_CHECKING:
    from parley.api.chat import ChatAPI
    from parley.gateway.connection import ConnectionManager

log = logging.getLogger(__name__)


@dataclass
class LoadResult:
    added: list[Message] = field(default_factory=list)
    has_more: bool = True
    # A load was already in flight, or there is nothing left to load.
    skipped: bool = False
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _RoomState:
    timeline: Timeline
    cursor: PaginationCursor = field(default_factory=PaginationCursor)
    loading: bool = False


class MessageStream:
    def __init__(
        self,
        api: ChatAPI,
        connection: ConnectionManager,
        *,
        settings: MessagesSettings | None = None,
        errors: Signal | None = None,
    ) -> None:
        self._api = api
        self._settings = settings or config.messages
        self._errors = errors if errors is not None else connection.errors
        self._rooms: dict[str, _RoomState] = {}
        self._changed = Signal("timeline")
        self._latest = Signal("latest_message")
        self._reconciled = Signal("reconciled")
        self._activity = Signal("room_activity")
        self._sub = connection.on(events.RECEIVE_MESSAGE, self.on_message)

    # --- Queries ---

    def timeline(self, room_id: str) -> list[Message]:
        state = self._rooms.get(room_id)
        return state.timeline.messages if state else []

    def cursor(self, room_id: str) -> PaginationCursor:
        return self._room(room_id).cursor

    def has_more(self, room_id: str) -> bool:
        return self._room(room_id).cursor.has_more

    def is_loading(self, room_id: str) -> bool:
        state = self._rooms.get(room_id)
        return state is not None and state.loading

    # --- Subscriptions ---

    def on_timeline_change(self, listener: Callable[[str, list[Message]], Any]) -> Subscription:
        return self._changed.connect(listener)

    def on_latest(self, listener: Callable[[str, Message], Any]) -> Subscription:
        """Fires when a live message becomes the newest of its room."""
        return self._latest.connect(listener)

    def on_activity(self, listener: Callable[[str, Message], Any]) -> Subscription:
        """Fires for every accepted live message, wherever it lands in the timeline."""
        return self._activity.connect(listener)

    def on_reconciled(self, listener: Callable[[str, str, Message], Any]) -> Subscription:
        """Fires with (room_id, client_id, message) when a live copy replaces a local one."""
        return self._reconciled.connect(listener)

    # --- History ---

    async def load_initial_page(self, room_id: str) -> LoadResult:
        """Fetch page 1 and replace the timeline.

        Local messages, and live messages newer than anything on page 1,
        survive the replacement.
        """
        state = self._room(room_id)
        if state.loading:
            return LoadResult(has_more=state.cursor.has_more, skipped=True)
        state.loading = True
        try:
            page = await self._api.get_messages(room_id, page=1, limit=self._settings.page_limit)
        except FetchError as e:
            return self._failed(room_id, state, e)
        finally:
            state.loading = False

        incoming = [self._normalize(room_id, m) for m in page.messages]
        newest = max((m.created_at for m in incoming), default=None)
        keep = [
            m for m in state.timeline.messages
            if m.is_local or newest is None or m.created_at > newest
        ]
        state.timeline.reset()
        added = [m for m in incoming if state.timeline.append_oldest(m)]
        for m in keep:
            state.timeline.insert_newest(m)
        state.cursor.advance(1, page.pagination.total_pages)
        log.debug("Loaded page 1 of %s (%d messages)", room_id, len(added))
        self._notify(room_id, state)
        return LoadResult(added=added, has_more=state.cursor.has_more)

    async def load_next_page(self, room_id: str) -> LoadResult:
        """Fetch the next older page and append it to the tail.

        Ignored (not queued) while a load for the room is in flight or once
        the last page has been loaded.
        """
        state = self._room(room_id)
        if state.loading or not state.cursor.has_more:
            return LoadResult(has_more=state.cursor.has_more, skipped=True)
        next_page = state.cursor.page + 1
        state.loading = True
        try:
            page = await self._api.get_messages(room_id, page=next_page, limit=self._settings.page_limit)
        except FetchError as e:
            return self._failed(room_id, state, e)
        finally:
            state.loading = False

        added = [
            m for m in (self._normalize(room_id, m) for m in page.messages)
            if state.timeline.append_oldest(m)
        ]
        state.cursor.advance(next_page, page.pagination.total_pages)
        log.debug("Loaded page %d of %s (%d new)", next_page, room_id, len(added))
        if added:
            self._notify(room_id, state)
        return LoadResult(added=added, has_more=state.cursor.has_more)

    # --- Live ---

    def on_message(self, message: Message) -> bool:
        """Insert a live message at the head.  Returns False for duplicates."""
        if not message.room_id:
            log.warning("Dropping live message %s without a room id", message.id)
            return False
        room_id = message.room_id
        state = self._room(room_id)
        timeline = state.timeline
        if message.id in timeline:
            log.debug("Duplicate message %s in %s", message.id, room_id)
            return False

        twin = timeline.match_local(message, self._settings.reconcile_window)
        if twin is not None:
            timeline.remove(twin.id)
            message = message.model_copy(
                update={"client_id": twin.client_id, "delivery_state": DeliveryState.SENT}
            )
        timeline.insert_newest(message)
        self._notify(room_id, state)
        if twin is not None:
            self._reconciled.emit(room_id, twin.client_id, message)
        if timeline.head is message:
            self._latest.emit(room_id, message)
        self._activity.emit(room_id, message)
        return True

    # --- Optimistic sends ---

    def insert_pending(self, message: Message) -> None:
        state = self._room(message.room_id)
        if state.timeline.insert_newest(message):
            self._notify(message.room_id, state)

    def find_by_client_id(self, room_id: str, client_id: str) -> Message | None:
        state = self._rooms.get(room_id)
        return state.timeline.find_by_client_id(client_id) if state else None

    def confirm(self, room_id: str, client_id: str, server: Message | str | None = None) -> Message | None:
        """Mark a local message Sent, adopting the server id when known.

        Returns None when the message is no longer local (already
        superseded by its live copy, or removed).
        """
        state = self._rooms.get(room_id)
        local = state.timeline.get(client_id) if state else None
        if state is None or local is None:
            return None
        timeline = state.timeline
        if isinstance(server, Message):
            sent = server.model_copy(update={
                "room_id": room_id,
                "client_id": client_id,
                "delivery_state": DeliveryState.SENT,
            })
        else:
            sent = local.model_copy(update={"id": server or local.id, "delivery_state": DeliveryState.SENT})

        if sent.id != client_id and sent.id in timeline:
            # The live copy landed first without matching; drop the twin.
            timeline.remove(client_id)
            self._notify(room_id, state)
            return timeline.get(sent.id)
        if isinstance(server, Message):
            timeline.remove(client_id)
            timeline.insert_newest(sent)
        else:
            timeline.replace(client_id, sent)
        self._notify(room_id, state)
        return sent

    def discard(self, room_id: str, client_id: str) -> Message | None:
        """Remove a still-local message; returns it marked Failed."""
        state = self._rooms.get(room_id)
        if state is None:
            return None
        local = state.timeline.get(client_id)
        if local is None or not local.is_local:
            return None
        state.timeline.remove(client_id)
        self._notify(room_id, state)
        return local.model_copy(update={"delivery_state": DeliveryState.FAILED})

    def dispose(self) -> None:
        self._sub.dispose()

    # --- Internals ---

    def _room(self, room_id: str) -> _RoomState:
        state = self._rooms.get(room_id)
        if state is None:
            state = self._rooms[room_id] = _RoomState(Timeline(room_id))
        return state

    @staticmethod
    def _normalize(room_id: str, message: Message) -> Message:
        if message.room_id:
            return message
        return message.model_copy(update={"room_id": room_id})

    def _failed(self, room_id: str, state: _RoomState, error: FetchError) -> LoadResult:
        log.warning("Loading messages for %s failed: %s", room_id, error)
        self._errors.emit(error)
        return LoadResult(has_more=state.cursor.has_more, error=error)

    def _notify(self, room_id: str, state: _RoomState) -> None:
        self._changed.emit(room_id, state.timeline.messages)
