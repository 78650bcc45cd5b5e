"""Current-room tracking with join/leave signalling."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from parley.errors import NotConnectedError
from parley.gateway.connection import ConnectionManager, ConnectionState
from parley.models import events
from parley.signals import Signal, Subscription

log = logging.getLogger(__name__)


class RoomMembership:
    """At most one room is current; its join is re-issued on every connect.

    Join state does not survive a transport reset, so the join is sent
    again each time the connection reaches CONNECTED.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._current: str | None = None
        self._changed = Signal("current_room")
        self._state_sub = connection.on_state_change(self._on_state)

    @property
    def current_room(self) -> str | None:
        return self._current

    def on_change(self, listener: Callable[[str | None], Any]) -> Subscription:
        return self._changed.connect(listener)

    def join_room(self, room_id: str) -> None:
        if self._current == room_id:
            return
        if self._current is not None:
            self.leave_room(self._current)
        self._current = room_id
        self._send(events.JOIN_ROOM, events.join_room(room_id))
        log.info("Joined room %s", room_id)
        self._changed.emit(room_id)

    def leave_room(self, room_id: str) -> None:
        if self._current != room_id:
            return
        self._current = None
        self._send(events.LEAVE_ROOM, events.leave_room(room_id))
        log.info("Left room %s", room_id)
        self._changed.emit(None)

    @contextlib.asynccontextmanager
    async def joined(self, room_id: str) -> AsyncIterator[str]:
        """Hold the joined state for the duration of the block.

        The leave is issued on every exit path, cancellation included.
        """
        self.join_room(room_id)
        try:
            yield room_id
        finally:
            self.leave_room(room_id)

    def dispose(self) -> None:
        if self._current is not None:
            self.leave_room(self._current)
        self._state_sub.dispose()

    def _send(self, event: str, payload: Any) -> None:
        # While offline the record alone is kept; the join goes out on connect.
        if not self._connection.is_connected():
            log.debug("Offline, deferring %s", event)
            return
        try:
            self._connection.emit(event, payload)
        except NotConnectedError:
            log.debug("Connection dropped before %s", event)

    def _on_state(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTED and self._current is not None:
            log.info("Re-joining room %s after connect", self._current)
            self._send(events.JOIN_ROOM, events.join_room(self._current))
