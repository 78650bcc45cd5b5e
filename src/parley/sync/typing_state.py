"""Typing indicators: debounced outbound signal, TTL-bounded inbound state."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from parley.config import TypingSettings, config
from parley.errors import NotConnectedError
from parley.models import events
from parley.models.events import UserTyping
from parley.models.rooms import Room
from parley.models.users import User
from parley.signals import Signal, Subscription

if TYPE_CHECKING:
    from parley.gateway.connection import ConnectionManager
    from parley.sync.membership import RoomMembership

log = logging.getLogger(__name__)

UNKNOWN_TYPIST = "Someone"


class TypingAggregator:
    def __init__(
        self,
        connection: ConnectionManager,
        membership: RoomMembership | None = None,
        *,
        settings: TypingSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connection = connection
        self._membership = membership
        self._settings = settings or config.typing
        self._clock = clock
        # room_id -> user_id -> expiry; dict order is first-seen order
        self._rooms: dict[str, dict[str, float]] = {}
        # (room_id, user_id) -> pending "stopped" timer for the local user
        self._outbound: dict[tuple[str, str], asyncio.TimerHandle] = {}
        # room_id -> timer for the earliest inbound expiry
        self._expiry: dict[str, asyncio.TimerHandle] = {}
        self._changed = Signal("typing")
        self._sub = connection.on(events.USER_TYPING, self._on_event)

    def on_change(self, listener: Callable[[str, list[str]], Any]) -> Subscription:
        return self._changed.connect(listener)

    # --- Outbound ---

    def set_typing(self, room_id: str, user_id: str, is_typing: bool) -> None:
        """Report local typing.

        Only the start is signalled; each further call re-arms the debounce
        timer, whose expiry sends a single stop.
        """
        key = (room_id, user_id)
        handle = self._outbound.pop(key, None)
        if handle is not None:
            handle.cancel()
        if is_typing:
            if handle is None:
                self._send(room_id, user_id, True)
            loop = asyncio.get_running_loop()
            self._outbound[key] = loop.call_later(self._settings.debounce, self._debounce_expired, key)
        elif handle is not None:
            self._send(room_id, user_id, False)

    def on_input(self, room_id: str, user_id: str, text: str) -> None:
        self.set_typing(room_id, user_id, bool(text))

    def is_signalling(self, room_id: str, user_id: str) -> bool:
        return (room_id, user_id) in self._outbound

    def stop_all(self, room_id: str | None = None) -> None:
        for key in [k for k in self._outbound if room_id is None or k[0] == room_id]:
            self.set_typing(key[0], key[1], False)

    def _debounce_expired(self, key: tuple[str, str]) -> None:
        self._outbound.pop(key, None)
        self._send(key[0], key[1], False)

    def _send(self, room_id: str, user_id: str, is_typing: bool) -> None:
        if not self._connection.is_connected():
            log.debug("Offline, not sending typing=%s for %s", is_typing, room_id)
            return
        try:
            self._connection.emit(events.TYPING, events.typing(room_id, user_id, is_typing))
        except NotConnectedError:
            log.debug("Connection dropped before typing signal")

    # --- Inbound ---

    def on_typing(self, room_id: str, user_id: str, is_typing: bool) -> None:
        before = self._prune(room_id)
        users = self._rooms.setdefault(room_id, {})
        if is_typing:
            users[user_id] = self._clock() + self._settings.ttl
        else:
            users.pop(user_id, None)
        after = tuple(users)
        if after != before:
            self._changed.emit(room_id, list(after))
        self._arm_expiry(room_id)

    def typing_users(self, room_id: str) -> list[str]:
        """Users typing in *room_id*, expired entries dropped first."""
        return list(self._prune(room_id))

    def describe(self, room_id: str, participants: Room | Iterable[User]) -> str | None:
        users = self.typing_users(room_id)
        if not users:
            return None
        people = participants.participants if isinstance(participants, Room) else list(participants)
        names = {p.id: p.name for p in people}
        return ", ".join(names.get(u) or UNKNOWN_TYPIST for u in users) + " is typing..."

    def _prune(self, room_id: str) -> tuple[str, ...]:
        users = self._rooms.get(room_id)
        if not users:
            return ()
        now = self._clock()
        expired = [u for u, expiry in users.items() if expiry <= now]
        for user_id in expired:
            del users[user_id]
        if expired:
            log.debug("Typing expired in %s: %s", room_id, expired)
            self._changed.emit(room_id, list(users))
        return tuple(users)

    def _arm_expiry(self, room_id: str) -> None:
        handle = self._expiry.pop(room_id, None)
        if handle is not None:
            handle.cancel()
        users = self._rooms.get(room_id)
        if not users:
            return
        delay = max(min(users.values()) - self._clock(), 0.0)
        loop = asyncio.get_running_loop()
        self._expiry[room_id] = loop.call_later(delay, self._expire, room_id)

    def _expire(self, room_id: str) -> None:
        self._expiry.pop(room_id, None)
        self._prune(room_id)
        self._arm_expiry(room_id)

    def _on_event(self, event: UserTyping) -> None:
        room_id = event.room_id or (self._membership.current_room if self._membership else None)
        if room_id is None:
            log.warning("Dropping user_typing for %s: no room", event.user_id)
            return
        self.on_typing(room_id, event.user_id, event.is_typing)

    def dispose(self) -> None:
        self.stop_all()
        for handle in self._expiry.values():
            handle.cancel()
        self._expiry.clear()
        self._sub.dispose()
