"""Per-room ordered message list and pagination cursor."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from parley.models.messages import Message


@dataclass
class PaginationCursor:
    page: int = 0
    # None until the backend has reported a bound.
    total_pages: int | None = None

    @property
    def has_more(self) -> bool:
        return self.total_pages is None or self.page < self.total_pages

    def advance(self, page: int, total_pages: int) -> None:
        self.page = page
        self.total_pages = total_pages


class Timeline:
    """Newest-first messages of one room, unique by id.

    Live messages go in at the head and history at the tail; an arrival that
    would break newest-to-oldest order is placed by ``created_at`` instead.
    """

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        self._messages: list[Message] = []
        self._ids: set[str] = set()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def head(self) -> Message | None:
        return self._messages[0] if self._messages else None

    @property
    def tail(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def get(self, message_id: str) -> Message | None:
        i = self._index(message_id)
        return None if i is None else self._messages[i]

    def find_by_client_id(self, client_id: str) -> Message | None:
        for m in self._messages:
            if m.client_id == client_id:
                return m
        return None

    def insert_newest(self, message: Message) -> bool:
        if message.id in self._ids:
            return False
        msgs = self._messages
        pos = len(msgs)
        for i, m in enumerate(msgs):
            if m.created_at <= message.created_at:
                pos = i
                break
        msgs.insert(pos, message)
        self._ids.add(message.id)
        return True

    def append_oldest(self, message: Message) -> bool:
        if message.id in self._ids:
            return False
        msgs = self._messages
        pos = 0
        for i in range(len(msgs) - 1, -1, -1):
            if msgs[i].created_at >= message.created_at:
                pos = i + 1
                break
        msgs.insert(pos, message)
        self._ids.add(message.id)
        return True

    def replace(self, message_id: str, message: Message) -> bool:
        """Swap a message in place, keeping its position."""
        i = self._index(message_id)
        if i is None:
            return False
        self._ids.discard(message_id)
        self._messages[i] = message
        self._ids.add(message.id)
        return True

    def remove(self, message_id: str) -> Message | None:
        i = self._index(message_id)
        if i is None:
            return None
        self._ids.discard(message_id)
        return self._messages.pop(i)

    def reset(self) -> None:
        self._messages.clear()
        self._ids.clear()

    def match_local(self, message: Message, window: float) -> Message | None:
        """Local message most likely to be *message*'s unacknowledged twin.

        Same sender and content, created within *window* seconds; the
        closest timestamp wins.
        """
        limit = timedelta(seconds=window)
        best: Message | None = None
        best_delta: timedelta | None = None
        for m in self._messages:
            if not m.is_local or m.sender_id != message.sender_id or m.content != message.content:
                continue
            delta = abs(m.created_at - message.created_at)
            if delta > limit:
                continue
            if best_delta is None or delta < best_delta:
                best, best_delta = m, delta
        return best

    def _index(self, message_id: str) -> int | None:
        if message_id not in self._ids:
            return None
        for i, m in enumerate(self._messages):
            if m.id == message_id:
                return i
        return None
