import asyncio

import pytest

from fakes import room
from parley.config import TypingSettings
from parley.models.rooms import Room
from parley.models.users import User
from parley.sync.membership import RoomMembership
from parley.sync.typing_state import TypingAggregator


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def membership(connection):
    return RoomMembership(connection)


@pytest.fixture()
def typing(connection, membership, settings, clock):
    t = TypingAggregator(connection, membership, settings=settings.typing, clock=clock)
    yield t
    t.dispose()


def signals(transport):
    return [d["isTyping"] for d in transport.emitted("typing")]


class TestOutbound:
    async def test_keystrokes_coalesce(self, typing, connected, transport):
        for _ in range(5):
            typing.set_typing("R1", "1", True)
        assert signals(transport) == [True]
        assert typing.is_signalling("R1", "1")

        await asyncio.sleep(0.08)
        assert signals(transport) == [True, False]
        assert transport.emitted("typing")[-1] == {"roomId": "R1", "userId": "1", "isTyping": False}
        assert not typing.is_signalling("R1", "1")

    async def test_each_keystroke_rearms_timer(self, typing, connected, transport):
        typing.set_typing("R1", "1", True)
        await asyncio.sleep(0.02)
        typing.set_typing("R1", "1", True)
        await asyncio.sleep(0.02)
        assert signals(transport) == [True]

        await asyncio.sleep(0.05)
        assert signals(transport) == [True, False]

    async def test_explicit_stop(self, typing, connected, transport):
        typing.set_typing("R1", "1", True)
        typing.set_typing("R1", "1", False)
        assert signals(transport) == [True, False]

        await asyncio.sleep(0.06)
        assert signals(transport) == [True, False]

    async def test_stop_without_start_sends_nothing(self, typing, connected, transport):
        typing.set_typing("R1", "1", False)
        assert transport.sent == []

    async def test_on_input(self, typing, connected, transport):
        typing.on_input("R1", "1", "h")
        typing.on_input("R1", "1", "hi")
        typing.on_input("R1", "1", "")
        assert signals(transport) == [True, False]

    async def test_offline_sends_nothing(self, typing, connection, transport):
        typing.set_typing("R1", "1", True)
        await asyncio.sleep(0.06)
        assert transport.sent == []

    async def test_stop_all_for_room(self, typing, connected, transport):
        typing.set_typing("R1", "1", True)
        typing.set_typing("R2", "1", True)
        typing.stop_all("R1")

        assert not typing.is_signalling("R1", "1")
        assert typing.is_signalling("R2", "1")
        assert [(d["roomId"], d["isTyping"]) for d in transport.emitted("typing")] == [
            ("R1", True), ("R2", True), ("R1", False),
        ]


class TestInbound:
    async def test_set_semantics(self, typing):
        typing.on_typing("R1", "2", True)
        typing.on_typing("R1", "2", True)
        typing.on_typing("R1", "3", True)
        assert typing.typing_users("R1") == ["2", "3"]

        typing.on_typing("R1", "2", False)
        assert typing.typing_users("R1") == ["3"]

    async def test_rooms_are_separate(self, typing):
        typing.on_typing("R1", "2", True)
        assert typing.typing_users("R2") == []

    async def test_change_signal_only_on_change(self, typing):
        changes = []
        typing.on_change(lambda room_id, users: changes.append((room_id, users)))

        typing.on_typing("R1", "2", True)
        typing.on_typing("R1", "2", True)
        typing.on_typing("R1", "2", False)
        typing.on_typing("R1", "2", False)

        assert changes == [("R1", ["2"]), ("R1", [])]

    async def test_entry_expires_after_ttl(self, typing, clock):
        typing.on_typing("R1", "2", True)
        clock.now = 4.9
        assert typing.typing_users("R1") == ["2"]
        clock.now = 5.0
        assert typing.typing_users("R1") == []

    async def test_expiry_notifies_on_read(self, typing, clock):
        changes = []
        typing.on_change(lambda room_id, users: changes.append((room_id, users)))
        typing.on_typing("R1", "2", True)

        clock.now = 6.0
        assert typing.typing_users("R1") == []
        assert changes[-1] == ("R1", [])
        assert len(changes) == 2

    async def test_expiry_notifies_without_read(self, connection, membership):
        t = TypingAggregator(connection, membership, settings=TypingSettings(debounce=0.03, ttl=0.03))
        changes = []
        t.on_change(lambda room_id, users: changes.append((room_id, users)))
        t.on_typing("R1", "2", True)

        await asyncio.sleep(0.08)
        assert changes == [("R1", ["2"]), ("R1", [])]
        t.dispose()

    async def test_refresh_extends_ttl(self, typing, clock):
        typing.on_typing("R1", "2", True)
        clock.now = 4.0
        typing.on_typing("R1", "2", True)
        clock.now = 8.0
        assert typing.typing_users("R1") == ["2"]

    async def test_event_with_room(self, typing, connected, transport):
        transport.push("user_typing", {"userId": 2, "isTyping": True, "roomId": "R5"})
        assert typing.typing_users("R5") == ["2"]

    async def test_event_without_room_uses_current(self, typing, membership, connected, transport):
        membership.join_room("R1")
        transport.push("user_typing", {"userId": "2", "isTyping": True})
        assert typing.typing_users("R1") == ["2"]

    async def test_event_without_room_and_no_current_dropped(self, typing, connected, transport):
        transport.push("user_typing", {"userId": "2", "isTyping": True})
        assert typing.typing_users("R1") == []


class TestDescribe:
    async def test_nobody(self, typing):
        assert typing.describe("R1", []) is None

    async def test_names_from_room(self, typing):
        r = Room.model_validate(room("R1", participants=[("1", "Me"), ("2", "Bob"), ("3", "Ann")]))
        typing.on_typing("R1", "2", True)
        typing.on_typing("R1", "3", True)
        assert typing.describe("R1", r) == "Bob, Ann is typing..."

    async def test_unknown_user(self, typing):
        typing.on_typing("R1", "9", True)
        assert typing.describe("R1", [User(id="2", name="Bob")]) == "Someone is typing..."
