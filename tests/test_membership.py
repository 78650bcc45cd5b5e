import asyncio

import pytest

from parley.sync.membership import RoomMembership


@pytest.fixture()
def membership(connection):
    m = RoomMembership(connection)
    yield m
    m.dispose()


async def test_join_and_leave(membership, connected, transport):
    changes = []
    membership.on_change(changes.append)

    membership.join_room("R1")
    assert membership.current_room == "R1"
    membership.leave_room("R1")
    assert membership.current_room is None

    assert transport.emitted() == [("join_room", "R1"), ("leave_room", "R1")]
    assert changes == ["R1", None]


async def test_join_same_room_twice(membership, connected, transport):
    membership.join_room("R1")
    membership.join_room("R1")
    assert transport.emitted("join_room") == ["R1"]


async def test_switching_rooms_leaves_previous(membership, connected, transport):
    membership.join_room("R1")
    membership.join_room("R2")

    assert membership.current_room == "R2"
    assert transport.emitted() == [("join_room", "R1"), ("leave_room", "R1"), ("join_room", "R2")]


async def test_leave_other_room_is_noop(membership, connected, transport):
    membership.join_room("R1")
    membership.leave_room("R2")
    assert membership.current_room == "R1"
    assert transport.emitted("leave_room") == []


async def test_join_while_offline_sent_on_connect(membership, connection, transport):
    membership.join_room("R1")
    assert transport.sent == []

    await connection.connect()
    assert transport.emitted("join_room") == ["R1"]


async def test_rejoin_after_reconnect(membership, connected, transport):
    membership.join_room("R1")
    transport.drop()
    await asyncio.sleep(0.1)

    assert connected.is_connected()
    assert transport.emitted("join_room") == ["R1", "R1"]


async def test_no_rejoin_after_leave(membership, connected, transport):
    membership.join_room("R1")
    membership.leave_room("R1")
    transport.drop()
    await asyncio.sleep(0.1)

    assert transport.emitted("join_room") == ["R1"]


class TestJoined:
    async def test_leaves_on_exit(self, membership, connected, transport):
        async with membership.joined("R1"):
            assert membership.current_room == "R1"
        assert membership.current_room is None
        assert transport.emitted() == [("join_room", "R1"), ("leave_room", "R1")]

    async def test_leaves_on_error(self, membership, connected, transport):
        with pytest.raises(RuntimeError):
            async with membership.joined("R1"):
                raise RuntimeError("boom")
        assert membership.current_room is None
        assert transport.emitted("leave_room") == ["R1"]

    async def test_leaves_on_cancel(self, membership, connected, transport):
        entered = asyncio.Event()

        async def viewer():
            async with membership.joined("R1"):
                entered.set()
                await asyncio.Event().wait()

        task = asyncio.create_task(viewer())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert membership.current_room is None
        assert transport.emitted("leave_room") == ["R1"]


async def test_dispose_stops_rejoining(connection, transport):
    membership = RoomMembership(connection)
    membership.join_room("R1")
    membership.dispose()

    await connection.connect()
    assert transport.emitted("join_room") == []
