"""End-to-end tests of ChatClient over the fake transport and backend."""

import asyncio

import pytest

from fakes import msg, room
from parley.client import ChatClient
from parley.errors import UnreachableError
from parley.gateway.connection import ConnectionState


@pytest.fixture()
async def client(transport, http, settings):
    c = ChatClient("1", transport=transport, http=http, settings=settings)
    yield c
    await c.close()


async def test_start_connects_and_lists_rooms(client, backend, transport):
    backend.rooms = [room("R1"), room("R2", name="Team")]
    await client.start()

    assert client.connection.is_connected()
    assert [client.rooms.display_name(r) for r in client.rooms.rooms] == ["Bob", "Team"]


async def test_room_session(client, backend, transport):
    backend.rooms = [room("R1")]
    backend.pages["R1"] = [[msg(10), msg(9), msg(8)], [msg(7)]]
    await client.start()

    async with client.room("R1") as session:
        assert client.membership.current_room == "R1"
        assert [m.id for m in session.messages] == ["10", "9", "8"]
        assert session.has_more

        await session.load_more()
        assert [m.id for m in session.messages][-1] == "7"
        assert not session.has_more

        sending = asyncio.create_task(session.send("hi"))
        await asyncio.sleep(0)
        transport.last("send_message").ack({"messageId": 11})
        result = await sending
        assert result.delivered
        assert session.messages[0].id == "11"
        assert client.rooms.get("R1") is not None

    assert client.membership.current_room is None
    assert transport.emitted("join_room") == ["R1"]
    assert transport.emitted("leave_room") == ["R1"]


async def test_room_left_on_error(client, transport):
    await client.start()
    with pytest.raises(RuntimeError):
        async with client.room("R1"):
            raise RuntimeError("boom")
    assert transport.emitted("leave_room") == ["R1"]


async def test_typing_in_session(client, backend, transport):
    backend.rooms = [room("R1")]
    await client.start()

    async with client.room("R1") as session:
        session.input_changed("h")
        transport.push("user_typing", {"userId": "2", "isTyping": True})
        assert session.typing_text() == "Bob is typing..."
        assert session.can_send(" x ")

    # Leaving stops the local typing signal.
    assert [d["isTyping"] for d in transport.emitted("typing")] == [True, False]


async def test_unreachable_reported_on_error_channel(client, transport):
    seen = []
    client.on_error(seen.append)
    transport.fail_opens = 100

    await client.start()
    await asyncio.sleep(0.3)

    assert client.connection.state is ConnectionState.UNREACHABLE
    assert any(isinstance(e, UnreachableError) for e in seen)


async def test_context_manager_closes(transport, http, settings, backend):
    async with ChatClient("1", transport=transport, http=http, settings=settings) as c:
        assert c.connection.is_connected()
    assert c.connection.state is ConnectionState.DISCONNECTED
    assert not transport.is_open
