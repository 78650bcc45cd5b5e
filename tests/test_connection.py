"""Tests for the connection lifecycle: backoff, probe, teardown, dispatch."""

import asyncio

import pytest

from fakes import msg
from parley.errors import NotConnectedError, ParleyGatewayError, UnreachableError
from parley.gateway.connection import ConnectionState, backoff_delay
from parley.models.messages import Message


async def test_connect_reports_states(connection, transport):
    states = []
    connection.on_state_change(states.append)

    await connection.connect()

    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    assert connection.is_connected()
    assert transport.open_calls == 1


async def test_connect_twice_is_noop(connected, transport):
    await connected.connect()
    assert transport.open_calls == 1


async def test_failed_open_retries_with_backoff(connection, transport):
    transport.fail_opens = 1

    await connection.connect()
    assert connection.state is ConnectionState.RECONNECTING
    assert connection.attempt_count == 1
    assert connection.backoff_deadline is not None
    assert connection.last_error is not None

    await asyncio.sleep(0.1)
    assert connection.state is ConnectionState.CONNECTED
    assert connection.attempt_count == 0
    assert connection.backoff_deadline is None
    assert transport.open_calls == 2


async def test_unreachable_after_attempt_cap(connection, transport, reported):
    transport.fail_opens = 100
    states = []
    connection.on_state_change(states.append)

    await connection.connect()
    await asyncio.sleep(0.3)

    assert connection.state is ConnectionState.UNREACHABLE
    # First attempt plus max_attempts (3) retries
    assert transport.open_calls == 4
    assert len(reported) == 1
    assert isinstance(reported[0], UnreachableError)
    assert reported[0].attempts == 4
    assert states[-1] is ConnectionState.UNREACHABLE

    # No further retries on its own
    await asyncio.sleep(0.1)
    assert transport.open_calls == 4


async def test_retry_from_unreachable(connection, transport):
    transport.fail_opens = 100
    await connection.connect()
    await asyncio.sleep(0.3)
    assert connection.state is ConnectionState.UNREACHABLE

    transport.fail_opens = 0
    await connection.retry()
    assert connection.is_connected()
    assert connection.attempt_count == 0


class TestBackoffDelay:
    def test_doubles(self):
        assert [backoff_delay(n, 1.0, 60.0) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        assert backoff_delay(10, 1.0, 30.0) == 30.0


async def test_disconnect_cancels_scheduled_reconnect(connection, transport):
    transport.fail_opens = 1
    await connection.connect()
    assert connection.state is ConnectionState.RECONNECTING

    await connection.disconnect()
    await asyncio.sleep(0.1)

    assert connection.state is ConnectionState.DISCONNECTED
    assert transport.open_calls == 1


async def test_disconnect_stops_probe(connected, transport):
    await connected.disconnect()
    transport.silent_drop()
    await asyncio.sleep(0.1)

    assert connected.state is ConnectionState.DISCONNECTED
    assert transport.open_calls == 1


async def test_unexpected_close_reconnects(connected, transport):
    transport.drop()
    assert connected.state is ConnectionState.RECONNECTING

    await asyncio.sleep(0.1)
    assert connected.is_connected()
    assert transport.open_calls == 2


async def test_probe_detects_silent_loss(connected, transport):
    transport.silent_drop()
    assert connected.is_connected()  # nothing told us yet

    await asyncio.sleep(0.15)
    assert connected.is_connected()
    assert transport.open_calls == 2


async def test_non_reconnectable_close_is_terminal(connected, transport, reported):
    transport.drop(ParleyGatewayError(4004, "AUTH_FAILED"))

    assert connected.state is ConnectionState.UNREACHABLE
    assert isinstance(reported[0], UnreachableError)
    assert isinstance(reported[0].last_error, ParleyGatewayError)


async def test_emit_requires_connection(connection):
    with pytest.raises(NotConnectedError):
        connection.emit("join_room", "R1")


class TestDispatch:
    async def test_parsed_event_reaches_handler(self, connected, transport):
        received = []
        connected.on("receive_message", received.append)

        transport.push("receive_message", msg(5))

        assert len(received) == 1
        assert isinstance(received[0], Message)
        assert received[0].id == "5"

    async def test_malformed_payload_dropped(self, connected, transport):
        received = []
        connected.on("receive_message", received.append)

        transport.push("receive_message", {"bogus": True})
        transport.push("receive_message", "not an object")
        transport.push("receive_message", msg(6))

        assert [m.id for m in received] == ["6"]

    async def test_unknown_event_ignored(self, connected, transport):
        received = []
        connected.on("some_future_event", received.append)
        transport.push("some_future_event", {"foo": "bar"})
        assert received == []

    async def test_handler_error_does_not_stop_others(self, connected, transport):
        received = []

        def broken(event):
            raise RuntimeError("boom")

        connected.on("receive_message", broken)
        connected.on("receive_message", received.append)
        transport.push("receive_message", msg(7))

        assert len(received) == 1

    async def test_disposed_handler_not_called(self, connected, transport):
        received = []
        sub = connected.on("receive_message", received.append)
        sub.dispose()
        sub.dispose()

        transport.push("receive_message", msg(8))
        assert received == []
