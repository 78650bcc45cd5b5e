import httpx
import pytest

from fakes import FakeBackend, FakeTransport
from parley.api.chat import ChatAPI
from parley.config import (
    ClientConfig,
    GatewaySettings,
    MessagesSettings,
    ServerSettings,
    TypingSettings,
)
from parley.gateway.connection import ConnectionManager
from parley.http import HTTPClient
from parley.signals import Signal
from parley.sync.stream import MessageStream


@pytest.fixture()
def settings():
    """Short timers so backoff, probe, debounce and ack timeout run in milliseconds."""
    return ClientConfig(
        server=ServerSettings(api_url="http://chat.test"),
        gateway=GatewaySettings(max_attempts=3, backoff_base=0.01, backoff_max=0.04, probe_interval=0.02),
        messages=MessagesSettings(page_limit=3, ack_timeout=0.05, reconcile_window=5.0),
        typing=TypingSettings(debounce=0.03, ttl=5.0),
    )


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def errors():
    return Signal("errors")


@pytest.fixture()
def reported(errors):
    """Everything emitted on the error channel."""
    seen = []
    errors.connect(seen.append)
    return seen


@pytest.fixture()
async def connection(transport, settings, errors):
    conn = ConnectionManager(transport, settings=settings.gateway, errors=errors)
    yield conn
    await conn.disconnect()


@pytest.fixture()
async def connected(connection):
    await connection.connect()
    return connection


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
async def http(backend):
    client = HTTPClient("http://chat.test", user_id="1")
    client._client = httpx.AsyncClient(base_url="http://chat.test", transport=httpx.MockTransport(backend.handle))
    yield client
    await client.close()


@pytest.fixture()
def api(http):
    return ChatAPI(http)


@pytest.fixture()
def stream(api, connection, settings):
    return MessageStream(api, connection, settings=settings.messages)
