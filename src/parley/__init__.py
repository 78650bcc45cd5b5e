"""Parley: real-time conversation sync for chat clients."""

from parley.client import ChatClient, RoomSession
from parley.errors import (
    AckError,
    AckTimeoutError,
    FetchError,
    NotConnectedError,
    ParleyError,
    ProtocolError,
    TransportError,
    UnreachableError,
)
from parley.gateway import ConnectionManager, ConnectionState

__all__ = [
    "AckError",
    "AckTimeoutError",
    "ChatClient",
    "ConnectionManager",
    "ConnectionState",
    "FetchError",
    "NotConnectedError",
    "ParleyError",
    "ProtocolError",
    "RoomSession",
    "TransportError",
    "UnreachableError",
]
