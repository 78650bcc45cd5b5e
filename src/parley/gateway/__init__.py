"""Live channel: transport and connection lifecycle."""

from parley.gateway.connection import ConnectionManager, ConnectionState
from parley.gateway.transport import Transport, WebSocketTransport

__all__ = ["ConnectionManager", "ConnectionState", "Transport", "WebSocketTransport"]
