"""Exception hierarchy: one branch per failure kind the UI has to render."""

from __future__ import annotations

from typing import Any

# Gateway close codes the backend may send; anything outside 4000-4999 is a
# plain transport close and always reconnectable.
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_AUTH_FAILED = 4004
CLOSE_VERSION_MISMATCH = 4011

_NON_RECONNECTABLE = {CLOSE_AUTH_FAILED, CLOSE_VERSION_MISMATCH}


class ParleyError(Exception):
    kind = "internal"


# --- Transport ---


class TransportError(ParleyError):
    kind = "transport"


class NotConnectedError(TransportError):
    def __init__(self, message: str = "Not connected to the chat backend.") -> None:
        super().__init__(message)


class ParleyGatewayError(TransportError):
    """The live channel closed with a close code."""

    def __init__(self, code: int, reason: str = "") -> None:
        self.code = code
        self.reason = reason
        super().__init__(f"Gateway closed ({code}): {reason}" if reason else f"Gateway closed ({code})")

    @property
    def can_reconnect(self) -> bool:
        return self.code not in _NON_RECONNECTABLE


class UnreachableError(TransportError):
    """Reconnect attempts exhausted; only a user-initiated retry helps."""

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Backend unreachable after {attempts} attempt(s)")


# --- Acknowledgement ---


class AckError(ParleyError):
    kind = "acknowledgement"

    def __init__(self, room_id: str, content: str, reason: str = "Message was not delivered.") -> None:
        self.room_id = room_id
        self.content = content
        self.reason = reason
        super().__init__(reason)


class AckTimeoutError(AckError):
    def __init__(self, room_id: str, content: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(room_id, content, f"No acknowledgement within {timeout:g}s.")


# --- Fetch ---


class FetchError(ParleyError):
    kind = "fetch"


class ParleyHTTPError(FetchError):
    def __init__(self, status: int, message: str = "") -> None:
        self.status = status
        self.message = message
        super().__init__(f"HTTP {status}: {message}" if message else f"HTTP {status}")


# --- Protocol ---


class ProtocolError(ParleyError):
    kind = "protocol"

    def __init__(self, event: str, payload: Any, detail: str = "") -> None:
        self.event = event
        self.payload = payload
        self.detail = detail
        super().__init__(f"Malformed {event!r} payload" + (f": {detail}" if detail else ""))
