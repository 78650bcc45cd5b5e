"""Live channel event names, outbound payload builders and inbound parsing."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from parley.errors import ProtocolError
from parley.models.base import ParleyModel
from parley.models.messages import Message
from parley.models.rooms import Room

# --- Outbound ---

JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
SEND_MESSAGE = "send_message"
TYPING = "typing"

# --- Inbound ---

NEW_CHAT_ROOM = "new_chat_room"
RECEIVE_MESSAGE = "receive_message"
USER_TYPING = "user_typing"


class UserTyping(ParleyModel):
    user_id: str
    is_typing: bool
    # Not always sent; the current room is assumed when missing.
    room_id: str | None = None


class SendAck(ParleyModel):
    error: str | None = None
    message_id: str | None = None
    message: Message | None = None

    @property
    def server_id(self) -> str | None:
        if self.message is not None:
            return self.message.id
        return self.message_id


_INBOUND: dict[str, type[ParleyModel]] = {
    NEW_CHAT_ROOM: Room,
    RECEIVE_MESSAGE: Message,
    USER_TYPING: UserTyping,
}


def parse_event(event_type: str, data: Any) -> ParleyModel | None:
    """Validate an inbound payload.

    Returns None for events this client does not handle; raises
    ``ProtocolError`` for a known event with a malformed payload.
    """
    model = _INBOUND.get(event_type)
    if model is None:
        return None
    if not isinstance(data, dict):
        raise ProtocolError(event_type, data, "expected an object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(event_type, data, str(e.errors()[0]["msg"])) from e


def parse_ack(data: Any) -> SendAck:
    if data is None:
        return SendAck()
    if not isinstance(data, dict):
        raise ProtocolError("ack", data, "expected an object")
    try:
        return SendAck.model_validate(data)
    except ValidationError as e:
        raise ProtocolError("ack", data, str(e.errors()[0]["msg"])) from e


def join_room(room_id: str) -> str:
    return room_id


def leave_room(room_id: str) -> str:
    return room_id


def send_message(room_id: str, sender_id: str, message: str) -> dict[str, Any]:
    return {"roomId": room_id, "senderId": sender_id, "message": message}


def typing(room_id: str, user_id: str, is_typing: bool) -> dict[str, Any]:
    return {"roomId": room_id, "userId": user_id, "isTyping": is_typing}
