from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from pydantic import ConfigDict, field_validator

from parley.models.base import ParleyModel
from parley.models.users import User

LOCAL_ID_PREFIX = "local-"


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryState(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Message(ParleyModel):
    """A chat message.  Frozen: state changes go through ``model_copy``."""

    model_config = ConfigDict(frozen=True)

    id: str
    # History pages may omit it; live messages must carry it.
    room_id: str = ""
    sender_id: str
    content: str = ""
    created_at: datetime
    sender: User | None = None
    delivery_state: DeliveryState = DeliveryState.SENT
    # Temporary id the message was created under, for optimistic sends.
    client_id: str | None = None

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_local(self) -> bool:
        """Still carries its client-generated id."""
        return self.client_id is not None and self.id == self.client_id

    @classmethod
    def pending(cls, room_id: str, sender_id: str, content: str) -> Message:
        local_id = new_local_id()
        return cls(
            id=local_id,
            client_id=local_id,
            room_id=room_id,
            sender_id=sender_id,
            content=content,
            created_at=utcnow(),
            delivery_state=DeliveryState.PENDING,
        )


class Pagination(ParleyModel):
    current_page: int
    total_pages: int


class MessagePage(ParleyModel):
    messages: list[Message]
    pagination: Pagination
