from __future__ import annotations

from pydantic import ConfigDict

from parley.models.base import ParleyModel
from parley.models.messages import Message
from parley.models.users import User

NO_MESSAGES_PREVIEW = "No messages yet"


class Room(ParleyModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    participants: list[User] = []
    # The backend embeds at most the latest message here.
    messages: list[Message] = []

    @property
    def latest_message(self) -> Message | None:
        return self.messages[0] if self.messages else None

    def display_name(self, local_user_id: str | None = None) -> str:
        """Explicit name, else the other participants' names in backend order."""
        if self.name:
            return self.name
        return ", ".join(p.name for p in self.participants if p.id != local_user_id)

    def preview(self) -> str:
        latest = self.latest_message
        return latest.content if latest is not None else NO_MESSAGES_PREVIEW

    def participant(self, user_id: str) -> User | None:
        for p in self.participants:
            if p.id == user_id:
                return p
        return None


class CreateRoomRequest(ParleyModel):
    name: str | None = None
    participant_ids: list[str]
