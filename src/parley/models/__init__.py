"""Wire models."""

from parley.models.base import ParleyModel
from parley.models.envelope import Envelope
from parley.models.messages import DeliveryState, Message, MessagePage, Pagination
from parley.models.rooms import CreateRoomRequest, Room
from parley.models.users import User, search_users

__all__ = [
    "CreateRoomRequest",
    "DeliveryState",
    "Envelope",
    "Message",
    "MessagePage",
    "Pagination",
    "ParleyModel",
    "Room",
    "User",
    "search_users",
]
