"""Chat REST API methods."""

from __future__ import annotations

from typing import TYPE_CHECKING

from parley.http import unwrap
from parley.models.envelope import Envelope
from parley.models.messages import MessagePage
from parley.models.rooms import CreateRoomRequest, Room
from parley.models.users import User

if TYPE_CHECKING:
    from parley.http import HTTPClient


class ChatAPI:
    def __init__(self, http: HTTPClient) -> None:
        self._http = http

    async def get_rooms(self) -> list[Room]:
        r = await self._http.get("/Chat/GetRooms")
        return unwrap(r, Envelope[list[Room]])

    async def get_messages(self, room_id: str, page: int = 1, limit: int = 20) -> MessagePage:
        r = await self._http.get(
            "/Chat/GetMessages",
            params={"roomId": room_id, "page": page, "limit": limit},
        )
        return unwrap(r, Envelope[MessagePage])

    async def get_users(self, *, identify: bool = True) -> list[User]:
        """List users; ``identify=False`` omits the user-id header (user picker)."""
        r = await self._http.get("/Chat/GetUsers", identify=identify)
        return unwrap(r, Envelope[list[User]])

    async def create_room(self, participant_ids: list[str], name: str | None = None) -> Room:
        req = CreateRoomRequest(name=name.strip() if name and name.strip() else None, participant_ids=participant_ids)
        r = await self._http.post("/Chat/CreateRoom", json=req.to_wire())
        return unwrap(r, Envelope[Room])
