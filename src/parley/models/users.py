from __future__ import annotations

from collections.abc import Iterable

from parley.models.base import ParleyModel


class User(ParleyModel):
    id: str
    name: str = ""
    email: str | None = None
    image: str | None = None


def search_users(users: Iterable[User], query: str) -> list[User]:
    """Case-insensitive substring match on name or email."""
    q = query.strip().lower()
    if not q:
        return list(users)
    return [
        u for u in users
        if q in u.name.lower() or (u.email is not None and q in u.email.lower())
    ]
