from typing import Generic, TypeVar

from parley.models.base import ParleyModel

T = TypeVar("T")


class Envelope(ParleyModel, Generic[T]):
    """``{success, data}`` wrapper every REST endpoint responds with."""

    success: bool
    data: T | None = None
    message: str | None = None
    error: str | None = None
