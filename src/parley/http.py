"""Async HTTP client for the REST endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from parley.config import ServerSettings, config
from parley.errors import FetchError, ParleyHTTPError
from parley.models.envelope import Envelope

log = logging.getLogger(__name__)


class HTTPClient:
    def __init__(
        self,
        base_url: str | None = None,
        user_id: str | None = None,
        *,
        settings: ServerSettings | None = None,
    ) -> None:
        settings = settings or config.server
        self._base_url = (base_url or settings.api_url).rstrip("/")
        self._user_id = user_id
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=settings.request_timeout)

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @user_id.setter
    def user_id(self, value: str | None) -> None:
        self._user_id = value

    def _headers(self, *, identify: bool = True) -> dict[str, str]:
        headers: dict[str, str] = {}
        if identify and self._user_id is not None:
            headers["user-id"] = self._user_id
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        identify: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            r = await self._client.request(method, path, headers=self._headers(identify=identify), **kwargs)
        except httpx.HTTPError as e:
            log.warning("%s %s failed: %s", method, path, e)
            raise FetchError(f"{method} {path} failed: {e}") from e
        if r.status_code >= 400:
            raise ParleyHTTPError(r.status_code, _error_message(r))
        return r

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def close(self) -> None:
        await self._client.aclose()


def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or "")
    return ""


def unwrap(r: httpx.Response, envelope: type[Envelope[Any]]) -> Any:
    """Validate a ``{success, data}`` body and return ``data``.

    A malformed body or ``success: false`` is a ``FetchError``.
    """
    try:
        body = envelope.model_validate(r.json())
    except ValueError as e:
        # ValidationError subclasses ValueError, as does JSONDecodeError
        detail = e.errors()[0]["msg"] if isinstance(e, ValidationError) else "invalid JSON"
        raise FetchError(f"Malformed response from {r.request.url.path}: {detail}") from e
    if not body.success:
        raise FetchError(body.message or body.error or f"{r.request.url.path} reported failure")
    if body.data is None:
        raise FetchError(f"Empty response from {r.request.url.path}")
    return body.data
