"""Listener registries with explicit, idempotent disposal."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

log = logging.getLogger(__name__)


class Subscription:
    """Handle for one registration.

    ``dispose()`` may be called any number of times.  Usable as a context
    manager so a registration can be scoped to a block::

        with stream.on_timeline_change(render):
            ...
    """

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def dispose(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()


class SubscriptionGroup:
    """Disposes a set of subscriptions together."""

    def __init__(self) -> None:
        self._subs: list[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._subs.append(sub)
        return sub

    def dispose(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.dispose()


class Signal:
    """Synchronous fan-out to registered listeners.

    A listener that raises is logged and skipped; the remaining listeners
    still run.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Callable[..., Any]] = []

    def connect(self, listener: Callable[..., Any]) -> Subscription:
        self._listeners.append(listener)

        def release() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return Subscription(release)

    def emit(self, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception:
                log.exception("Error in %s listener", self.name)

    def __len__(self) -> int:
        return len(self._listeners)
