"""
Screen Runtime Core - Subscription Hub

Observers registered here are told about every successful derive, after
the log append and the derive have both completed.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SubscriptionHub(Generic[T]):
    """Typed observer list. Notification order is subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], None]] = []

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener. Returns a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, value: T) -> None:
        # Iterate over a copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("hub: listener %r failed", listener)

    def __len__(self) -> int:
        return len(self._listeners)
