"""
Screen Runtime Core - UI Event Channel

Typed publish/subscribe channel for UI-originated events. The rendering
layer emits; the dispatch bridge listens. The core has no dependency on any
browser or transport event system: the host adapts its own events onto
this channel at the boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from runtime.core.hub import SubscriptionHub

logger = logging.getLogger(__name__)

EVENT_ACTION = "action"
EVENT_NAVIGATE = "navigate"
EVENT_INPUT_CHANGE = "input-change"
EVENT_STATE_MUTATE = "state-mutate"
EVENT_INTERACTION = "interaction"

UI_EVENT_NAMES: frozenset[str] = frozenset(
    {EVENT_ACTION, EVENT_NAVIGATE, EVENT_INPUT_CHANGE, EVENT_STATE_MUTATE, EVENT_INTERACTION}
)


@dataclass(frozen=True)
class UIEvent:
    name: str
    detail: Any = None


class EventChannel:
    """Named observer lists. Events with no listener are dropped."""

    def __init__(self) -> None:
        self._hubs: dict[str, SubscriptionHub[UIEvent]] = {}

    def add_listener(self, name: str, listener: Callable[[UIEvent], None]) -> Callable[[], None]:
        hub = self._hubs.setdefault(name, SubscriptionHub())
        return hub.subscribe(listener)

    def emit(self, name: str, detail: Any = None) -> None:
        hub = self._hubs.get(name)
        if hub is None or not len(hub):
            logger.debug("channel: no listener for %s", name)
            return
        hub.notify(UIEvent(name=name, detail=detail))

    def listener_count(self, name: str) -> int:
        hub = self._hubs.get(name)
        return len(hub) if hub is not None else 0
