"""
Screen Runtime Core - Runtime Handle

Owns the event log, the derived-state cache, the observer hub, the
diagnostics buffer and the reentrancy latch. There is exactly one writer
path: dispatch → derive candidate → append → persist → notify, run
synchronously to completion before dispatch returns.

Construct one Runtime per session (or per test); nothing lives at module
level. Calls are serialized through a re-entrant lock, so hosts that
dispatch from several threads keep the single-writer invariant, and a
same-thread call made from inside a derive still reaches the latch and is
refused instead of deadlocking.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from runtime.core.deriver import derive
from runtime.core.diagnostics import DiagnosticsRecorder
from runtime.core.hub import SubscriptionHub
from runtime.core.log import EventLog, LogPersistence, LogStorage
from runtime.core.types import (
    DEFAULT_STORAGE_KEY,
    DEFAULT_VIEW,
    INTENT_CURRENT_VIEW,
    INTENT_INTERACTION_RECORD,
    INTENT_SCAN_BATCH,
    INTENT_SCAN_RECORD,
    PERSIST_EXEMPT_INTENTS,
    DerivedState,
    StateEvent,
)

logger = logging.getLogger(__name__)

Deriver = Callable[[list[StateEvent]], DerivedState]


class Runtime:
    """
    Explicit handle on one runtime instance.

    storage=None runs volatile-only; every other failure mode of the
    storage degrades to that as well.
    """

    def __init__(
        self,
        storage: LogStorage | None = None,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        deriver: Deriver = derive,
        diagnostics: DiagnosticsRecorder | None = None,
    ) -> None:
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsRecorder()
        self._persistence = LogPersistence(storage, storage_key)
        self._deriver = deriver
        self._log = EventLog()
        self._hub: SubscriptionHub[DerivedState] = SubscriptionHub()
        self._lock = threading.RLock()
        self._deriving = False
        self._initial_view_seeded = False
        self._state = self._derive([])

    # -- read side --

    @property
    def state(self) -> DerivedState:
        """Current derived snapshot. Treat as read-only."""
        return self._state

    @property
    def deriving(self) -> bool:
        return self._deriving

    def snapshot_log(self) -> list[StateEvent]:
        with self._lock:
            return self._log.snapshot()

    def subscribe(self, listener: Callable[[DerivedState], None]) -> Callable[[], None]:
        return self._hub.subscribe(listener)

    def __len__(self) -> int:
        return len(self._log)

    # -- write side --

    def dispatch(self, intent: str, payload: Any = None) -> bool:
        """
        Append one event and re-derive. Returns False, leaving the log
        unchanged, when called while a derive pass is running.
        """
        with self._lock:
            if self._deriving:
                logger.warning("runtime: refusing dispatch of %s during derive", intent)
                self.diagnostics.failed("state.dispatch", intent=intent, reason="reentrant dispatch during derive")
                return False

            event = StateEvent(intent=intent, payload=payload)
            # The log only grows once the candidate log has derived
            state = self._derive([*self._log.snapshot(), event])
            self._log.append(event)
            self._state = state

            if intent not in PERSIST_EXEMPT_INTENTS:
                self.persist()

            logger.debug("runtime: dispatched %s (rawCount=%d)", intent, self._state.raw_count)
            self.diagnostics.passed("state.dispatch", intent=intent, rawCount=self._state.raw_count)
            self._hub.notify(self._state)
            return True

    def clear(self) -> bool:
        """Truncate the log to empty. Never a partial delete."""
        with self._lock:
            if self._deriving:
                self.diagnostics.failed("state.clear", reason="reentrant clear during derive")
                return False
            self._state = self._derive([])
            self._log.clear()
            self.persist()
            self.diagnostics.passed("state.clear")
            self._hub.notify(self._state)
            return True

    # -- persistence --

    def persist(self) -> bool:
        with self._lock:
            ok = self._persistence.persist(self._log.snapshot())
        self.diagnostics.record("state.persist", "pass" if ok else "fail", rawCount=len(self._log))
        return ok

    def rehydrate(self) -> DerivedState:
        """Replace the log with the persisted one. Never raises."""
        with self._lock:
            events = self._persistence.rehydrate()
            self._state = self._derive(events)
            self._log = EventLog(events)
            logger.info("runtime: rehydrated %d events", len(events))
            self.diagnostics.passed("state.rehydrate", rawCount=len(events))
            self._hub.notify(self._state)
            return self._state

    # -- convenience intents --

    def ensure_initial_view(self, default_view: str = DEFAULT_VIEW) -> bool:
        """Seed currentView once, only if none is derived yet."""
        if self._initial_view_seeded:
            return False
        self._initial_view_seeded = True
        if self._state.current_view:
            return False
        return self.dispatch(INTENT_CURRENT_VIEW, {"value": default_view})

    def record_scan(self, scan: Any) -> bool:
        return self.dispatch(INTENT_SCAN_RECORD, scan)

    def record_scan_batch(self, scans: list[Any]) -> bool:
        return self.dispatch(INTENT_SCAN_BATCH, {"scans": list(scans)})

    def record_interaction(self, payload: Any) -> bool:
        return self.dispatch(INTENT_INTERACTION_RECORD, payload)

    # -- internal --

    def _derive(self, events: list[StateEvent]) -> DerivedState:
        self._deriving = True
        try:
            state = self._deriver(events)
        finally:
            self._deriving = False
        self.diagnostics.passed("state.derive", rawCount=state.raw_count)
        return state
