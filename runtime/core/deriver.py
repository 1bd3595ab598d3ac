"""
Screen Runtime Core - State Deriver

Pure function: (log) → DerivedState
No side effects. No IO. No clock. Deterministic.

The derived state is always rebuilt by full replay from empty. There is no
incremental patching, so a log that survives a persistence round trip
derives to exactly the state it had before it was written.

Fold rules key on the raw log intent name, not on the normalizer's
classification. Intents without a fold rule are still counted in raw_count.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Iterable

from runtime.core.types import (
    DEFAULT_JOURNAL_TRACK,
    INTENT_CURRENT_VIEW,
    INTENT_INTERACTION_RECORD,
    INTENT_JOURNAL_ADD,
    INTENT_JOURNAL_SET,
    INTENT_SCAN_BATCH,
    INTENT_SCAN_INTERPRETED,
    INTENT_SCAN_RECORD,
    INTENT_SCAN_RESULT,
    INTENT_STATE_UPDATE,
    DerivedState,
    StateEvent,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def empty_state() -> DerivedState:
    """The derived state of a log with zero events."""
    return DerivedState()


def derive(log: Iterable[StateEvent]) -> DerivedState:
    """
    Rebuild the derived state from scratch by folding over every event.
    derive(log) == fold(fold(fold(empty(), e1), e2), e3)...

    Payloads are deep-copied on the way in, so the derived state never
    aliases objects held by the log. A payload that cannot be copied is
    folded as-is.
    """
    derived = empty_state()
    count = 0
    for event in log:
        count += 1
        handler = _HANDLERS.get(event.intent)
        if handler is None:
            continue
        payload = _copy_payload(event.payload)
        handler(derived, payload)
    derived.raw_count = count
    return derived


def fold_rules() -> list[str]:
    """Log intents the deriver has a fold rule for."""
    return sorted(_HANDLERS)


# ---------------------------------------------------------------------------
# Payload copy
# ---------------------------------------------------------------------------


def _copy_payload(payload: Any) -> Any:
    if payload is None:
        return {}
    try:
        return copy.deepcopy(payload)
    except Exception:
        # Locks, generators, open handles
        return payload


# ---------------------------------------------------------------------------
# Fold handlers
# ---------------------------------------------------------------------------


def _fold_current_view(derived: DerivedState, payload: Any) -> None:
    if not isinstance(payload, dict):
        return
    value = payload.get("value")
    if isinstance(value, str):
        derived.current_view = value


def _fold_journal(derived: DerivedState, payload: Any) -> None:
    if not isinstance(payload, dict):
        return
    key = payload.get("key")
    if not isinstance(key, str):
        return

    track = payload.get("track")
    if not isinstance(track, str) or not track:
        track = DEFAULT_JOURNAL_TRACK

    value = payload.get("value")
    if value is None:
        value = payload.get("text")
    if value is None:
        value = ""

    derived.journal.setdefault(track, {})[key] = value


def _fold_state_update(derived: DerivedState, payload: Any) -> None:
    if not isinstance(payload, dict):
        return
    key = payload.get("key")
    if isinstance(key, str):
        derived.values[key] = payload.get("value")


def _fold_scan(derived: DerivedState, payload: Any) -> None:
    # Unbounded; capping is an outside policy
    derived.scans.append(payload)


def _fold_scan_batch(derived: DerivedState, payload: Any) -> None:
    scans = payload.get("scans") if isinstance(payload, dict) else None
    if isinstance(scans, list):
        derived.scans.extend(scans)


def _fold_interaction(derived: DerivedState, payload: Any) -> None:
    derived.interactions.append(payload)


_HANDLERS: dict[str, Callable[[DerivedState, Any], None]] = {
    INTENT_CURRENT_VIEW: _fold_current_view,
    INTENT_JOURNAL_SET: _fold_journal,
    INTENT_JOURNAL_ADD: _fold_journal,
    INTENT_STATE_UPDATE: _fold_state_update,
    INTENT_SCAN_RESULT: _fold_scan,
    INTENT_SCAN_INTERPRETED: _fold_scan,
    INTENT_SCAN_RECORD: _fold_scan,
    INTENT_SCAN_BATCH: _fold_scan_batch,
    INTENT_INTERACTION_RECORD: _fold_interaction,
}
