"""
Screen Runtime Core - Shared Types

Data classes and closed vocabularies used across the log, deriver,
normalizer, and bridge. These are the contracts that bind the core together.

The persisted log format is a JSON array of {intent, payload?} objects.
There is no schema version: readers tolerate any payload shape.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Log intents folded by the deriver
# ---------------------------------------------------------------------------

INTENT_CURRENT_VIEW = "state:currentView"
INTENT_JOURNAL_SET = "journal.set"
INTENT_JOURNAL_ADD = "journal.add"
INTENT_STATE_UPDATE = "state.update"
INTENT_SCAN_RESULT = "scan.result"
INTENT_SCAN_INTERPRETED = "scan.interpreted"
INTENT_SCAN_RECORD = "scan.record"
INTENT_SCAN_BATCH = "scan.batch"
INTENT_INTERACTION_RECORD = "interaction.record"

# Live text-input echo is kept in memory only. Name equality, nothing else.
PERSIST_EXEMPT_INTENTS: frozenset[str] = frozenset({INTENT_STATE_UPDATE})

DEFAULT_STORAGE_KEY = "__app_state_log__"
DEFAULT_JOURNAL_TRACK = "default"
DEFAULT_VIEW = "|home"

# ---------------------------------------------------------------------------
# Behavior vocabularies
# ---------------------------------------------------------------------------

NAVIGATION_VERBS: frozenset[str] = frozenset({"go", "back", "open", "close", "route"})

INTERACTION_VERBS: frozenset[str] = frozenset({"tap", "double", "long", "drag", "scroll", "swipe"})

# Media-domain action verbs
ACTION_VERBS: frozenset[str] = frozenset({"crop", "filter", "frame", "layout", "motion", "overlay"})

MUTATION_VERBS: frozenset[str] = frozenset(
    {
        "append",
        "update",
        "remove",
        "clear",
        "replace",
        "merge",
        "reorder",
        "toggle",
        "increment",
        "decrement",
        "undo",
        "redo",
    }
)

# Legacy `state:<suffix>` action names that are not themselves mutation verbs
LEGACY_STATE_SUFFIXES: dict[str, str] = {
    "currentView": "replace",
    "journal.add": "append",
    "update": "update",
}

CONTRACT_VERBS: frozenset[str] = INTERACTION_VERBS | NAVIGATION_VERBS | ACTION_VERBS

DEFAULT_ACTION_DOMAIN = "image"

# Marker carried in mutation args so the original action name survives normalization
LEGACY_ACTION_MARKER = "__legacyActionName"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StateEvent:
    """
    One record of the append-only log.
    The deriver reads `intent` and `payload`; nothing else exists.
    """

    intent: str
    payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"intent": self.intent}
        if self.payload is not None:
            d["payload"] = self.payload
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> StateEvent:
        return cls(intent=d["intent"], payload=d.get("payload"))


@dataclass
class DerivedState:
    """
    Snapshot produced by replaying the entire log from empty.

    - current_view: last string written by state:currentView
    - journal: dict[track, dict[key, value]]
    - values: generic key/value surface written by state.update
    - scans / interactions: append-only lists
    - raw_count: always equal to the log length
    """

    current_view: str | None = None
    journal: dict[str, dict[str, Any]] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    scans: list[Any] = field(default_factory=list)
    interactions: list[Any] = field(default_factory=list)
    raw_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "journal": copy.deepcopy(self.journal),
            "values": copy.deepcopy(self.values),
            "scans": copy.deepcopy(self.scans),
            "interactions": copy.deepcopy(self.interactions),
            "rawCount": self.raw_count,
        }
        if self.current_view is not None:
            d["currentView"] = self.current_view
        return d


@dataclass
class DiagnosticRecord:
    """A structured stage record for external observability panels."""

    stage: str
    status: str  # "pass" | "fail"
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"stage": self.stage, "status": self.status}
        if self.details is not None:
            d["details"] = self.details
        return d
