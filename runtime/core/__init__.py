"""
Screen Runtime Core - the state/behavior engine behind JSON screens.

Components:
  log         - append-only event log + fail-soft persistence
  deriver     - (log) → DerivedState  (pure, full replay)
  normalize   - raw UI behavior payload → canonical BehaviorIntent
  runtime     - the single writer: dispatch → append → derive → notify
  bridge      - routes UI events to mutation / navigation / delegated executors
"""

from runtime.core.bridge import (
    ContractVerbRunner,
    DispatchBridge,
    NavigationContext,
    RuntimeVerbInterpreter,
)
from runtime.core.channel import EventChannel, UIEvent
from runtime.core.deriver import derive, empty_state
from runtime.core.diagnostics import DiagnosticsRecorder
from runtime.core.intents import (
    ActionIntent,
    InteractionIntent,
    LegacyIntent,
    MutationIntent,
    NavigationIntent,
    NormalizeResult,
)
from runtime.core.log import EventLog, FileStorage, LogPersistence, LogStorage, MemoryStorage
from runtime.core.normalize import normalize_behavior_payload, normalize_navigate_detail
from runtime.core.runtime import Runtime
from runtime.core.types import DerivedState, DiagnosticRecord, StateEvent

__all__ = [
    "derive",
    "empty_state",
    "normalize_behavior_payload",
    "normalize_navigate_detail",
    "Runtime",
    "DispatchBridge",
    "ContractVerbRunner",
    "RuntimeVerbInterpreter",
    "NavigationContext",
    "EventChannel",
    "UIEvent",
    "EventLog",
    "LogStorage",
    "MemoryStorage",
    "FileStorage",
    "LogPersistence",
    "DiagnosticsRecorder",
    "StateEvent",
    "DerivedState",
    "DiagnosticRecord",
    "NormalizeResult",
    "NavigationIntent",
    "MutationIntent",
    "ActionIntent",
    "InteractionIntent",
    "LegacyIntent",
]
