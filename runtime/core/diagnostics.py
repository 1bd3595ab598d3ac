"""
Screen Runtime Core - Diagnostics

Bounded in-memory buffer of {stage, status, details} records, one per
meaningful dispatch / derive / navigate decision. External observability
panels read or subscribe to it; the core never depends on anyone doing so.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable

from runtime.core.hub import SubscriptionHub
from runtime.core.types import DiagnosticRecord

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 300


class DiagnosticsRecorder:
    """Rolling buffer keeping the most recent `limit` records."""

    def __init__(self, limit: int = DEFAULT_LIMIT) -> None:
        self._records: deque[DiagnosticRecord] = deque(maxlen=max(1, limit))
        self._hub: SubscriptionHub[DiagnosticRecord] = SubscriptionHub()

    def record(self, stage: str, status: str, **details: Any) -> DiagnosticRecord:
        entry = DiagnosticRecord(stage=stage, status=status, details=details or None)
        self._records.append(entry)
        logger.debug("diagnostics: %s %s %s", stage, status, details)
        self._hub.notify(entry)
        return entry

    def passed(self, stage: str, **details: Any) -> DiagnosticRecord:
        return self.record(stage, "pass", **details)

    def failed(self, stage: str, **details: Any) -> DiagnosticRecord:
        return self.record(stage, "fail", **details)

    def records(self, stage: str | None = None, limit: int | None = None) -> list[DiagnosticRecord]:
        """Records oldest first, optionally filtered by stage and cut to the newest `limit`."""
        items = [r for r in self._records if stage is None or r.stage == stage]
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def subscribe(self, listener: Callable[[DiagnosticRecord], None]) -> Callable[[], None]:
        return self._hub.subscribe(listener)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
