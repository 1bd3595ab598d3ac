"""
Screen Runtime Core - Event Log & Persistence

The event log is append-only and the sole durable source of truth.
`clear()` is a wholesale truncation, never a partial delete.

Persistence serializes the whole log as one JSON array under a single
storage key. It degrades to volatile operation: a failed write leaves the
in-memory log authoritative, and a failed read rehydrates to an empty log.
Neither ever raises.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator

from runtime.core.types import DEFAULT_STORAGE_KEY, StateEvent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------


class EventLog:
    """Ordered, append-only sequence of StateEvents."""

    def __init__(self, events: list[StateEvent] | None = None) -> None:
        self._events: list[StateEvent] = list(events or [])

    def append(self, event: StateEvent) -> None:
        """The only mutator. Payload shape is not validated here."""
        self._events.append(event)

    def snapshot(self) -> list[StateEvent]:
        """Read-only copy of the log, in append order."""
        return list(self._events)

    def clear(self) -> None:
        self._events = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[StateEvent]:
        return iter(list(self._events))


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class LogStorage:
    """
    Abstract key/value storage interface.
    Implement with a file for durable sessions, or in-memory for tests.
    """

    def get(self, key: str) -> str | None:
        """Fetch the stored text for a key. Returns None if not found."""
        raise NotImplementedError

    def put(self, key: str, text: str) -> None:
        """Write text for a key, replacing any previous value."""
        raise NotImplementedError


class MemoryStorage(LogStorage):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.items.get(key)

    def put(self, key: str, text: str) -> None:
        self.items[key] = text


class FileStorage(LogStorage):
    """One JSON file per key inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put(self, key: str, text: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)


# ---------------------------------------------------------------------------
# Persistence adapter
# ---------------------------------------------------------------------------


def serialize_log(events: list[StateEvent]) -> str:
    return json.dumps([e.to_dict() for e in events])


def deserialize_log(text: str) -> list[StateEvent]:
    """
    Parse a persisted log. Raises ValueError if the text is not a JSON array.
    Records that are not {intent: str, payload?: any} objects are skipped.
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"persisted log is not a JSON array: {type(data).__name__}")

    events: list[StateEvent] = []
    for i, record in enumerate(data):
        if not isinstance(record, dict) or not isinstance(record.get("intent"), str):
            logger.warning("log: skipping malformed record at index %d: %r", i, record)
            continue
        events.append(StateEvent.from_dict(record))
    return events


class LogPersistence:
    """Reads and writes the full log under one fixed storage key."""

    def __init__(self, storage: LogStorage | None, key: str = DEFAULT_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    def persist(self, events: list[StateEvent]) -> bool:
        """Write the full log. Returns False when storage is absent or failing."""
        if self.storage is None:
            return False
        try:
            self.storage.put(self.key, serialize_log(events))
        except (OSError, ValueError, TypeError, RecursionError) as e:
            logger.warning("log: persist failed for key=%s, continuing in memory: %s", self.key, e)
            return False
        return True

    def rehydrate(self) -> list[StateEvent]:
        """Load the persisted log. Missing, unreadable, or corrupt → []."""
        if self.storage is None:
            return []
        try:
            raw: Any = self.storage.get(self.key)
        except (OSError, ValueError) as e:
            logger.warning("log: storage unreadable for key=%s: %s", self.key, e)
            return []
        if not raw:
            return []
        try:
            return deserialize_log(raw)
        except (ValueError, TypeError, RecursionError) as e:
            # Deeply nested JSON exhausts the decoder stack
            logger.warning("log: discarding corrupt log for key=%s: %s", self.key, e)
            return []
