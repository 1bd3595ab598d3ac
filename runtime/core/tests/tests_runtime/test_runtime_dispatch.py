"""
Runtime -- Dispatch, Persistence & Subscriptions

dispatch is the single writer: append → derive → persist → notify, all
complete before it returns.

Covers:
  - Monotonic growth: +1 event per dispatch, rawCount == log length
  - Last-write-wins and journal upsert scenarios through dispatch
  - state.update is kept out of persistence; everything else persists
  - Payloads the deriver cannot copy keep rawCount == log length
  - Rehydrate from valid, corrupt, deeply nested, and failing storage
  - clear() truncates wholesale and persists the empty log
  - Subscribers see the complete effect; failing subscribers are isolated
  - ensure_initial_view seeds once
  - Independent runtimes do not share state
"""

import json
import threading

import pytest

from runtime.core import MemoryStorage, Runtime
from runtime.core.deriver import derive
from runtime.core.log import LogStorage
from runtime.core.types import DEFAULT_STORAGE_KEY


def persisted_intents(storage):
    raw = storage.get(DEFAULT_STORAGE_KEY)
    return [e["intent"] for e in json.loads(raw)] if raw else []


class FailingWrites(MemoryStorage):
    def put(self, key, text):
        raise OSError("disk full")


# ============================================================================
# Dispatch
# ============================================================================


class TestDispatch:
    def test_starts_empty(self, runtime):
        assert len(runtime) == 0
        assert runtime.state.raw_count == 0

    def test_each_dispatch_grows_log_by_one(self, runtime):
        for i in range(1, 6):
            assert runtime.dispatch("state.update", {"key": "k", "value": i}) is True
            assert len(runtime) == i
            assert runtime.state.raw_count == i

    def test_last_write_wins(self, runtime):
        runtime.dispatch("state.update", {"key": "k", "value": "A"})
        runtime.dispatch("state.update", {"key": "k", "value": "B"})
        assert runtime.state.values["k"] == "B"

    def test_journal_upsert(self, runtime):
        runtime.dispatch("journal.add", {"track": "cleanup", "key": "entry", "value": "hello"})
        runtime.dispatch("journal.add", {"track": "cleanup", "key": "entry", "value": "world"})
        assert runtime.state.journal["cleanup"]["entry"] == "world"
        assert runtime.state.raw_count == 2

    def test_unknown_intent_still_logged(self, runtime):
        runtime.dispatch("scan.unknown", {"scans": [1, 2]})
        assert runtime.state.raw_count == 1
        assert runtime.snapshot_log()[0].intent == "scan.unknown"

    def test_snapshot_log_is_a_copy(self, runtime):
        runtime.dispatch("a")
        runtime.snapshot_log().clear()
        assert len(runtime) == 1

    def test_record_helpers(self, runtime):
        runtime.record_scan({"code": "X"})
        runtime.record_interaction({"verb": "tap"})
        assert runtime.state.scans == [{"code": "X"}]
        assert runtime.state.interactions == [{"verb": "tap"}]
        assert [e.intent for e in runtime.snapshot_log()] == ["scan.record", "interaction.record"]

    def test_record_scan_batch(self, runtime):
        runtime.record_scan({"code": "A"})
        runtime.record_scan_batch([{"code": "B"}, {"code": "C"}])
        assert [s["code"] for s in runtime.state.scans] == ["A", "B", "C"]
        assert runtime.snapshot_log()[-1].payload == {"scans": [{"code": "B"}, {"code": "C"}]}

    def test_uncopyable_payload_keeps_runtime_consistent(self, runtime, storage):
        lock = threading.Lock()
        assert runtime.record_scan({"lock": lock}) is True
        assert len(runtime) == 1
        assert runtime.state.raw_count == 1
        assert runtime.state.scans[0]["lock"] is lock

        assert runtime.dispatch("state.update", {"key": "k", "value": 1}) is True
        assert len(runtime) == runtime.state.raw_count == 2
        assert runtime.state.values == {"k": 1}
        # Not JSON-serializable; the write fails soft
        assert storage.get(DEFAULT_STORAGE_KEY) is None

    def test_failing_deriver_leaves_log_unchanged(self, storage):
        def broken(log):
            if log:
                raise RuntimeError("deriver bug")
            return derive(log)

        runtime = Runtime(storage, deriver=broken)
        with pytest.raises(RuntimeError):
            runtime.dispatch("journal.add", {"key": "k"})
        assert len(runtime) == 0
        assert runtime.state.raw_count == 0

    def test_dispatch_records_diagnostics(self, runtime):
        runtime.dispatch("journal.add", {"key": "k"})
        stages = [r.stage for r in runtime.diagnostics.records()]
        assert "state.derive" in stages
        assert "state.dispatch" in stages


# ============================================================================
# Persistence
# ============================================================================


class TestPersistenceExemption:
    def test_state_update_not_persisted(self, runtime, storage):
        runtime.dispatch("state.update", {"key": "typing", "value": "h"})
        assert storage.get(DEFAULT_STORAGE_KEY) is None

    def test_other_intents_persist_full_log(self, runtime, storage):
        runtime.dispatch("state.update", {"key": "typing", "value": "h"})
        runtime.dispatch("journal.add", {"key": "k", "value": "v"})
        assert persisted_intents(storage) == ["state.update", "journal.add"]

    def test_write_failure_keeps_memory_state(self):
        runtime = Runtime(FailingWrites())
        assert runtime.dispatch("journal.add", {"key": "k", "value": "v"}) is True
        assert runtime.state.journal["default"]["k"] == "v"
        assert runtime.diagnostics.records(stage="state.persist")[-1].status == "fail"

    def test_volatile_runtime(self):
        runtime = Runtime()
        runtime.dispatch("journal.add", {"key": "k", "value": "v"})
        assert runtime.state.raw_count == 1


class TestRehydrate:
    def test_rehydrate_restores_equivalent_state(self, storage):
        first = Runtime(storage)
        first.dispatch("state:currentView", {"value": "|home"})
        first.dispatch("journal.add", {"track": "t", "key": "k", "value": "v"})
        first.dispatch("state.update", {"key": "x", "value": 1})
        first.persist()

        second = Runtime(storage)
        assert second.rehydrate() == first.state

    def test_rehydrate_after_corruption(self, storage):
        storage.put(DEFAULT_STORAGE_KEY, "][ definitely not json")
        runtime = Runtime(storage)
        state = runtime.rehydrate()
        assert state.raw_count == 0
        assert len(runtime) == 0

    def test_rehydrate_after_deeply_nested_json(self, storage):
        storage.put(DEFAULT_STORAGE_KEY, "[" * 200000)
        runtime = Runtime(storage)
        assert runtime.rehydrate().raw_count == 0
        assert runtime.dispatch("journal.add", {"key": "k"}) is True

    def test_rehydrate_with_unreadable_storage(self):
        class Unreadable(LogStorage):
            def get(self, key):
                raise OSError("no storage")

            def put(self, key, text):
                raise OSError("no storage")

        runtime = Runtime(Unreadable())
        assert runtime.rehydrate().raw_count == 0
        assert runtime.dispatch("journal.add", {"key": "k"}) is True

    def test_rehydrate_replaces_in_memory_log(self, runtime, storage):
        runtime.dispatch("journal.add", {"key": "a"})
        storage.put(DEFAULT_STORAGE_KEY, json.dumps([{"intent": "x"}, {"intent": "y"}]))
        runtime.rehydrate()
        assert [e.intent for e in runtime.snapshot_log()] == ["x", "y"]


class TestClear:
    def test_clear_truncates_and_persists(self, runtime, storage):
        runtime.dispatch("journal.add", {"key": "a"})
        runtime.dispatch("journal.add", {"key": "b"})
        assert runtime.clear() is True
        assert len(runtime) == 0
        assert runtime.state.raw_count == 0
        assert persisted_intents(storage) == []

    def test_dispatch_after_clear_starts_from_one(self, runtime):
        runtime.dispatch("a")
        runtime.clear()
        runtime.dispatch("b")
        assert runtime.state.raw_count == 1


# ============================================================================
# Subscriptions
# ============================================================================


class TestSubscriptions:
    def test_subscriber_sees_complete_effect(self, runtime):
        seen = []
        runtime.subscribe(lambda state: seen.append((state.raw_count, len(runtime), dict(state.values))))
        runtime.dispatch("state.update", {"key": "k", "value": 1})
        assert seen == [(1, 1, {"k": 1})]

    def test_unsubscribe(self, runtime):
        seen = []
        unsubscribe = runtime.subscribe(seen.append)
        runtime.dispatch("a")
        unsubscribe()
        runtime.dispatch("b")
        assert len(seen) == 1

    def test_failing_subscriber_does_not_block_others(self, runtime):
        seen = []

        def broken(state):
            raise RuntimeError("listener bug")

        runtime.subscribe(broken)
        runtime.subscribe(seen.append)
        assert runtime.dispatch("a") is True
        assert len(seen) == 1

    def test_subscriber_may_dispatch_after_derive(self, runtime):
        def follow_up(state):
            if state.raw_count == 1:
                runtime.dispatch("follow.up")

        runtime.subscribe(follow_up)
        runtime.dispatch("first")
        assert [e.intent for e in runtime.snapshot_log()] == ["first", "follow.up"]


# ============================================================================
# Initial view & isolation
# ============================================================================


class TestInitialView:
    def test_seeds_when_missing(self, runtime):
        assert runtime.ensure_initial_view("|home") is True
        assert runtime.state.current_view == "|home"

    def test_seeds_only_once(self, runtime):
        runtime.ensure_initial_view("|home")
        runtime.dispatch("state:currentView", {"value": "|about"})
        assert runtime.ensure_initial_view("|home") is False
        assert runtime.state.current_view == "|about"
        assert runtime.state.raw_count == 2

    def test_existing_view_not_overwritten(self, runtime):
        runtime.dispatch("state:currentView", {"value": "|resume"})
        assert runtime.ensure_initial_view() is False
        assert runtime.state.current_view == "|resume"


class TestIsolation:
    def test_runtimes_do_not_share_state(self):
        a = Runtime(MemoryStorage())
        b = Runtime(MemoryStorage())
        a.dispatch("state.update", {"key": "k", "value": 1})
        assert b.state.values == {}
        assert len(b) == 0
