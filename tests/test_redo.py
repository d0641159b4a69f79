"""Tests for the negative-entry redo scheduler."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from infodb.cache_store import CacheStore
from infodb.lookup import MetadataLookupError
from infodb.models import CacheEntry, MetadataRecord
from infodb.redo import RedoPhase, RedoScheduler
from infodb.state import ReconciliationState

from .conftest import FakeClock, FakeLookup

WEEK = timedelta(days=7)


@pytest.fixture
def ready_state(state: ReconciliationState, clock: FakeClock) -> ReconciliationState:
    """State whose cooldown has elapsed and whose retry flag is on."""
    state.ensure_initialized()
    state.set_retry_enabled(True)
    clock.advance(WEEK + timedelta(minutes=1))
    return state


class TestRedoGate:
    def test_closed_without_negative_entries(self, store: CacheStore, ready_state: ReconciliationState) -> None:
        lookup = FakeLookup()
        store.put("/movies/a.mkv", CacheEntry.positive(MetadataRecord(title="A")))
        scheduler = RedoScheduler(store, lookup, ready_state)

        assert scheduler.trigger() is False
        assert lookup.calls == []
        scheduler.shutdown()

    def test_closed_within_cooldown(self, store: CacheStore, state: ReconciliationState, clock: FakeClock) -> None:
        lookup = FakeLookup(default=["tt1", "", "Found", "", "", ""])
        state.ensure_initialized()
        state.set_retry_enabled(True)
        clock.advance(timedelta(days=3))
        store.put("/movies/a.mkv", CacheEntry.negative())
        scheduler = RedoScheduler(store, lookup, state)

        assert scheduler.trigger() is False
        scheduler.wait(5)

        assert lookup.calls == []
        assert store.get("/movies/a.mkv").is_negative
        scheduler.shutdown()

    def test_closed_when_retry_disabled(self, store: CacheStore, ready_state: ReconciliationState) -> None:
        ready_state.set_retry_enabled(False)
        store.put("/movies/a.mkv", CacheEntry.negative())
        scheduler = RedoScheduler(store, FakeLookup(), ready_state)

        assert scheduler.gate_open() is False
        scheduler.shutdown()

    def test_custom_cooldown(self, store: CacheStore, state: ReconciliationState, clock: FakeClock) -> None:
        state.ensure_initialized()
        state.set_retry_enabled(True)
        clock.advance(timedelta(hours=2))
        store.put("/movies/a.mkv", CacheEntry.negative())

        assert RedoScheduler(store, FakeLookup(), state, cooldown=timedelta(hours=1)).gate_open() is True
        assert RedoScheduler(store, FakeLookup(), state, cooldown=timedelta(hours=3)).gate_open() is False


class TestRedoScheduler:
    def test_trigger_upgrades_negative_entries(
        self, store: CacheStore, ready_state: ReconciliationState, clock: FakeClock
    ) -> None:
        lookup = FakeLookup({"/movies/a.mkv": ["tt999", "", "B Movie", "", "", "1999"]})
        store.put("/movies/a.mkv", CacheEntry.negative())
        store.put("/movies/b.mkv", CacheEntry.negative())
        store.put("/movies/c.mkv", CacheEntry.positive(MetadataRecord(title="C")))
        scheduler = RedoScheduler(store, lookup, ready_state)

        assert scheduler.trigger() is True
        assert ready_state.last_redo() == clock()
        assert scheduler.wait(5)

        assert store.get("/movies/a.mkv").record == MetadataRecord(catalog_id="tt999", title="B Movie", year="1999")
        assert store.get("/movies/b.mkv").is_negative
        assert store.get("/movies/c.mkv").record == MetadataRecord(title="C")
        assert sorted(lookup.calls) == [("/movies/a.mkv", "a.mkv"), ("/movies/b.mkv", "b.mkv")]
        assert scheduler.phase is RedoPhase.IDLE
        assert scheduler.last_summary is not None
        assert scheduler.last_summary.upgraded == 1
        assert scheduler.last_summary.still_empty == 1
        scheduler.shutdown()

    def test_second_trigger_waits_for_next_cooldown(
        self, store: CacheStore, ready_state: ReconciliationState, clock: FakeClock
    ) -> None:
        lookup = FakeLookup()
        store.put("/movies/a.mkv", CacheEntry.negative())
        scheduler = RedoScheduler(store, lookup, ready_state)

        assert scheduler.trigger() is True
        scheduler.wait(5)
        assert scheduler.trigger() is False
        assert len(lookup.calls) == 1

        clock.advance(WEEK + timedelta(seconds=1))
        assert scheduler.trigger() is True
        scheduler.wait(5)
        assert len(lookup.calls) == 2
        scheduler.shutdown()

    def test_no_overlapping_scans(self, store: CacheStore, ready_state: ReconciliationState, clock: FakeClock) -> None:
        started = threading.Event()
        release = threading.Event()

        class BlockingLookup(FakeLookup):
            def lookup(self, path, display_name):
                started.set()
                release.wait(5)
                return super().lookup(path, display_name)

        store.put("/movies/a.mkv", CacheEntry.negative())
        scheduler = RedoScheduler(store, BlockingLookup(), ready_state)

        assert scheduler.trigger() is True
        assert started.wait(5)
        assert scheduler.phase is RedoPhase.SCANNING

        clock.advance(WEEK * 2)
        assert scheduler.trigger() is False

        release.set()
        scheduler.wait(5)
        assert scheduler.phase is RedoPhase.IDLE
        scheduler.shutdown()

    def test_failures_do_not_abort_scan(self, store: CacheStore, ready_state: ReconciliationState) -> None:
        lookup = FakeLookup(
            {
                "/movies/a.mkv": MetadataLookupError("timeout"),
                "/movies/b.mkv": ["tt2", "", "B", "", "", ""],
            }
        )
        store.put("/movies/a.mkv", CacheEntry.negative())
        store.put("/movies/b.mkv", CacheEntry.negative())
        scheduler = RedoScheduler(store, lookup, ready_state)

        summary = scheduler.run_scan()

        assert summary.failed == 1
        assert summary.upgraded == 1
        assert summary.synced is True
        assert store.get("/movies/a.mkv").is_negative
        assert store.get("/movies/b.mkv").record.title == "B"
        scheduler.shutdown()

    def test_scan_without_upgrades_does_not_sync(self, store: CacheStore, ready_state: ReconciliationState) -> None:
        store.put("/movies/a.mkv", CacheEntry.negative())
        scheduler = RedoScheduler(store, FakeLookup(default=None), ready_state)

        summary = scheduler.run_scan()

        assert summary.negatives == 1
        assert summary.synced is False
        assert store.get("/movies/a.mkv").is_negative
        scheduler.shutdown()

    def test_scan_with_no_negatives_makes_no_lookups(
        self, store: CacheStore, ready_state: ReconciliationState
    ) -> None:
        lookup = FakeLookup()
        store.put("/movies/a.mkv", CacheEntry.positive(MetadataRecord(title="A")))
        scheduler = RedoScheduler(store, lookup, ready_state)

        summary = scheduler.run_scan()

        assert summary.negatives == 0
        assert lookup.calls == []
        scheduler.shutdown()
