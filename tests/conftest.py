from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path

import pytest

from infodb.cache_store import CacheStore
from infodb.info_cache import InfoCache
from infodb.state import ReconciliationState, StateStore

START_TIME = 1_700_000_000.0


class FakeLookup:
    """Lookup service double that records every call."""

    def __init__(self, responses: dict[str, object] | None = None, default: object = None) -> None:
        self.responses: dict[str, object] = dict(responses or {})
        self.default = default
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def lookup(self, path: Path, display_name: str) -> Sequence[str] | None:
        with self._lock:
            self.calls.append((str(path), display_name))
        result = self.responses.get(str(path), self.default)
        if isinstance(result, Exception):
            raise result
        return result  # type: ignore[return-value]


class FakeClock:
    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta.total_seconds()


@pytest.fixture
def lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> CacheStore:
    cache_store = CacheStore(tmp_path)
    yield cache_store
    cache_store.close()


@pytest.fixture
def state(tmp_path: Path, clock: FakeClock) -> ReconciliationState:
    return ReconciliationState(StateStore(tmp_path), clock=clock)


@pytest.fixture
def cache(store: CacheStore, lookup: FakeLookup, state: ReconciliationState) -> InfoCache:
    info_cache = InfoCache(store, lookup, state, max_workers=2, max_pending=16)
    yield info_cache
    info_cache.close()
