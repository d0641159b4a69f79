"""Tests for the locked cache store adapter."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from infodb.cache_store import CacheStore
from infodb.models import CacheEntry, MetadataRecord

RECORD = MetadataRecord("tt123", "", "A Movie", "", "", "2000")


class TestCacheStore:
    def test_untouched_store_returns_absent(self, store: CacheStore) -> None:
        for key in ("/movies/a.mkv", "/tv/b.mkv", ""):
            assert store.get(key).is_absent

    def test_put_and_get(self, store: CacheStore) -> None:
        store.put("/movies/a.mkv", CacheEntry.positive(RECORD))
        store.put("/movies/b.mkv", CacheEntry.negative())

        assert store.get("/movies/a.mkv") == CacheEntry.positive(RECORD)
        assert store.get("/movies/b.mkv").is_negative
        assert len(store) == 2

    def test_put_absent_is_rejected(self, store: CacheStore) -> None:
        with pytest.raises(ValueError):
            store.put("/movies/a.mkv", CacheEntry.absent())

    def test_overwrite_keeps_single_entry(self, store: CacheStore) -> None:
        store.put("/movies/a.mkv", CacheEntry.negative())
        store.put("/movies/a.mkv", CacheEntry.positive(RECORD))

        assert len(store) == 1
        assert store.get("/movies/a.mkv").is_positive
        assert store.has_negative_entries() is False

    def test_rename_moves_value(self, tmp_path: Path, store: CacheStore) -> None:
        store.put("/movies/old.mkv", CacheEntry.positive(RECORD))

        assert store.rename("/movies/old.mkv", "/movies/new.mkv") is True
        assert store.get("/movies/old.mkv").is_absent
        assert store.get("/movies/new.mkv") == CacheEntry.positive(RECORD)

        reopened = CacheStore(tmp_path)
        assert reopened.get("/movies/old.mkv").is_absent
        assert reopened.get("/movies/new.mkv") == CacheEntry.positive(RECORD)
        reopened.close()

    def test_rename_preserves_negative(self, store: CacheStore) -> None:
        store.put("/movies/old.mkv", CacheEntry.negative())

        store.rename("/movies/old.mkv", "/movies/new.mkv")

        assert store.get("/movies/new.mkv").is_negative
        assert store.has_negative_entries() is True

    def test_rename_absent_is_noop(self, store: CacheStore) -> None:
        assert store.rename("/movies/missing.mkv", "/movies/new.mkv") is False
        assert store.get("/movies/new.mkv").is_absent

    def test_has_negative_entries(self, store: CacheStore) -> None:
        assert store.has_negative_entries() is False
        store.put("/movies/a.mkv", CacheEntry.negative())
        assert store.has_negative_entries() is True
        store.remove("/movies/a.mkv")
        assert store.has_negative_entries() is False

    def test_iterate_mutable_replaces_in_place(self, tmp_path: Path, store: CacheStore) -> None:
        store.put("/movies/a.mkv", CacheEntry.negative())
        store.put("/movies/b.mkv", CacheEntry.positive(RECORD))

        for item in store.iterate_mutable():
            if item.entry.is_negative:
                item.replace(CacheEntry.positive(MetadataRecord(title="Found")))
        store.sync()

        reopened = CacheStore(tmp_path)
        assert reopened.get("/movies/a.mkv").record == MetadataRecord(title="Found")
        assert reopened.get("/movies/b.mkv").record == RECORD
        reopened.close()

    def test_iteration_holds_the_lock(self, store: CacheStore) -> None:
        store.put("/movies/a.mkv", CacheEntry.negative())
        acquired: list[bool] = []

        def try_lock() -> None:
            got = store.lock.acquire(blocking=False)
            acquired.append(got)
            if got:
                store.lock.release()

        for _ in store.iterate_mutable():
            worker = threading.Thread(target=try_lock)
            worker.start()
            worker.join()

        assert acquired == [False]

    def test_stats(self, store: CacheStore) -> None:
        store.put("/movies/a.mkv", CacheEntry.negative())
        store.put("/movies/b.mkv", CacheEntry.positive(RECORD), sync=False)

        stats = store.stats()
        assert stats["total_entries"] == 2
        assert stats["negative_entries"] == 1
        assert stats["positive_entries"] == 1
        assert stats["dirty"] is True
