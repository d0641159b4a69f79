"""Typed facade over the persistent record store.

Every operation runs under one re-entrant lock covering the whole store. No
external lookups happen inside these methods; the only caller that performs
lookups while holding :attr:`CacheStore.lock` is the redo scan.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .codec import STORED_OFFSET, decode, encode
from .models import CacheEntry, MetadataRecord
from .persistence import MutableEntry, RecordStore

DB_NAME = "InfoDb.db"
DEFAULT_MIN_FIELDS = 6


class InfoRecordHandler:
    """Row handler for ``InfoDb.db``: rows are ``[key, *fields]``."""

    def __init__(self, name: str = DB_NAME) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def create(self, fields: Sequence[str]) -> MetadataRecord:
        return decode(fields, STORED_OFFSET)

    def format(self, value: MetadataRecord) -> Sequence[str]:
        return encode(value)


@dataclass
class ScanItem:
    """One entry visited by :meth:`CacheStore.iterate_mutable`."""

    key: str
    entry: CacheEntry
    _handle: MutableEntry[MetadataRecord]

    def replace(self, entry: CacheEntry) -> None:
        """Replace this entry's value in place (not synced)."""
        self._handle.set_value(entry.to_stored())
        self.entry = entry


class CacheStore:
    """Thread-safe cache of :class:`CacheEntry` values keyed by file path.

    Example:
        store = CacheStore(Path("/cache"))
        store.put("/movies/a.mkv", CacheEntry.negative())
        store.get("/movies/a.mkv").is_negative  # True
    """

    def __init__(
        self,
        directory: Path,
        *,
        db_name: str = DB_NAME,
        min_fields: int = DEFAULT_MIN_FIELDS,
    ) -> None:
        self._lock = threading.RLock()
        self._records: RecordStore[MetadataRecord] = RecordStore(
            directory,
            InfoRecordHandler(db_name),
            min_fields=min_fields,
            use_null=True,
        )

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def db_path(self) -> Path:
        return self._records.db_path

    def get(self, key: str) -> CacheEntry:
        with self._lock:
            return CacheEntry.from_stored(self._records.get(key))

    def put(self, key: str, entry: CacheEntry, *, sync: bool = True) -> None:
        """Insert or overwrite ``key``.

        Raises:
            ValueError: If ``entry`` is Absent
        """
        with self._lock:
            self._records.add(key, entry.to_stored(), sync=sync)

    def remove(self, key: str, *, sync: bool = True) -> bool:
        with self._lock:
            return self._records.remove(key, sync=sync)

    def rename(self, old_key: str, new_key: str) -> bool:
        """Move the value of ``old_key`` to ``new_key`` and sync once.

        Returns:
            True if ``old_key`` existed and was moved, False otherwise
        """
        with self._lock:
            entry = self.get(old_key)
            if entry.is_absent:
                return False
            self._records.remove(old_key, sync=False)
            self._records.add(new_key, entry.to_stored(), sync=False)
            self._records.sync()
            return True

    def has_negative_entries(self) -> bool:
        with self._lock:
            return self._records.has_nulls()

    def iterate_mutable(self) -> Iterator[ScanItem]:
        """Yield every entry while holding the store lock.

        Values replaced through :meth:`ScanItem.replace` are persisted on the
        next :meth:`sync`.
        """
        with self._lock:
            for handle in self._records.items_mutable():
                yield ScanItem(handle.key, CacheEntry.from_stored(handle.value), handle)

    def sync(self) -> None:
        with self._lock:
            self._records.sync()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = len(self._records)
            negative = self._records.null_count
            return {
                "total_entries": total,
                "positive_entries": total - negative,
                "negative_entries": negative,
                "dirty": self._records.dirty,
                "db_path": str(self._records.db_path),
            }

    def close(self) -> None:
        """Flush pending writes and close the database; later writes raise."""
        with self._lock:
            if self._records.closed:
                return
            self._records.sync()
            self._records.close()
