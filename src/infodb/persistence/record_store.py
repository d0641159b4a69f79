"""SQLite-backed store of ordered field rows.

Rows are loaded into memory when the store opens and written back on
:meth:`RecordStore.sync`. Each persisted row is a key plus a JSON array of
string fields; a ``NULL`` field column marks a null-object row, which is held in
memory as the :data:`~infodb.models.NEGATIVE` sentinel.

The store is not thread-safe. External synchronization required for concurrent
access.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from ..logging_utils import render_fields_block
from ..models import NEGATIVE, is_negative
from ..utils import ensure_directory

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


class StoreClosedError(RuntimeError):
    """Raised when a closed store is written to."""


class RecordHandler(Protocol[V]):
    """Converts between stored field rows and values of type ``V``."""

    @property
    def name(self) -> str: ...

    def create(self, fields: Sequence[str]) -> V:
        """Build a value from a row whose first field is the key."""
        ...

    def format(self, value: V) -> Sequence[str]:
        """Return the fields of ``value``, key excluded."""
        ...


class MutableEntry(Generic[V]):
    """A store entry whose value may be replaced while iterating."""

    __slots__ = ("_store", "key", "_value")

    def __init__(self, store: RecordStore[V], key: str, value: object) -> None:
        self._store = store
        self.key = key
        self._value = value

    @property
    def value(self) -> object:
        return self._value

    def set_value(self, value: object) -> None:
        self._store._replace(self.key, value)
        self._value = value


class RecordStore(Generic[V]):
    """Durable key/value store of field rows.

    Example:
        store = RecordStore(Path("/cache"), handler, min_fields=6, use_null=True)
        store.add("/movies/a.mkv", value, sync=False)
        store.add("/movies/b.mkv", NEGATIVE, sync=False)
        store.sync()
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        directory: Path,
        handler: RecordHandler[V],
        *,
        min_fields: int = 0,
        use_null: bool = False,
    ) -> None:
        """Open (or create) the store.

        Args:
            directory: Directory holding the database file
            handler: Row converter; ``handler.name`` is the database file name
            min_fields: Rows with fewer fields (key included) are skipped on load
            use_null: Whether null-object rows are accepted
        """
        self.db_path = directory / handler.name
        self.min_fields = min_fields
        self.use_null = use_null
        self._handler = handler
        self._connection: sqlite3.Connection | None = None
        self._entries: dict[str, object] = {}
        self._pending: set[str] = set()
        self._null_count = 0
        self._closed = False

        ensure_directory(directory)
        self._init_schema()
        self._load()

    def _get_connection(self) -> sqlite3.Connection:
        """Get the database connection, shared by all threads."""
        self._check_open()
        if self._connection is None:
            self._connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._connection.execute("PRAGMA journal_mode=WAL")
        return self._connection

    def _check_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"{self.db_path.name} is closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def _init_schema(self) -> None:
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

        cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
        row = cursor.fetchone()
        current_version = row[0] if row else 0

        if current_version < self.SCHEMA_VERSION:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    fields TEXT
                )
            """)
            conn.execute("DELETE FROM schema_version")
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,))
            conn.commit()

    def _load(self) -> None:
        loaded = 0
        short = 0
        malformed = 0
        nulls_skipped = 0

        conn = self._get_connection()
        for row in conn.execute("SELECT key, fields FROM records"):
            key = row["key"]
            raw_fields = row["fields"]
            if raw_fields is None:
                if not self.use_null:
                    nulls_skipped += 1
                    continue
                self._entries[key] = NEGATIVE
                self._null_count += 1
                loaded += 1
                continue

            try:
                fields = json.loads(raw_fields)
            except json.JSONDecodeError as exc:
                LOGGER.warning("Skipping malformed row for %s in %s: %s", key, self.db_path, exc)
                malformed += 1
                continue
            if not isinstance(fields, list):
                LOGGER.warning("Skipping malformed row for %s in %s", key, self.db_path)
                malformed += 1
                continue

            args = [key, *("" if value is None else str(value) for value in fields)]
            if len(args) < self.min_fields:
                short += 1
                continue
            self._entries[key] = self._handler.create(args)
            loaded += 1

        LOGGER.debug(
            render_fields_block(
                "Record Store Loaded",
                {
                    "Database": self.db_path,
                    "Entries": loaded,
                    "Null Entries": self._null_count,
                    "Skipped (short)": short,
                    "Skipped (malformed)": malformed,
                    "Skipped (null)": nulls_skipped,
                },
                pad_top=True,
            )
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> object | None:
        """Return the raw value for ``key`` (the null sentinel included), or None."""
        return self._entries.get(key)

    def is_null(self, value: object) -> bool:
        return is_negative(value)

    def has_nulls(self) -> bool:
        return self._null_count > 0

    @property
    def null_count(self) -> int:
        return self._null_count

    @property
    def dirty(self) -> bool:
        return bool(self._pending)

    def add(self, key: str, value: object, *, sync: bool = True) -> None:
        """Insert or overwrite ``key``; persists immediately unless ``sync`` is False.

        Raises:
            StoreClosedError: If the store has been closed
        """
        self._check_open()
        self._replace(key, value)
        if sync:
            self.sync()

    def remove(self, key: str, *, sync: bool = True) -> bool:
        self._check_open()
        if key not in self._entries:
            return False
        previous = self._entries.pop(key)
        if is_negative(previous):
            self._null_count -= 1
        self._pending.add(key)
        if sync:
            self.sync()
        return True

    def items_mutable(self) -> Iterator[MutableEntry[V]]:
        """Iterate over all entries; values may be replaced via ``set_value``."""
        for key, value in list(self._entries.items()):
            yield MutableEntry(self, key, value)

    def _replace(self, key: str, value: object) -> None:
        self._check_open()
        if value is None:
            raise ValueError("Use remove() to delete entries")
        if is_negative(value) and not self.use_null:
            raise ValueError(f"Null objects are disabled for {self.db_path.name}")

        previous = self._entries.get(key)
        if is_negative(previous):
            self._null_count -= 1
        if is_negative(value):
            self._null_count += 1
        self._entries[key] = value
        self._pending.add(key)

    def _serialise(self, value: object) -> str | None:
        if is_negative(value):
            return None
        return json.dumps(list(self._handler.format(value)), ensure_ascii=False)

    def sync(self) -> None:
        """Write pending inserts, updates and removals in one transaction."""
        self._check_open()
        if not self._pending:
            return

        upserts: list[tuple[str, str | None]] = []
        deletes: list[tuple[str]] = []
        for key in self._pending:
            if key in self._entries:
                upserts.append((key, self._serialise(self._entries[key])))
            else:
                deletes.append((key,))

        conn = self._get_connection()
        with conn:
            if upserts:
                conn.executemany("INSERT OR REPLACE INTO records (key, fields) VALUES (?, ?)", upserts)
            if deletes:
                conn.executemany("DELETE FROM records WHERE key = ?", deletes)
        self._pending.clear()
        LOGGER.debug("Synced %s: %d written, %d removed", self.db_path.name, len(upserts), len(deletes))

    def close(self) -> None:
        """Close the database connection. Later writes raise :class:`StoreClosedError`."""
        self._closed = True
        if self._connection is not None:
            self._connection.close()
            self._connection = None
