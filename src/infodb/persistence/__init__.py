"""Persistence layer for the metadata cache.

Public API:
- RecordStore: SQLite-backed store of ordered field rows with null-object support
- RecordHandler: Protocol converting rows to values and back
- MutableEntry: Entry handed out by RecordStore.items_mutable()
- StoreClosedError: Raised when a closed store is written to

Example:
    from infodb.persistence import RecordStore

    store = RecordStore(Path("/cache"), handler, min_fields=6, use_null=True)
    value = store.get("/movies/a.mkv")
"""

from .record_store import MutableEntry, RecordHandler, RecordStore, StoreClosedError

__all__ = [
    "MutableEntry",
    "RecordHandler",
    "RecordStore",
    "StoreClosedError",
]
