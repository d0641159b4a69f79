"""Asynchronous first-time population of cache entries."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from .cache_store import CacheStore
from .codec import LOOKUP_OFFSET, decode, is_usable
from .lookup import MetadataLookup
from .models import CacheEntry
from .persistence import StoreClosedError
from .workers import BoundedExecutor

LOGGER = logging.getLogger(__name__)


class BackgroundPopulator:
    """Looks up unseen keys on a worker pool and stores the outcome.

    A found record is stored as Positive and an empty answer as Negative. A
    failed lookup leaves the key Absent so a later request can try again.
    Two requests racing on the same Absent key may both look it up; the last
    insert wins.
    """

    def __init__(
        self,
        store: CacheStore,
        lookup: MetadataLookup,
        executor: BoundedExecutor,
        on_known_key: Callable[[], object] | None = None,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._executor = executor
        self._on_known_key = on_known_key

    def background_add(self, key: str, display_name: str) -> bool:
        """Schedule a lookup for ``key`` unless the cache already knows it.

        Returns:
            True if a lookup task was queued, False if the key is already known
            or the worker pool rejected the task
        """
        with self._store.lock:
            known = not self._store.get(key).is_absent

        if known:
            if self._on_known_key is not None:
                self._on_known_key()
            return False

        future = self._executor.submit(self._ask_and_insert, key, display_name)
        if future is None:
            LOGGER.warning(
                "Lookup queue full (%d pending), skipping %s",
                self._executor.pending,
                key,
            )
            return False
        return True

    def _ask_and_insert(self, key: str, display_name: str) -> None:
        try:
            fields = self._lookup.lookup(Path(key), display_name)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error while looking up %s: %s", key, exc)
            LOGGER.debug("Lookup traceback for %s", key, exc_info=True)
            return

        if is_usable(fields):
            entry = CacheEntry.positive(decode(fields, LOOKUP_OFFSET))
        else:
            entry = CacheEntry.negative()

        try:
            with self._store.lock:
                self._store.put(key, entry)
        except StoreClosedError:
            LOGGER.debug("Cache closed before lookup of %s finished, dropping result", key)
            return
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error while inserting %s: %s", key, exc)
            LOGGER.debug("Insert traceback for %s", key, exc_info=True)
            return
        LOGGER.debug("Cached %s metadata for %s", entry.state.value, key)
