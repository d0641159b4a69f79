"""Negative-aware metadata cache for media files.

Example:
    settings = load_settings(Path("config.yaml"))
    with InfoCache.from_settings(settings) as cache:
        entry = cache.get("/movies/a.mkv")
        if entry.is_absent:
            cache.background_add("/movies/a.mkv", "a")
"""

from __future__ import annotations

import logging
import os
import time
from datetime import timedelta
from typing import Any

from .cache_store import CacheStore
from .config import InfoDbSettings
from .lookup import HttpMetadataLookup, MetadataLookup
from .models import CacheEntry, MetadataRecord
from .populator import BackgroundPopulator
from .redo import RedoScheduler
from .state import DEFAULT_REDO_PERIOD, Clock, ReconciliationState, StateStore
from .utils import cache_key
from .workers import BoundedExecutor

LOGGER = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]


class InfoCache:
    """Maps media file paths to looked-up metadata.

    Unknown files are looked up in the background by :meth:`background_add`.
    Files the service knew nothing about are cached as negative entries and
    retried at most once per ``cooldown`` when the retry flag is enabled.
    """

    def __init__(
        self,
        store: CacheStore,
        lookup: MetadataLookup,
        state: ReconciliationState,
        *,
        cooldown: timedelta = DEFAULT_REDO_PERIOD,
        max_workers: int = 4,
        max_pending: int = 64,
        owns_lookup: bool = False,
    ) -> None:
        self.store = store
        self.state = state
        self._lookup = lookup
        self._owns_lookup = owns_lookup
        self._executor = BoundedExecutor(max_workers, max_pending, name="infodb-lookup")
        self.redo = RedoScheduler(store, lookup, state, cooldown=cooldown)
        self.populator = BackgroundPopulator(store, lookup, self._executor, on_known_key=self.redo.trigger)
        self._closed = False

        self.state.ensure_initialized()
        self.redo.trigger()

    @classmethod
    def from_settings(
        cls,
        settings: InfoDbSettings,
        lookup: MetadataLookup | None = None,
        *,
        clock: Clock = time.time,
    ) -> InfoCache:
        store = CacheStore(settings.cache_dir, db_name=settings.db_filename, min_fields=settings.min_fields)
        state = ReconciliationState(
            StateStore(settings.cache_dir, settings.state_filename),
            retry_default=settings.retry,
            clock=clock,
        )
        owns_lookup = lookup is None
        if lookup is None:
            lookup = HttpMetadataLookup(
                settings.lookup.base_url,
                timeout=settings.lookup.timeout,
                api_key=settings.lookup.api_key,
            )
        return cls(
            store,
            lookup,
            state,
            cooldown=settings.redo_period,
            max_workers=settings.max_workers,
            max_pending=settings.max_pending,
            owns_lookup=owns_lookup,
        )

    def get(self, path: PathLike) -> CacheEntry:
        return self.store.get(cache_key(path))

    def get_record(self, path: PathLike) -> MetadataRecord | None:
        """Return the cached record, or None for unknown and negative entries."""
        return self.get(path).record

    def background_add(self, path: PathLike, display_name: str) -> bool:
        return self.populator.background_add(cache_key(path), display_name)

    def move_info(self, old_path: PathLike, new_path: PathLike) -> bool:
        old_key = cache_key(old_path)
        new_key = cache_key(new_path)
        moved = self.store.rename(old_key, new_key)
        if moved:
            LOGGER.debug("Moved metadata %s -> %s", old_key, new_key)
        return moved

    def trigger_redo(self) -> bool:
        return self.redo.trigger()

    def wait_for_pending(self, timeout: float | None = None) -> bool:
        """Block until queued lookups and any running redo pass have finished."""
        deadline = None if timeout is None else time.monotonic() + timeout
        lookups_done = self._executor.wait(timeout)
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        redo_done = self.redo.wait(remaining)
        return lookups_done and redo_done

    def stats(self) -> dict[str, Any]:
        stats = self.store.stats()
        stats["pending_lookups"] = self._executor.pending
        stats["redo_phase"] = self.redo.phase.value
        stats["retry_enabled"] = self.state.retry_enabled
        return stats

    def close(self, *, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        self.redo.shutdown(wait=wait)
        self.store.close()
        if self._owns_lookup and hasattr(self._lookup, "close"):
            self._lookup.close()

    def __enter__(self) -> InfoCache:
        return self

    def __exit__(self, *args) -> None:
        self.close()
