"""Process-wide key/value state and the redo reconciliation state built on it."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path

from .utils import ensure_directory, parse_env_bool

LOGGER = logging.getLogger(__name__)

LAST_REDO_KEY = "last_info_reread"
RETRY_KEY = "info_db_retry"
DEFAULT_REDO_PERIOD = timedelta(days=7)

Clock = Callable[[], float]


class StateStore:
    """Persistent string key/value state shared by the whole process.

    Values live in ``<cache_dir>/state/<filename>`` and are written on every
    :meth:`set_value`.
    """

    def __init__(self, cache_dir: Path, filename: str = "infodb-state.json") -> None:
        self.cache_dir = cache_dir
        self.path = cache_dir / "state" / filename
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            LOGGER.debug("State file not found, starting fresh: %s", self.path)
            return

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Failed to load state %s: %s", self.path, exc)
            return

        if not isinstance(payload, dict):
            LOGGER.warning("Ignoring malformed state file %s", self.path)
            return

        self._values = {str(key): str(value) for key, value in payload.items() if value is not None}

    def get_value(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set_value(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
            self._save()

    def _save(self) -> None:
        ensure_directory(self.path.parent)
        try:
            with self.path.open("w", encoding="utf-8") as handle:
                json.dump(self._values, handle, indent=2, sort_keys=True)
        except OSError as exc:
            LOGGER.error("Failed to write state %s: %s", self.path, exc)


class ReconciliationState:
    """Last redo timestamp and retry flag, read from a :class:`StateStore`.

    The timestamp is stored as epoch milliseconds. A missing or malformed value
    reads as "now", which keeps the redo gate closed for the current cycle.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        retry_default: bool = False,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._retry_default = retry_default
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def ensure_initialized(self) -> None:
        """Record "now" as the last redo time if none has ever been stored."""
        if self._store.get_value(LAST_REDO_KEY) is None:
            self.mark_redo()

    def last_redo(self, *, now: float | None = None) -> float:
        """Return the last redo time in epoch seconds (``now`` if unreadable)."""
        current = self.now() if now is None else now
        raw = self._store.get_value(LAST_REDO_KEY)
        if raw is None:
            return current
        try:
            return int(raw) / 1000.0
        except ValueError:
            LOGGER.debug("Unreadable last redo timestamp %r, treating as now", raw)
            return current

    def mark_redo(self, when: float | None = None) -> None:
        stamp = self.now() if when is None else when
        self._store.set_value(LAST_REDO_KEY, str(int(stamp * 1000)))

    def cooldown_elapsed(self, cooldown: timedelta = DEFAULT_REDO_PERIOD) -> bool:
        now = self.now()
        return (now - self.last_redo(now=now)) > cooldown.total_seconds()

    @property
    def retry_enabled(self) -> bool:
        flag = parse_env_bool(self._store.get_value(RETRY_KEY))
        return self._retry_default if flag is None else flag

    def set_retry_enabled(self, enabled: bool) -> None:
        self._store.set_value(RETRY_KEY, "true" if enabled else "false")
