"""Periodic retry of negative cache entries.

A redo pass is started opportunistically, whenever a caller touches a key the
cache already knows. It only runs when all of these hold:

1. the store contains at least one negative entry,
2. more than ``cooldown`` has passed since the previous pass,
3. the retry flag is enabled.

The last-redo timestamp is updated before the pass is submitted so later
triggers see the new value. Within one process the Idle/Scanning phase prevents
overlapping passes; separate processes sharing the state file may still overlap
when they evaluate the gate at the same moment.

The scan holds the store lock for its whole duration, so every other cache
operation waits until it finishes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path

from .cache_store import CacheStore
from .codec import LOOKUP_OFFSET, decode, is_usable
from .logging_utils import render_fields_block
from .lookup import MetadataLookup
from .models import CacheEntry
from .state import DEFAULT_REDO_PERIOD, ReconciliationState
from .utils import display_name_for
from .workers import BoundedExecutor

LOGGER = logging.getLogger(__name__)


class RedoPhase(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass
class RedoSummary:
    """Outcome of one redo pass."""

    negatives: int = 0
    upgraded: int = 0
    still_empty: int = 0
    failed: int = 0
    synced: bool = False


class RedoScheduler:
    def __init__(
        self,
        store: CacheStore,
        lookup: MetadataLookup,
        state: ReconciliationState,
        *,
        cooldown: timedelta = DEFAULT_REDO_PERIOD,
        executor: BoundedExecutor | None = None,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._state = state
        self.cooldown = cooldown
        self._executor = executor or BoundedExecutor(1, 2, name="infodb-redo")
        self._phase = RedoPhase.IDLE
        self._phase_lock = threading.Lock()
        self.last_summary: RedoSummary | None = None

    @property
    def phase(self) -> RedoPhase:
        with self._phase_lock:
            return self._phase

    def gate_open(self) -> bool:
        """Evaluate the redo gate under the store lock."""
        with self._store.lock:
            if not self._store.has_negative_entries():
                return False
            if not self._state.cooldown_elapsed(self.cooldown):
                return False
            return self._state.retry_enabled

    def trigger(self) -> bool:
        """Start a redo pass in the background if the gate is open.

        Must not be called while holding the store lock.

        Returns:
            True if a pass was submitted
        """
        with self._phase_lock:
            if self._phase is not RedoPhase.IDLE:
                return False
            if not self.gate_open():
                return False

            self._state.mark_redo()
            self._phase = RedoPhase.SCANNING
            future = self._executor.submit(self._scan_and_reset)
            if future is None:
                LOGGER.warning("Redo pass could not be scheduled")
                self._phase = RedoPhase.IDLE
                return False

        LOGGER.info("Retrying negative metadata entries in the background")
        return True

    def _scan_and_reset(self) -> None:
        try:
            self.run_scan()
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Redo pass aborted: %s", exc)
            LOGGER.debug("Redo traceback", exc_info=True)
        finally:
            with self._phase_lock:
                self._phase = RedoPhase.IDLE

    def run_scan(self) -> RedoSummary:
        """Retry every negative entry, holding the store lock throughout."""
        summary = RedoSummary()
        with self._store.lock:
            for item in self._store.iterate_mutable():
                if not item.entry.is_negative:
                    continue
                summary.negatives += 1
                try:
                    fields = self._lookup.lookup(Path(item.key), display_name_for(item.key))
                except Exception as exc:  # noqa: BLE001
                    summary.failed += 1
                    LOGGER.error("Exception while retrying %s: %s", item.key, exc)
                    LOGGER.debug("Lookup traceback for %s", item.key, exc_info=True)
                    continue

                if not is_usable(fields):
                    summary.still_empty += 1
                    continue
                item.replace(CacheEntry.positive(decode(fields, LOOKUP_OFFSET)))
                summary.upgraded += 1

            if summary.upgraded:
                self._store.sync()
                summary.synced = True

        self.last_summary = summary
        LOGGER.info(
            render_fields_block(
                "Negative Entry Redo",
                {
                    "Negative Entries": summary.negatives,
                    "Upgraded": summary.upgraded,
                    "Still Empty": summary.still_empty,
                    "Failed": summary.failed,
                },
                pad_top=True,
            )
        )
        return summary

    def wait(self, timeout: float | None = None) -> bool:
        return self._executor.wait(timeout)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
