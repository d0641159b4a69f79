"""Bounded thread pool used for background lookups."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Any

LOGGER = logging.getLogger(__name__)


class BoundedExecutor:
    """Thread pool that rejects work once ``max_pending`` tasks are queued or running.

    :meth:`submit` returns None instead of blocking when the pool is full or
    shut down, so callers can drop the request and retry later.
    """

    def __init__(self, max_workers: int, max_pending: int, *, name: str = "infodb") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if max_pending < max_workers:
            raise ValueError("max_pending must be greater than or equal to max_workers")
        self.max_workers = max_workers
        self.max_pending = max_pending
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(max_pending)
        self._futures: set[Future[Any]] = set()
        self._pending = 0
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future[Any] | None:
        if self._closed:
            LOGGER.debug("Executor closed, dropping task %s", getattr(fn, "__name__", fn))
            return None
        if not self._slots.acquire(blocking=False):
            return None

        with self._lock:
            self._pending += 1
        try:
            future = self._executor.submit(self._run, fn, *args)
        except RuntimeError:
            # Shut down between the closed check and submission
            self._finish()
            return None

        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        return future

    def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        finally:
            self._finish()

    def _finish(self) -> None:
        with self._lock:
            self._pending -= 1
        self._slots.release()

    def _forget(self, future: Future[Any]) -> None:
        with self._lock:
            self._futures.discard(future)

    @property
    def pending(self) -> int:
        """Number of accepted tasks that have not finished yet."""
        with self._lock:
            return self._pending

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every task submitted so far has finished.

        Returns:
            True if all tasks finished within ``timeout``
        """
        with self._lock:
            snapshot = set(self._futures)
        if not snapshot:
            return True
        _, not_done = wait_futures(snapshot, timeout=timeout)
        return not not_done

    def shutdown(self, *, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
