"""Supervising task scope for fire-and-forget work.

This module provides:
- TaskScope: thread pool whose tasks cannot take each other down
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class TaskScope:
    """Run independent background tasks on a shared pool.

    An exception raised by a task is logged with its traceback and
    otherwise ignored, so sibling tasks and the owner keep running.
    """

    def __init__(self, max_workers: int = 4, name: str = "shopsync") -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=name,
        )
        self._lock = threading.Lock()
        self._pending: set[Future[Any]] = set()
        self._closed = False

    def launch(self, name: str, func: Callable[..., Any], *args: Any) -> Future[Any] | None:
        """Submit func(*args) as a named task.

        Returns:
            The task future, or None if the scope is closed.
        """
        with self._lock:
            if self._closed:
                logger.debug("Task scope closed, dropping %s", name)
                return None
            future = self._executor.submit(self._guarded, name, func, *args)
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _guarded(self, name: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except Exception:
            logger.exception("Background task %s failed", name)
            return None

    def _discard(self, future: Future[Any]) -> None:
        with self._lock:
            self._pending.discard(future)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the tasks launched so far to finish."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.exception(timeout=timeout)

    def close(self, wait: bool = True) -> None:
        """Refuse new tasks and shut the pool down."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
