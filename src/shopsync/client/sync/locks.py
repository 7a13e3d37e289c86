"""Cooperative edit locks on repair tickets.

This module provides:
- LockClient: acquire, query and release the server-side lock on a repair

A lock protects a ticket while one device edits it. Acquiring a lock held
by another device raises ConflictError and is never retried here; the
calling flow decides what to do. Release is best-effort: a lock left
behind by a failed release is reclaimed by its holder, or expired by the
server.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from shopsync.client.api import APIError, LockState
from shopsync.client.sync.types import Outcome

if TYPE_CHECKING:
    from shopsync.client.api import HTTPClient

logger = logging.getLogger(__name__)


class LockClient:
    """Lock protocol client for repair tickets."""

    def __init__(self, client: HTTPClient) -> None:
        self._client = client

    def acquire(self, repair_id: int, holder_device: str) -> LockState:
        """Acquire the lock on a repair for holder_device.

        Re-acquiring a lock already held by the same device refreshes its
        timestamp.

        Returns:
            Lock state after acquisition.

        Raises:
            ConflictError: If another device holds the lock.
            NetworkError: If the server cannot be reached.
        """
        self._client.set_lock(repair_id, holder_device)
        logger.info("Lock acquired on repair %d by %s", repair_id, holder_device)
        try:
            return self._client.get_lock(repair_id)
        except APIError as e:
            logger.debug("Lock state read-back failed for %d: %s", repair_id, e)
            return LockState(locked=True, holder_device=holder_device)

    def query(self, repair_id: int) -> LockState:
        """Read the lock on a repair without changing it."""
        return self._client.get_lock(repair_id)

    def release(self, repair_id: int) -> Outcome:
        """Release the lock on a repair, never raising on API failure."""
        step = f"lock.release:{repair_id}"
        try:
            self._client.release_lock(repair_id)
        except APIError as e:
            logger.warning("Failed to release lock on repair %d: %s", repair_id, e)
            return Outcome.absorbed(step, e)
        logger.info("Lock released on repair %d", repair_id)
        return Outcome.ok(step)

    @contextmanager
    def hold(self, repair_id: int, holder_device: str) -> Iterator[LockState]:
        """Hold the lock for the duration of a with block.

        Usage:
            with locks.hold(42, "counter-1"):
                edit_ticket()
        """
        state = self.acquire(repair_id, holder_device)
        try:
            yield state
        finally:
            self.release(repair_id)
