"""Repair ticket operations for interactive use.

This module provides:
- RepairRepository: create, update and delete tickets, writing through to
  the server when it can be reached and keeping unsynced local copies
  when it cannot

Local-first writes:
    Every operation lands in the LocalStore. The server call is attempted
    afterwards (or first, for creation) and its failure only leaves the row
    unsynced for the next sync run to push.
"""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import replace
from typing import TYPE_CHECKING

from shopsync.client.api import APIError, HTTPClient
from shopsync.client.sync.reconcile import ClientFactory, default_client_factory

if TYPE_CHECKING:
    from collections.abc import Iterator

    from shopsync.client.models import Repair
    from shopsync.client.store import LocalStore
    from shopsync.client.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class RepairRepository:
    """Local-first repair ticket operations."""

    def __init__(
        self,
        store: LocalStore,
        orchestrator: SyncOrchestrator | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            store: Local store.
            orchestrator: When given, its offline mode is honoured and
                creation runs under its repair-creation guard.
            client_factory: Builds an HTTP client for a server URL.
        """
        self._store = store
        self._orchestrator = orchestrator
        self._client_factory = client_factory or default_client_factory

    @contextlib.contextmanager
    def _client(self) -> Iterator[HTTPClient | None]:
        """Yield an HTTP client, or None when working offline."""
        server_url = self._store.get_server_url()
        if not server_url or (
            self._orchestrator is not None and self._orchestrator.state.offline_mode
        ):
            yield None
            return
        with self._client_factory(server_url) as client:
            yield client

    def _guard(self) -> contextlib.AbstractContextManager[None]:
        if self._orchestrator is None:
            return contextlib.nullcontext()
        return self._orchestrator.creating_repair()

    def next_receipt_id(self) -> int:
        """Next free receipt number, from the server or else the local store."""
        with self._client() as client:
            if client is not None:
                try:
                    return client.next_receipt_id()
                except (APIError, KeyError, TypeError, ValueError) as e:
                    logger.warning("Next receipt id from server failed: %s", e)
        return self._store.max_receipt_id() + 1

    def create_repair(self, repair: Repair) -> Repair:
        """Create a ticket.

        An unsynced ticket with the same receipt number is returned as is.
        When the server accepts the ticket it is stored synced under the
        server id; otherwise it is stored unsynced.

        Returns:
            The stored ticket.
        """
        with self._guard():
            pending = self._store.get_unsynced_repair_by_receipt(repair.receipt_id)
            if pending is not None:
                logger.warning(
                    "Receipt %d already pending locally, not creating twice",
                    repair.receipt_id,
                )
                return pending

            stored = replace(repair, id=None, synced=False, last_modified=time.time())
            with self._client() as client:
                if client is not None:
                    try:
                        stored.remote_id = client.create_repair(stored.to_remote())
                        stored.synced = True
                    except APIError as e:
                        logger.warning(
                            "Create on server failed for receipt %d, keeping local: %s",
                            repair.receipt_id,
                            e,
                        )

            if stored.remote_id is not None:
                existing = self._store.get_repair_by_remote_id(stored.remote_id)
                if existing is not None:
                    stored.id = existing.id
                    self._store.update_repair(stored)
                    return stored
            return self._store.insert_repair(stored)

    def update_repair(self, repair: Repair) -> Repair:
        """Save changes to an existing ticket.

        Raises:
            ValueError: If the ticket has no local id.
        """
        if repair.id is None:
            raise ValueError("Repair has no local id")

        updated = repair.touched()
        if updated.remote_id is not None:
            with self._client() as client:
                if client is not None:
                    try:
                        client.update_repair(updated.remote_id, updated.to_remote())
                        updated.synced = True
                    except APIError as e:
                        logger.warning(
                            "Update on server failed for repair %d, keeping local: %s",
                            updated.remote_id,
                            e,
                        )
        self._store.update_repair(updated)
        return updated

    def delete_repair(self, repair: Repair) -> None:
        """Delete a ticket locally, then on the server if possible."""
        if repair.id is not None:
            self._store.delete_repair(repair.id)
        logger.debug("Deleted repair receipt %d locally", repair.receipt_id)
        if repair.remote_id is None:
            return

        with self._client() as client:
            if client is None:
                return
            try:
                client.delete_repair(repair.remote_id)
            except APIError as e:
                logger.warning(
                    "Delete on server failed for repair %d: %s", repair.remote_id, e
                )
