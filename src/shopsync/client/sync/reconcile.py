"""Per-entity reconcilers between the local store and the server.

This module provides:
- Reconciler: base class with the shared sync(server_url) contract
- RepairReconciler: paginated pull, remote deletion, push of unsynced rows
- WarehouseReconciler: pull, push of local barcode edits
- TransactionReconciler: pull

Pull phase:
    Server records are written over local rows that are synced. Rows with
    synced = 0 are never overwritten; unsynced repairs are matched to
    server records by receipt number because their local id means nothing
    to the server.

Push phase (repairs):
    Each unsynced repair is sent with PUT when its server id is known and
    with POST otherwise (the server upserts POSTs by receipt number). A
    NetworkError aborts the push; a ServerError for a single row is logged
    and the row waits for the next run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from shopsync.client.api import HTTPClient, NetworkError, NotFoundError, ServerError
from shopsync.client.models import MalformedPayload, Repair, Transaction, WarehouseItem
from shopsync.core.config import ServerConfig

if TYPE_CHECKING:
    from shopsync.client.store import LocalStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], HTTPClient]


def default_client_factory(server_url: str) -> HTTPClient:
    """Build an HTTP client with default timeouts for server_url."""
    return HTTPClient(ServerConfig(server_url=server_url))


class Reconciler:
    """Base reconciler.

    Subclasses implement _sync() against an open HTTP client.
    """

    name = "reconciler"

    def __init__(
        self,
        store: LocalStore,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._store = store
        self._client_factory = client_factory or default_client_factory

    def sync(self, server_url: str) -> None:
        """Reconcile this entity with the server at server_url.

        Raises:
            NetworkError: If the server cannot be reached.
            ServerError: If the server answers with a failure status.
        """
        with self._client_factory(server_url) as client:
            self._sync(client)

    def _sync(self, client: HTTPClient) -> None:
        raise NotImplementedError


class RepairReconciler(Reconciler):
    """Two-way reconciliation of repair tickets."""

    name = "repairs"

    def __init__(
        self,
        store: LocalStore,
        client_factory: ClientFactory | None = None,
        page_size: int = 200,
    ) -> None:
        super().__init__(store, client_factory)
        self._page_size = page_size

    def _sync(self, client: HTTPClient) -> None:
        self.pull(client)
        self.push(client)

    def _fetch_all(self, client: HTTPClient) -> tuple[list[object], bool]:
        """Fetch every page of repairs.

        Returns:
            Tuple of (raw records, whether the collection is complete).
        """
        records: list[object] = []
        page = 1
        while True:
            result = client.list_repairs(page=page, limit=self._page_size)
            records.extend(result.records)
            if not result.has_more:
                return records, True
            if not result.records:
                logger.warning("Empty repairs page %d before the last page", page)
                return records, False
            page += 1

    def pull(self, client: HTTPClient) -> int:
        """Pull all repairs from the server.

        Returns:
            Number of rows written locally.
        """
        records, complete = self._fetch_all(client)
        written = 0
        seen: set[int] = set()

        with self._store.transaction():
            for raw in records:
                try:
                    repair = Repair.from_remote(raw)  # type: ignore[arg-type]
                except MalformedPayload as e:
                    logger.warning("Skipping repair without identity: %s", e)
                    continue
                if repair.remote_id is None:
                    continue
                seen.add(repair.remote_id)

                pending = self._store.get_unsynced_repair_by_receipt(repair.receipt_id)
                if pending is not None:
                    logger.debug(
                        "Receipt %d has local changes, keeping local row %s",
                        repair.receipt_id,
                        pending.id,
                    )
                    continue

                existing = self._store.get_repair_by_remote_id(repair.remote_id)
                if existing is None:
                    self._store.insert_repair(repair)
                elif existing.synced:
                    repair.id = existing.id
                    self._store.update_repair(repair)
                else:
                    continue
                written += 1

            deleted = self._store.prune_synced_repairs(seen) if complete else 0

        logger.info(
            "Pulled %d repairs (%d written, %d removed)", len(records), written, deleted
        )
        return written

    def push(self, client: HTTPClient) -> int:
        """Push unsynced repairs to the server.

        Returns:
            Number of repairs confirmed by the server.

        Raises:
            NetworkError: If the server becomes unreachable mid-push.
        """
        pushed = 0
        for repair in self._store.list_unsynced_repairs():
            if repair.id is None:
                continue
            try:
                remote_id = self._send(client, repair)
            except NetworkError:
                raise
            except ServerError as e:
                logger.warning(
                    "Server rejected repair receipt %d: %s", repair.receipt_id, e
                )
                continue
            self._store.mark_repair_synced(repair.id, remote_id, repair.last_modified)
            pushed += 1

        if pushed:
            logger.info("Pushed %d repairs", pushed)
        return pushed

    def _send(self, client: HTTPClient, repair: Repair) -> int:
        payload = repair.to_remote()
        if repair.remote_id is not None:
            try:
                client.update_repair(repair.remote_id, payload)
                return repair.remote_id
            except NotFoundError:
                logger.info(
                    "Repair %d no longer on server, recreating by receipt",
                    repair.remote_id,
                )
        return client.create_repair(payload)


class WarehouseReconciler(Reconciler):
    """Pull warehouse items, then push local barcode edits."""

    name = "warehouse"

    def _sync(self, client: HTTPClient) -> None:
        items = []
        for raw in client.list_warehouse_items(stock_filter="all"):
            try:
                items.append(WarehouseItem.from_remote(raw))
            except MalformedPayload as e:
                logger.warning("Skipping warehouse item without identity: %s", e)
        written = self._store.upsert_warehouse_items(items)
        logger.info("Pulled %d warehouse items (%d written)", len(items), written)

        for item in self._store.list_unsynced_warehouse_items():
            try:
                client.update_barcode(item.id, item.barcode)
            except ServerError as e:
                logger.warning("Barcode update for item %d failed: %s", item.id, e)
                continue
            self._store.mark_warehouse_item_synced(item.id)
            logger.debug("Pushed barcode for item %d", item.id)


class TransactionReconciler(Reconciler):
    """Pull cash register transactions."""

    name = "transactions"

    def _sync(self, client: HTTPClient) -> None:
        transactions = []
        for raw in client.list_transactions():
            try:
                transactions.append(Transaction.from_remote(raw))
            except MalformedPayload as e:
                logger.warning("Skipping transaction without identity: %s", e)
        written = self._store.upsert_transactions(transactions)
        logger.info("Pulled %d transactions (%d written)", len(transactions), written)
