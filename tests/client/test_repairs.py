"""Tests for local-first repair ticket operations."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from shopsync.client.api import NetworkError, ServerError
from shopsync.client.models import Repair
from shopsync.client.repairs import RepairRepository
from shopsync.client.store import LocalStore

SERVER_URL = "http://shop.local"


@pytest.fixture
def store(tmp_path: Path) -> Iterator[LocalStore]:
    local = LocalStore(tmp_path / "shopsync.db")
    local.set_server_url(SERVER_URL)
    yield local
    local.close()


@pytest.fixture
def mock_client() -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    client.create_repair.return_value = 900
    client.next_receipt_id.return_value = 78
    return client


@pytest.fixture
def repository(store: LocalStore, mock_client: MagicMock) -> RepairRepository:
    return RepairRepository(store, client_factory=lambda url: mock_client)


class TestNextReceiptId:
    def test_from_server(self, repository: RepairRepository) -> None:
        assert repository.next_receipt_id() == 78

    def test_falls_back_to_local(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        store.insert_repair(Repair(receipt_id=41))
        mock_client.next_receipt_id.side_effect = NetworkError("refused")

        assert repository.next_receipt_id() == 42

    def test_without_server(self, store: LocalStore, mock_client: MagicMock) -> None:
        store.set_server_url(None)
        repository = RepairRepository(store, client_factory=lambda url: mock_client)

        assert repository.next_receipt_id() == 1
        mock_client.next_receipt_id.assert_not_called()


class TestCreateRepair:
    """Tests for RepairRepository.create_repair."""

    def test_created_on_server(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        created = repository.create_repair(Repair(receipt_id=77, device_name="Pixel 7"))

        assert created.id is not None
        assert created.remote_id == 900
        assert created.synced is True
        payload: dict[str, Any] = mock_client.create_repair.call_args.args[0]
        assert payload["receiptId"] == 77
        assert payload["status"] == 1

    def test_kept_local_on_failure(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        mock_client.create_repair.side_effect = ServerError("boom", 500)

        created = repository.create_repair(Repair(receipt_id=77))

        assert created.remote_id is None
        assert created.synced is False
        assert [r.receipt_id for r in store.list_unsynced_repairs()] == [77]

    def test_pending_receipt_not_duplicated(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        mock_client.create_repair.side_effect = NetworkError("refused")
        first = repository.create_repair(Repair(receipt_id=77))

        second = repository.create_repair(Repair(receipt_id=77, note="again"))

        assert second.id == first.id
        assert len(store.list_repairs()) == 1
        assert mock_client.create_repair.call_count == 1

    def test_reuses_row_already_pulled(
        self, store: LocalStore, repository: RepairRepository
    ) -> None:
        """A server record pulled meanwhile is updated instead of duplicated."""
        pulled = store.insert_repair(Repair(receipt_id=77, remote_id=900, synced=True))

        created = repository.create_repair(Repair(receipt_id=77, note="new"))

        assert created.id == pulled.id
        rows = store.list_repairs()
        assert len(rows) == 1
        assert rows[0].note == "new"

    def test_guard_held_during_create(
        self, store: LocalStore, mock_client: MagicMock
    ) -> None:
        orchestrator = MagicMock()
        orchestrator.state.offline_mode = False
        repository = RepairRepository(
            store, orchestrator=orchestrator, client_factory=lambda url: mock_client
        )

        repository.create_repair(Repair(receipt_id=5))

        orchestrator.creating_repair.assert_called_once()

    def test_offline_mode_skips_server(
        self, store: LocalStore, mock_client: MagicMock
    ) -> None:
        orchestrator = MagicMock()
        orchestrator.state.offline_mode = True
        repository = RepairRepository(
            store, orchestrator=orchestrator, client_factory=lambda url: mock_client
        )

        created = repository.create_repair(Repair(receipt_id=5))

        assert created.synced is False
        mock_client.create_repair.assert_not_called()


class TestUpdateRepair:
    """Tests for RepairRepository.update_repair."""

    def test_requires_local_id(self, repository: RepairRepository) -> None:
        with pytest.raises(ValueError):
            repository.update_repair(Repair(receipt_id=1))

    def test_pushes_known_repair(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        stored = store.insert_repair(Repair(receipt_id=1, remote_id=5, synced=True))
        stored.note = "screen replaced"

        updated = repository.update_repair(stored)

        assert updated.synced is True
        mock_client.update_repair.assert_called_once()
        assert mock_client.update_repair.call_args.args[0] == 5
        assert store.get_repair(stored.id).note == "screen replaced"  # type: ignore[arg-type, union-attr]

    def test_failure_leaves_row_unsynced(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        stored = store.insert_repair(Repair(receipt_id=1, remote_id=5, synced=True))
        mock_client.update_repair.side_effect = NetworkError("refused")

        updated = repository.update_repair(stored)

        assert updated.synced is False
        assert [r.id for r in store.list_unsynced_repairs()] == [stored.id]

    def test_unknown_to_server_stays_local(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        stored = store.insert_repair(Repair(receipt_id=1))

        updated = repository.update_repair(stored)

        assert updated.synced is False
        mock_client.update_repair.assert_not_called()


class TestDeleteRepair:
    """Tests for RepairRepository.delete_repair."""

    def test_deletes_locally_and_remotely(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        stored = store.insert_repair(Repair(receipt_id=1, remote_id=5, synced=True))

        repository.delete_repair(stored)

        assert store.list_repairs() == []
        mock_client.delete_repair.assert_called_once_with(5)

    def test_remote_failure_is_ignored(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        stored = store.insert_repair(Repair(receipt_id=1, remote_id=5, synced=True))
        mock_client.delete_repair.side_effect = NetworkError("refused")

        repository.delete_repair(stored)

        assert store.list_repairs() == []

    def test_local_only_repair(
        self, store: LocalStore, repository: RepairRepository, mock_client: MagicMock
    ) -> None:
        stored = store.insert_repair(Repair(receipt_id=1))

        repository.delete_repair(stored)

        assert store.list_repairs() == []
        mock_client.delete_repair.assert_not_called()
