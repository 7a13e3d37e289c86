"""Tests for the server REST API."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from shopsync.server.app import create_app
from shopsync.server.database import Database


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def client(db: Database) -> Iterator[TestClient]:
    """Create a test client."""
    with TestClient(create_app(db)) as test_client:
        yield test_client


def create(client: TestClient, receipt_id: int, **fields: object) -> int:
    response = client.post("/api/repairs", json={"receiptId": receipt_id, **fields})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    return int(body["id"])


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["timestamp"]


class TestRepairs:
    """Tests for /api/repairs."""

    def test_create_and_get(self, client: TestClient) -> None:
        repair_id = create(client, 10, deviceName="iPhone 12", status="Видано", totalCost=1500)

        response = client.get(f"/api/repairs/{repair_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["receiptId"] == 10
        assert body["deviceName"] == "iPhone 12"
        assert body["status"] == 6
        assert body["totalCost"] == 1500.0
        assert body["UpdateTimestamp"]

    def test_create_upserts_by_receipt(self, client: TestClient) -> None:
        first = create(client, 10, note="first")
        second = create(client, 10, note="second")

        assert first == second
        assert client.get(f"/api/repairs/{first}").json()["note"] == "second"

    def test_unknown_status_kept(self, client: TestClient) -> None:
        repair_id = create(client, 10, status="Гарантія")
        assert client.get(f"/api/repairs/{repair_id}").json()["status"] == "Гарантія"

    def test_missing_status_is_queued(self, client: TestClient) -> None:
        repair_id = create(client, 10)
        assert client.get(f"/api/repairs/{repair_id}").json()["status"] == 1

    def test_get_not_found(self, client: TestClient) -> None:
        response = client.get("/api/repairs/999")
        assert response.status_code == 404

    def test_update(self, client: TestClient) -> None:
        repair_id = create(client, 10)

        response = client.put(
            f"/api/repairs/{repair_id}", json={"receiptId": 10, "status": 4, "isPaid": True}
        )

        assert response.status_code == 200
        body = client.get(f"/api/repairs/{repair_id}").json()
        assert body["status"] == 4
        assert body["isPaid"] is True

    def test_update_not_found(self, client: TestClient) -> None:
        response = client.put("/api/repairs/999", json={"receiptId": 1})
        assert response.status_code == 404

    def test_delete(self, client: TestClient) -> None:
        repair_id = create(client, 10)

        assert client.delete(f"/api/repairs/{repair_id}").json() == {"success": True}
        assert client.get(f"/api/repairs/{repair_id}").status_code == 404
        assert client.delete(f"/api/repairs/{repair_id}").status_code == 404

    def test_list_pagination(self, client: TestClient) -> None:
        for receipt_id in range(1, 6):
            create(client, receipt_id)

        response = client.get("/api/repairs", params={"page": 2, "limit": 2})

        body = response.json()
        assert [r["receiptId"] for r in body["data"]] == [3, 2]
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}

    def test_list_filters(self, client: TestClient) -> None:
        create(client, 1, clientName="Olena", status=2, executor="Ivan", dateStart="2025-01-05")
        create(client, 2, clientName="Petro", status=6, executor="Ivan", dateStart="2025-02-05")
        create(client, 3, clientName="Olga", status=2, executor="Andrii", dateStart="2025-01-10")

        def receipts(**params: object) -> list[int]:
            data = client.get("/api/repairs", params=params).json()["data"]
            return [r["receiptId"] for r in data]

        assert receipts(search="Ol") == [3, 1]
        assert receipts(status="У роботі") == [3, 1]
        assert receipts(status=6) == [2]
        assert receipts(executor="Ivan") == [2, 1]
        assert receipts(dateFrom="2025-01-06", dateTo="2025-01-31") == [3]

    def test_next_receipt_id(self, client: TestClient) -> None:
        assert client.get("/api/next-receipt-id").json() == {"data": {"nextReceiptId": 1}}
        create(client, 41)
        assert client.get("/api/next-receipt-id").json()["data"]["nextReceiptId"] == 42


class TestWarehouse:
    """Tests for /api/warehouse."""

    def test_stock_filter(self, client: TestClient, db: Database) -> None:
        db.add_warehouse_item(name="Battery", in_stock=True)
        db.add_warehouse_item(name="Screen", in_stock=False)

        def names(stock_filter: str) -> list[str]:
            data = client.get("/api/warehouse", params={"stockFilter": stock_filter}).json()
            return [i["name"] for i in data["data"]]

        assert names("inStock") == ["Battery"]
        assert names("sold") == ["Screen"]
        assert names("all") == ["Battery", "Screen"]

    def test_barcode(self, client: TestClient, db: Database) -> None:
        item = db.add_warehouse_item(name="Battery")

        response = client.put(f"/api/warehouse/{item.id}/barcode", json={"barcode": "482000"})
        assert response.status_code == 200
        data = client.get("/api/warehouse").json()["data"]
        assert data[0]["barcode"] == "482000"

        client.delete(f"/api/warehouse/{item.id}/barcode")
        assert client.get("/api/warehouse").json()["data"][0]["barcode"] is None

    def test_barcode_unknown_item(self, client: TestClient) -> None:
        response = client.put("/api/warehouse/999/barcode", json={"barcode": "1"})
        assert response.status_code == 404


class TestTransactions:
    def test_list_with_filters(self, client: TestClient, db: Database) -> None:
        db.add_transaction(category="Repair", amount=500, date_created="2025-01-05", payment_type="Card")
        db.add_transaction(category="Parts", amount=-200, date_created="2025-02-05", payment_type="Cash")

        all_rows = client.get("/api/transactions").json()["data"]
        assert [r["category"] for r in all_rows] == ["Parts", "Repair"]

        filtered = client.get(
            "/api/transactions", params={"startDate": "2025-01-01", "endDate": "2025-01-31"}
        ).json()["data"]
        assert [r["amount"] for r in filtered] == [500.0]

        by_type = client.get("/api/transactions", params={"paymentType": "Cash"}).json()["data"]
        assert [r["paymentType"] for r in by_type] == ["Cash"]


class TestLocks:
    """Tests for /api/locks."""

    def test_unlocked(self, client: TestClient) -> None:
        assert client.get("/api/locks/42").json() == {"locked": False, "device": None, "time": None}

    def test_acquire_and_read(self, client: TestClient) -> None:
        response = client.post("/api/locks/42", json={"device": "A"})
        assert response.json() == {"success": True}

        body = client.get("/api/locks/42").json()
        assert body["locked"] is True
        assert body["device"] == "A"
        assert body["time"]

    def test_same_device_refreshes(self, client: TestClient) -> None:
        client.post("/api/locks/42", json={"device": "A"})
        response = client.post("/api/locks/42", json={"device": "A"})
        assert response.status_code == 200

    def test_other_device_conflict(self, client: TestClient) -> None:
        client.post("/api/locks/42", json={"device": "A"})

        response = client.post("/api/locks/42", json={"device": "B"})

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Already locked"
        assert body["device"] == "A"

    def test_release(self, client: TestClient) -> None:
        client.post("/api/locks/42", json={"device": "A"})

        assert client.delete("/api/locks/42").json() == {"success": True}
        assert client.delete("/api/locks/42").json() == {"success": True}
        assert client.post("/api/locks/42", json={"device": "B"}).status_code == 200
