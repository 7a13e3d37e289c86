"""Local persistent store for the sync client.

This module provides:
- LocalStore: SQLite-backed tables for repairs, warehouse items and
  transactions, plus a key-value preferences table

Architecture:
    Every entity row carries ``synced`` and ``last_modified``. Rows with
    synced = 0 hold local changes the server has not confirmed yet; bulk
    upserts coming from the server skip them.

    Observers registered with subscribe() are told which table changed
    after each committed write, which is how UI layers keep live result
    sets up to date.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, TypeVar

from shopsync.client.models import Repair, Transaction, WarehouseItem

logger = logging.getLogger(__name__)

T = TypeVar("T", Repair, WarehouseItem, Transaction)

REPAIRS = "repairs"
WAREHOUSE_ITEMS = "warehouse_items"
TRANSACTIONS = "transactions"

SERVER_URL_KEY = "server_url"
DEVICE_NAME_KEY = "device_name"

_BOOL_COLUMNS = {"is_paid", "should_call", "in_stock", "synced"}


def _columns(record_type: type[Any]) -> list[str]:
    return [f.name for f in fields(record_type)]


def _from_row(record_type: type[T], row: sqlite3.Row) -> T:
    values = {}
    for name in _columns(record_type):
        value = row[name]
        values[name] = bool(value) if name in _BOOL_COLUMNS else value
    return record_type(**values)


class LocalStore:
    """SQLite-based local store for repairs, warehouse items and transactions."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the local database.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = db_path
        if str(db_path) != ":memory:":
            self._db_path = Path(db_path)
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._pending: set[str] = set()
        self._observers: list[Callable[[str], None]] = []

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS repairs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                remote_id INTEGER UNIQUE,
                receipt_id INTEGER NOT NULL DEFAULT 0,
                device_name TEXT NOT NULL DEFAULT '',
                fault_desc TEXT NOT NULL DEFAULT '',
                work_done TEXT NOT NULL DEFAULT '',
                cost_labor REAL NOT NULL DEFAULT 0,
                total_cost REAL NOT NULL DEFAULT 0,
                is_paid INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL,
                client_name TEXT NOT NULL DEFAULT '',
                client_phone TEXT NOT NULL DEFAULT '',
                profit REAL NOT NULL DEFAULT 0,
                date_start TEXT,
                date_end TEXT,
                note TEXT NOT NULL DEFAULT '',
                should_call INTEGER NOT NULL DEFAULT 0,
                executor TEXT NOT NULL DEFAULT '',
                payment_type TEXT NOT NULL DEFAULT '',
                update_timestamp TEXT,
                synced INTEGER NOT NULL DEFAULT 0,
                last_modified REAL NOT NULL DEFAULT 0
            );
            CREATE INDEX IF NOT EXISTS idx_repairs_receipt ON repairs (receipt_id);

            CREATE TABLE IF NOT EXISTS warehouse_items (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL DEFAULT '',
                price_usd REAL NOT NULL DEFAULT 0,
                exchange_rate REAL NOT NULL DEFAULT 0,
                cost_uah REAL NOT NULL DEFAULT 0,
                price_uah REAL NOT NULL DEFAULT 0,
                profit REAL NOT NULL DEFAULT 0,
                in_stock INTEGER NOT NULL DEFAULT 1,
                supplier TEXT,
                date_arrival TEXT,
                date_sold TEXT,
                receipt_id INTEGER,
                invoice TEXT,
                product_code TEXT,
                barcode TEXT,
                synced INTEGER NOT NULL DEFAULT 1,
                last_modified REAL NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY,
                category TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                amount REAL NOT NULL DEFAULT 0,
                cash REAL NOT NULL DEFAULT 0,
                card REAL NOT NULL DEFAULT 0,
                date_created TEXT,
                date_executed TEXT,
                executor_name TEXT,
                payment_type TEXT,
                synced INTEGER NOT NULL DEFAULT 1,
                last_modified REAL NOT NULL DEFAULT 0
            );

            -- Key-value preferences (server URL, device name)
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Transactions and observers ===

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group several writes into one atomic transaction.

        Observers are notified once, after the outermost commit.
        """
        with self._lock:
            outermost = self._tx_depth == 0
            if outermost:
                self._conn.execute("BEGIN")
            self._tx_depth += 1
            try:
                yield
            except BaseException:
                self._tx_depth -= 1
                if outermost:
                    self._conn.execute("ROLLBACK")
                    self._pending.clear()
                raise
            self._tx_depth -= 1
            if not outermost:
                return
            self._conn.execute("COMMIT")
            changed = sorted(self._pending)
            self._pending.clear()
        for table in changed:
            self._notify(table)

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register an observer called with the name of each changed table.

        Returns:
            Function that removes the observer.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _changed(self, table: str) -> None:
        if self._tx_depth:
            self._pending.add(table)
        else:
            self._notify(table)

    def _notify(self, table: str) -> None:
        for callback in list(self._observers):
            try:
                callback(table)
            except Exception:
                logger.exception("Store observer failed for %s", table)

    def _write(self, table: str, sql: str, params: Any = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            self._changed(table)
        return cursor

    def _query(self, sql: str, params: Any = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    # === Repairs ===

    def insert_repair(self, repair: Repair) -> Repair:
        """Insert a repair and return it with its local id assigned."""
        values = asdict(repair)
        values.pop("id")
        names = list(values)
        cursor = self._write(
            REPAIRS,
            f"INSERT INTO repairs ({', '.join(names)}) "
            f"VALUES ({', '.join('?' for _ in names)})",
            [values[n] for n in names],
        )
        repair.id = cursor.lastrowid
        return repair

    def update_repair(self, repair: Repair) -> None:
        """Update all columns of an existing repair (matched by local id)."""
        if repair.id is None:
            raise ValueError("Cannot update a repair without a local id")
        values = asdict(repair)
        local_id = values.pop("id")
        assignments = ", ".join(f"{n} = ?" for n in values)
        self._write(
            REPAIRS,
            f"UPDATE repairs SET {assignments} WHERE id = ?",
            [*values.values(), local_id],
        )

    def save_repair(self, repair: Repair) -> Repair:
        """Insert or update a repair depending on whether it has a local id."""
        if repair.id is None:
            return self.insert_repair(repair)
        self.update_repair(repair)
        return repair

    def delete_repair(self, local_id: int) -> None:
        """Delete a repair by local id."""
        self._write(REPAIRS, "DELETE FROM repairs WHERE id = ?", (local_id,))

    def delete_all_repairs(self) -> None:
        """Delete every repair."""
        self._write(REPAIRS, "DELETE FROM repairs")

    def get_repair(self, local_id: int) -> Repair | None:
        """Get a repair by local id."""
        rows = self._query("SELECT * FROM repairs WHERE id = ?", (local_id,))
        return _from_row(Repair, rows[0]) if rows else None

    def get_repair_by_remote_id(self, remote_id: int) -> Repair | None:
        """Get a repair by server id."""
        rows = self._query("SELECT * FROM repairs WHERE remote_id = ?", (remote_id,))
        return _from_row(Repair, rows[0]) if rows else None

    def get_unsynced_repair_by_receipt(self, receipt_id: int) -> Repair | None:
        """Get the pending local repair with this receipt number, if any."""
        rows = self._query(
            "SELECT * FROM repairs WHERE receipt_id = ? AND synced = 0 LIMIT 1",
            (receipt_id,),
        )
        return _from_row(Repair, rows[0]) if rows else None

    def list_repairs(self, status: str | None = None) -> list[Repair]:
        """List repairs, newest receipt first, optionally filtered by status label."""
        if status is None:
            rows = self._query("SELECT * FROM repairs ORDER BY receipt_id DESC")
        else:
            rows = self._query(
                "SELECT * FROM repairs WHERE status = ? ORDER BY receipt_id DESC",
                (status,),
            )
        return [_from_row(Repair, row) for row in rows]

    def list_unsynced_repairs(self) -> list[Repair]:
        """List repairs holding local changes not yet confirmed by the server."""
        rows = self._query("SELECT * FROM repairs WHERE synced = 0 ORDER BY id")
        return [_from_row(Repair, row) for row in rows]

    def max_receipt_id(self) -> int:
        """Highest receipt number stored locally (0 when empty)."""
        rows = self._query("SELECT MAX(receipt_id) AS max_id FROM repairs")
        return int(rows[0]["max_id"] or 0)

    def mark_repair_synced(
        self,
        local_id: int,
        remote_id: int,
        last_modified: float | None = None,
    ) -> None:
        """Mark a pushed repair as confirmed and adopt the server identity.

        A synced copy of the same server record that a pull may have stored
        under another local id is dropped first. When last_modified is given
        and the row was edited again since it was read, the server id is
        adopted but the row stays unsynced. If an unsynced row already holds
        the server id, nothing changes and the push is repeated next run.
        """
        with self.transaction():
            holders = self._query(
                "SELECT id FROM repairs WHERE remote_id = ? AND id != ? AND synced = 0",
                (remote_id, local_id),
            )
            if holders:
                logger.warning(
                    "Server id %d is held by pending local row %d, leaving row %d unsynced",
                    remote_id,
                    holders[0]["id"],
                    local_id,
                )
                return
            self._write(
                REPAIRS,
                "DELETE FROM repairs WHERE remote_id = ? AND id != ? AND synced = 1",
                (remote_id, local_id),
            )
            self._write(
                REPAIRS,
                "UPDATE repairs SET remote_id = ?, "
                "synced = CASE WHEN ? IS NULL OR last_modified = ? THEN 1 ELSE synced END "
                "WHERE id = ?",
                (remote_id, last_modified, last_modified, local_id),
            )

    def prune_synced_repairs(self, keep_remote_ids: set[int]) -> int:
        """Delete synced repairs whose server id is not in keep_remote_ids.

        Returns:
            Number of rows deleted.
        """
        rows = self._query(
            "SELECT id, remote_id FROM repairs WHERE synced = 1 AND remote_id IS NOT NULL"
        )
        stale = [row["id"] for row in rows if row["remote_id"] not in keep_remote_ids]
        with self.transaction():
            for local_id in stale:
                self.delete_repair(local_id)
        return len(stale)

    # === Warehouse items and transactions ===

    def _upsert_synced(self, table: str, records: list[Any]) -> int:
        """Insert or replace server records, leaving unsynced rows untouched."""
        if not records:
            return 0
        names = _columns(type(records[0]))
        updates = ", ".join(f"{n} = excluded.{n}" for n in names if n != "id")
        sql = (
            f"INSERT INTO {table} ({', '.join(names)}) "
            f"VALUES ({', '.join('?' for _ in names)}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates} WHERE {table}.synced = 1"
        )
        written = 0
        with self.transaction():
            for record in records:
                values = asdict(record)
                cursor = self._write(table, sql, [values[n] for n in names])
                written += cursor.rowcount
        return written

    def upsert_warehouse_items(self, items: list[WarehouseItem]) -> int:
        """Store warehouse items from the server.

        Returns:
            Number of rows inserted or updated.
        """
        return self._upsert_synced(WAREHOUSE_ITEMS, items)

    def get_warehouse_item(self, item_id: int) -> WarehouseItem | None:
        """Get a warehouse item by id."""
        rows = self._query("SELECT * FROM warehouse_items WHERE id = ?", (item_id,))
        return _from_row(WarehouseItem, rows[0]) if rows else None

    def list_warehouse_items(self, in_stock_only: bool = True) -> list[WarehouseItem]:
        """List warehouse items ordered by name."""
        sql = "SELECT * FROM warehouse_items"
        if in_stock_only:
            sql += " WHERE in_stock = 1"
        rows = self._query(sql + " ORDER BY name")
        return [_from_row(WarehouseItem, row) for row in rows]

    def list_unsynced_warehouse_items(self) -> list[WarehouseItem]:
        """List warehouse items with local barcode edits."""
        rows = self._query("SELECT * FROM warehouse_items WHERE synced = 0 ORDER BY id")
        return [_from_row(WarehouseItem, row) for row in rows]

    def set_barcode(self, item_id: int, barcode: str | None, now: float) -> None:
        """Record a local barcode edit, to be pushed on the next sync."""
        self._write(
            WAREHOUSE_ITEMS,
            "UPDATE warehouse_items SET barcode = ?, synced = 0, last_modified = ? "
            "WHERE id = ?",
            (barcode, now, item_id),
        )

    def mark_warehouse_item_synced(self, item_id: int) -> None:
        """Mark a warehouse item's local edit as confirmed."""
        self._write(
            WAREHOUSE_ITEMS,
            "UPDATE warehouse_items SET synced = 1 WHERE id = ?",
            (item_id,),
        )

    def delete_all_warehouse_items(self) -> None:
        """Delete every warehouse item."""
        self._write(WAREHOUSE_ITEMS, "DELETE FROM warehouse_items")

    def upsert_transactions(self, transactions: list[Transaction]) -> int:
        """Store transactions from the server.

        Returns:
            Number of rows inserted or updated.
        """
        return self._upsert_synced(TRANSACTIONS, transactions)

    def get_transaction(self, tx_id: int) -> Transaction | None:
        """Get a transaction by id."""
        rows = self._query("SELECT * FROM transactions WHERE id = ?", (tx_id,))
        return _from_row(Transaction, rows[0]) if rows else None

    def list_transactions(self) -> list[Transaction]:
        """List transactions, newest first."""
        rows = self._query("SELECT * FROM transactions ORDER BY id DESC")
        return [_from_row(Transaction, row) for row in rows]

    def delete_all_transactions(self) -> None:
        """Delete every transaction."""
        self._write(TRANSACTIONS, "DELETE FROM transactions")

    # === Preferences ===

    def get_preference(self, key: str) -> str | None:
        """Get a preference value."""
        rows = self._query("SELECT value FROM preferences WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_preference(self, key: str, value: str | None) -> None:
        """Set (or with None, remove) a preference value."""
        if value is None:
            self._write("preferences", "DELETE FROM preferences WHERE key = ?", (key,))
        else:
            self._write(
                "preferences",
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_server_url(self) -> str | None:
        """Get the configured server base URL (None when unset or blank)."""
        value = self.get_preference(SERVER_URL_KEY)
        return value if value and value.strip() else None

    def set_server_url(self, url: str | None) -> None:
        """Set the server base URL."""
        self.set_preference(SERVER_URL_KEY, url)

    def get_device_name(self, default: str = "shopsync") -> str:
        """Get the device name used when acquiring locks."""
        return self.get_preference(DEVICE_NAME_KEY) or default

    def set_device_name(self, name: str) -> None:
        """Set the device name used when acquiring locks."""
        self.set_preference(DEVICE_NAME_KEY, name)
