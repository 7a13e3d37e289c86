"""Server database using SQLAlchemy with SQLite.

This module provides:
- Repair storage with paging, filtering and upsert by receipt number
- Warehouse items and barcode assignment
- Cash register transactions
- Repair edit locks
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, cast, create_engine, func, or_, select
from sqlalchemy.orm import Session

from shopsync.server.models import Base, Repair, RepairLock, Transaction, WarehouseItem

if TYPE_CHECKING:
    from sqlalchemy import Engine


class LockHeldError(Exception):
    """Raised when a repair is locked by another device."""

    def __init__(self, lock: RepairLock) -> None:
        super().__init__(f"Repair {lock.repair_id} is locked by {lock.device}")
        self.lock = lock


class Database:
    """SQLAlchemy database for the shop's records.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        Base.metadata.create_all(self._engine)

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Repair operations ===

    def list_repairs(
        self,
        page: int = 1,
        limit: int = 50,
        search: str | None = None,
        status: str | None = None,
        executor: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> tuple[list[Repair], int]:
        """List one page of repairs, newest receipt first.

        Args:
            page: 1-based page number.
            limit: Page size.
            search: Matches client name, phone, device or receipt number.
            status: Stored status code.
            executor: Executor name.
            date_from: Minimum start date (inclusive, ISO).
            date_to: Maximum start date (inclusive, ISO).

        Returns:
            Tuple of (repairs on the page, total matching repairs).
        """
        conditions: list[Any] = []
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Repair.client_name.ilike(pattern),
                    Repair.client_phone.ilike(pattern),
                    Repair.device_name.ilike(pattern),
                    cast(Repair.receipt_id, String).like(pattern),
                )
            )
        if status is not None:
            conditions.append(Repair.status == status)
        if executor:
            conditions.append(Repair.executor == executor)
        if date_from:
            conditions.append(Repair.date_start >= date_from)
        if date_to:
            conditions.append(Repair.date_start <= date_to)

        with self._session() as session:
            total = session.execute(
                select(func.count()).select_from(Repair).where(*conditions)
            ).scalar_one()
            stmt = (
                select(Repair)
                .where(*conditions)
                .order_by(Repair.receipt_id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            repairs = list(session.execute(stmt).scalars().all())
            for repair in repairs:
                session.expunge(repair)
            return repairs, total

    def get_repair(self, repair_id: int) -> Repair | None:
        """Get a repair by ID."""
        with self._session() as session:
            repair = session.get(Repair, repair_id)
            if repair:
                session.expunge(repair)
            return repair

    def upsert_repair(self, values: dict[str, Any]) -> Repair:
        """Create a repair, or update the one with the same receipt number.

        Args:
            values: Column values; must include ``receipt_id``.

        Returns:
            The stored repair.
        """
        with self._session() as session:
            repair = session.execute(
                select(Repair).where(Repair.receipt_id == values["receipt_id"])
            ).scalar_one_or_none()
            if repair is None:
                repair = Repair(**values)
                session.add(repair)
            else:
                for key, value in values.items():
                    setattr(repair, key, value)
            session.commit()
            session.refresh(repair)
            session.expunge(repair)
            return repair

    def update_repair(self, repair_id: int, values: dict[str, Any]) -> Repair | None:
        """Update a repair.

        Returns:
            The updated repair, or None if it does not exist.
        """
        with self._session() as session:
            repair = session.get(Repair, repair_id)
            if repair is None:
                return None
            for key, value in values.items():
                setattr(repair, key, value)
            session.commit()
            session.refresh(repair)
            session.expunge(repair)
            return repair

    def delete_repair(self, repair_id: int) -> bool:
        """Delete a repair and its lock.

        Returns:
            True if the repair existed.
        """
        with self._session() as session:
            repair = session.get(Repair, repair_id)
            if repair is None:
                return False
            lock = session.get(RepairLock, repair_id)
            if lock is not None:
                session.delete(lock)
            session.delete(repair)
            session.commit()
            return True

    def next_receipt_id(self) -> int:
        """Highest receipt number plus one."""
        with self._session() as session:
            highest = session.execute(select(func.max(Repair.receipt_id))).scalar()
            return (highest or 0) + 1

    # === Warehouse operations ===

    def add_warehouse_item(self, **values: Any) -> WarehouseItem:
        """Add a warehouse item."""
        with self._session() as session:
            item = WarehouseItem(**values)
            session.add(item)
            session.commit()
            session.refresh(item)
            session.expunge(item)
            return item

    def list_warehouse_items(
        self,
        stock_filter: str = "inStock",
        supplier: str | None = None,
        search: str | None = None,
    ) -> list[WarehouseItem]:
        """List warehouse items.

        Args:
            stock_filter: "inStock", "sold", or anything else for all items.
            supplier: Supplier name.
            search: Matches name, product code or barcode.
        """
        stmt = select(WarehouseItem)
        if stock_filter == "inStock":
            stmt = stmt.where(WarehouseItem.in_stock.is_(True))
        elif stock_filter == "sold":
            stmt = stmt.where(WarehouseItem.in_stock.is_(False))
        if supplier:
            stmt = stmt.where(WarehouseItem.supplier == supplier)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    WarehouseItem.name.ilike(pattern),
                    WarehouseItem.product_code.ilike(pattern),
                    WarehouseItem.barcode.ilike(pattern),
                )
            )
        with self._session() as session:
            items = list(session.execute(stmt.order_by(WarehouseItem.id)).scalars().all())
            for item in items:
                session.expunge(item)
            return items

    def set_barcode(self, item_id: int, barcode: str | None) -> bool:
        """Assign or clear the barcode of a warehouse item.

        Returns:
            True if the item exists.
        """
        with self._session() as session:
            item = session.get(WarehouseItem, item_id)
            if item is None:
                return False
            item.barcode = barcode
            session.commit()
            return True

    # === Transaction operations ===

    def add_transaction(self, **values: Any) -> Transaction:
        """Add a cash register transaction."""
        with self._session() as session:
            transaction = Transaction(**values)
            session.add(transaction)
            session.commit()
            session.refresh(transaction)
            session.expunge(transaction)
            return transaction

    def list_transactions(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
        payment_type: str | None = None,
    ) -> list[Transaction]:
        """List transactions, newest first."""
        stmt = select(Transaction)
        if start_date:
            stmt = stmt.where(Transaction.date_created >= start_date)
        if end_date:
            stmt = stmt.where(Transaction.date_created <= end_date)
        if category:
            stmt = stmt.where(Transaction.category == category)
        if payment_type:
            stmt = stmt.where(Transaction.payment_type == payment_type)
        with self._session() as session:
            rows = list(session.execute(stmt.order_by(Transaction.id.desc())).scalars().all())
            for row in rows:
                session.expunge(row)
            return rows

    # === Lock operations ===

    def get_lock(self, repair_id: int) -> RepairLock | None:
        """Get the lock on a repair, if any."""
        with self._session() as session:
            lock = session.get(RepairLock, repair_id)
            if lock:
                session.expunge(lock)
            return lock

    def acquire_lock(self, repair_id: int, device: str) -> RepairLock:
        """Lock a repair for a device, refreshing the time if it already holds it.

        Raises:
            LockHeldError: If another device holds the lock.
        """
        with self._session() as session:
            lock = session.get(RepairLock, repair_id)
            if lock is not None and lock.device != device:
                session.expunge(lock)
                raise LockHeldError(lock)
            if lock is None:
                lock = RepairLock(repair_id=repair_id, device=device)
                session.add(lock)
            else:
                lock.locked_at = datetime.now(UTC)
            session.commit()
            session.refresh(lock)
            session.expunge(lock)
            return lock

    def release_lock(self, repair_id: int) -> bool:
        """Remove the lock on a repair.

        Returns:
            True if a lock was removed.
        """
        with self._session() as session:
            lock = session.get(RepairLock, repair_id)
            if lock is None:
                return False
            session.delete(lock)
            session.commit()
            return True


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for total rows (at least 1)."""
    if limit <= 0:
        return 1
    return max(1, math.ceil(total / limit))
