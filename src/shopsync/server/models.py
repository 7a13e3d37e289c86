"""SQLAlchemy models for the shopsync server.

This module defines the database schema using SQLAlchemy ORM.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class Repair(Base):
    """A repair ticket. ``receipt_id`` is the business key clients upsert by."""

    __tablename__ = "repairs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    receipt_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    device_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    fault_desc: Mapped[str] = mapped_column(Text, default="", nullable=False)
    work_done: Mapped[str] = mapped_column(Text, default="", nullable=False)
    cost_labor: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Compact code ("1".."7"), or an unknown value kept verbatim
    status: Mapped[str] = mapped_column(String(64), default="1", nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    client_phone: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    profit: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    date_start: Mapped[str | None] = mapped_column(String(32), nullable=True)
    date_end: Mapped[str | None] = mapped_column(String(32), nullable=True)
    note: Mapped[str] = mapped_column(Text, default="", nullable=False)
    should_call: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    executor: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    payment_type: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (Index("idx_repairs_status", "status"),)


class WarehouseItem(Base):
    """A part held in the warehouse."""

    __tablename__ = "warehouse_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_usd: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    exchange_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    cost_uah: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    price_uah: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    profit: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date_arrival: Mapped[str | None] = mapped_column(String(32), nullable=True)
    date_sold: Mapped[str | None] = mapped_column(String(32), nullable=True)
    receipt_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invoice: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (Index("idx_warehouse_barcode", "barcode"),)


class Transaction(Base):
    """A cash register transaction."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    cash: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    card: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    date_created: Mapped[str | None] = mapped_column(String(32), nullable=True)
    date_executed: Mapped[str | None] = mapped_column(String(32), nullable=True)
    executor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_type: Mapped[str | None] = mapped_column(String(64), nullable=True)


class RepairLock(Base):
    """Edit lock on a repair, one row per locked repair."""

    __tablename__ = "repair_locks"

    repair_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    device: Mapped[str] = mapped_column(String(255), nullable=False)
    locked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
