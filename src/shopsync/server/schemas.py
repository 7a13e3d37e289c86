"""Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shopsync.core.types import parse_status
from shopsync.server.models import Repair, RepairLock, Transaction, WarehouseItem


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Repair schemas ===


class RepairPayload(CamelModel):
    """Request body for repair create/update."""

    receipt_id: int
    device_name: str = ""
    fault_desc: str = ""
    work_done: str = ""
    cost_labor: float = 0.0
    total_cost: float = 0.0
    is_paid: bool = False
    status: int | str | None = None
    client_name: str = ""
    client_phone: str = ""
    profit: float = 0.0
    date_start: str | None = None
    date_end: str | None = None
    note: str = ""
    should_call: bool = False
    executor: str = ""
    payment_type: str = ""

    def to_columns(self) -> dict[str, Any]:
        """Column values, with the status normalized to its stored code."""
        values = self.model_dump()
        values["status"] = str(parse_status(self.status).code)
        return values


class RepairResponse(CamelModel):
    """Repair data in responses."""

    id: int
    receipt_id: int
    device_name: str
    fault_desc: str
    work_done: str
    cost_labor: float
    total_cost: float
    is_paid: bool
    status: int | str
    client_name: str
    client_phone: str
    profit: float
    date_start: str | None
    date_end: str | None
    note: str
    should_call: bool
    executor: str
    payment_type: str
    update_timestamp: str = Field(alias="UpdateTimestamp")


class PaginationResponse(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class RepairListResponse(BaseModel):
    """Page of repairs."""

    data: list[RepairResponse]
    pagination: PaginationResponse


class RepairSavedResponse(BaseModel):
    """Response for repair create."""

    id: int
    success: bool = True


class NextReceiptData(CamelModel):
    next_receipt_id: int


class NextReceiptResponse(BaseModel):
    data: NextReceiptData


# === Warehouse schemas ===


class WarehouseItemResponse(CamelModel):
    """Warehouse item data in responses."""

    id: int
    name: str
    price_usd: float
    exchange_rate: float
    cost_uah: float
    price_uah: float
    profit: float
    in_stock: bool
    supplier: str | None
    date_arrival: str | None
    date_sold: str | None
    receipt_id: int | None
    invoice: str | None
    product_code: str | None
    barcode: str | None


class WarehouseListResponse(BaseModel):
    data: list[WarehouseItemResponse]


class BarcodeRequest(BaseModel):
    """Request body for barcode assignment."""

    barcode: str


# === Transaction schemas ===


class TransactionResponse(CamelModel):
    """Transaction data in responses."""

    id: int
    category: str
    description: str
    amount: float
    cash: float
    card: float
    date_created: str | None
    date_executed: str | None
    executor_name: str | None
    payment_type: str | None


class TransactionListResponse(BaseModel):
    data: list[TransactionResponse]


# === Lock schemas ===


class LockRequest(BaseModel):
    """Request body for lock acquisition."""

    device: str


class LockResponse(BaseModel):
    """Lock state of a repair."""

    locked: bool
    device: str | None = None
    time: str | None = None


# === Misc ===


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str


# === Converters ===


def status_to_wire(stored: str) -> int | str:
    """Stored status code to its JSON form (numeric codes as integers)."""
    return int(stored) if stored.isdigit() else stored


def repair_to_response(repair: Repair) -> RepairResponse:
    """Convert Repair to response model."""
    return RepairResponse(
        id=repair.id,
        receipt_id=repair.receipt_id,
        device_name=repair.device_name,
        fault_desc=repair.fault_desc,
        work_done=repair.work_done,
        cost_labor=repair.cost_labor,
        total_cost=repair.total_cost,
        is_paid=repair.is_paid,
        status=status_to_wire(repair.status),
        client_name=repair.client_name,
        client_phone=repair.client_phone,
        profit=repair.profit,
        date_start=repair.date_start,
        date_end=repair.date_end,
        note=repair.note,
        should_call=repair.should_call,
        executor=repair.executor,
        payment_type=repair.payment_type,
        update_timestamp=repair.updated_at.isoformat(),
    )


def item_to_response(item: WarehouseItem) -> WarehouseItemResponse:
    """Convert WarehouseItem to response model."""
    return WarehouseItemResponse(
        id=item.id,
        name=item.name,
        price_usd=item.price_usd,
        exchange_rate=item.exchange_rate,
        cost_uah=item.cost_uah,
        price_uah=item.price_uah,
        profit=item.profit,
        in_stock=item.in_stock,
        supplier=item.supplier,
        date_arrival=item.date_arrival,
        date_sold=item.date_sold,
        receipt_id=item.receipt_id,
        invoice=item.invoice,
        product_code=item.product_code,
        barcode=item.barcode,
    )


def transaction_to_response(transaction: Transaction) -> TransactionResponse:
    """Convert Transaction to response model."""
    return TransactionResponse(
        id=transaction.id,
        category=transaction.category,
        description=transaction.description,
        amount=transaction.amount,
        cash=transaction.cash,
        card=transaction.card,
        date_created=transaction.date_created,
        date_executed=transaction.date_executed,
        executor_name=transaction.executor_name,
        payment_type=transaction.payment_type,
    )


def lock_to_response(lock: RepairLock | None) -> LockResponse:
    """Convert RepairLock (or its absence) to response model."""
    if lock is None:
        return LockResponse(locked=False)
    return LockResponse(locked=True, device=lock.device, time=lock.locked_at.isoformat())
