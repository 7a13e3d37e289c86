"""Domain records exchanged between the local store and the server.

This module provides:
- Repair, WarehouseItem, Transaction: syncable records
- MalformedPayload: raised when a remote record has no usable identity

Every record carries ``synced`` and ``last_modified`` in addition to its
domain fields. Parsing a remote payload never rejects a record for a
missing or mistyped field: free text defaults to "", numbers to 0.0 and
flags to False. A record that cannot be read at all degrades to a
placeholder named PARSE_ERROR_NAME.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any

from shopsync.core.types import to_code, to_label

logger = logging.getLogger(__name__)

PARSE_ERROR_NAME = "Error parsing"
DEFAULT_EXECUTOR = "Андрій"
DEFAULT_PAYMENT_TYPE = "Готівка"


class MalformedPayload(ValueError):
    """A remote record could not be mapped onto a local record."""


# === Field coercion helpers ===


def _text(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _optional_text(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _flag(data: dict[str, Any], key: str, default: bool = False) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _identity(data: Any, key: str = "id") -> int:
    if not isinstance(data, dict):
        raise MalformedPayload(f"Expected an object, got {type(data).__name__}")
    ident = _int_or_none(data.get(key))
    if ident is None:
        raise MalformedPayload(f"Missing or invalid {key!r}: {data.get(key)!r}")
    return ident


# === Records ===


@dataclass
class Repair:
    """A repair ticket.

    ``id`` is the local primary key and means nothing to the server.
    ``remote_id`` is the server identity, None until the ticket has been
    confirmed remotely. Unsynced tickets are matched to remote ones by
    ``receipt_id``.
    """

    receipt_id: int = 0
    id: int | None = None
    remote_id: int | None = None
    device_name: str = ""
    fault_desc: str = ""
    work_done: str = ""
    cost_labor: float = 0.0
    total_cost: float = 0.0
    is_paid: bool = False
    status: str = field(default_factory=lambda: to_label(None))
    client_name: str = ""
    client_phone: str = ""
    profit: float = 0.0
    date_start: str | None = None
    date_end: str | None = None
    note: str = ""
    should_call: bool = False
    executor: str = DEFAULT_EXECUTOR
    payment_type: str = DEFAULT_PAYMENT_TYPE
    update_timestamp: str | None = None
    synced: bool = False
    last_modified: float = field(default_factory=time.time)

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> Repair:
        """Create a synced Repair from an API payload.

        Raises:
            MalformedPayload: If the payload has no usable ``id``.
        """
        remote_id = _identity(data)
        try:
            return cls(
                remote_id=remote_id,
                receipt_id=_int_or_none(data.get("receiptId")) or 0,
                device_name=_text(data, "deviceName"),
                fault_desc=_text(data, "faultDesc"),
                work_done=_text(data, "workDone"),
                cost_labor=_number(data, "costLabor"),
                total_cost=_number(data, "totalCost"),
                is_paid=_flag(data, "isPaid"),
                status=to_label(data.get("status")),
                client_name=_text(data, "clientName"),
                client_phone=_text(data, "clientPhone"),
                profit=_number(data, "profit"),
                date_start=_optional_text(data, "dateStart"),
                date_end=_optional_text(data, "dateEnd"),
                note=_text(data, "note"),
                should_call=_flag(data, "shouldCall"),
                executor=_text(data, "executor", DEFAULT_EXECUTOR),
                payment_type=_text(data, "paymentType", DEFAULT_PAYMENT_TYPE),
                update_timestamp=_optional_text(data, "UpdateTimestamp"),
                synced=True,
                last_modified=0.0,
            )
        except Exception:
            logger.warning("Unreadable repair payload %s, storing placeholder", remote_id)
            return cls(
                remote_id=remote_id,
                device_name=PARSE_ERROR_NAME,
                synced=True,
                last_modified=0.0,
            )

    def to_remote(self) -> dict[str, Any]:
        """Serialize for POST/PUT, with the status as its compact code."""
        return {
            "receiptId": self.receipt_id,
            "deviceName": self.device_name,
            "faultDesc": self.fault_desc,
            "workDone": self.work_done,
            "costLabor": self.cost_labor,
            "totalCost": self.total_cost,
            "isPaid": self.is_paid,
            "status": to_code(self.status),
            "clientName": self.client_name,
            "clientPhone": self.client_phone,
            "profit": self.profit,
            "dateStart": self.date_start,
            "dateEnd": self.date_end,
            "note": self.note,
            "shouldCall": self.should_call,
            "executor": self.executor,
            "paymentType": self.payment_type,
        }

    def touched(self, **changes: Any) -> Repair:
        """Return a locally modified copy, marked unsynced."""
        return replace(self, **changes, synced=False, last_modified=time.time())


@dataclass
class WarehouseItem:
    """A part in the warehouse. ``id`` is the server identity."""

    id: int
    name: str = ""
    price_usd: float = 0.0
    exchange_rate: float = 0.0
    cost_uah: float = 0.0
    price_uah: float = 0.0
    profit: float = 0.0
    in_stock: bool = True
    supplier: str | None = None
    date_arrival: str | None = None
    date_sold: str | None = None
    receipt_id: int | None = None
    invoice: str | None = None
    product_code: str | None = None
    barcode: str | None = None
    synced: bool = True
    last_modified: float = 0.0

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> WarehouseItem:
        """Create a synced WarehouseItem from an API payload.

        Raises:
            MalformedPayload: If the payload has no usable ``id``.
        """
        item_id = _identity(data)
        try:
            return cls(
                id=item_id,
                name=_text(data, "name"),
                price_usd=_number(data, "priceUsd"),
                exchange_rate=_number(data, "exchangeRate"),
                cost_uah=_number(data, "costUah"),
                price_uah=_number(data, "priceUah"),
                profit=_number(data, "profit"),
                in_stock=_flag(data, "inStock", default=True),
                supplier=_optional_text(data, "supplier"),
                date_arrival=_optional_text(data, "dateArrival"),
                date_sold=_optional_text(data, "dateSold"),
                receipt_id=_int_or_none(data.get("receiptId")),
                invoice=_optional_text(data, "invoice"),
                product_code=_optional_text(data, "productCode"),
                barcode=_optional_text(data, "barcode"),
            )
        except Exception:
            logger.warning("Unreadable warehouse payload %s, storing placeholder", item_id)
            return cls(id=item_id, name=PARSE_ERROR_NAME)


@dataclass
class Transaction:
    """A cash register transaction. ``id`` is the server identity."""

    id: int
    category: str = ""
    description: str = ""
    amount: float = 0.0
    cash: float = 0.0
    card: float = 0.0
    date_created: str | None = None
    date_executed: str | None = None
    executor_name: str | None = None
    payment_type: str | None = None
    synced: bool = True
    last_modified: float = 0.0

    @classmethod
    def from_remote(cls, data: dict[str, Any]) -> Transaction:
        """Create a synced Transaction from an API payload.

        Raises:
            MalformedPayload: If the payload has no usable ``id``.
        """
        tx_id = _identity(data)
        try:
            return cls(
                id=tx_id,
                category=_text(data, "category"),
                description=_text(data, "description"),
                amount=_number(data, "amount"),
                cash=_number(data, "cash"),
                card=_number(data, "card"),
                date_created=_optional_text(data, "dateCreated"),
                date_executed=_optional_text(data, "dateExecuted"),
                executor_name=_optional_text(data, "executorName"),
                payment_type=_optional_text(data, "paymentType"),
            )
        except Exception:
            logger.warning("Unreadable transaction payload %s, storing placeholder", tx_id)
            return cls(id=tx_id, description=PARSE_ERROR_NAME)
