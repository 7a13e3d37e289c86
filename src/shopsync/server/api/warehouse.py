"""Warehouse API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shopsync.server.api.deps import get_db
from shopsync.server.database import Database
from shopsync.server.schemas import (
    BarcodeRequest,
    SuccessResponse,
    WarehouseListResponse,
    item_to_response,
)

router = APIRouter(prefix="/api/warehouse", tags=["warehouse"])


@router.get("", response_model=WarehouseListResponse)
def list_items(
    stock_filter: str = Query("inStock", alias="stockFilter"),
    supplier: str | None = None,
    search: str | None = None,
    db: Database = Depends(get_db),
) -> WarehouseListResponse:
    """List warehouse items ("inStock", "sold" or "all")."""
    items = db.list_warehouse_items(stock_filter=stock_filter, supplier=supplier, search=search)
    return WarehouseListResponse(data=[item_to_response(i) for i in items])


def _set_barcode(db: Database, item_id: int, barcode: str | None) -> SuccessResponse:
    if not db.set_barcode(item_id, barcode):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Warehouse item not found: {item_id}",
        )
    return SuccessResponse()


@router.put("/{item_id}/barcode", response_model=SuccessResponse)
def assign_barcode(
    item_id: int,
    request: BarcodeRequest,
    db: Database = Depends(get_db),
) -> SuccessResponse:
    """Assign a barcode to an item."""
    return _set_barcode(db, item_id, request.barcode)


@router.delete("/{item_id}/barcode", response_model=SuccessResponse)
def clear_barcode(item_id: int, db: Database = Depends(get_db)) -> SuccessResponse:
    """Remove the barcode of an item."""
    return _set_barcode(db, item_id, None)
