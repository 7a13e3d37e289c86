"""Repair API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shopsync.core.types import parse_status
from shopsync.server.api.deps import get_db
from shopsync.server.database import Database, total_pages
from shopsync.server.schemas import (
    NextReceiptData,
    NextReceiptResponse,
    PaginationResponse,
    RepairListResponse,
    RepairPayload,
    RepairResponse,
    RepairSavedResponse,
    SuccessResponse,
    repair_to_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["repairs"])


@router.get("/repairs", response_model=RepairListResponse)
def list_repairs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=1000),
    search: str | None = None,
    status_filter: str | None = Query(None, alias="status"),
    executor: str | None = None,
    date_from: str | None = Query(None, alias="dateFrom"),
    date_to: str | None = Query(None, alias="dateTo"),
    db: Database = Depends(get_db),
) -> RepairListResponse:
    """List repairs, one page at a time."""
    stored_status = (
        str(parse_status(status_filter).code) if status_filter is not None else None
    )
    repairs, total = db.list_repairs(
        page=page,
        limit=limit,
        search=search,
        status=stored_status,
        executor=executor,
        date_from=date_from,
        date_to=date_to,
    )
    return RepairListResponse(
        data=[repair_to_response(r) for r in repairs],
        pagination=PaginationResponse(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages(total, limit),
        ),
    )


@router.get("/repairs/{repair_id}", response_model=RepairResponse)
def get_repair(repair_id: int, db: Database = Depends(get_db)) -> RepairResponse:
    """Get a single repair."""
    repair = db.get_repair(repair_id)
    if repair is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repair not found: {repair_id}",
        )
    return repair_to_response(repair)


@router.post("/repairs", response_model=RepairSavedResponse)
def create_repair(
    payload: RepairPayload,
    db: Database = Depends(get_db),
) -> RepairSavedResponse:
    """Create a repair, or update the one with the same receipt number."""
    repair = db.upsert_repair(payload.to_columns())
    logger.info("Saved repair %d (receipt %d)", repair.id, repair.receipt_id)
    return RepairSavedResponse(id=repair.id)


@router.put("/repairs/{repair_id}", response_model=RepairSavedResponse)
def update_repair(
    repair_id: int,
    payload: RepairPayload,
    db: Database = Depends(get_db),
) -> RepairSavedResponse:
    """Update a repair."""
    repair = db.update_repair(repair_id, payload.to_columns())
    if repair is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repair not found: {repair_id}",
        )
    return RepairSavedResponse(id=repair.id)


@router.delete("/repairs/{repair_id}", response_model=SuccessResponse)
def delete_repair(repair_id: int, db: Database = Depends(get_db)) -> SuccessResponse:
    """Delete a repair."""
    if not db.delete_repair(repair_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repair not found: {repair_id}",
        )
    logger.info("Deleted repair %d", repair_id)
    return SuccessResponse()


@router.get("/next-receipt-id", response_model=NextReceiptResponse)
def next_receipt_id(db: Database = Depends(get_db)) -> NextReceiptResponse:
    """Next free receipt number."""
    return NextReceiptResponse(data=NextReceiptData(next_receipt_id=db.next_receipt_id()))
