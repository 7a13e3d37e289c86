"""Cash register transaction API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from shopsync.server.api.deps import get_db
from shopsync.server.database import Database
from shopsync.server.schemas import TransactionListResponse, transaction_to_response

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("", response_model=TransactionListResponse)
def list_transactions(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    category: str | None = None,
    payment_type: str | None = Query(None, alias="paymentType"),
    db: Database = Depends(get_db),
) -> TransactionListResponse:
    """List transactions, newest first."""
    rows = db.list_transactions(
        start_date=start_date,
        end_date=end_date,
        category=category,
        payment_type=payment_type,
    )
    return TransactionListResponse(data=[transaction_to_response(t) for t in rows])
