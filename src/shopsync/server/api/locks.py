"""Repair edit lock API routes.

A repair is locked by one device at a time. POST by the holding device
refreshes the lock time; POST by any other device answers 409 with the
current holder.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from shopsync.server.api.deps import get_db
from shopsync.server.database import Database, LockHeldError
from shopsync.server.schemas import (
    LockRequest,
    LockResponse,
    SuccessResponse,
    lock_to_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/locks", tags=["locks"])


@router.get("/{repair_id}", response_model=LockResponse)
def get_lock(repair_id: int, db: Database = Depends(get_db)) -> LockResponse:
    """Get the lock state of a repair."""
    return lock_to_response(db.get_lock(repair_id))


@router.post("/{repair_id}", response_model=SuccessResponse)
def acquire_lock(
    repair_id: int,
    request: LockRequest,
    db: Database = Depends(get_db),
) -> SuccessResponse | JSONResponse:
    """Lock a repair for the requesting device."""
    try:
        db.acquire_lock(repair_id, request.device)
    except LockHeldError as e:
        logger.info(
            "Lock on repair %d refused for %s (held by %s)",
            repair_id,
            request.device,
            e.lock.device,
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "success": False,
                "error": "Already locked",
                "device": e.lock.device,
                "time": e.lock.locked_at.isoformat(),
            },
        )
    return SuccessResponse()


@router.delete("/{repair_id}", response_model=SuccessResponse)
def release_lock(repair_id: int, db: Database = Depends(get_db)) -> SuccessResponse:
    """Release the lock on a repair. Releasing an unlocked repair succeeds."""
    db.release_lock(repair_id)
    return SuccessResponse()
