"""Health check API route."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter

from shopsync.server.schemas import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Check server health."""
    return HealthResponse(status="ok", timestamp=datetime.now(UTC).isoformat())
