"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from shopsync.server.api import health, locks, repairs, transactions, warehouse

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(repairs.router)
router.include_router(warehouse.router)
router.include_router(transactions.router)
router.include_router(locks.router)
