"""FastAPI application for the shopsync server.

This module creates and configures the FastAPI application with:
- REST API for repairs, warehouse items, transactions and repair locks
- Health probe for client reachability checks

Usage:
    uvicorn shopsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from shopsync.server.api.router import router as api_router
from shopsync.server.database import Database

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("SHOPSYNC_DB_PATH", "shopsync-server.db"))
LOG_PATH_ENV = os.environ.get("SHOPSYNC_LOG_PATH")

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure logging to stdout, and to a file when log_path is given.

    Args:
        log_path: Optional path to the log file.
        level: Level for the shopsync loggers.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for shopsync
    root_logger = logging.getLogger("shopsync")
    root_logger.setLevel(level)
    if root_logger.handlers:
        return

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Also capture uvicorn logs to file
        for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(uvicorn_name).addHandler(file_handler)


def create_app(db: Database) -> FastAPI:
    """Create FastAPI application with a given database.

    Args:
        db: Database instance.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("shopsync server starting")
        logger.info("  Database: %s", getattr(db, "_db_path", "unknown"))
        logger.info("=" * 60)

        yield

        logger.info("shopsync server shutting down")

    application = FastAPI(
        title="shopsync server",
        description="Repair shop records with offline-first client sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.db = db
    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(Path(LOG_PATH_ENV) if LOG_PATH_ENV else None)
    return create_app(db=Database(DB_PATH))
