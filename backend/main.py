"""
Relation sync FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import db
from backend.config import settings
from backend.routes import sync as sync_routes
from backend.services.sync_service import sync_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool
    - Start the scheduled repair task, when an interval is configured
    - Close database pool on shutdown
    """
    # Startup
    await db.init_pool()
    logger.info("Database pool initialized")

    repair_task_handle = None
    if settings.SYNC_REPAIR_INTERVAL_SECONDS > 0:
        repair_task_handle = asyncio.create_task(
            sync_service.run_scheduled_repair(settings.SYNC_REPAIR_INTERVAL_SECONDS)
        )
        logger.info("Scheduled repair task started")

    yield

    # Shutdown
    if repair_task_handle is not None:
        repair_task_handle.cancel()
        try:
            await repair_task_handle
        except asyncio.CancelledError:
            logger.info("Scheduled repair task stopped")

    await db.close_pool()
    logger.info("Database pool closed")


app = FastAPI(
    title="Relation Sync",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(sync_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
