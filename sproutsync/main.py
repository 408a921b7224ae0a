"""SproutSync — FastAPI Application Entry Point.

Daily Sprout Social analytics sync into Google Sheets, with an HTTP trigger
and run history.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sproutsync.api.sync_routes import router as sync_router
from sproutsync.config import settings
from sproutsync.core.logging import get_logger
from sproutsync.database import backend, check_connection, init_db
from sproutsync.scheduler.jobs import (
    is_sync_running,
    next_run_time,
    start_scheduler,
    stop_scheduler,
)

logger = get_logger("main")

VERSION = "1.0.0"

# Serverless platforms cannot keep a scheduler alive between requests
IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


def _prepare_database() -> None:
    ok, error = check_connection()
    if not ok:
        logger.error(f"❌ Database unavailable, sync state will not be saved: {error}")
        return
    try:
        init_db()
    except Exception as e:
        logger.error(f"❌ Table creation failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 SproutSync starting ({'serverless' if IS_SERVERLESS else 'long-running'})")
    _prepare_database()
    use_scheduler = not IS_SERVERLESS
    if use_scheduler:
        start_scheduler()
    yield
    if use_scheduler:
        stop_scheduler()
    logger.info("SproutSync shut down")


app = FastAPI(
    title="SproutSync",
    description="Pull daily Sprout Social profile analytics and append them to monthly Google Sheets reports.",
    version=VERSION,
    lifespan=lifespan,
)
app.include_router(sync_router)


@app.get("/", tags=["System"])
async def root():
    """Service status and scheduler info."""
    return {
        "service": "sproutsync",
        "sync_running": is_sync_running(),
        "scheduler_enabled": settings.scheduler_enabled and not IS_SERVERLESS,
        "schedule": f"{settings.sync_hour:02d}:{settings.sync_minute:02d} UTC daily",
        "next_run": next_run_time(),
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness plus database reachability."""
    db_ok, db_error = check_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "sproutsync",
        "version": VERSION,
        "database": {"backend": backend, "connected": db_ok, "error": db_error},
    }
