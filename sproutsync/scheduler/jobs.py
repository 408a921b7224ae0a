"""SproutSync — Scheduler Jobs.

APScheduler daily job that runs the sync at the configured hour. The same
guarded entry point backs the HTTP trigger, so two runs never overlap.
"""

import asyncio
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from sproutsync.config import settings
from sproutsync.core.errors import AuthenticationError
from sproutsync.core.logging import get_logger
from sproutsync.models.sync_models import RunSummary
from sproutsync.sync.orchestrator import run_sync

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()

_run_lock = asyncio.Lock()


def is_sync_running() -> bool:
    return _run_lock.locked()


async def claim_run() -> bool:
    """Take the run lock unless a sync holds it; pair with run_claimed."""
    if _run_lock.locked():
        return False
    await _run_lock.acquire()
    return True


async def run_claimed(full_backfill: bool = False) -> Optional[RunSummary]:
    """Run one sync while holding the lock taken by claim_run, then release it."""
    try:
        return await run_sync(full_backfill=full_backfill)
    except AuthenticationError as e:
        logger.error(f"Sync aborted, authentication failed: {e}")
    except Exception as e:
        logger.exception(f"Sync run failed: {e}")
    finally:
        _run_lock.release()
    return None


async def run_sync_guarded(full_backfill: bool = False) -> Optional[RunSummary]:
    """Run one sync unless another is already in progress."""
    if not await claim_run():
        logger.warning("Sync already in progress; skipping this trigger")
        return None
    return await run_claimed(full_backfill)


async def daily_sync_job():
    """Incremental sync of every group's pending months."""
    logger.info("Scheduled daily sync starting...")
    summary = await run_sync_guarded()
    if summary is not None:
        logger.info(f"Scheduled sync complete. Units processed: {len(summary.results)}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_sync_job,
        "cron",
        hour=settings.sync_hour,
        minute=settings.sync_minute,
        id="daily_sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Daily sync at {settings.sync_hour:02d}:{settings.sync_minute:02d} UTC"
    )


def next_run_time() -> Optional[str]:
    job = scheduler.get_job("daily_sync") if scheduler.running else None
    if job is None or job.next_run_time is None:
        return None
    return job.next_run_time.isoformat()


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
