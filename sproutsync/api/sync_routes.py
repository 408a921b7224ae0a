"""SproutSync — Sync Routes."""

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query

from sproutsync.core.logging import get_logger
from sproutsync.database import engine
from sproutsync.scheduler.jobs import claim_run, run_claimed
from sproutsync.sync.state import SyncStateStore, record_to_dict

logger = get_logger("api.sync")

router = APIRouter(tags=["Sync"])


@router.post("/run", status_code=202)
async def trigger_run(
    background_tasks: BackgroundTasks,
    full_backfill: bool = Query(False, description="Ignore stored state and resync from the backfill start"),
):
    """Start a sync in the background.

    The run lock is taken before responding, so a 202 always means this
    request's sync will run; 409 when a sync is already running.
    """
    if not await claim_run():
        raise HTTPException(status_code=409, detail="A sync is already running")

    background_tasks.add_task(run_claimed, full_backfill)
    logger.info(f"Sync triggered via API (full_backfill={full_backfill})")
    return {"status": "started", "full_backfill": full_backfill}


@router.get("/runs/latest")
async def latest_run():
    """Summary of the most recent finished run."""
    record = SyncStateStore(engine).latest_run()
    if record is None:
        raise HTTPException(status_code=404, detail="No runs recorded yet")
    return {"status": "success", "run": record_to_dict(record)}


@router.get("/runs")
async def list_runs(limit: int = Query(20, ge=1, le=100)):
    """Recent run summaries, newest first."""
    records = SyncStateStore(engine).list_runs(limit)
    return {
        "status": "success",
        "count": len(records),
        "runs": [record_to_dict(r) for r in records],
    }
