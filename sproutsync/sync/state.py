"""SproutSync — Persisted Sync State.

Stores the last month synced per group and the summary of every run, so the
next run can be given an explicit RunContext instead of guessing from a
process-global flag.
"""

import json
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlmodel import Session, select

from sproutsync.core.logging import get_logger
from sproutsync.models.sync_models import RunContext, RunRecord, RunSummary, SyncState

logger = get_logger("sync.state")


class SyncStateStore:
    """SQLModel-backed store for SyncState and RunRecord rows."""

    def __init__(self, engine):
        self.engine = engine

    def load_last_synced(self) -> Dict[str, str]:
        with Session(self.engine) as session:
            rows = session.exec(select(SyncState)).all()
            return {row.group_id: row.last_synced_month for row in rows}

    def build_context(
        self, now: date, backfill_start: date, full_backfill: bool = False
    ) -> RunContext:
        last_synced = {} if full_backfill else self.load_last_synced()
        return RunContext(
            now=now,
            backfill_start=backfill_start,
            full_backfill=full_backfill,
            last_synced=last_synced,
        )

    def mark_synced(self, group_id: str, group_name: str, month_key: str) -> str:
        """Advance a group's last synced month; never moves it backwards."""
        with Session(self.engine) as session:
            state = session.get(SyncState, group_id)
            if state is None:
                state = SyncState(
                    group_id=group_id, group_name=group_name, last_synced_month=month_key
                )
            elif month_key > state.last_synced_month:
                state.last_synced_month = month_key
            state.group_name = group_name or state.group_name
            state.updated_at = datetime.now(timezone.utc)
            session.add(state)
            session.commit()
            session.refresh(state)
            logger.info(
                f"Last synced month for {group_name} is now {state.last_synced_month}",
                extra={"group_id": group_id, "month": state.last_synced_month},
            )
            return state.last_synced_month

    # ── Run history ──

    def save_run(self, summary: RunSummary) -> RunRecord:
        record = RunRecord(
            started_at=summary.started_at,
            finished_at=summary.finished_at,
            full_backfill=summary.full_backfill,
            unit_count=len(summary.results),
            summary_json=summary.model_dump_json(),
        )
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        logger.info(f"Saved run record #{record.id} ({record.unit_count} units)")
        return record

    def latest_run(self) -> Optional[RunRecord]:
        with Session(self.engine) as session:
            statement = select(RunRecord).order_by(RunRecord.id.desc()).limit(1)
            return session.exec(statement).first()

    def list_runs(self, limit: int = 20) -> List[RunRecord]:
        with Session(self.engine) as session:
            statement = select(RunRecord).order_by(RunRecord.id.desc()).limit(limit)
            return list(session.exec(statement).all())


def record_to_dict(record: RunRecord) -> dict:
    """API representation of a stored run."""
    return {
        "id": record.id,
        "started_at": record.started_at,
        "finished_at": record.finished_at,
        "full_backfill": record.full_backfill,
        "unit_count": record.unit_count,
        "summary": json.loads(record.summary_json),
    }
