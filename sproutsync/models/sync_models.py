"""SproutSync — Sync State & Run Models.

SQLModel tables hold the only local state: the last month synced per group
and a history of run summaries. Everything else here is a transient pydantic
value passed between the orchestrator and its callers.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlmodel import SQLModel, Field


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class SyncState(SQLModel, table=True):
    """Last calendar month persisted for a group's destination documents."""

    __tablename__ = "sync_state"

    group_id: str = Field(primary_key=True, description="Source group id")
    group_name: str = Field(default="")
    last_synced_month: str = Field(description="YYYY-MM")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RunRecord(SQLModel, table=True):
    """Summary of one top-level sync run."""

    __tablename__ = "run_records"

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = Field(default=None)
    full_backfill: bool = Field(default=False)
    unit_count: int = Field(default=0)
    summary_json: str = Field(description="Full RunSummary as JSON")


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS
# ─────────────────────────────────────────────


class RunContext(BaseModel):
    """Everything a run needs to know about the past, passed in explicitly."""

    now: date
    backfill_start: date
    full_backfill: bool = False
    last_synced: Dict[str, str] = {}
    """group_id → last synced month (YYYY-MM)."""

    model_config = {"frozen": True}

    def last_synced_for(self, group_id: str) -> Optional[str]:
        if self.full_backfill:
            return None
        return self.last_synced.get(group_id)


class UnitState(str, Enum):
    """Lifecycle of one (group, window) unit of work."""

    PENDING = "pending"
    CHECKING_DEDUP = "checking_dedup"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    ROUTING = "routing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class UnitStatus:
    """User-visible status strings."""

    COMPLETED = "Completed"
    NO_DATA = "No data"
    ALREADY_UPDATED = "Already updated for this month"
    NO_DESTINATION = "Skipped: destination unavailable"

    @staticmethod
    def error(minutes: float, message: str) -> str:
        return f"Error after {minutes} minutes: {message}"


class UnitResult(BaseModel):
    """Outcome of one (group, window) unit."""

    group_id: str
    group_name: str
    month_key: str
    description: str = ""
    date_range: str = ""
    profile_count: int = 0
    spreadsheet_id: Optional[str] = None
    spreadsheet_url: Optional[str] = None
    state: UnitState = UnitState.PENDING
    status: str = ""
    rows_written: Dict[str, int] = {}

    @property
    def marks_month_synced(self) -> bool:
        return self.status in (UnitStatus.COMPLETED, UnitStatus.ALREADY_UPDATED)


class RunSummary(BaseModel):
    """All unit results of a run, in processing order."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    full_backfill: bool = False
    months: List[str] = []
    results: List[UnitResult] = []

    def by_month(self) -> Dict[str, List[UnitResult]]:
        grouped: Dict[str, List[UnitResult]] = {}
        for r in self.results:
            grouped.setdefault(r.month_key, []).append(r)
        return grouped
