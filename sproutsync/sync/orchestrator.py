"""SproutSync — Sync Orchestrator.

Runs the full data flow, one (group, month) unit at a time:
  resolve destination → dedup check → fetch → route/normalize → write → rename

Months are processed in ascending order; within a month, groups run one after
another with a fixed pause between them, and a longer pause between months.
Platform sheets of a single unit are written concurrently.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from sproutsync.config import settings
from sproutsync.connectors.sheets.base import DestinationWriter
from sproutsync.connectors.sprout.client import SproutClient
from sproutsync.connectors.sprout.endpoints import (
    AnalyticsFetcher,
    fetch_groups,
    fetch_profiles,
    group_profiles,
)
from sproutsync.connectors.sprout.transformer import route_rows
from sproutsync.core.errors import AuthenticationError, SyncError
from sproutsync.core.logging import get_logger
from sproutsync.core.periods import pending_windows
from sproutsync.core.platform_registry import canonical_platform
from sproutsync.core.retry import RetryPolicy
from sproutsync.models.analytics_models import Group, TimeWindow
from sproutsync.models.sync_models import (
    RunContext,
    RunSummary,
    UnitResult,
    UnitState,
    UnitStatus,
)
from sproutsync.normalizers.base import PlatformNormalizer, Row
from sproutsync.normalizers.registry import get_normalizer
from sproutsync.sync.dedup import already_synced
from sproutsync.sync.state import SyncStateStore

logger = get_logger("sync.orchestrator")

Plan = Dict[str, List[Tuple[Group, TimeWindow]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """Top-level control loop over groups and month windows."""

    def __init__(
        self,
        client: SproutClient,
        fetcher: AnalyticsFetcher,
        writer: DestinationWriter,
        state_store: Optional[SyncStateStore] = None,
        policy: Optional[RetryPolicy] = None,
        folder_id: Optional[str] = None,
        title_prefix: Optional[str] = None,
        group_pause_seconds: Optional[float] = None,
        month_pause_seconds: Optional[float] = None,
        watchdog_hours: Optional[float] = None,
        write_monthly_summary: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.fetcher = fetcher
        self.writer = writer
        self.state_store = state_store
        self.policy = policy or RetryPolicy.from_settings()
        self.folder_id = folder_id if folder_id is not None else settings.drive_folder_id
        self.title_prefix = title_prefix or settings.spreadsheet_title_prefix
        self.group_pause_seconds = (
            settings.group_pause_seconds if group_pause_seconds is None else group_pause_seconds
        )
        self.month_pause_seconds = (
            settings.month_pause_seconds if month_pause_seconds is None else month_pause_seconds
        )
        self.watchdog_hours = watchdog_hours or settings.watchdog_hours
        self.write_monthly_summary = (
            settings.write_monthly_summary
            if write_monthly_summary is None
            else write_monthly_summary
        )
        self._sleep = sleep
        self._clock = clock

    # ── Run ──

    async def run(self, context: RunContext) -> RunSummary:
        """Process every pending (group, month) unit.

        AuthenticationError propagates and ends the run; any other failure
        is recorded on its unit and the loop moves on.
        """
        summary = RunSummary(started_at=self._clock(), full_backfill=context.full_backfill)
        watchdog = asyncio.create_task(self._watchdog())
        mode = "full backfill" if context.full_backfill else "incremental"
        logger.info(f"🚀 Sync run starting ({mode}, now={context.now})")

        try:
            await self.writer.verify_access(self.folder_id)
            groups = await self.discover_groups()
            plan = self.plan(groups, context)
            summary.months = list(plan)
            logger.info(f"Months to process: {', '.join(plan) or 'none'}")

            for month_index, (month_key, units) in enumerate(plan.items()):
                if month_index > 0 and self.month_pause_seconds > 0:
                    logger.info(
                        f"Waiting {self.month_pause_seconds:g}s before processing month {month_key}"
                    )
                    await self._sleep(self.month_pause_seconds)

                logger.info(
                    f"=== Month {month_key}: {len(units)} group(s) ===",
                    extra={"month": month_key},
                )
                for group_index, (group, window) in enumerate(units):
                    if group_index > 0 and self.group_pause_seconds > 0:
                        logger.info(
                            f"Waiting {self.group_pause_seconds:g}s before processing the next group"
                        )
                        await self._sleep(self.group_pause_seconds)

                    result = await self.process_unit(group, window)
                    summary.results.append(result)
                    if result.marks_month_synced and self.state_store is not None:
                        self.state_store.mark_synced(
                            group.group_id, group.name, window.month_key
                        )
        finally:
            watchdog.cancel()
            summary.finished_at = self._clock()

        self.log_summary(summary)
        if self.state_store is not None:
            self.state_store.save_run(summary)
        return summary

    async def _watchdog(self) -> None:
        await asyncio.sleep(self.watchdog_hours * 3600)
        logger.error(
            f"⏰ Watchdog: sync still running after {self.watchdog_hours:g} hours"
        )

    # ── Planning ──

    async def discover_groups(self) -> List[Group]:
        """Fetch groups and profiles once and bucket profiles into groups."""
        groups_raw = await fetch_groups(self.client, self.policy, sleep=self._sleep)
        if not groups_raw:
            logger.warning("No customer groups found")
            return []
        profiles = await fetch_profiles(self.client, self.policy, sleep=self._sleep)
        groups = group_profiles(profiles, groups_raw)
        logger.info(f"Discovered {len(groups)} group(s) with profiles")
        return groups

    @staticmethod
    def plan(groups: List[Group], context: RunContext) -> Plan:
        """Pending (group, window) units keyed by month, months ascending."""
        plan: Plan = {}
        for group in groups:
            windows = pending_windows(
                context.backfill_start,
                context.now,
                context.last_synced_for(group.group_id),
            )
            for window in windows:
                plan.setdefault(window.month_key, []).append((group, window))
        return dict(sorted(plan.items()))

    # ── Unit of work ──

    def base_title(self, group: Group, window: TimeWindow) -> str:
        return f"{self.title_prefix} - {group.name} - Monthly Report - {window.label}"

    @staticmethod
    def normalizers_for(group: Group) -> List[PlatformNormalizer]:
        """Distinct normalizers for the group's platforms, in profile order."""
        found: Dict[str, PlatformNormalizer] = {}
        for profile in group.profiles:
            platform = canonical_platform(profile.network_type)
            normalizer = get_normalizer(platform)
            if normalizer is not None and platform not in found:
                found[platform] = normalizer
        return list(found.values())

    async def process_unit(self, group: Group, window: TimeWindow) -> UnitResult:
        """Run one (group, window) unit and return its result."""
        started = time.monotonic()
        result = UnitResult(
            group_id=group.group_id,
            group_name=group.name,
            month_key=window.month_key,
            description=f"{group.name} - {window.label}",
            date_range=str(window),
            profile_count=len(group.profiles),
        )
        extra = {"group_id": group.group_id, "month": window.month_key}
        logger.info(f"Processing group {group.name} for {window.label}", extra=extra)

        try:
            await self._run_unit(group, window, result)
        except AuthenticationError:
            raise
        except Exception as e:
            minutes = round((time.monotonic() - started) / 60, 1)
            result.state = UnitState.FAILED
            result.status = UnitStatus.error(minutes, str(e))
            logger.exception(
                f"Error processing group {group.name} after {minutes} minutes", extra=extra
            )

        logger.info(
            f"Group {group.name} {window.month_key}: {result.status}",
            extra={
                **extra,
                "status": result.status,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return result

    async def _run_unit(self, group: Group, window: TimeWindow, result: UnitResult) -> None:
        normalizers = self.normalizers_for(group)
        base_title = self.base_title(group, window)

        try:
            spreadsheet_id = await self.writer.find_or_create_spreadsheet(
                base_title, base_title, self.folder_id
            )
        except AuthenticationError:
            raise
        except SyncError as e:
            logger.error(
                f"Could not resolve spreadsheet for {group.name}: {e}",
                extra={"group_id": group.group_id, "month": window.month_key},
            )
            result.state = UnitState.SKIPPED
            result.status = UnitStatus.NO_DESTINATION
            return
        result.spreadsheet_id = spreadsheet_id
        result.spreadsheet_url = self.writer.spreadsheet_url(spreadsheet_id)

        result.state = UnitState.CHECKING_DEDUP
        sheet_names = [n.sheet_name for n in normalizers]
        if await already_synced(self.writer, spreadsheet_id, sheet_names, window.month_key):
            result.state = UnitState.SKIPPED
            result.status = UnitStatus.ALREADY_UPDATED
            return

        for normalizer in normalizers:
            await self.writer.ensure_sheet(spreadsheet_id, normalizer.sheet_name, normalizer.headers)

        result.state = UnitState.FETCHING
        data_points = await self.fetcher.fetch(group.profile_ids, window)
        if not data_points:
            result.state = UnitState.DONE
            result.status = UnitStatus.NO_DATA
            return

        result.state = UnitState.ROUTING
        rows_by_platform = route_rows(data_points, group.profiles)
        if not rows_by_platform:
            result.state = UnitState.DONE
            result.status = UnitStatus.NO_DATA
            return

        result.state = UnitState.WRITING
        platforms = list(rows_by_platform)
        written = await asyncio.gather(
            *(
                self._write_platform(spreadsheet_id, p, rows_by_platform[p], window)
                for p in platforms
            )
        )
        result.rows_written = dict(zip(platforms, written))

        stamp = self._clock().strftime("%d/%m/%Y %H:%M")
        await self.writer.rename_spreadsheet(spreadsheet_id, f"{base_title} - Last Updated {stamp}")

        result.state = UnitState.DONE
        result.status = UnitStatus.COMPLETED

    async def _write_platform(
        self,
        spreadsheet_id: str,
        platform: str,
        rows: List[Row],
        window: TimeWindow,
    ) -> int:
        normalizer = get_normalizer(platform)
        ordered = sorted(rows, key=lambda r: str(r[0]))
        await self.writer.append_rows(spreadsheet_id, normalizer.sheet_name, ordered)

        if self.write_monthly_summary:
            summary_row = normalizer.monthly_summary(ordered, window)
            if summary_row is not None:
                await self.writer.append_rows(spreadsheet_id, normalizer.sheet_name, [summary_row])

        logger.info(
            f"Wrote {len(ordered)} rows to {normalizer.sheet_name}",
            extra={
                "platform": platform,
                "spreadsheet_id": spreadsheet_id,
                "month": window.month_key,
            },
        )
        return len(ordered)

    # ── Reporting ──

    @staticmethod
    def log_summary(summary: RunSummary) -> None:
        logger.info("===== SYNC SUMMARY =====")
        for month_key, results in summary.by_month().items():
            logger.info(f"Month {month_key}:", extra={"month": month_key})
            for r in results:
                link = f" ({r.spreadsheet_url})" if r.spreadsheet_url else ""
                logger.info(
                    f"  {r.group_name}: {r.status}{link}",
                    extra={"group_id": r.group_id, "month": month_key, "status": r.status},
                )
        if summary.finished_at is not None:
            minutes = round((summary.finished_at - summary.started_at).total_seconds() / 60, 1)
            logger.info(f"Total execution time: {minutes} minutes")


async def run_sync(full_backfill: bool = False) -> RunSummary:
    """Build the production collaborators from settings and run one sync."""
    from sproutsync.connectors.sheets.client import GoogleSheetsWriter
    from sproutsync.database import engine, init_db

    init_db()
    store = SyncStateStore(engine)
    context = store.build_context(
        now=_utcnow().date(),
        backfill_start=settings.backfill_start,
        full_backfill=full_backfill,
    )
    policy = RetryPolicy.from_settings()
    client = SproutClient()
    try:
        orchestrator = SyncOrchestrator(
            client=client,
            fetcher=AnalyticsFetcher(client, policy),
            writer=GoogleSheetsWriter(policy=policy),
            state_store=store,
            policy=policy,
        )
        return await orchestrator.run(context)
    finally:
        await client.close()
