"""Tests for the sync orchestrator, end to end against in-memory collaborators."""

import asyncio
import logging
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import analytics_record
from sproutsync.connectors.sprout.endpoints import AnalyticsFetcher
from sproutsync.core.errors import AuthenticationError, SyncError
from sproutsync.core.retry import RetryPolicy
from sproutsync.models.sync_models import RunContext, UnitState, UnitStatus
from sproutsync.sync.orchestrator import SyncOrchestrator
from sproutsync.sync.state import SyncStateStore

FOLDER = "folder-1"
FIXED_NOW = datetime(2024, 1, 20, 3, 0, tzinfo=timezone.utc)
ACME_TITLE = "Sprout Analytics - Acme - Monthly Report - January 2024"


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def january_records():
    return [
        analytics_record(1, "2024-01-02", likes=4, impressions=100),
        analytics_record(1, "2024-01-01", likes=2, impressions=50),
        analytics_record(2, "2024-01-01", likes=10, comments_count=2, shares_count=1, post_link_clicks=3),
        analytics_record(3, "2024-01-01", reactions=7, impressions=70),
    ]


@pytest.fixture
def pause_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def store(memory_engine):
    return SyncStateStore(memory_engine)


@pytest.fixture
def make_orchestrator(fake_api, memory_writer, store, no_sleep, pause_sleep):
    def _make(**overrides):
        client = fake_api.client()
        policy = RetryPolicy(max_attempts=3, delay_seconds=10)
        kwargs = dict(
            client=client,
            fetcher=AnalyticsFetcher(client, policy, sleep=no_sleep),
            writer=memory_writer,
            state_store=store,
            policy=policy,
            folder_id=FOLDER,
            title_prefix="Sprout Analytics",
            group_pause_seconds=300,
            month_pause_seconds=600,
            sleep=pause_sleep,
            clock=lambda: FIXED_NOW,
        )
        kwargs.update(overrides)
        return SyncOrchestrator(**kwargs)

    return _make


def january_context(**kwargs):
    return RunContext(now=date(2024, 1, 20), backfill_start=date(2024, 1, 1), **kwargs)


def find_doc(writer, prefix):
    for doc_id, doc in writer.documents.items():
        if doc["name"].startswith(prefix):
            return doc_id
    raise AssertionError(f"no document starting with {prefix!r}")


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestCompletedRun:

    async def test_writes_each_platform_sheet(self, fake_api, january_records, memory_writer, make_orchestrator):
        fake_api.records = january_records

        summary = await make_orchestrator().run(january_context())

        assert [r.status for r in summary.results] == [UnitStatus.COMPLETED, UnitStatus.COMPLETED]
        acme = find_doc(memory_writer, ACME_TITLE)
        instagram = memory_writer.rows(acme, "Instagram")
        assert instagram[0][0] == "Date"
        assert [r[0] for r in instagram[1:]] == ["2024-01-01", "2024-01-02", "2024-01-31"]
        assert instagram[-1][1:3] == ["Monthly Summary", "TOTAL"]
        assert len(memory_writer.data_rows(acme, "Twitter")) == 2

        globex = find_doc(memory_writer, "Sprout Analytics - Globex")
        assert len(memory_writer.data_rows(globex, "Facebook")) == 2

    async def test_result_details(self, fake_api, january_records, make_orchestrator):
        fake_api.records = january_records

        summary = await make_orchestrator().run(january_context())
        acme = summary.results[0]

        assert acme.group_name == "Acme"
        assert acme.month_key == "2024-01"
        assert acme.date_range == "2024-01-01 to 2024-01-31"
        assert acme.profile_count == 2
        assert acme.rows_written == {"instagram": 2, "twitter": 1}
        assert acme.state == UnitState.DONE
        assert acme.spreadsheet_url.endswith(f"/{acme.spreadsheet_id}/edit")

    async def test_document_renamed_after_write(self, fake_api, january_records, memory_writer, make_orchestrator):
        fake_api.records = january_records

        await make_orchestrator().run(january_context())

        acme = find_doc(memory_writer, ACME_TITLE)
        assert memory_writer.documents[acme]["name"] == f"{ACME_TITLE} - Last Updated 20/01/2024 03:00"

    async def test_existing_document_reused(self, fake_api, january_records, memory_writer, make_orchestrator):
        fake_api.records = january_records
        existing = await memory_writer.create_spreadsheet(f"{ACME_TITLE} - Last Updated 01/01/2024 00:00", FOLDER)

        summary = await make_orchestrator().run(january_context())

        assert summary.results[0].spreadsheet_id == existing
        assert len(memory_writer.documents) == 2

    async def test_summary_row_can_be_disabled(self, fake_api, january_records, memory_writer, make_orchestrator):
        fake_api.records = january_records

        await make_orchestrator(write_monthly_summary=False).run(january_context())

        acme = find_doc(memory_writer, ACME_TITLE)
        assert len(memory_writer.data_rows(acme, "Instagram")) == 2

    async def test_state_advanced_and_run_saved(self, fake_api, january_records, store, make_orchestrator):
        fake_api.records = january_records

        await make_orchestrator().run(january_context())

        assert store.load_last_synced() == {"100": "2024-01", "200": "2024-01"}
        assert store.latest_run().unit_count == 2


# =============================================================================
# IDEMPOTENCE
# =============================================================================


class TestIdempotence:
    """A second pass over a month already present appends nothing."""

    async def test_rerun_same_month_leaves_rows_unchanged(
        self, fake_api, january_records, memory_writer, make_orchestrator
    ):
        fake_api.records = january_records
        orchestrator = make_orchestrator()
        await orchestrator.run(january_context())
        acme = find_doc(memory_writer, ACME_TITLE)
        before = {s: len(rows) for s, rows in memory_writer.documents[acme]["sheets"].items()}
        requests_before = len(fake_api.analytics_bodies)

        summary = await orchestrator.run(january_context())

        after = {s: len(rows) for s, rows in memory_writer.documents[acme]["sheets"].items()}
        assert after == before
        assert [r.status for r in summary.results] == [UnitStatus.ALREADY_UPDATED] * 2
        assert all(r.state == UnitState.SKIPPED for r in summary.results)
        assert len(fake_api.analytics_bodies) == requests_before

    async def test_stored_state_skips_synced_months(self, fake_api, january_records, store, make_orchestrator):
        fake_api.records = january_records
        orchestrator = make_orchestrator()
        await orchestrator.run(january_context())

        context = store.build_context(date(2024, 1, 20), date(2024, 1, 1))
        summary = await orchestrator.run(context)

        assert summary.months == []
        assert summary.results == []


# =============================================================================
# DEGRADED OUTCOMES
# =============================================================================


class TestNoData:

    async def test_empty_source_reports_no_data(self, fake_api, store, no_sleep, make_orchestrator):
        summary = await make_orchestrator().run(january_context())

        assert [r.status for r in summary.results] == [UnitStatus.NO_DATA] * 2
        assert store.load_last_synced() == {}

    async def test_retry_exhaustion_reports_no_data(self, fake_api, january_records, make_orchestrator):
        fake_api.records = january_records
        fake_api.analytics_status = 503

        summary = await make_orchestrator().run(january_context())

        assert [r.status for r in summary.results] == [UnitStatus.NO_DATA] * 2

    async def test_missing_destination_skips_unit(self, fake_api, january_records, memory_writer, make_orchestrator):
        fake_api.records = january_records
        memory_writer.find_spreadsheet = AsyncMock(side_effect=SyncError("drive unavailable"))

        summary = await make_orchestrator().run(january_context())

        assert [r.status for r in summary.results] == [UnitStatus.NO_DESTINATION] * 2
        assert fake_api.analytics_bodies == []


class TestFailures:

    async def test_unexpected_error_recorded_and_loop_continues(
        self, fake_api, january_records, memory_writer, store, make_orchestrator
    ):
        fake_api.records = january_records
        memory_writer.rename_spreadsheet = AsyncMock(side_effect=[RuntimeError("rename failed"), None])

        summary = await make_orchestrator().run(january_context())

        acme, globex = summary.results
        assert acme.state == UnitState.FAILED
        assert acme.status == "Error after 0.0 minutes: rename failed"
        assert globex.status == UnitStatus.COMPLETED
        assert store.load_last_synced() == {"200": "2024-01"}

    async def test_source_auth_failure_is_fatal(self, fake_api, january_records, store, make_orchestrator):
        fake_api.records = january_records
        fake_api.analytics_status = 401

        with pytest.raises(AuthenticationError):
            await make_orchestrator().run(january_context())
        assert store.latest_run() is None

    async def test_destination_auth_failure_is_fatal(self, fake_api, memory_writer, make_orchestrator):
        memory_writer.verify_access = AsyncMock(side_effect=AuthenticationError("no access"))

        with pytest.raises(AuthenticationError):
            await make_orchestrator().run(january_context())
        assert fake_api.requests == []


# =============================================================================
# SEQUENCING
# =============================================================================


class TestSequencing:

    async def test_months_ascending_groups_in_order(self, fake_api, january_records, make_orchestrator):
        fake_api.records = january_records

        summary = await make_orchestrator().run(
            RunContext(now=date(2024, 2, 10), backfill_start=date(2024, 1, 1))
        )

        assert summary.months == ["2024-01", "2024-02"]
        assert [(r.group_id, r.month_key) for r in summary.results] == [
            ("100", "2024-01"),
            ("200", "2024-01"),
            ("100", "2024-02"),
            ("200", "2024-02"),
        ]

    async def test_pauses_between_groups_and_months(self, fake_api, january_records, pause_sleep, make_orchestrator):
        fake_api.records = january_records

        await make_orchestrator().run(RunContext(now=date(2024, 2, 10), backfill_start=date(2024, 1, 1)))

        assert [c.args[0] for c in pause_sleep.await_args_list] == [300, 600, 300]

    async def test_only_pending_groups_processed(self, fake_api, january_records, make_orchestrator):
        fake_api.records = january_records
        context = RunContext(
            now=date(2024, 2, 10),
            backfill_start=date(2024, 1, 1),
            last_synced={"100": "2024-01"},
        )

        summary = await make_orchestrator().run(context)

        assert [(r.group_id, r.month_key) for r in summary.results] == [
            ("200", "2024-01"),
            ("100", "2024-02"),
            ("200", "2024-02"),
        ]

    async def test_full_backfill_ignores_last_synced(self, fake_api, january_records, make_orchestrator):
        fake_api.records = january_records
        context = january_context(full_backfill=True, last_synced={"100": "2024-01", "200": "2024-01"})

        summary = await make_orchestrator().run(context)

        assert len(summary.results) == 2


# =============================================================================
# WATCHDOG
# =============================================================================


def watchdog_tasks():
    return [t for t in asyncio.all_tasks() if t.get_coro().__qualname__.endswith("_watchdog")]


class TestWatchdog:

    async def test_alert_logged_and_run_completes(
        self, fake_api, january_records, memory_writer, make_orchestrator, caplog
    ):
        fake_api.records = january_records
        rename = memory_writer.rename_spreadsheet

        async def slow_rename(spreadsheet_id, title):
            await asyncio.sleep(0.05)
            await rename(spreadsheet_id, title)

        memory_writer.rename_spreadsheet = slow_rename

        with caplog.at_level(logging.ERROR, logger="sproutsync.sync"):
            summary = await make_orchestrator(watchdog_hours=0.01 / 3600).run(january_context())

        assert any("Watchdog" in r.getMessage() for r in caplog.records)
        assert [r.status for r in summary.results] == [UnitStatus.COMPLETED, UnitStatus.COMPLETED]

    async def test_cancelled_when_run_finishes(self, fake_api, january_records, make_orchestrator, caplog):
        fake_api.records = january_records

        with caplog.at_level(logging.ERROR, logger="sproutsync.sync"):
            await make_orchestrator(watchdog_hours=1).run(january_context())
            await asyncio.sleep(0)

        assert watchdog_tasks() == []
        assert not any("Watchdog" in r.getMessage() for r in caplog.records)
