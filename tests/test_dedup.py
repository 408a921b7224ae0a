"""Tests for the month deduplication gate."""

from unittest.mock import AsyncMock

import pytest

from sproutsync.core.errors import AuthenticationError, SyncError
from sproutsync.sync.dedup import already_synced, column_has_month


@pytest.fixture
async def doc(memory_writer):
    doc_id = await memory_writer.create_spreadsheet("Report", "folder")
    await memory_writer.ensure_sheet(doc_id, "Instagram", ["Date", "Network Type"])
    await memory_writer.ensure_sheet(doc_id, "Twitter", ["Date", "Network Type"])
    return doc_id


class TestColumnHasMonth:

    def test_matches_prefix(self):
        assert column_has_month([["Date"], ["2024-01-05"]], "2024-01")

    def test_header_only(self):
        assert not column_has_month([["Date"]], "2024-01")

    def test_other_month(self):
        assert not column_has_month([["Date"], ["2024-02-01"]], "2024-01")

    def test_blank_rows_ignored(self):
        assert not column_has_month([[], [""]], "2024-01")


class TestAlreadySynced:

    async def test_empty_sheets_not_synced(self, memory_writer, doc):
        assert not await already_synced(memory_writer, doc, ["Instagram", "Twitter"], "2024-01")

    async def test_any_sheet_blocks_whole_month(self, memory_writer, doc):
        await memory_writer.append_rows(doc, "Twitter", [["2024-01-03", "twitter_profile"]])
        assert await already_synced(memory_writer, doc, ["Instagram", "Twitter"], "2024-01")

    async def test_other_month_does_not_block(self, memory_writer, doc):
        await memory_writer.append_rows(doc, "Instagram", [["2023-12-31", "x"]])
        assert not await already_synced(memory_writer, doc, ["Instagram"], "2024-01")

    async def test_missing_sheets_ignored(self, memory_writer, doc):
        assert not await already_synced(memory_writer, doc, ["Youtube"], "2024-01")

    async def test_unreadable_sheet_treated_as_unsynced(self, memory_writer, doc):
        memory_writer.read_column = AsyncMock(side_effect=SyncError("read failed"))
        assert not await already_synced(memory_writer, doc, ["Instagram"], "2024-01")

    async def test_auth_error_propagates(self, memory_writer, doc):
        memory_writer.read_column = AsyncMock(side_effect=AuthenticationError("revoked"))
        with pytest.raises(AuthenticationError):
            await already_synced(memory_writer, doc, ["Instagram"], "2024-01")
