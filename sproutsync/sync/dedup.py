"""SproutSync — Month Deduplication Gate.

A destination counts as already holding a month when any of its platform
sheets has a date in column A starting with that month's ``YYYY-MM`` key.
One stray row from the month therefore blocks every platform for it; this
keeps partially written months from being appended a second time.
"""

from typing import Iterable, List

from sproutsync.connectors.sheets.base import DestinationWriter
from sproutsync.core.errors import AuthenticationError
from sproutsync.core.logging import get_logger

logger = get_logger("sync.dedup")


def column_has_month(values: List[List[str]], month_key: str) -> bool:
    """True if any cell of a single-column read starts with ``month_key``."""
    for row in values:
        if row and str(row[0]).strip().startswith(month_key):
            return True
    return False


async def already_synced(
    writer: DestinationWriter,
    spreadsheet_id: str,
    sheet_names: Iterable[str],
    month_key: str,
) -> bool:
    """Check the existing platform sheets of a destination for ``month_key``.

    Sheets that do not exist yet are ignored. A sheet that cannot be read is
    logged and treated as holding no data for the month.
    """
    existing = set(await writer.list_sheets(spreadsheet_id))
    for sheet_name in sheet_names:
        if sheet_name not in existing:
            continue
        try:
            values = await writer.read_column(spreadsheet_id, sheet_name, "A")
        except AuthenticationError:
            raise
        except Exception as e:
            logger.warning(
                f"Could not read dates from sheet {sheet_name}: {e}",
                extra={"spreadsheet_id": spreadsheet_id, "month": month_key},
            )
            continue

        if column_has_month(values, month_key):
            logger.info(
                f"Sheet {sheet_name} already has data for {month_key}",
                extra={"spreadsheet_id": spreadsheet_id, "month": month_key},
            )
            return True
    return False
