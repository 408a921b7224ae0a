"""SproutSync — Period Chunker.

Builds calendar-month windows for monthly reporting and splits long windows
into fetch-safe sub-ranges.
"""

import calendar
from datetime import date, timedelta
from typing import List, Optional

from sproutsync.models.analytics_models import TimeWindow


def month_range(reference: date) -> TimeWindow:
    """Return the window covering the whole calendar month of ``reference``."""
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    return TimeWindow(
        start_date=reference.replace(day=1),
        end_date=reference.replace(day=last_day),
    )


def next_month(reference: date) -> date:
    """First day of the month after ``reference``."""
    if reference.month == 12:
        return date(reference.year + 1, 1, 1)
    return date(reference.year, reference.month + 1, 1)


def parse_month_key(month_key: str) -> date:
    """``YYYY-MM`` → first day of that month."""
    year, month = month_key.split("-", 1)
    return date(int(year), int(month), 1)


def month_windows(boundary: date, now: date) -> List[TimeWindow]:
    """Ordered, gapless month windows from ``boundary``'s month through ``now``'s.

    The last window always ends on the last day of its month, even when that
    is later than ``now``.
    """
    windows: List[TimeWindow] = []
    current = boundary.replace(day=1)
    last = now.replace(day=1)
    while current <= last:
        windows.append(month_range(current))
        current = next_month(current)
    return windows


def split_window(window: TimeWindow, max_days: int) -> List[TimeWindow]:
    """Split ``window`` into consecutive sub-windows of at most ``max_days`` days."""
    if max_days < 1:
        raise ValueError("max_days must be at least 1")
    chunks: List[TimeWindow] = []
    start = window.start_date
    while start <= window.end_date:
        end = min(start + timedelta(days=max_days - 1), window.end_date)
        chunks.append(TimeWindow(start_date=start, end_date=end))
        start = end + timedelta(days=1)
    return chunks


def pending_windows(
    backfill_start: date,
    now: date,
    last_synced_month: Optional[str] = None,
) -> List[TimeWindow]:
    """Month windows still to be synced for one destination group.

    Starts at the month after ``last_synced_month`` (never before
    ``backfill_start``) and runs through the current month.
    """
    start = backfill_start
    if last_synced_month:
        start = max(start, next_month(parse_month_key(last_synced_month)))
    return month_windows(start, now)
