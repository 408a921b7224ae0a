"""SproutSync — Abstract Platform Normalizer.

Each platform variant owns its sheet header, the raw metric names it reads,
its row-mapping function and the columns its monthly summary aggregates.
Normalizers are pure: the same (DataPoint, Profile) always gives the same row.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from sproutsync.core.platform_registry import Platform, sheet_name
from sproutsync.models.analytics_models import DataPoint, Profile, TimeWindow
from sproutsync.core.logging import get_logger

logger = get_logger("normalizers")

Number = Union[int, float]
Row = List[Any]

SUMMARY_LABEL = "Monthly Summary"
SUMMARY_NAME = "TOTAL"


# ─────────────────────────────────────────────
# VALUE HELPERS
# ─────────────────────────────────────────────


def safe_number(value: Any) -> Number:
    """Coerce a raw metric value to a number; absent or unparseable → 0.

    Composite values (per-type breakdowns) collapse to the sum of their parts.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value) if value.is_integer() else value
    if isinstance(value, str):
        try:
            return safe_number(float(value.strip()))
        except ValueError:
            return 0
    if isinstance(value, Mapping):
        return safe_number(sum(safe_number(v) for v in value.values()))
    if isinstance(value, (list, tuple)):
        return safe_number(sum(safe_number(v) for v in value))
    return 0


def metric(metrics: Mapping[str, Any], name: str) -> Number:
    return safe_number(metrics.get(name))


def first_present(metrics: Mapping[str, Any], *names: str) -> Number:
    """Value of the first metric name present in the payload (API aliases)."""
    for name in names:
        if name in metrics:
            return metric(metrics, name)
    return 0


def percentage(part: Number, whole: Number) -> Number:
    """part / whole × 100 rounded to 2 places; 0 when whole is not positive."""
    if whole <= 0:
        return 0
    return round(part / whole * 100, 2)


def ratio(part: Number, whole: Number, places: int = 4) -> Number:
    if whole <= 0:
        return 0
    return round(part / whole, places)


# ─────────────────────────────────────────────
# BASE CLASS
# ─────────────────────────────────────────────


class PlatformNormalizer(ABC):
    """Strategy for one canonical platform."""

    platform: Platform
    headers: Tuple[str, ...] = ()
    metrics: Tuple[str, ...] = ()
    """Raw metric names requested from the analytics API."""
    summary_max_columns: Tuple[str, ...] = ("Lifetime Followers Count",)
    summary_sum_columns: Tuple[str, ...] = (
        "Net Follower Growth",
        "New Followers Gained",
        "Followers Lost",
        "Posts Published Count",
    )

    @property
    def sheet_name(self) -> str:
        return sheet_name(self.platform.value)

    def format_row(self, data_point: DataPoint, profile: Profile) -> Optional[Row]:
        """Map one data point to a row aligned with ``headers``.

        Returns None (never a partial row) when the data point has no metrics
        block or the mapping fails.
        """
        if data_point.metrics is None:
            logger.warning(
                f"No metrics block for {self.platform.value} profile "
                f"{profile.name} ({profile.profile_id}) on {data_point.reporting_period}",
                extra={"platform": self.platform.value},
            )
            return None

        try:
            row = self.build_row(data_point, profile, data_point.metrics)
        except (TypeError, ValueError, ArithmeticError) as e:
            logger.error(
                f"Failed to normalize {self.platform.value} data for "
                f"{profile.name} ({profile.profile_id}): {e}",
                extra={"platform": self.platform.value},
            )
            return None

        if len(row) != len(self.headers):
            logger.error(
                f"{self.platform.value} row has {len(row)} columns, "
                f"header has {len(self.headers)}; dropping row",
                extra={"platform": self.platform.value},
            )
            return None
        return row

    @abstractmethod
    def build_row(
        self, data_point: DataPoint, profile: Profile, metrics: Mapping[str, Any]
    ) -> Row:
        """Platform-specific column mapping. Must return len(headers) values."""
        ...

    @staticmethod
    def identity_columns(data_point: DataPoint, profile: Profile) -> Row:
        """Date, network type, profile name, network id, profile id."""
        return [
            data_point.reporting_period.isoformat(),
            profile.network_type,
            profile.name,
            profile.network_id,
            profile.profile_id,
        ]

    def column(self, header: str) -> int:
        return self.headers.index(header)

    def monthly_summary(self, rows: Sequence[Row], window: TimeWindow) -> Optional[Row]:
        """Aggregate the window month's rows into one summary row.

        Follower snapshots take the max, flows take the sum; every other cell
        is left blank. Returns None when no row falls in the window's month.
        """
        month_rows = [r for r in rows if str(r[0]).startswith(window.month_key)]
        if not month_rows:
            return None

        summary: Row = [""] * len(self.headers)
        summary[0] = window.end_date.isoformat()
        summary[1] = SUMMARY_LABEL
        summary[2] = SUMMARY_NAME

        for header in self.summary_max_columns:
            idx = self.column(header)
            summary[idx] = max(safe_number(r[idx]) for r in month_rows)
        for header in self.summary_sum_columns:
            idx = self.column(header)
            summary[idx] = safe_number(sum(safe_number(r[idx]) for r in month_rows))
        return summary
