"""SproutSync — Sprout Data Points → Platform Rows.

Groups data points by (profile, day), resolves each to its profile, picks the
platform normalizer from the profile's network type, and buckets the resulting
rows by platform. Every dropped data point is logged with its reason.
"""

from datetime import date
from typing import Dict, Iterable, List, Tuple

from sproutsync.core.logging import get_logger
from sproutsync.core.platform_registry import canonical_platform
from sproutsync.models.analytics_models import DataPoint, Profile, coerce_profile_id
from sproutsync.normalizers.base import Row
from sproutsync.normalizers.registry import get_normalizer

logger = get_logger("sprout.transformer")


def dedupe_data_points(data_points: Iterable[DataPoint]) -> List[DataPoint]:
    """Keep the first data point per (profile_id, day), in arrival order."""
    seen: Dict[Tuple[str, date], DataPoint] = {}
    for point in data_points:
        if point.key in seen:
            logger.info(
                f"Dropping duplicate data point for profile {point.profile_id} "
                f"on {point.reporting_period}"
            )
            continue
        seen[point.key] = point
    return list(seen.values())


def route_rows(
    data_points: Iterable[DataPoint],
    profiles: Iterable[Profile],
) -> Dict[str, List[Row]]:
    """Normalize data points into rows bucketed by canonical platform key.

    Platforms with no rows are absent from the result.
    """
    by_id = {coerce_profile_id(p.profile_id): p for p in profiles}
    rows_by_platform: Dict[str, List[Row]] = {}
    dropped = 0

    unique_points = dedupe_data_points(data_points)
    for point in unique_points:
        profile = by_id.get(point.profile_id)
        if profile is None:
            logger.warning(f"Profile not found for ID: {point.profile_id}; dropping data point")
            dropped += 1
            continue

        platform = canonical_platform(profile.network_type)
        normalizer = get_normalizer(platform)
        if normalizer is None:
            logger.warning(
                f"No normalizer for network type {profile.network_type} "
                f"(profile {profile.name}); dropping data point",
                extra={"platform": platform},
            )
            dropped += 1
            continue

        row = normalizer.format_row(point, profile)
        if row is None:
            logger.warning(
                f"No row generated for {platform} profile {profile.name} "
                f"on {point.reporting_period}",
                extra={"platform": platform},
            )
            dropped += 1
            continue

        rows_by_platform.setdefault(platform, []).append(row)

    logger.info(
        f"Routed {len(unique_points) - dropped} rows across "
        f"{len(rows_by_platform)} platforms ({dropped} dropped)"
    )
    return rows_by_platform
