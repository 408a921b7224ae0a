"""SproutSync — Sprout API Endpoints.

Group/profile metadata lookups and the chunked, paginated analytics fetcher.
Every network call goes through the shared retry policy.
"""

import asyncio
from datetime import date
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from sproutsync.config import settings
from sproutsync.connectors.sprout.client import SproutClient
from sproutsync.core.errors import RetryExhaustedError
from sproutsync.core.logging import get_logger
from sproutsync.core.periods import split_window
from sproutsync.core.retry import RetryPolicy, with_retry
from sproutsync.models.analytics_models import (
    DataPoint,
    Group,
    Profile,
    TimeWindow,
    coerce_profile_id,
)
from sproutsync.normalizers.registry import requested_metrics

logger = get_logger("sprout.endpoints")

REPORTING_PERIOD_KEYS = ("reporting_period.by(day)", "reporting_period")


def _has_no_data(body: Optional[Dict[str, Any]]) -> bool:
    return not (body or {}).get("data")


# ── Metadata ──


async def fetch_groups(
    client: SproutClient,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[Dict[str, Any]]:
    """Customer groups; an empty list is retried like a failure."""
    return await with_retry(
        client.get_customer_groups,
        policy,
        "Fetch customer groups",
        is_empty=lambda groups: not groups,
        sleep=sleep,
    )


async def fetch_profiles(
    client: SproutClient,
    policy: RetryPolicy,
    profile_ids: Optional[Iterable[Any]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[Profile]:
    """Customer profiles, optionally restricted to ``profile_ids``."""
    raw = await with_retry(
        client.get_profiles,
        policy,
        "Fetch customer profiles",
        is_empty=lambda profiles: not profiles,
        sleep=sleep,
    )
    wanted = {coerce_profile_id(p) for p in profile_ids} if profile_ids else None

    profiles: List[Profile] = []
    for record in raw:
        try:
            profile = Profile.model_validate(record)
        except ValueError as e:
            logger.warning(f"Skipping malformed profile record {record!r}: {e}")
            continue
        if wanted is None or profile.profile_id in wanted:
            profiles.append(profile)
    return profiles


def group_profiles(
    profiles: List[Profile], groups: List[Dict[str, Any]]
) -> List[Group]:
    """Bucket profiles into their groups, in group order.

    Profiles that belong to no group are left out; groups without profiles
    are skipped.
    """
    result: List[Group] = []
    for record in groups:
        group_id = str(record.get("group_id", ""))
        name = record.get("name") or group_id
        if not group_id:
            logger.warning(f"Skipping group record without group_id: {record!r}")
            continue
        members = [p for p in profiles if group_id in p.groups]
        if not members:
            logger.info(f"Skipping group {name} ({group_id}) - no profiles found")
            continue
        result.append(Group(group_id=group_id, name=name, profiles=members))
    return result


# ── Analytics ──


def parse_data_point(record: Any) -> Optional[DataPoint]:
    """Turn one analytics record into a DataPoint, or None if malformed."""
    if not isinstance(record, dict):
        logger.warning(f"Discarding non-object analytics record: {record!r}")
        return None

    dimensions = record.get("dimensions")
    if not isinstance(dimensions, dict):
        logger.warning("Discarding analytics record without dimensions")
        return None

    profile_id = dimensions.get("customer_profile_id")
    period = next(
        (dimensions[k] for k in REPORTING_PERIOD_KEYS if dimensions.get(k)), None
    )
    if profile_id in (None, "") or not period:
        logger.warning(
            f"Discarding analytics record missing profile id or reporting period: {dimensions!r}"
        )
        return None

    metrics = record.get("metrics")
    if metrics is not None and not isinstance(metrics, dict):
        logger.warning(
            f"Metrics block for profile {profile_id} is not an object; treating as absent"
        )
        metrics = None

    try:
        return DataPoint(
            profile_id=profile_id,
            reporting_period=date.fromisoformat(str(period)[:10]),
            metrics=metrics,
        )
    except ValueError as e:
        logger.warning(f"Discarding analytics record for profile {profile_id}: {e}")
        return None


def build_filters(profile_ids: List[str], window: TimeWindow) -> List[str]:
    return [
        f"customer_profile_id.eq({', '.join(profile_ids)})",
        f"reporting_period.in({window.start_date.isoformat()}...{window.end_date.isoformat()})",
    ]


class AnalyticsFetcher:
    """Fetch daily analytics for a set of profiles over a window.

    Requests are split by profile count and by window length so no single
    request exceeds the configured limits; paginated responses are merged.
    A sub-request that exhausts its retries contributes nothing and is logged.
    """

    def __init__(
        self,
        client: SproutClient,
        policy: RetryPolicy | None = None,
        max_profiles_per_request: int | None = None,
        max_days_per_request: int | None = None,
        max_pages: int | None = None,
        metrics: List[str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.policy = policy or RetryPolicy.from_settings()
        self.max_profiles = max_profiles_per_request or settings.sprout_max_profiles_per_request
        self.max_days = max_days_per_request or settings.sprout_max_days_per_request
        self.max_pages = max_pages or settings.sprout_max_pages
        self.metrics = metrics or requested_metrics()
        self._sleep = sleep

    async def fetch(self, profile_ids: Iterable[Any], window: TimeWindow) -> List[DataPoint]:
        ids = list(dict.fromkeys(coerce_profile_id(p) for p in profile_ids))
        if not ids:
            return []

        points: List[DataPoint] = []
        for start in range(0, len(ids), self.max_profiles):
            id_chunk = ids[start : start + self.max_profiles]
            for sub_window in split_window(window, self.max_days):
                points.extend(await self._fetch_chunk(id_chunk, sub_window))

        logger.info(
            f"Fetched {len(points)} data points for {len(ids)} profiles ({window})",
            extra={"month": window.month_key},
        )
        return points

    async def _fetch_chunk(self, profile_ids: List[str], window: TimeWindow) -> List[DataPoint]:
        filters = build_filters(profile_ids, window)
        points: List[DataPoint] = []
        page = 1

        while True:
            description = f"Analytics for {len(profile_ids)} profiles {window} page {page}"
            try:
                body = await with_retry(
                    partial(self.client.get_profile_analytics, filters, self.metrics, page),
                    self.policy,
                    description,
                    is_empty=_has_no_data,
                    sleep=self._sleep,
                )
            except RetryExhaustedError as e:
                logger.error(f"Giving up on {description}: {e.last_error}")
                break

            body = body or {}
            records = body.get("data") or []
            for record in records:
                point = parse_data_point(record)
                if point is not None:
                    points.append(point)

            paging = body.get("paging") or {}
            total_pages = int(paging.get("total_pages") or 1)
            if page >= total_pages:
                break
            if page >= self.max_pages:
                logger.warning(
                    f"Stopping at page {page} of {total_pages} for {window} (max_pages)"
                )
                break
            page += 1

        return points
