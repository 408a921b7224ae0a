"""SproutSync — YouTube Channel Normalizer."""

from typing import Any, Mapping, Optional, Sequence

from sproutsync.core.platform_registry import Platform
from sproutsync.models.analytics_models import DataPoint, Profile, TimeWindow
from sproutsync.normalizers.base import (
    PlatformNormalizer,
    Row,
    metric,
    ratio,
    safe_number,
)


class YouTubeNormalizer(PlatformNormalizer):
    """YouTube channels (``youtube_channel``).

    YouTube reports no impressions, so engagement is expressed per video view.
    """

    platform = Platform.YOUTUBE
    headers = (
        "Date",
        "Network",
        "Profile Name",
        "Network ID",
        "Profile ID",
        "Followers Count",
        "Net Follower Growth",
        "Followers Gained",
        "Followers Lost",
        "Posts Sent Count",
        "netFollowerGrowths",
        "videoEngagements",
        "videoViews",
        "Engagements per View",
    )
    metrics = (
        "lifetime_snapshot.followers_count",
        "net_follower_growth",
        "followers_gained",
        "followers_lost",
        "posts_sent_count",
        "comments_count",
        "likes",
        "dislikes",
        "shares_count",
        "annotation_clicks",
        "card_clicks",
        "video_views",
    )
    summary_max_columns = ("Followers Count",)
    summary_sum_columns = (
        "Net Follower Growth",
        "Followers Gained",
        "Followers Lost",
        "Posts Sent Count",
        "videoEngagements",
        "videoViews",
    )

    def build_row(
        self, data_point: DataPoint, profile: Profile, metrics: Mapping[str, Any]
    ) -> Row:
        gained = metric(metrics, "followers_gained")
        lost = metric(metrics, "followers_lost")
        video_views = metric(metrics, "video_views")

        engagements = (
            metric(metrics, "comments_count")
            + metric(metrics, "likes")
            + metric(metrics, "dislikes")
            + metric(metrics, "shares_count")
            + gained
            + metric(metrics, "annotation_clicks")
            + metric(metrics, "card_clicks")
        )

        return self.identity_columns(data_point, profile) + [
            metric(metrics, "lifetime_snapshot.followers_count"),
            metric(metrics, "net_follower_growth"),
            gained,
            lost,
            metric(metrics, "posts_sent_count"),
            gained - lost,
            engagements,
            video_views,
            ratio(engagements, video_views),
        ]

    def monthly_summary(self, rows: Sequence[Row], window: TimeWindow) -> Optional[Row]:
        summary = super().monthly_summary(rows, window)
        if summary is None:
            return None
        summary[self.column("netFollowerGrowths")] = summary[
            self.column("Net Follower Growth")
        ]
        summary[self.column("Engagements per View")] = ratio(
            safe_number(summary[self.column("videoEngagements")]),
            safe_number(summary[self.column("videoViews")]),
        )
        return summary
