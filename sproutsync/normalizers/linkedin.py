"""SproutSync — LinkedIn Company Page Normalizer."""

from typing import Any, Mapping

from sproutsync.core.platform_registry import Platform
from sproutsync.models.analytics_models import DataPoint, Profile
from sproutsync.normalizers.base import PlatformNormalizer, Row, metric, percentage


class LinkedInNormalizer(PlatformNormalizer):
    """LinkedIn company pages (``linkedin_company``).

    Unlike the other networks, LinkedIn counts content clicks as engagement
    and as click-through.
    """

    platform = Platform.LINKEDIN
    headers = (
        "Date",
        "Network Type",
        "Profile Name",
        "Network ID",
        "Profile ID",
        "Net Follower Growth",
        "New Followers Gained",
        "Followers Lost",
        "Organic Impressions",
        "Paid Impressions",
        "Total Reactions",
        "Total Comments",
        "Total Shares",
        "Total Link Clicks",
        "Total Content Clicks",
        "Posts Published Count",
        "Total Clicks",
        "Total Impressions",
        "Lifetime Followers Count",
        "Total Engagement Actions",
        "Engagement Rate % (per Impression)",
        "Engagement Rate % (per Follower)",
        "Click-Through Rate %",
    )
    metrics = (
        "net_follower_growth",
        "followers_gained",
        "followers_lost",
        "impressions_organic",
        "impressions_paid",
        "reactions",
        "comments_count",
        "shares_count",
        "post_link_clicks",
        "post_content_clicks",
        "posts_sent_count",
        "impressions",
        "lifetime_snapshot.followers_count",
    )

    def build_row(
        self, data_point: DataPoint, profile: Profile, metrics: Mapping[str, Any]
    ) -> Row:
        link_clicks = metric(metrics, "post_link_clicks")
        content_clicks = metric(metrics, "post_content_clicks")
        clicks = link_clicks + content_clicks
        impressions = metric(metrics, "impressions")
        followers = metric(metrics, "lifetime_snapshot.followers_count")

        engagements = (
            metric(metrics, "reactions")
            + metric(metrics, "comments_count")
            + metric(metrics, "shares_count")
            + clicks
        )

        return self.identity_columns(data_point, profile) + [
            metric(metrics, "net_follower_growth"),
            metric(metrics, "followers_gained"),
            metric(metrics, "followers_lost"),
            metric(metrics, "impressions_organic"),
            metric(metrics, "impressions_paid"),
            metric(metrics, "reactions"),
            metric(metrics, "comments_count"),
            metric(metrics, "shares_count"),
            link_clicks,
            content_clicks,
            metric(metrics, "posts_sent_count"),
            clicks,
            impressions,
            followers,
            engagements,
            percentage(engagements, impressions),
            percentage(engagements, followers),
            percentage(clicks, impressions),
        ]
