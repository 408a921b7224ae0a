"""SproutSync — Twitter / X Normalizer."""

from typing import Any, Mapping

from sproutsync.core.platform_registry import Platform
from sproutsync.models.analytics_models import DataPoint, Profile
from sproutsync.normalizers.base import PlatformNormalizer, Row, metric, percentage


class TwitterNormalizer(PlatformNormalizer):
    """Twitter / X profiles (``twitter_profile``)."""

    platform = Platform.TWITTER
    headers = (
        "Date",
        "Network Type",
        "Profile Name",
        "Network ID",
        "Profile ID",
        "Lifetime Followers Count",
        "Net Follower Growth",
        "Total Impressions",
        "Total Media Views",
        "Total Video Views",
        "Total Reactions",
        "Total Likes",
        "Total Comments/Replies",
        "Total Shares/Reposts",
        "Total Content Clicks",
        "Total Link Clicks",
        "Total Other Content Clicks",
        "Total Media Clicks",
        "Total Hashtag Clicks",
        "Total Expand Clicks",
        "Total Profile Clicks",
        "Other Engagement Actions",
        "Total App Engagements",
        "Total App Installs",
        "Total App Opens",
        "Posts Published Count",
        "Posts by Post Type",
        "Posts by Content Type",
        "Total Engagement Actions",
        "Engagement Rate % (per Impression)",
        "Engagement Rate % (per Follower)",
        "Click-Through Rate %",
    )
    metrics = (
        "lifetime_snapshot.followers_count",
        "net_follower_growth",
        "impressions",
        "post_media_views",
        "video_views",
        "reactions",
        "likes",
        "comments_count",
        "shares_count",
        "post_content_clicks",
        "post_link_clicks",
        "post_content_clicks_other",
        "post_media_clicks",
        "post_hashtag_clicks",
        "post_detail_expand_clicks",
        "post_profile_clicks",
        "engagements_other",
        "post_app_engagements",
        "post_app_installs",
        "post_app_opens",
        "posts_sent_count",
        "posts_sent_by_post_type",
        "posts_sent_by_content_type",
    )
    # Twitter reports no separate gained/lost counts
    summary_sum_columns = ("Net Follower Growth", "Posts Published Count")

    def build_row(
        self, data_point: DataPoint, profile: Profile, metrics: Mapping[str, Any]
    ) -> Row:
        followers = metric(metrics, "lifetime_snapshot.followers_count")
        impressions = metric(metrics, "impressions")
        link_clicks = metric(metrics, "post_link_clicks")

        engagements = (
            metric(metrics, "likes")
            + metric(metrics, "comments_count")
            + metric(metrics, "shares_count")
            + link_clicks
            + metric(metrics, "post_content_clicks_other")
            + metric(metrics, "engagements_other")
        )

        return self.identity_columns(data_point, profile) + [
            followers,
            metric(metrics, "net_follower_growth"),
            impressions,
            metric(metrics, "post_media_views"),
            metric(metrics, "video_views"),
            metric(metrics, "reactions"),
            metric(metrics, "likes"),
            metric(metrics, "comments_count"),
            metric(metrics, "shares_count"),
            metric(metrics, "post_content_clicks"),
            link_clicks,
            metric(metrics, "post_content_clicks_other"),
            metric(metrics, "post_media_clicks"),
            metric(metrics, "post_hashtag_clicks"),
            metric(metrics, "post_detail_expand_clicks"),
            metric(metrics, "post_profile_clicks"),
            metric(metrics, "engagements_other"),
            metric(metrics, "post_app_engagements"),
            metric(metrics, "post_app_installs"),
            metric(metrics, "post_app_opens"),
            metric(metrics, "posts_sent_count"),
            metric(metrics, "posts_sent_by_post_type"),
            metric(metrics, "posts_sent_by_content_type"),
            engagements,
            percentage(engagements, impressions),
            percentage(engagements, followers),
            percentage(link_clicks, impressions),
        ]
