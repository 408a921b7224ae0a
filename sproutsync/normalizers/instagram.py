"""SproutSync — Instagram Normalizer."""

from typing import Any, Mapping

from sproutsync.core.platform_registry import Platform
from sproutsync.models.analytics_models import DataPoint, Profile
from sproutsync.normalizers.base import (
    PlatformNormalizer,
    Row,
    first_present,
    metric,
    percentage,
)


class InstagramNormalizer(PlatformNormalizer):
    """Instagram business accounts (``fb_instagram_account``)."""

    platform = Platform.INSTAGRAM
    headers = (
        "Date",
        "Network Type",
        "Profile Name",
        "Network ID",
        "Profile ID",
        "Total Impressions",
        "Unique Impressions",
        "Total Video Views",
        "Total Reactions",
        "Total Post Likes",
        "Total Comments",
        "Total Post Saves",
        "Total Shares",
        "Total Story Replies",
        "Posts Published Count",
        "Net Follower Growth",
        "New Followers Gained",
        "Followers Lost",
        "Lifetime Following Count",
        "Total Content Views",
        "Lifetime Followers Count",
        "Net Following Growth",
        "Total Engagement Actions",
        "Engagement Rate % (per Impression)",
        "Engagement Rate % (per Follower)",
    )
    metrics = (
        "impressions",
        "impressions_unique",
        "video_views",
        "reactions",
        "likes",
        "post_likes",
        "comments_count",
        "saves",
        "post_saves",
        "shares_count",
        "story_replies",
        "posts_sent_count",
        "net_follower_growth",
        "followers_gained",
        "followers_lost",
        "following_count",
        "lifetime_snapshot.following_count",
        "views",
        "post_views",
        "lifetime_snapshot.followers_count",
        "net_following_growth",
    )

    def build_row(
        self, data_point: DataPoint, profile: Profile, metrics: Mapping[str, Any]
    ) -> Row:
        # The API reports likes/saves under either name
        likes = first_present(metrics, "post_likes", "likes")
        saves = first_present(metrics, "post_saves", "saves")

        engagements = (
            likes
            + metric(metrics, "comments_count")
            + metric(metrics, "shares_count")
            + saves
            + metric(metrics, "story_replies")
        )
        impressions = metric(metrics, "impressions")
        followers = metric(metrics, "lifetime_snapshot.followers_count")

        return self.identity_columns(data_point, profile) + [
            impressions,
            metric(metrics, "impressions_unique"),
            metric(metrics, "video_views"),
            metric(metrics, "reactions"),
            likes,
            metric(metrics, "comments_count"),
            saves,
            metric(metrics, "shares_count"),
            metric(metrics, "story_replies"),
            metric(metrics, "posts_sent_count"),
            metric(metrics, "net_follower_growth"),
            metric(metrics, "followers_gained"),
            metric(metrics, "followers_lost"),
            first_present(metrics, "following_count", "lifetime_snapshot.following_count"),
            first_present(metrics, "post_views", "views"),
            followers,
            metric(metrics, "net_following_growth"),
            engagements,
            percentage(engagements, impressions),
            percentage(engagements, followers),
        ]
