"""SproutSync — Facebook Page Normalizer."""

from typing import Any, Mapping

from sproutsync.core.platform_registry import Platform
from sproutsync.models.analytics_models import DataPoint, Profile
from sproutsync.normalizers.base import PlatformNormalizer, Row, metric, percentage

# (header, raw metric) pairs copied straight through between the
# identity columns and the derived engagement columns
PASSTHROUGH_COLUMNS = (
    ("Lifetime Followers Count", "lifetime_snapshot.followers_count"),
    ("Net Follower Growth", "net_follower_growth"),
    ("New Followers Gained", "followers_gained"),
    ("New Followers Gained (Organic)", "followers_gained_organic"),
    ("New Followers Gained (Paid)", "followers_gained_paid"),
    ("Followers Lost", "followers_lost"),
    ("Lifetime Fans Count", "lifetime_snapshot.fans_count"),
    ("New Fans Gained", "fans_gained"),
    ("New Fans Gained (Organic)", "fans_gained_organic"),
    ("New Fans Gained (Paid)", "fans_gained_paid"),
    ("Fans Lost", "fans_lost"),
    ("Total Impressions", "impressions"),
    ("Organic Impressions", "impressions_organic"),
    ("Viral Impressions", "impressions_viral"),
    ("Non-Viral Impressions", "impressions_nonviral"),
    ("Paid Impressions", "impressions_paid"),
    ("Total Tab Views", "tab_views"),
    ("Tab Views (Logged In)", "tab_views_login"),
    ("Tab Views (Logged Out)", "tab_views_logout"),
    ("Total Post Impressions", "post_impressions"),
    ("Post Impressions (Organic)", "post_impressions_organic"),
    ("Post Impressions (Viral)", "post_impressions_viral"),
    ("Post Impressions (Non-Viral)", "post_impressions_nonviral"),
    ("Post Impressions (Paid)", "post_impressions_paid"),
    ("Unique Impressions", "impressions_unique"),
    ("Unique Organic Impressions", "impressions_organic_unique"),
    ("Unique Viral Impressions", "impressions_viral_unique"),
    ("Unique Non-Viral Impressions", "impressions_nonviral_unique"),
    ("Unique Paid Impressions", "impressions_paid_unique"),
    ("Total Reactions", "reactions"),
    ("Total Comments", "comments_count"),
    ("Total Shares", "shares_count"),
    ("Total Link Clicks", "post_link_clicks"),
    ("Total Other Content Clicks", "post_content_clicks_other"),
    ("Total Profile Actions", "profile_actions"),
    ("Total Post Engagements", "post_engagements"),
    ("Total Video Views", "video_views"),
    ("Video Views (Organic)", "video_views_organic"),
    ("Video Views (Paid)", "video_views_paid"),
    ("Video Views (Autoplay)", "video_views_autoplay"),
    ("Video Views (Click-to-Play)", "video_views_click_to_play"),
    ("Video Views (Repeat)", "video_views_repeat"),
    ("Total Video View Time", "video_view_time"),
    ("Unique Video Views", "video_views_unique"),
    ("Posts Published Count", "posts_sent_count"),
    ("Posts by Post Type", "posts_sent_by_post_type"),
    ("Posts by Content Type", "posts_sent_by_content_type"),
)


class FacebookNormalizer(PlatformNormalizer):
    """Facebook pages (``fb_page``)."""

    platform = Platform.FACEBOOK
    headers = (
        ("Date", "Network Type", "Profile Name", "Network ID", "Profile ID")
        + tuple(header for header, _ in PASSTHROUGH_COLUMNS)
        + (
            "Total Engagement Actions",
            "Engagement Rate % (per Impression)",
            "Engagement Rate % (per Follower)",
            "Click-Through Rate %",
        )
    )
    metrics = tuple(name for _, name in PASSTHROUGH_COLUMNS)

    def build_row(
        self, data_point: DataPoint, profile: Profile, metrics: Mapping[str, Any]
    ) -> Row:
        followers = metric(metrics, "lifetime_snapshot.followers_count")
        impressions = metric(metrics, "impressions")
        link_clicks = metric(metrics, "post_link_clicks")

        engagements = (
            metric(metrics, "reactions")
            + metric(metrics, "comments_count")
            + metric(metrics, "shares_count")
            + link_clicks
            + metric(metrics, "post_content_clicks_other")
        )

        return (
            self.identity_columns(data_point, profile)
            + [metric(metrics, name) for _, name in PASSTHROUGH_COLUMNS]
            + [
                engagements,
                percentage(engagements, impressions),
                percentage(engagements, followers),
                percentage(link_clicks, impressions),
            ]
        )
