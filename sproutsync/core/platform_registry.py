"""SproutSync — Platform Registry.

Maps the analytics API's raw network types onto the canonical platform keys
used to pick a normalizer and name the destination sheet.
"""

from enum import Enum
from typing import Dict


class Platform(str, Enum):
    """Canonical platform keys, one destination sheet each."""

    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    TWITTER = "twitter"


# ─────────────────────────────────────────────
# RAW NETWORK TYPE → CANONICAL PLATFORM
# ─────────────────────────────────────────────

NETWORK_TYPE_MAP: Dict[str, str] = {
    "linkedin_company": Platform.LINKEDIN.value,
    "fb_instagram_account": Platform.INSTAGRAM.value,
    "fb_page": Platform.FACEBOOK.value,
    "youtube_channel": Platform.YOUTUBE.value,
    "twitter_profile": Platform.TWITTER.value,
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────


def canonical_platform(network_type: str) -> str:
    """Look up a raw network type; unknown types pass through unchanged."""
    return NETWORK_TYPE_MAP.get(network_type, network_type)


def sheet_name(platform: str) -> str:
    """Destination sheet title for a platform key, e.g. ``linkedin`` → ``Linkedin``."""
    return platform[:1].upper() + platform[1:]
