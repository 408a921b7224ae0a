"""SproutSync — Normalizer Registry.

One normalizer instance per canonical platform key.
"""

from typing import Dict, List, Optional

from sproutsync.normalizers.base import PlatformNormalizer
from sproutsync.normalizers.facebook import FacebookNormalizer
from sproutsync.normalizers.instagram import InstagramNormalizer
from sproutsync.normalizers.linkedin import LinkedInNormalizer
from sproutsync.normalizers.twitter import TwitterNormalizer
from sproutsync.normalizers.youtube import YouTubeNormalizer

NORMALIZERS: Dict[str, PlatformNormalizer] = {
    n.platform.value: n
    for n in (
        InstagramNormalizer(),
        YouTubeNormalizer(),
        LinkedInNormalizer(),
        FacebookNormalizer(),
        TwitterNormalizer(),
    )
}


def get_normalizer(platform: str) -> Optional[PlatformNormalizer]:
    """Look up the normalizer for a canonical platform key."""
    return NORMALIZERS.get(platform)


def requested_metrics() -> List[str]:
    """Sorted union of every raw metric name any normalizer reads."""
    names = set()
    for normalizer in NORMALIZERS.values():
        names.update(normalizer.metrics)
    return sorted(names)
