"""
Instagram view fetcher.
"""

from influencer_platform.models.content_link import Platform
from .base import PlatformViewFetcher, ViewCountResult


class InstagramViewFetcher(PlatformViewFetcher):
    """Instagram does not expose view counts to third parties; always unavailable."""

    platform = Platform.INSTAGRAM

    async def fetch(self, content_url: str) -> ViewCountResult:
        return ViewCountResult.unavailable("Instagram view tracking is not supported")
