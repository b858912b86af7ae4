"""
Platform view fetchers.
"""

from .base import ViewCountResult, PlatformViewFetcher, FetcherRegistry, create_default_registry
from .instagram import InstagramViewFetcher
from .tiktok import TikTokViewFetcher

__all__ = [
    "ViewCountResult",
    "PlatformViewFetcher",
    "FetcherRegistry",
    "create_default_registry",
    "InstagramViewFetcher",
    "TikTokViewFetcher",
]
