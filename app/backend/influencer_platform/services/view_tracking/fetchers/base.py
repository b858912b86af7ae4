"""
Platform view fetcher contract and registry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import structlog

from influencer_platform.models.content_link import Platform


logger = structlog.get_logger(__name__)


@dataclass
class ViewCountResult:
    """Either a view count or the reason none could be obtained."""
    available: bool
    view_count: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def count(cls, view_count: int) -> "ViewCountResult":
        if view_count < 0:
            return cls.unavailable(f"Platform reported a negative view count: {view_count}")
        return cls(available=True, view_count=int(view_count))

    @classmethod
    def unavailable(cls, reason: str) -> "ViewCountResult":
        return cls(available=False, reason=reason)


class PlatformViewFetcher(ABC):
    """Reads the current cumulative view count of a content URL."""

    platform: Platform

    @abstractmethod
    async def fetch(self, content_url: str) -> ViewCountResult:
        """
        Current view count for ``content_url``.

        Implementations report failures as unavailable results instead of
        raising.
        """

    async def close(self) -> None:
        """Release any network resources held by the fetcher."""


class FetcherRegistry:
    """Maps each platform to the fetcher responsible for it."""

    def __init__(self, fetchers: Optional[Dict[Platform, PlatformViewFetcher]] = None):
        self._fetchers: Dict[Platform, PlatformViewFetcher] = dict(fetchers or {})

    def register(self, platform: Platform, fetcher: PlatformViewFetcher) -> None:
        self._fetchers[Platform(platform)] = fetcher

    def get(self, platform: Platform) -> Optional[PlatformViewFetcher]:
        return self._fetchers.get(Platform(platform))

    async def fetch(self, platform: Platform, content_url: str) -> ViewCountResult:
        """Fetch through the platform's fetcher; missing fetchers are unavailable."""
        fetcher = self.get(platform)
        if fetcher is None:
            return ViewCountResult.unavailable(f"No view fetcher registered for {Platform(platform).value}")
        return await fetcher.fetch(content_url)

    async def close(self) -> None:
        for fetcher in self._fetchers.values():
            try:
                await fetcher.close()
            except Exception as e:
                logger.warning("Failed to close view fetcher", platform=fetcher.platform.value, error=str(e))


def create_default_registry() -> FetcherRegistry:
    """Registry with the built-in TikTok and Instagram fetchers."""
    from .instagram import InstagramViewFetcher
    from .tiktok import TikTokViewFetcher

    return FetcherRegistry({
        Platform.TIKTOK: TikTokViewFetcher(),
        Platform.INSTAGRAM: InstagramViewFetcher(),
    })
