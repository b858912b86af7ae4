"""
TikTok view fetcher backed by the TikTok Research API.
"""

import asyncio
import time
from typing import Optional

import aiohttp
import structlog

from influencer_platform.core.config import settings
from influencer_platform.models.content_link import Platform
from influencer_platform.utils.link_validation import extract_tiktok_video_id
from .base import PlatformViewFetcher, ViewCountResult


logger = structlog.get_logger(__name__)

TOKEN_EXPIRY_MARGIN = 60  # seconds


class TikTokApiError(Exception):
    """Raised internally when a TikTok API call returns an error payload."""


class TikTokViewFetcher(PlatformViewFetcher):
    """
    Fetches video view counts through the Research API.

    Uses a client-credentials access token, cached until shortly before it
    expires. Short ``vm.tiktok.com`` links are resolved by following their
    redirect. Any failure is reported as an unavailable result.
    """

    platform = Platform.TIKTOK

    def __init__(
        self,
        client_key: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None
    ):
        self.client_key = client_key or settings.tiktok_client_key
        self.client_secret = client_secret or settings.tiktok_client_secret
        self.base_url = (base_url or settings.tiktok_api_base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.tiktok_request_timeout)

        self._session: Optional[aiohttp.ClientSession] = None
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

        self.logger = logger.bind(service="tiktok_view_fetcher")

    @property
    def configured(self) -> bool:
        return bool(self.client_key and self.client_secret)

    async def fetch(self, content_url: str) -> ViewCountResult:
        if not self.configured:
            return ViewCountResult.unavailable("TikTok API credentials are not configured")

        try:
            video_id = await self._resolve_video_id(content_url)
            if not video_id:
                return ViewCountResult.unavailable("Could not extract TikTok video id")

            view_count = await self._query_view_count(video_id)
            if view_count is None:
                return ViewCountResult.unavailable("Video not found or not accessible")

            return ViewCountResult.count(view_count)

        except asyncio.TimeoutError:
            self.logger.warning("TikTok API timeout", content_url=content_url)
            return ViewCountResult.unavailable("TikTok API timeout")
        except (aiohttp.ClientError, TikTokApiError) as e:
            self.logger.warning("TikTok API request failed", content_url=content_url, error=str(e))
            return ViewCountResult.unavailable(f"TikTok API error: {e}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def _resolve_video_id(self, content_url: str) -> Optional[str]:
        video_id = extract_tiktok_video_id(content_url)
        if video_id:
            return video_id

        if "vm.tiktok.com" not in content_url:
            return None

        session = await self._get_session()
        async with session.head(content_url, allow_redirects=True) as response:
            return extract_tiktok_video_id(str(response.url))

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            if self._access_token and time.monotonic() < self._token_expires_at:
                return self._access_token

            session = await self._get_session()
            async with session.post(
                f"{self.base_url}/oauth/token/",
                data={
                    "client_key": self.client_key,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            ) as response:
                data = await response.json(content_type=None)

            token = data.get("access_token") if isinstance(data, dict) else None
            if not token:
                raise TikTokApiError(
                    (data or {}).get("error_description") or "Failed to get TikTok access token"
                )

            expires_in = int(data.get("expires_in") or 0)
            self._access_token = token
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            self.logger.debug("TikTok access token refreshed", expires_in=expires_in)
            return token

    async def _query_view_count(self, video_id: str) -> Optional[int]:
        token = await self._get_access_token()
        session = await self._get_session()

        async with session.post(
            f"{self.base_url}/research/video/query/",
            params={"fields": "id,view_count"},
            json={
                "query": {
                    "and": [
                        {"operation": "EQ", "field_name": "video_id", "field_values": [video_id]}
                    ]
                },
                "max_count": 1,
            },
            headers={"Authorization": f"Bearer {token}"},
        ) as response:
            data = await response.json(content_type=None)

        error = data.get("error") or {}
        if error and error.get("code") not in (None, "ok"):
            raise TikTokApiError(error.get("message") or error.get("code"))

        videos = (data.get("data") or {}).get("videos") or []
        if not videos:
            return None
        return int(videos[0].get("view_count") or 0)
