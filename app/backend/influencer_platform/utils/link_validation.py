"""
Social media link validation utilities.
Recognises Instagram post and TikTok video URLs and extracts their identifiers.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import structlog

from influencer_platform.models.content_link import Platform


logger = structlog.get_logger(__name__)

INSTAGRAM_HOSTS = {"instagram.com", "www.instagram.com"}
TIKTOK_HOSTS = {"tiktok.com", "www.tiktok.com"}
TIKTOK_SHORT_HOSTS = {"vm.tiktok.com"}

INSTAGRAM_POST_RE = re.compile(r"^/(p|reel|tv|stories)/([\w-]+)")
TIKTOK_VIDEO_RE = re.compile(r"^/@[\w.-]+/video/(\d+)")
TIKTOK_SHORT_RE = re.compile(r"^/(\w+)")


@dataclass
class LinkValidationResult:
    """Outcome of validating one content URL."""
    is_valid: bool
    platform: Optional[Platform] = None
    post_id: Optional[str] = None
    error: Optional[str] = None


def validate_social_media_link(url: str) -> LinkValidationResult:
    """
    Validate a content URL and detect its platform.

    Args:
        url: URL submitted by the creator

    Returns:
        LinkValidationResult with platform and post id when valid
    """
    if not url:
        return LinkValidationResult(False, error="URL is required")

    if not url.startswith("https://"):
        return LinkValidationResult(False, error="URL must use HTTPS protocol")

    try:
        parsed = urlparse(url)
    except ValueError:
        return LinkValidationResult(False, error="Invalid URL format")

    hostname = (parsed.hostname or "").lower()
    path = parsed.path

    if hostname in INSTAGRAM_HOSTS:
        match = INSTAGRAM_POST_RE.match(path)
        if match:
            return LinkValidationResult(True, Platform.INSTAGRAM, match.group(2))
        return LinkValidationResult(
            False,
            error="Invalid Instagram URL. Please provide a direct link to a post, reel, or story."
        )

    if hostname in TIKTOK_HOSTS:
        match = TIKTOK_VIDEO_RE.match(path)
        if match:
            return LinkValidationResult(True, Platform.TIKTOK, match.group(1))
        if "/@" in path:
            return LinkValidationResult(
                False,
                error="Please provide a direct link to a TikTok video, not a profile page."
            )
        return LinkValidationResult(
            False,
            error="Invalid TikTok URL. Please provide a direct link to a video."
        )

    if hostname in TIKTOK_SHORT_HOSTS:
        match = TIKTOK_SHORT_RE.match(path)
        if match:
            return LinkValidationResult(True, Platform.TIKTOK, match.group(1))

    return LinkValidationResult(
        False,
        error="URL must be from Instagram or TikTok. Other platforms are not supported."
    )


def extract_tiktok_video_id(url: str) -> Optional[str]:
    """Numeric video id of a full TikTok video URL, None for anything else."""
    result = validate_social_media_link(url)
    if result.is_valid and result.platform == Platform.TIKTOK and result.post_id and result.post_id.isdigit():
        return result.post_id
    return None
