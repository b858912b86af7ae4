"""
Shared fixtures: a fresh SQLite database per test, seed helpers and fake
view fetchers.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from influencer_platform.core.database import (
    init_database,
    close_database,
    DatabaseManager,
    get_async_session,
)
from influencer_platform.models.campaign import Campaign, CampaignStatus, PaymentModel
from influencer_platform.models.content_link import Platform
from influencer_platform.models.user import UserProfile, UserRole
from influencer_platform.services.application_service import ApplicationService, ApplicationWithLinks
from influencer_platform.services.content_link_registry import ContentLinkInput
from influencer_platform.services.view_tracking.fetchers import (
    FetcherRegistry,
    PlatformViewFetcher,
    ViewCountResult,
)


FetchAnswer = Union[int, None, Exception, ViewCountResult]


class FakeViewFetcher(PlatformViewFetcher):
    """
    Answers from a url -> answer map.

    An int is a view count, None is unavailable, an exception is raised.
    """

    def __init__(self, platform: Platform, answers: Optional[Dict[str, FetchAnswer]] = None, delay: float = 0.0):
        self.platform = platform
        self.answers: Dict[str, FetchAnswer] = dict(answers or {})
        self.delay = delay
        self.calls: List[str] = []

    async def fetch(self, content_url: str) -> ViewCountResult:
        self.calls.append(content_url)
        if self.delay:
            await asyncio.sleep(self.delay)

        answer = self.answers.get(content_url)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, ViewCountResult):
            return answer
        if answer is None:
            return ViewCountResult.unavailable("no data")
        return ViewCountResult.count(answer)


class Seeder:
    """Writes the read-only projections and ready-made applications."""

    def __init__(self):
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter:04d}"

    async def user(self, role: UserRole = UserRole.INFLUENCER) -> str:
        user_id = self._next_id(role.value)
        async with get_async_session() as db:
            db.add(UserProfile(id=user_id, role=role, full_name=user_id.title()))
        return user_id

    async def campaign(
        self,
        brand_id: Optional[str] = None,
        status: str = CampaignStatus.ACTIVE.value,
        payment_model: str = PaymentModel.CPM.value,
        cpm_rate: Optional[float] = 5.0,
        price_per_post: Optional[float] = None,
        max_views: Optional[int] = None
    ) -> Campaign:
        brand_id = brand_id or await self.user(UserRole.BRAND)
        campaign = Campaign(
            id=self._next_id("campaign"),
            brand_id=brand_id,
            title="Summer launch",
            status=status,
            payment_model=payment_model,
            cpm_rate=cpm_rate,
            price_per_post=price_per_post,
            max_views=max_views,
        )
        async with get_async_session() as db:
            db.add(campaign)
        return campaign

    async def application(
        self,
        campaign: Campaign,
        influencer_id: Optional[str] = None,
        links: Sequence[Tuple[Platform, str]] = (),
        proposed_rate: Optional[float] = None
    ) -> ApplicationWithLinks:
        influencer_id = influencer_id or await self.user(UserRole.INFLUENCER)
        async with get_async_session() as db:
            result = await ApplicationService(db).create_application(
                influencer_id,
                campaign.id,
                message="I'd love to join",
                proposed_rate=proposed_rate,
                content_links=[ContentLinkInput(platform, url) for platform, url in links],
            )
        return result.unwrap()

    async def approved_application(
        self,
        campaign: Campaign,
        influencer_id: Optional[str] = None,
        links: Sequence[Tuple[Platform, str]] = (),
        selected_indexes: Optional[Sequence[int]] = None,
        proposed_rate: Optional[float] = None
    ) -> ApplicationWithLinks:
        created = await self.application(campaign, influencer_id, links, proposed_rate)
        selected = None
        if selected_indexes is not None:
            selected = [created.content_links[i].id for i in selected_indexes]

        async with get_async_session() as db:
            result = await ApplicationService(db).approve(created.application.id, campaign.brand_id, selected)
        return result.unwrap()


@pytest.fixture
async def database(tmp_path):
    """Fresh file-backed SQLite database with all tables."""
    await init_database(f"sqlite:///{tmp_path / 'test.db'}")
    await DatabaseManager.create_tables()
    yield
    await close_database()


@pytest.fixture
def seed(database) -> Seeder:
    return Seeder()


@pytest.fixture
def tiktok_fetcher() -> FakeViewFetcher:
    return FakeViewFetcher(Platform.TIKTOK)


@pytest.fixture
def instagram_fetcher() -> FakeViewFetcher:
    return FakeViewFetcher(Platform.INSTAGRAM)


@pytest.fixture
def fetchers(tiktok_fetcher, instagram_fetcher) -> FetcherRegistry:
    return FetcherRegistry({
        Platform.TIKTOK: tiktok_fetcher,
        Platform.INSTAGRAM: instagram_fetcher,
    })
