"""
Content link registry.

Thin accessor over ``application_content_links`` used by the application
lifecycle and the view tracking pipeline. Every write keeps the selection pair
(``is_selected``, ``selection_status``) consistent and keeps view counters
monotonic unless a decrease is explicitly allowed.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from influencer_platform.core.exceptions import (
    NotFoundError,
    ValidationError,
    ViewCountDecreasedError,
)
from influencer_platform.models.application import CampaignApplication
from influencer_platform.models.content_link import (
    ApplicationContentLink,
    Platform,
    SelectionStatus,
)


logger = structlog.get_logger(__name__)


@dataclass
class ContentLinkInput:
    """Link submitted with a new application."""
    platform: Platform
    content_url: str


@dataclass
class PairViewTotals:
    """Selected-link views of one creator in one campaign."""
    total_views: int = 0
    instagram_views: int = 0
    tiktok_views: int = 0


class ContentLinkRegistry:
    """Registry for content link reads and writes within a session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="content_link_registry")

    async def add_links(
        self,
        application_id: str,
        links: Sequence[ContentLinkInput]
    ) -> List[ApplicationContentLink]:
        """Insert links for a new application, all pending and unselected."""
        created = [
            ApplicationContentLink.create_pending(application_id, link.platform, link.content_url)
            for link in links
        ]
        self.db.add_all(created)
        await self.db.flush()

        self.logger.info("Content links added", application_id=application_id, count=len(created))
        return created

    async def list_by_application(self, application_id: str) -> List[ApplicationContentLink]:
        result = await self.db.execute(
            select(ApplicationContentLink)
            .where(ApplicationContentLink.application_id == application_id)
            .order_by(ApplicationContentLink.created_at, ApplicationContentLink.id)
        )
        return list(result.scalars().all())

    async def list_by_applications(
        self,
        application_ids: Iterable[str]
    ) -> Dict[str, List[ApplicationContentLink]]:
        """Links grouped by application id."""
        ids = list(application_ids)
        grouped: Dict[str, List[ApplicationContentLink]] = {app_id: [] for app_id in ids}
        if not ids:
            return grouped

        result = await self.db.execute(
            select(ApplicationContentLink)
            .where(ApplicationContentLink.application_id.in_(ids))
            .order_by(ApplicationContentLink.created_at, ApplicationContentLink.id)
        )
        for link in result.scalars().all():
            grouped[link.application_id].append(link)
        return grouped

    async def list_selected_by_application(self, application_id: str) -> List[ApplicationContentLink]:
        result = await self.db.execute(
            select(ApplicationContentLink)
            .where(
                ApplicationContentLink.application_id == application_id,
                ApplicationContentLink.is_selected.is_(True),
                ApplicationContentLink.selection_status == SelectionStatus.SELECTED,
            )
            .order_by(ApplicationContentLink.created_at, ApplicationContentLink.id)
        )
        return list(result.scalars().all())

    async def set_selection(
        self,
        link_ids: Iterable[str],
        selected: bool,
        when: Optional[datetime] = None
    ) -> List[ApplicationContentLink]:
        """
        Mark links selected or not selected.

        Raises:
            NotFoundError: if any id does not exist
        """
        ids = list(dict.fromkeys(link_ids))
        if not ids:
            return []

        when = when or datetime.now(timezone.utc)
        result = await self.db.execute(
            select(ApplicationContentLink).where(ApplicationContentLink.id.in_(ids))
        )
        links = list(result.scalars().all())

        missing = set(ids) - {link.id for link in links}
        if missing:
            raise NotFoundError(
                "Content link not found",
                {"link_ids": sorted(missing)},
                code="CONTENT_LINK_NOT_FOUND"
            )

        for link in links:
            if selected:
                link.mark_selected(when)
            else:
                link.mark_not_selected(when)

        await self.db.flush()
        return links

    async def clear_selection(
        self,
        application_id: str,
        when: Optional[datetime] = None
    ) -> List[ApplicationContentLink]:
        """Mark every link of an application as not selected."""
        when = when or datetime.now(timezone.utc)
        links = await self.list_by_application(application_id)
        for link in links:
            link.mark_not_selected(when)
        await self.db.flush()
        return links

    async def get_link(self, link_id: str) -> ApplicationContentLink:
        """Load one link or raise ``NotFoundError``."""
        link = await self.db.get(ApplicationContentLink, link_id)
        if link is None:
            raise NotFoundError(
                f"Content link not found: {link_id}",
                {"link_id": link_id},
                code="CONTENT_LINK_NOT_FOUND"
            )
        return link

    async def update_view_count(
        self,
        link_id: str,
        new_count: int,
        checked_at: Optional[datetime] = None,
        allow_decrease: bool = False
    ) -> int:
        """
        Store a new cumulative view count for a link.

        Args:
            link_id: Link to update
            new_count: Count reported by the platform
            checked_at: Time of the check (defaults to now)
            allow_decrease: Accept a count lower than the stored one

        Returns:
            Change relative to the stored count

        Raises:
            ValidationError: negative count
            ViewCountDecreasedError: lower count without ``allow_decrease``
            NotFoundError: unknown link
        """
        if new_count < 0:
            raise ValidationError(
                "View count cannot be negative",
                {"link_id": link_id, "reported_views": new_count}
            )

        link = await self.get_link(link_id)

        current = link.views_tracked or 0
        if new_count < current and not allow_decrease:
            raise ViewCountDecreasedError(link_id, current, new_count)

        delta = link.record_views(new_count, checked_at or datetime.now(timezone.utc))
        await self.db.flush()

        if delta < 0:
            self.logger.warning(
                "View count decreased and was accepted",
                link_id=link_id,
                previous_views=current,
                new_views=new_count
            )
        return delta

    async def sum_selected_views(self, campaign_id: str, influencer_id: str) -> PairViewTotals:
        """Sum selected-link views across all of a creator's applications to a campaign."""
        result = await self.db.execute(
            select(
                ApplicationContentLink.platform,
                func.coalesce(func.sum(ApplicationContentLink.views_tracked), 0),
            )
            .join(CampaignApplication, CampaignApplication.id == ApplicationContentLink.application_id)
            .where(
                CampaignApplication.campaign_id == campaign_id,
                CampaignApplication.influencer_id == influencer_id,
                ApplicationContentLink.is_selected.is_(True),
                ApplicationContentLink.selection_status == SelectionStatus.SELECTED,
            )
            .group_by(ApplicationContentLink.platform)
        )

        totals = PairViewTotals()
        for platform, views in result.all():
            views = int(views or 0)
            totals.total_views += views
            if platform == Platform.INSTAGRAM:
                totals.instagram_views += views
            elif platform == Platform.TIKTOK:
                totals.tiktok_views += views
        return totals
