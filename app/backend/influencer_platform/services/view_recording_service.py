"""
Manual view recording for CPM campaigns.

Instagram exposes no view counts to third parties, so brands and admins record
counts by hand. Every recorded count goes through the content link row and the
(campaign, creator) aggregate is recomputed in the same transaction.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from influencer_platform.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CampaignNotFoundError,
    InvalidStateError,
)
from influencer_platform.core.results import service_operation
from influencer_platform.models.application import CampaignApplication
from influencer_platform.models.campaign import Campaign, PaymentModel
from influencer_platform.models.user import UserProfile
from influencer_platform.models.view_tracking import CampaignViewTracking
from influencer_platform.services.content_link_registry import ContentLinkRegistry
from influencer_platform.services.view_tracking import TrackingRepository

logger = structlog.get_logger(__name__)


@dataclass
class RecordedViews:
    """A manually recorded link count and the aggregate it produced."""
    link_id: str
    application_id: str
    previous_views: int
    views_tracked: int
    delta: int
    tracking: CampaignViewTracking


class ViewRecordingService:
    """Brand/admin view recording and campaign aggregate reads."""

    def __init__(
        self,
        db: AsyncSession,
        registry: Optional[ContentLinkRegistry] = None,
        repository: Optional[TrackingRepository] = None
    ):
        self.db = db
        self.registry = registry or ContentLinkRegistry(db)
        self.repository = repository or TrackingRepository()
        self.logger = logger.bind(service="view_recording_service")

    @service_operation("record_link_views")
    async def record_link_views(
        self,
        actor_id: Optional[str],
        link_id: str,
        view_count: int,
        allow_decrease: bool = False
    ) -> RecordedViews:
        """
        Record the current view count of a selected link.

        Only the campaign's brand or an admin may record counts, and only for
        CPM campaigns. A count lower than the stored one is refused unless
        ``allow_decrease`` is set.
        """
        if not actor_id:
            raise AuthenticationError()

        link = await self.registry.get_link(link_id)
        application = await self.db.get(CampaignApplication, link.application_id)
        campaign = await self.db.get(Campaign, application.campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(application.campaign_id)

        await self._authorize_campaign_access(actor_id, campaign)

        if campaign.payment_model != PaymentModel.CPM.value:
            raise InvalidStateError(
                "View tracking is only available for CPM campaigns",
                {"campaign_id": campaign.id, "payment_model": campaign.payment_model},
                code="NOT_A_CPM_CAMPAIGN"
            )

        if not link.is_selected:
            raise InvalidStateError(
                "Views can only be recorded for selected content links",
                {"link_id": link_id, "selection_status": link.selection_status.value},
                code="LINK_NOT_SELECTED"
            )

        previous_views = link.views_tracked or 0
        checked_at = datetime.now(timezone.utc)
        delta = await self.registry.update_view_count(link_id, view_count, checked_at, allow_decrease=allow_decrease)
        tracking = await self.repository.upsert_aggregate(
            self.db,
            campaign.id,
            application.influencer_id,
            checked_at
        )

        self.logger.info(
            "Views recorded manually",
            link_id=link_id,
            actor_id=actor_id,
            previous_views=previous_views,
            views_tracked=view_count,
            aggregate_views=tracking.views_tracked
        )

        return RecordedViews(
            link_id=link_id,
            application_id=application.id,
            previous_views=previous_views,
            views_tracked=view_count,
            delta=delta,
            tracking=tracking,
        )

    @service_operation("get_view_tracking", commit=False)
    async def get_view_tracking(
        self,
        actor_id: Optional[str],
        campaign_id: str,
        influencer_id: Optional[str] = None
    ) -> List[CampaignViewTracking]:
        """
        View aggregates of a campaign, optionally for one creator.

        The campaign's brand and admins see every creator; a creator sees only
        their own aggregate.
        """
        if not actor_id:
            raise AuthenticationError()

        campaign = await self.db.get(Campaign, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)

        if influencer_id is None or influencer_id != actor_id:
            await self._authorize_campaign_access(actor_id, campaign)

        return await self.repository.get_campaign_tracking(campaign_id, influencer_id)

    async def _authorize_campaign_access(self, actor_id: str, campaign: Campaign) -> None:
        if actor_id == campaign.brand_id:
            return

        profile = await self.db.get(UserProfile, actor_id)
        if profile is None or not profile.is_admin:
            raise AuthorizationError(
                "Only the campaign's brand or an admin can manage its view tracking",
                {"campaign_id": campaign.id}
            )
