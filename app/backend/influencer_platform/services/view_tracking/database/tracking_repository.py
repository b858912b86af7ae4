"""
Repository for view tracking database operations.
"""

from datetime import datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from influencer_platform.core.database import get_async_session
from influencer_platform.models.application import CampaignApplication, ApplicationStatus
from influencer_platform.models.campaign import Campaign, PaymentModel
from influencer_platform.models.view_tracking import CampaignViewTracking
from influencer_platform.services.content_link_registry import ContentLinkRegistry
from influencer_platform.services.earnings_calculator import calculate_cpm_payout


logger = structlog.get_logger(__name__)


class TrackingRepository:
    """
    Repository for the batch's application queue and the view aggregate.
    """

    def __init__(self):
        self.logger = logger.bind(service="tracking_repository")

    async def get_approved_application_ids(self, campaign_id: Optional[str] = None) -> List[str]:
        """Ids of approved applications, oldest first, optionally for one campaign."""
        async with get_async_session() as db:
            query = select(CampaignApplication.id).where(
                CampaignApplication.status == ApplicationStatus.APPROVED
            )
            if campaign_id is not None:
                query = query.where(CampaignApplication.campaign_id == campaign_id)

            result = await db.execute(query.order_by(CampaignApplication.created_at, CampaignApplication.id))
            application_ids = [row[0] for row in result.fetchall()]

        self.logger.info(
            "Retrieved approved applications",
            campaign_id=campaign_id,
            count=len(application_ids)
        )
        return application_ids

    async def refresh_aggregate(
        self,
        campaign_id: str,
        influencer_id: str,
        checked_at: Optional[datetime] = None
    ) -> CampaignViewTracking:
        """
        Rewrite the (campaign, creator) aggregate from the current link rows.

        Running it twice without link changes leaves the same totals.
        """
        async with get_async_session() as db:
            tracking = await self.upsert_aggregate(db, campaign_id, influencer_id, checked_at)

        self.logger.info(
            "View aggregate refreshed",
            campaign_id=campaign_id,
            influencer_id=influencer_id,
            views_tracked=tracking.views_tracked,
            payout_calculated=tracking.payout_calculated
        )
        return tracking

    async def upsert_aggregate(
        self,
        db: AsyncSession,
        campaign_id: str,
        influencer_id: str,
        checked_at: Optional[datetime] = None
    ) -> CampaignViewTracking:
        totals = await ContentLinkRegistry(db).sum_selected_views(campaign_id, influencer_id)
        campaign = await db.get(Campaign, campaign_id)

        payout = None
        if campaign is not None and campaign.payment_model == PaymentModel.CPM.value and campaign.cpm_rate is not None:
            payout = calculate_cpm_payout(totals.total_views, campaign.cpm_rate, campaign.max_views)

        result = await db.execute(
            select(CampaignViewTracking).where(
                CampaignViewTracking.campaign_id == campaign_id,
                CampaignViewTracking.influencer_id == influencer_id,
            )
        )
        tracking = result.scalar_one_or_none()
        if tracking is None:
            tracking = CampaignViewTracking(campaign_id=campaign_id, influencer_id=influencer_id)
            db.add(tracking)

        tracking.views_tracked = totals.total_views
        tracking.instagram_views = totals.instagram_views
        tracking.tiktok_views = totals.tiktok_views
        tracking.payout_calculated = payout
        tracking.last_checked_at = checked_at or datetime.now(timezone.utc)

        await db.flush()
        return tracking

    async def get_campaign_tracking(
        self,
        campaign_id: str,
        influencer_id: Optional[str] = None
    ) -> List[CampaignViewTracking]:
        """Aggregates of a campaign's creators (or one creator), most viewed first."""
        query = select(CampaignViewTracking).where(CampaignViewTracking.campaign_id == campaign_id)
        if influencer_id is not None:
            query = query.where(CampaignViewTracking.influencer_id == influencer_id)

        async with get_async_session() as db:
            result = await db.execute(
                query.order_by(CampaignViewTracking.views_tracked.desc(), CampaignViewTracking.influencer_id)
            )
            return list(result.scalars().all())
