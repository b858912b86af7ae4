"""
Earnings calculation for campaign applications.

CPM campaigns pay per thousand views on the selected content links, fixed
campaigns pay the agreed rate regardless of views.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from influencer_platform.core.exceptions import (
    ApplicationNotFoundError,
    CampaignNotFoundError,
    UnsupportedPaymentModelError,
)
from influencer_platform.core.results import service_operation
from influencer_platform.models.application import CampaignApplication
from influencer_platform.models.campaign import Campaign, PaymentModel
from influencer_platform.services.content_link_registry import ContentLinkRegistry

logger = structlog.get_logger(__name__)


def calculate_cpm_payout(views: int, cpm_rate: float, max_views: Optional[int] = None) -> float:
    """Payout for ``views`` at ``cpm_rate`` per thousand, capped at ``max_views``."""
    counted = max(views, 0)
    if max_views is not None and max_views >= 0:
        counted = min(counted, max_views)
    return (counted / 1000) * cpm_rate


def calculate_earnings(
    payment_model: Optional[str],
    views: int,
    cpm_rate: Optional[float] = None,
    fixed_price: Optional[float] = None,
    proposed_rate: Optional[float] = None
) -> float:
    """
    Amount payable for an application.

    Args:
        payment_model: ``fixed`` or ``cpm``
        views: Summed views of the selected content links
        cpm_rate: Campaign rate per thousand views
        fixed_price: Campaign price per post
        proposed_rate: Creator's proposed rate, preferred over the fixed price

    Raises:
        UnsupportedPaymentModelError: unknown model, or a CPM campaign without a rate
    """
    try:
        model = PaymentModel(payment_model)
    except ValueError:
        raise UnsupportedPaymentModelError(payment_model)

    if model == PaymentModel.CPM:
        if cpm_rate is None:
            raise UnsupportedPaymentModelError(payment_model, "CPM campaign has no CPM rate")
        return calculate_cpm_payout(views, cpm_rate)

    if proposed_rate is not None:
        return float(proposed_rate)
    if fixed_price is not None:
        return float(fixed_price)
    return 0.0


@dataclass
class EarningsBreakdown:
    """Earnings of one application at its current selected-link counters."""
    application_id: str
    campaign_id: str
    payment_model: str
    total_views: int
    selected_links: int
    earnings: float
    cpm_rate: Optional[float] = None
    max_views: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "application_id": self.application_id,
            "campaign_id": self.campaign_id,
            "payment_model": self.payment_model,
            "total_views": self.total_views,
            "selected_links": self.selected_links,
            "earnings": self.earnings,
            "cpm_rate": self.cpm_rate,
            "max_views": self.max_views,
        }


class EarningsCalculator:
    """Computes application earnings from live content link state."""

    def __init__(self, db: AsyncSession, registry: Optional[ContentLinkRegistry] = None):
        self.db = db
        self.registry = registry or ContentLinkRegistry(db)
        self.logger = logger.bind(service="earnings_calculator")

    @service_operation("compute_earnings", commit=False)
    async def compute(self, application_id: str) -> EarningsBreakdown:
        """Earnings of an application from its currently selected links."""
        application = await self.db.get(CampaignApplication, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        campaign = await self.db.get(Campaign, application.campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(application.campaign_id)

        selected = await self.registry.list_selected_by_application(application_id)
        total_views = sum(link.views_tracked or 0 for link in selected)

        earnings = calculate_earnings(
            campaign.payment_model,
            total_views,
            cpm_rate=campaign.cpm_rate,
            fixed_price=campaign.price_per_post,
            proposed_rate=application.proposed_rate,
        )

        self.logger.debug(
            "Earnings computed",
            application_id=application_id,
            total_views=total_views,
            earnings=earnings
        )

        return EarningsBreakdown(
            application_id=application_id,
            campaign_id=campaign.id,
            payment_model=campaign.payment_model,
            total_views=total_views,
            selected_links=len(selected),
            earnings=earnings,
            cpm_rate=campaign.cpm_rate,
            max_views=campaign.max_views,
        )
