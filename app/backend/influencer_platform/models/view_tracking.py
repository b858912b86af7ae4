"""
Per (campaign, creator) view aggregate.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, BigInteger, Float, DateTime, UniqueConstraint, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin, generate_id


class CampaignViewTracking(BaseModel, TimestampMixin):
    """
    Summed views of a creator's selected links in one campaign.

    Always rewritten from the current content link rows; never incremented.
    """

    __tablename__ = "campaign_view_tracking"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    campaign_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("campaigns.id", ondelete="CASCADE")
    )

    influencer_id: Mapped[str] = mapped_column(String(36))

    views_tracked: Mapped[int] = mapped_column(BigInteger, default=0)

    instagram_views: Mapped[int] = mapped_column(BigInteger, default=0)

    tiktok_views: Mapped[int] = mapped_column(BigInteger, default=0)

    payout_calculated: Mapped[Optional[float]] = mapped_column(
        Float,
        comment="CPM payout at the current counters (None for fixed campaigns)"
    )

    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("campaign_id", "influencer_id", name="uq_view_tracking_pair"),
    )

    def __repr__(self) -> str:
        return (
            f"<CampaignViewTracking(campaign={self.campaign_id}, "
            f"influencer={self.influencer_id}, views={self.views_tracked})>"
        )
