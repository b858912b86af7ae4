"""
Campaign projection.

Campaign CRUD lives elsewhere; the engine reads status, ownership and the
payment terms used to price a creator's content.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import String, Float, BigInteger, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin, generate_id


class CampaignStatus(str, Enum):
    """Campaign lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentModel(str, Enum):
    """How a campaign pays creators."""
    FIXED = "fixed"
    CPM = "cpm"


class Campaign(BaseModel, TimestampMixin):
    """Read-only projection of a brand campaign."""

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    brand_id: Mapped[str] = mapped_column(
        String(36),
        index=True,
        comment="Owning brand user id"
    )

    title: Mapped[str] = mapped_column(String(200), default="")

    status: Mapped[str] = mapped_column(
        String(20),
        default=CampaignStatus.DRAFT.value,
        comment="draft, active, paused, completed, cancelled"
    )

    # Stored as plain text so unknown models surface as pricing errors
    payment_model: Mapped[str] = mapped_column(
        String(20),
        default=PaymentModel.FIXED.value,
        comment="fixed or cpm"
    )

    cpm_rate: Mapped[Optional[float]] = mapped_column(
        Float,
        comment="Payout per thousand views for CPM campaigns"
    )

    price_per_post: Mapped[Optional[float]] = mapped_column(
        Float,
        comment="Fixed price for fixed-payment campaigns"
    )

    max_views: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        comment="View cap applied to CPM payouts"
    )

    __table_args__ = (
        Index("idx_campaigns_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Campaign(id={self.id}, status={self.status}, payment_model={self.payment_model})>"

    @property
    def is_active(self) -> bool:
        return self.status == CampaignStatus.ACTIVE.value
