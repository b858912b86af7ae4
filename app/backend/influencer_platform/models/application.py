"""
Campaign application model - a creator's request to take part in a campaign.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    String, Integer, Float, Text, ForeignKey, Index, DateTime, Enum as SQLEnum, text
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin, generate_id


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


TERMINAL_STATUSES = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.WITHDRAWN,
})


class CampaignApplication(BaseModel, TimestampMixin):
    """Creator application to a campaign."""

    __tablename__ = "campaign_applications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    campaign_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        comment="Campaign applied to"
    )

    influencer_id: Mapped[str] = mapped_column(
        String(36),
        comment="Applying creator"
    )

    message: Mapped[str] = mapped_column(Text, default="")

    proposed_rate: Mapped[Optional[float]] = mapped_column(
        Float,
        comment="Rate proposed by the creator (fixed campaigns)"
    )

    deliverables: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(
            ApplicationStatus,
            name="application_status",
            values_callable=lambda e: [m.value for m in e]
        ),
        default=ApplicationStatus.PENDING,
        comment="pending, approved, rejected, withdrawn"
    )

    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="When the brand approved or rejected"
    )

    withdrawn_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="When the creator withdrew"
    )

    # Optimistic concurrency counter, bumped by the ORM on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # One open (non-withdrawn) application per creator and campaign
        Index(
            "uq_applications_open_pair",
            "campaign_id",
            "influencer_id",
            unique=True,
            postgresql_where=text("status != 'withdrawn'"),
            sqlite_where=text("status != 'withdrawn'"),
        ),
        Index("idx_applications_status", "status", "campaign_id"),
        Index("idx_applications_influencer", "influencer_id"),
    )

    def __repr__(self) -> str:
        return f"<CampaignApplication(id={self.id}, campaign={self.campaign_id}, status={self.status})>"

    @property
    def is_pending(self) -> bool:
        return self.status == ApplicationStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
