"""
Content link model - one piece of submitted content attached to an application.

Selection state is written only through the helper methods below so that
``selection_status`` and ``is_selected`` never disagree.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    String, Text, Boolean, BigInteger, ForeignKey, Index, DateTime, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin, generate_id


class Platform(str, Enum):
    """Supported social platforms."""
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"


class SelectionStatus(str, Enum):
    """Brand selection state of a content link."""
    PENDING = "pending"
    SELECTED = "selected"
    NOT_SELECTED = "not_selected"


class ApplicationContentLink(BaseModel, TimestampMixin):
    """Content URL submitted with an application."""

    __tablename__ = "application_content_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    application_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("campaign_applications.id", ondelete="CASCADE"),
        comment="Owning application"
    )

    platform: Mapped[Platform] = mapped_column(
        SQLEnum(Platform, name="content_platform", values_callable=lambda e: [m.value for m in e]),
        comment="instagram or tiktok"
    )

    content_url: Mapped[str] = mapped_column(Text)

    is_selected: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="Counts toward tracking and payment"
    )

    selection_status: Mapped[SelectionStatus] = mapped_column(
        SQLEnum(
            SelectionStatus,
            name="selection_status",
            values_callable=lambda e: [m.value for m in e]
        ),
        default=SelectionStatus.PENDING,
        comment="pending, selected, not_selected"
    )

    views_tracked: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Cumulative views reported by the platform"
    )

    last_view_check: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="Last successful view count refresh"
    )

    selection_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="When the brand made its selection"
    )

    __table_args__ = (
        Index("idx_content_links_application", "application_id", "created_at"),
        Index("idx_content_links_selected", "application_id", "selection_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ApplicationContentLink(id={self.id}, platform={self.platform}, "
            f"status={self.selection_status}, views={self.views_tracked})>"
        )

    @classmethod
    def create_pending(
        cls,
        application_id: str,
        platform: Platform,
        content_url: str
    ) -> "ApplicationContentLink":
        """New link awaiting brand review."""
        return cls(
            application_id=application_id,
            platform=platform,
            content_url=content_url,
            is_selected=False,
            selection_status=SelectionStatus.PENDING,
            views_tracked=0,
        )

    def mark_selected(self, when: datetime) -> None:
        self.is_selected = True
        self.selection_status = SelectionStatus.SELECTED
        self.selection_date = when

    def mark_not_selected(self, when: datetime) -> None:
        self.is_selected = False
        self.selection_status = SelectionStatus.NOT_SELECTED
        self.selection_date = when

    def record_views(self, view_count: int, checked_at: datetime) -> int:
        """Store a new cumulative count and return the change."""
        delta = view_count - (self.views_tracked or 0)
        self.views_tracked = view_count
        self.last_view_check = checked_at
        return delta
