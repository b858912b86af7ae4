"""
Declarative base and shared mixins for all models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Primary key factory for string identifiers."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base shared by every table."""


class BaseModel(Base):
    """Abstract base for concrete models."""

    __abstract__ = True

    def to_dict(self) -> dict:
        """Plain column values, keyed by column name."""
        return {column.name: getattr(self, column.key) for column in self.__table__.columns}


class TimestampMixin:
    """
    Creation and update timestamps.

    Values are produced in Python so they are readable right after a flush
    without a refresh round-trip on async sessions.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        comment="Row creation time"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        comment="Last update time"
    )
