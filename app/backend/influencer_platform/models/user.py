"""
User profile projection.

Profiles are owned by the identity service; this backend only reads the role
to decide who may apply to campaigns.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin


class UserRole(str, Enum):
    """Platform roles."""
    INFLUENCER = "influencer"
    BRAND = "brand"
    ADMIN = "admin"


class UserProfile(BaseModel, TimestampMixin):
    """Read-only projection of a platform user."""

    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        comment="Role of the user on the platform"
    )

    full_name: Mapped[Optional[str]] = mapped_column(String(200))

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, role={self.role})>"

    @property
    def is_influencer(self) -> bool:
        return self.role == UserRole.INFLUENCER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
