"""
Database models for the influencer platform backend.

Contains the application / content link state, the view aggregate and the
read-only campaign and user projections.
"""

from .base import Base, BaseModel, TimestampMixin
from .user import UserProfile, UserRole
from .campaign import Campaign, CampaignStatus, PaymentModel
from .application import CampaignApplication, ApplicationStatus, TERMINAL_STATUSES
from .content_link import ApplicationContentLink, Platform, SelectionStatus
from .view_tracking import CampaignViewTracking

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UserProfile",
    "UserRole",
    "Campaign",
    "CampaignStatus",
    "PaymentModel",
    "CampaignApplication",
    "ApplicationStatus",
    "TERMINAL_STATUSES",
    "ApplicationContentLink",
    "Platform",
    "SelectionStatus",
    "CampaignViewTracking",
]
