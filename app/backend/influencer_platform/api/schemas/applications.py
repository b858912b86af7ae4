"""
Application-related Pydantic schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from influencer_platform.models.application import ApplicationStatus
from influencer_platform.models.content_link import Platform, SelectionStatus


class ContentLinkCreate(BaseModel):
    """Content link submitted with an application."""
    platform: Platform = Field(..., description="instagram or tiktok")
    content_url: str = Field(..., min_length=1, max_length=2048, description="Direct link to the post or video")


class ApplicationCreate(BaseModel):
    """Request to apply to a campaign."""
    campaign_id: str = Field(..., description="Campaign to apply to")
    message: str = Field(default="", max_length=5000, description="Pitch to the brand")
    proposed_rate: Optional[float] = Field(default=None, ge=0, description="Proposed rate for fixed campaigns")
    deliverables: Optional[str] = Field(default=None, max_length=5000)
    content_links: List[ContentLinkCreate] = Field(default_factory=list)


class ApplicationUpdate(BaseModel):
    """Editable fields of a pending application."""
    message: Optional[str] = Field(default=None, max_length=5000)
    proposed_rate: Optional[float] = Field(default=None, ge=0)
    deliverables: Optional[str] = Field(default=None, max_length=5000)


class TransitionRequest(BaseModel):
    """Status change request."""
    status: ApplicationStatus = Field(..., description="approved, rejected or withdrawn")
    selected_link_ids: Optional[List[str]] = Field(
        default=None,
        description="Links to select on approval; omit to select all"
    )


class ContentLinkResponse(BaseModel):
    """Content link as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    platform: Platform
    content_url: str
    is_selected: bool
    selection_status: SelectionStatus
    views_tracked: int
    last_view_check: Optional[datetime] = None
    selection_date: Optional[datetime] = None
    created_at: datetime


class ApplicationResponse(BaseModel):
    """Application with its content links."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    campaign_id: str
    influencer_id: str
    message: str
    proposed_rate: Optional[float] = None
    deliverables: Optional[str] = None
    status: ApplicationStatus
    reviewed_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    content_links: List[ContentLinkResponse] = Field(default_factory=list)

    @classmethod
    def from_service(cls, item, content_links=None) -> "ApplicationResponse":
        """Build from an ``ApplicationWithLinks`` or a bare application."""
        application = getattr(item, "application", item)
        links = content_links if content_links is not None else getattr(item, "content_links", [])
        response = cls.model_validate(application)
        response.content_links = [ContentLinkResponse.model_validate(link) for link in links]
        return response
