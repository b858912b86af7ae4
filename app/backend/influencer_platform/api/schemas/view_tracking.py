"""
View tracking Pydantic schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class BatchRefreshRequest(BaseModel):
    """Manual batch refresh request."""
    campaign_id: Optional[str] = Field(default=None, description="Limit the run to one campaign")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Deadline for the run")


class LinkRefreshOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    link_id: str
    status: str
    previous_views: int
    new_views: Optional[int] = None
    delta: int
    reason: Optional[str] = None


class ApplicationRefreshResponse(BaseModel):
    """Outcome of refreshing one application's selected links."""
    application_id: str
    campaign_id: str
    influencer_id: str
    updated: int
    skipped: int
    anomalies: int
    failed: int
    aggregate_views: Optional[int] = None
    outcomes: List[LinkRefreshOutcomeResponse]

    @classmethod
    def from_report(cls, report) -> "ApplicationRefreshResponse":
        return cls(
            application_id=report.application_id,
            campaign_id=report.campaign_id,
            influencer_id=report.influencer_id,
            updated=report.updated,
            skipped=report.skipped,
            anomalies=report.anomalies,
            failed=report.failed,
            aggregate_views=report.aggregate_views,
            outcomes=[
                LinkRefreshOutcomeResponse(
                    link_id=outcome.link_id,
                    status=outcome.status.value,
                    previous_views=outcome.previous_views,
                    new_views=outcome.new_views,
                    delta=outcome.delta,
                    reason=outcome.reason,
                )
                for outcome in report.outcomes
            ],
        )


class BatchRefreshResponse(BaseModel):
    """Statistics of a batch run."""
    campaign_id: Optional[str] = None
    total_applications: int
    processed_applications: int
    applications_updated: int
    failed_applications: int
    links_updated: int
    links_skipped: int
    links_failed: int
    anomalies: int
    timed_out: bool
    unprocessed_applications: int
    processing_time_seconds: float
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_stats(cls, stats) -> "BatchRefreshResponse":
        return cls(
            campaign_id=stats.campaign_id,
            total_applications=stats.total_applications,
            processed_applications=stats.processed_applications,
            applications_updated=stats.applications_updated,
            failed_applications=stats.failed_applications,
            links_updated=stats.links_updated,
            links_skipped=stats.links_skipped,
            links_failed=stats.links_failed,
            anomalies=stats.anomalies,
            timed_out=stats.timed_out,
            unprocessed_applications=stats.unprocessed_applications,
            processing_time_seconds=round(stats.total_processing_time, 2),
            errors=stats.errors[:5],
        )


class CampaignViewTrackingResponse(BaseModel):
    """Per-creator view aggregate of a campaign."""
    model_config = ConfigDict(from_attributes=True)

    campaign_id: str
    influencer_id: str
    views_tracked: int
    instagram_views: int
    tiktok_views: int
    payout_calculated: Optional[float] = None
    last_checked_at: Optional[datetime] = None


class RecordViewsRequest(BaseModel):
    """Manually recorded view count of a selected link."""
    view_count: int = Field(..., ge=0, description="Current cumulative views of the content")
    allow_decrease: bool = Field(default=False, description="Accept a count lower than the stored one")


class RecordViewsResponse(BaseModel):
    """Recorded link count and the refreshed campaign aggregate."""
    link_id: str
    application_id: str
    previous_views: int
    views_tracked: int
    delta: int
    tracking: CampaignViewTrackingResponse

    @classmethod
    def from_recorded(cls, recorded) -> "RecordViewsResponse":
        return cls(
            link_id=recorded.link_id,
            application_id=recorded.application_id,
            previous_views=recorded.previous_views,
            views_tracked=recorded.views_tracked,
            delta=recorded.delta,
            tracking=CampaignViewTrackingResponse.model_validate(recorded.tracking),
        )
