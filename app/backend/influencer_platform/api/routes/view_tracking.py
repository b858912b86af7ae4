"""
View tracking routes for the influencer platform API.
Manual refresh of view counters and campaign view aggregates.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

import structlog

from influencer_platform.api.dependencies import (
    get_admin_user_id,
    get_application_service,
    get_current_user_id,
    get_orchestrator,
    get_scheduler,
    get_view_recording_service,
)
from influencer_platform.api.errors import unwrap_result
from influencer_platform.api.schemas.common import SuccessResponse, create_success_response
from influencer_platform.api.schemas.view_tracking import (
    ApplicationRefreshResponse,
    BatchRefreshRequest,
    BatchRefreshResponse,
    CampaignViewTrackingResponse,
    RecordViewsRequest,
    RecordViewsResponse,
)
from influencer_platform.scheduler.view_tracking_scheduler import ViewTrackingScheduler
from influencer_platform.services.application_service import ApplicationService
from influencer_platform.services.view_recording_service import ViewRecordingService
from influencer_platform.services.view_tracking import ViewTrackingOrchestrator


logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/applications/{application_id}/refresh",
    response_model=SuccessResponse,
    summary="Refresh Application Views",
    description="Fetch current view counts for an application's selected links"
)
async def refresh_application_views(
    application_id: str,
    user_id: str = Depends(get_current_user_id),
    applications: ApplicationService = Depends(get_application_service),
    orchestrator: ViewTrackingOrchestrator = Depends(get_orchestrator)
):
    unwrap_result(await applications.get_application_with_links(application_id, actor_id=user_id))

    report = unwrap_result(await orchestrator.refresh_application(application_id))

    logger.info(
        "Manual view refresh via API",
        application_id=application_id,
        updated=report.updated,
        skipped=report.skipped
    )
    return create_success_response(
        data=ApplicationRefreshResponse.from_report(report),
        message=f"Updated {report.updated} of {len(report.outcomes)} selected links"
    )


@router.post(
    "/batch",
    response_model=SuccessResponse,
    summary="Run View Tracking Batch",
    description="Refresh all approved applications now (admin only)"
)
async def run_batch_refresh(
    request: BatchRefreshRequest,
    admin_id: str = Depends(get_admin_user_id),
    scheduler: ViewTrackingScheduler = Depends(get_scheduler)
):
    logger.info("Manual view tracking batch triggered via API", admin_id=admin_id, campaign_id=request.campaign_id)

    stats = unwrap_result(await scheduler.trigger_manual_run(request.campaign_id, request.timeout_seconds))

    return create_success_response(
        data=BatchRefreshResponse.from_stats(stats),
        message=(
            f"Refreshed {stats.processed_applications}/{stats.total_applications} applications"
            + (" (deadline reached)" if stats.timed_out else "")
        )
    )


@router.post(
    "/links/{link_id}/views",
    response_model=SuccessResponse,
    summary="Record Link Views",
    description="Record the view count of a selected link by hand (campaign brand or admin, CPM campaigns)"
)
async def record_link_views(
    link_id: str,
    request: RecordViewsRequest,
    user_id: str = Depends(get_current_user_id),
    recording: ViewRecordingService = Depends(get_view_recording_service)
):
    recorded = unwrap_result(
        await recording.record_link_views(
            user_id,
            link_id,
            request.view_count,
            allow_decrease=request.allow_decrease
        )
    )

    return create_success_response(
        data=RecordViewsResponse.from_recorded(recorded),
        message=f"Recorded {recorded.views_tracked:,} views"
    )


@router.get(
    "/campaigns/{campaign_id}",
    response_model=SuccessResponse,
    summary="Get Campaign View Tracking",
    description="Per-creator view aggregates of a campaign (owning brand or admin, or a creator's own row)"
)
async def get_campaign_view_tracking(
    campaign_id: str,
    influencer_id: Optional[str] = Query(None, description="Only this creator's aggregate"),
    user_id: str = Depends(get_current_user_id),
    recording: ViewRecordingService = Depends(get_view_recording_service)
):
    rows = unwrap_result(await recording.get_view_tracking(user_id, campaign_id, influencer_id))
    return create_success_response(
        data=[CampaignViewTrackingResponse.model_validate(row) for row in rows],
        message=f"Found {len(rows)} creators"
    )
