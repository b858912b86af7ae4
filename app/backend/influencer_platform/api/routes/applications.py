"""
Application routes for the influencer platform API.
Handles submitting, reviewing, editing and listing campaign applications.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

import structlog

from influencer_platform.api.dependencies import get_application_service, get_current_user_id
from influencer_platform.api.errors import unwrap_result
from influencer_platform.api.schemas.applications import (
    ApplicationCreate,
    ApplicationUpdate,
    ApplicationResponse,
    TransitionRequest,
)
from influencer_platform.api.schemas.common import SuccessResponse, create_success_response
from influencer_platform.models.application import ApplicationStatus
from influencer_platform.services.application_service import ApplicationService
from influencer_platform.services.content_link_registry import ContentLinkInput


logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=SuccessResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to Campaign",
    description="Submit an application with its content links"
)
async def create_application(
    request: ApplicationCreate,
    user_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service)
):
    result = await service.create_application(
        actor_id=user_id,
        campaign_id=request.campaign_id,
        message=request.message,
        proposed_rate=request.proposed_rate,
        deliverables=request.deliverables,
        content_links=[
            ContentLinkInput(platform=link.platform, content_url=link.content_url)
            for link in request.content_links
        ],
    )
    created = unwrap_result(result)

    return create_success_response(
        data=ApplicationResponse.from_service(created),
        message="Application submitted successfully"
    )


@router.get(
    "",
    response_model=SuccessResponse,
    summary="List Applications",
    description="List the caller's applications, or a brand's incoming applications"
)
async def list_applications(
    campaign_id: Optional[str] = Query(None, description="Filter by campaign"),
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status", description="Filter by status"),
    as_brand: bool = Query(False, description="List applications to the caller's campaigns"),
    include_withdrawn: bool = Query(False, description="Include withdrawn applications"),
    user_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service)
):
    filters = {"brand_id": user_id} if as_brand else {"influencer_id": user_id}
    result = await service.list_applications(
        campaign_id=campaign_id,
        status=status_filter,
        include_withdrawn=include_withdrawn,
        **filters
    )
    items = unwrap_result(result)

    return create_success_response(
        data=[ApplicationResponse.from_service(item) for item in items],
        message=f"Found {len(items)} applications"
    )


@router.get(
    "/{application_id}",
    response_model=SuccessResponse,
    summary="Get Application",
    description="Get an application with its content links"
)
async def get_application(
    application_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service)
):
    item = unwrap_result(await service.get_application_with_links(application_id, actor_id=user_id))
    return create_success_response(data=ApplicationResponse.from_service(item))


@router.patch(
    "/{application_id}",
    response_model=SuccessResponse,
    summary="Edit Application",
    description="Edit message, proposed rate or deliverables of a pending application"
)
async def update_application(
    application_id: str,
    request: ApplicationUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service)
):
    unwrap_result(await service.update_application(
        application_id,
        user_id,
        message=request.message,
        proposed_rate=request.proposed_rate,
        deliverables=request.deliverables,
    ))
    item = unwrap_result(await service.get_application_with_links(application_id, actor_id=user_id))

    return create_success_response(
        data=ApplicationResponse.from_service(item),
        message="Application updated"
    )


@router.post(
    "/{application_id}/transition",
    response_model=SuccessResponse,
    summary="Change Application Status",
    description="Approve or reject (brand) or withdraw (creator) a pending application"
)
async def transition_application(
    application_id: str,
    request: TransitionRequest,
    user_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service)
):
    item = unwrap_result(await service.transition(
        application_id,
        user_id,
        request.status,
        request.selected_link_ids,
    ))

    logger.info("Application status changed via API", application_id=application_id, status=request.status.value)

    return create_success_response(
        data=ApplicationResponse.from_service(item),
        message=f"Application {request.status.value}"
    )
