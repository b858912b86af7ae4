"""
Earnings routes for the influencer platform API.
"""

from fastapi import APIRouter, Depends

from influencer_platform.api.dependencies import (
    get_application_service,
    get_current_user_id,
    get_earnings_calculator,
)
from influencer_platform.api.errors import unwrap_result
from influencer_platform.api.schemas.common import SuccessResponse, create_success_response
from influencer_platform.api.schemas.earnings import EarningsResponse
from influencer_platform.services.application_service import ApplicationService
from influencer_platform.services.earnings_calculator import EarningsCalculator

router = APIRouter()


@router.get(
    "/applications/{application_id}",
    response_model=SuccessResponse,
    summary="Get Application Earnings",
    description="Earnings of an application at its current selected-link view counts"
)
async def get_application_earnings(
    application_id: str,
    user_id: str = Depends(get_current_user_id),
    applications: ApplicationService = Depends(get_application_service),
    calculator: EarningsCalculator = Depends(get_earnings_calculator)
):
    # Visibility follows the application itself
    unwrap_result(await applications.get_application_with_links(application_id, actor_id=user_id))

    breakdown = unwrap_result(await calculator.compute(application_id))
    return create_success_response(data=EarningsResponse(**breakdown.to_dict()))
