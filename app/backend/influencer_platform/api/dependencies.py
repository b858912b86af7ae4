"""
API dependencies for FastAPI endpoints.
Provides reusable dependency functions for authentication, data access and
the view tracking components.
"""

from typing import Optional, AsyncGenerator
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from influencer_platform.core.database import get_async_session
from influencer_platform.core.exceptions import AuthenticationError, AuthorizationError
from influencer_platform.models.user import UserProfile
from influencer_platform.scheduler.view_tracking_scheduler import (
    ViewTrackingScheduler,
    get_view_tracking_scheduler,
)
from influencer_platform.services.application_service import ApplicationService
from influencer_platform.services.earnings_calculator import EarningsCalculator
from influencer_platform.services.view_recording_service import ViewRecordingService
from influencer_platform.services.view_tracking import ViewTrackingOrchestrator


logger = structlog.get_logger(__name__)


# Bearer token carries the caller's user id
user_auth_scheme = HTTPBearer(auto_error=False)


async def get_database() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with get_async_session() as session:
        yield session


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(user_auth_scheme)
) -> Optional[str]:
    """Get optional caller identity from Bearer token."""
    if not credentials:
        return None

    token = credentials.credentials.strip()
    return token or None


async def get_current_user_id(
    user_id: Optional[str] = Depends(get_optional_user_id)
) -> str:
    """Get required caller identity."""
    if not user_id:
        logger.warning("Missing user authentication")
        raise AuthenticationError()
    return user_id


async def get_admin_user_id(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_database)
) -> str:
    """Require an admin caller."""
    profile = await db.get(UserProfile, user_id)
    if profile is None or not profile.is_admin:
        logger.warning("Admin access denied", user_id=user_id)
        raise AuthorizationError("Admin access required", {"user_id": user_id}, code="ADMIN_REQUIRED")
    return user_id


async def get_application_service(db: AsyncSession = Depends(get_database)) -> ApplicationService:
    return ApplicationService(db)


async def get_earnings_calculator(db: AsyncSession = Depends(get_database)) -> EarningsCalculator:
    return EarningsCalculator(db)


async def get_scheduler() -> ViewTrackingScheduler:
    return await get_view_tracking_scheduler()


async def get_orchestrator(
    scheduler: ViewTrackingScheduler = Depends(get_scheduler)
) -> ViewTrackingOrchestrator:
    return scheduler.orchestrator


async def get_view_recording_service(db: AsyncSession = Depends(get_database)) -> ViewRecordingService:
    return ViewRecordingService(db)
