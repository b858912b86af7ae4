"""
Main FastAPI application for the influencer platform backend.
Configures the API server with routes, middleware, and documentation.
"""

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import structlog

from influencer_platform.core.config import settings
from influencer_platform.core.database import init_database, close_database, DatabaseManager
from influencer_platform.core.logging import setup_logging
from influencer_platform.api.errors import add_exception_handlers
from influencer_platform.api.middleware import add_middleware
from influencer_platform.api.schemas.common import HealthCheckResponse, APIResponse
from influencer_platform.api.routes import applications, earnings, view_tracking
from influencer_platform.scheduler.view_tracking_scheduler import (
    get_view_tracking_scheduler,
    start_view_tracking_scheduler,
    shutdown_view_tracking_scheduler,
)


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting influencer platform API server")

    await init_database()

    try:
        if settings.is_production:
            await start_view_tracking_scheduler()
            logger.info("Background services started")
    except Exception as e:
        logger.error("Failed to start background services", error=str(e))

    yield

    logger.info("Shutting down influencer platform API server")

    try:
        await shutdown_view_tracking_scheduler()
        logger.info("Background services stopped")
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))

    await close_database()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    setup_logging()

    app = FastAPI(
        title="Influencer Platform API",
        description="""
        Campaign applications and view-based earnings for the influencer platform.

        ## Features

        * **Applications** - Apply to campaigns with content links, review and withdraw
        * **Earnings** - CPM and fixed-price earnings from selected content
        * **View Tracking** - Periodic view count refresh from TikTok and Instagram

        ## Authentication

        ```
        Authorization: Bearer <user-id>
        ```

        ## Error Handling

        Errors share one envelope with ``error_kind``, ``error_code``,
        ``message`` and ``details``.
        """,
        version=settings.app_version,
        lifespan=lifespan,
    )

    add_middleware(app)
    add_exception_handlers(app)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check",
        description="Check API server health and service status"
    )
    async def health_check():
        """Health check endpoint."""
        scheduler = await get_view_tracking_scheduler()
        scheduler_state = scheduler.status.value

        if await DatabaseManager.health_check():
            return HealthCheckResponse(
                status="healthy",
                version=settings.app_version,
                services={"database": "healthy", "scheduler": scheduler_state}
            )

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "version": settings.app_version,
                "services": {"database": "unhealthy", "scheduler": scheduler_state},
            }
        )

    @app.get(
        "/",
        response_model=APIResponse,
        tags=["System"],
        summary="API Information"
    )
    async def root():
        return APIResponse(message=f"Influencer Platform API v{settings.app_version}")

    app.include_router(
        applications.router,
        prefix=f"{settings.api_v1_prefix}/applications",
        tags=["Applications"]
    )

    app.include_router(
        earnings.router,
        prefix=f"{settings.api_v1_prefix}/earnings",
        tags=["Earnings"]
    )

    app.include_router(
        view_tracking.router,
        prefix=f"{settings.api_v1_prefix}/view-tracking",
        tags=["View Tracking"]
    )

    logger.info("FastAPI application created successfully")
    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "influencer_platform.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
