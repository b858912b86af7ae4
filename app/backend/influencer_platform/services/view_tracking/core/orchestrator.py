"""
ViewTrackingOrchestrator - refreshes view counters of selected content links.
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from influencer_platform.core.config import settings
from influencer_platform.core.database import get_async_session
from influencer_platform.core.exceptions import (
    ApplicationNotFoundError,
    DatabaseError,
    ErrorKind,
    InfluencerPlatformException,
    InvalidStateError,
    UpstreamUnavailableError,
    ViewCountDecreasedError,
)
from influencer_platform.core.results import OperationResult
from influencer_platform.models.application import CampaignApplication
from influencer_platform.models.content_link import Platform
from influencer_platform.services.content_link_registry import ContentLinkRegistry
from .types import (
    OrchestratorStatus,
    LinkRefreshStatus,
    LinkRefreshOutcome,
    ApplicationRefreshReport,
    BatchRefreshStats,
)
from ..database import TrackingRepository
from ..fetchers import FetcherRegistry, ViewCountResult, create_default_registry


logger = structlog.get_logger(__name__)


@dataclass
class _LinkSnapshot:
    id: str
    platform: Platform
    content_url: str
    views_tracked: int


class ViewTrackingOrchestrator:
    """
    Batch pipeline for view-based earnings.

    Flow per application:
    1. Load the application and its selected links
    2. Fetch current counts from the platforms, a bounded number at a time
    3. Write each new count in its own transaction
    4. Recompute the (campaign, creator) aggregate
    """

    def __init__(
        self,
        fetchers: Optional[FetcherRegistry] = None,
        repository: Optional[TrackingRepository] = None,
        max_concurrent_fetches: Optional[int] = None,
        allow_view_count_decrease: Optional[bool] = None,
        batch_timeout_seconds: Optional[float] = None
    ):
        self.logger = logger.bind(service="view_tracking_orchestrator")

        self.fetchers = fetchers or create_default_registry()
        self.repository = repository or TrackingRepository()
        self.max_concurrent_fetches = max(1, max_concurrent_fetches or settings.max_concurrent_fetches)
        self.allow_view_count_decrease = (
            settings.allow_view_count_decrease
            if allow_view_count_decrease is None
            else allow_view_count_decrease
        )
        self.batch_timeout_seconds = batch_timeout_seconds or settings.view_tracking_batch_timeout_seconds

        self.status = OrchestratorStatus.IDLE
        self.stats = BatchRefreshStats()

        self.logger.info(
            "ViewTrackingOrchestrator initialized",
            max_concurrent_fetches=self.max_concurrent_fetches,
            allow_view_count_decrease=self.allow_view_count_decrease,
            batch_timeout_seconds=self.batch_timeout_seconds
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    async def shutdown(self):
        """Release fetcher resources."""
        await self.fetchers.close()
        self.logger.info("View tracking orchestrator shut down")

    async def refresh_application(
        self,
        application_id: str,
        deadline: Optional[float] = None
    ) -> OperationResult:
        """
        Refresh every selected link of one application.

        Only a missing application, an unreadable store, or ``deadline`` (event
        loop time) passing while counts are still being fetched fails the call;
        per-link problems are reported as outcomes. Once counts are fetched,
        the writes and the aggregate recompute always run to completion.
        """
        try:
            async with get_async_session() as db:
                application = await db.get(CampaignApplication, application_id)
                if application is None:
                    raise ApplicationNotFoundError(application_id)

                campaign_id = application.campaign_id
                influencer_id = application.influencer_id
                selected = await ContentLinkRegistry(db).list_selected_by_application(application_id)
                links = [
                    _LinkSnapshot(link.id, link.platform, link.content_url, link.views_tracked or 0)
                    for link in selected
                ]

        except InfluencerPlatformException as e:
            self.logger.warning("Refresh rejected", application_id=application_id, error=e.message)
            return OperationResult.fail(e)
        except SQLAlchemyError as e:
            self.logger.error("Failed to load application for refresh", application_id=application_id, error=str(e))
            return OperationResult.fail(
                DatabaseError("Failed to load application", {"application_id": application_id})
            )

        report = ApplicationRefreshReport(application_id, campaign_id, influencer_id)
        if not links:
            self.logger.debug("No selected links to refresh", application_id=application_id)
            return OperationResult.ok(report)

        try:
            results = await self._fetch_within(links, deadline)
        except asyncio.TimeoutError:
            self.logger.warning(
                "Deadline reached before view counts were fetched",
                application_id=application_id,
                links=len(links)
            )
            return OperationResult.fail(UpstreamUnavailableError(
                "View counts were not fetched before the deadline",
                {"application_id": application_id}
            ))

        # Link writes and the aggregate must not be split by a cancellation
        await asyncio.shield(self._store_results(report, links, results))
        return OperationResult.ok(report)

    async def batch_refresh(
        self,
        campaign_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ) -> OperationResult:
        """
        Refresh all approved applications, one at a time, within a deadline.

        The deadline bounds fetching. An application whose counts were fetched
        is always written through to its aggregate; applications not reached
        before the deadline are reported as unprocessed.

        Returns:
            OperationResult with BatchRefreshStats; failed when a batch is
            already running or the application queue cannot be read
        """
        if self.status == OrchestratorStatus.RUNNING:
            self.logger.warning("View tracking batch already running", campaign_id=campaign_id)
            return OperationResult.fail(InvalidStateError(
                "A view tracking batch is already running",
                code="BATCH_ALREADY_RUNNING"
            ))

        self.status = OrchestratorStatus.RUNNING
        self.stats = BatchRefreshStats(start_time=datetime.now(timezone.utc), campaign_id=campaign_id)
        timeout = timeout_seconds if timeout_seconds is not None else self.batch_timeout_seconds

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        try:
            self.logger.info("Starting view tracking batch", campaign_id=campaign_id, timeout_seconds=timeout)

            application_ids = await self.repository.get_approved_application_ids(campaign_id)
            self.stats.total_applications = len(application_ids)

            for index, application_id in enumerate(application_ids):
                if loop.time() >= deadline:
                    self._mark_timed_out(len(application_ids) - index)
                    break

                try:
                    result = await self.refresh_application(application_id, deadline=deadline)
                except Exception as e:
                    self.stats.processed_applications += 1
                    self.stats.failed_applications += 1
                    self.stats.errors.append(f"{application_id}: {e}")
                    self.logger.error("Application refresh crashed", application_id=application_id, error=str(e))
                    continue

                if result.success:
                    self.stats.record(result.data)
                elif result.error_kind == ErrorKind.UPSTREAM_UNAVAILABLE:
                    # Nothing was written for this application
                    self._mark_timed_out(len(application_ids) - index)
                    break
                else:
                    self.stats.processed_applications += 1
                    self.stats.failed_applications += 1
                    self.stats.errors.append(f"{application_id}: {result.message}")

            self.status = OrchestratorStatus.COMPLETED
            return OperationResult.ok(self.stats)

        except SQLAlchemyError as e:
            self.status = OrchestratorStatus.FAILED
            self.stats.errors.append(str(e))
            self.logger.error("View tracking batch failed", campaign_id=campaign_id, error=str(e))
            return OperationResult.fail(
                DatabaseError("Failed to load approved applications", {"campaign_id": campaign_id})
            )

        finally:
            self.stats.end_time = datetime.now(timezone.utc)
            self.stats.total_processing_time = (self.stats.end_time - self.stats.start_time).total_seconds()

            self.logger.info(
                "View tracking batch finished",
                campaign_id=campaign_id,
                total_applications=self.stats.total_applications,
                processed=self.stats.processed_applications,
                applications_updated=self.stats.applications_updated,
                failed=self.stats.failed_applications,
                anomalies=self.stats.anomalies,
                timed_out=self.stats.timed_out,
                total_time=f"{self.stats.total_processing_time:.2f}s"
            )
            self.status = OrchestratorStatus.IDLE

    def get_status(self) -> Dict[str, Any]:
        """Get current orchestrator status and last batch statistics."""
        return {
            "status": self.status.value,
            "stats": asdict(self.stats),
            "config": {
                "max_concurrent_fetches": self.max_concurrent_fetches,
                "allow_view_count_decrease": self.allow_view_count_decrease,
                "batch_timeout_seconds": self.batch_timeout_seconds,
            }
        }

    def _mark_timed_out(self, unprocessed: int) -> None:
        self.stats.timed_out = True
        self.stats.unprocessed_applications = unprocessed
        self.logger.warning("View tracking batch deadline reached", unprocessed_applications=unprocessed)

    async def _fetch_all(self, links: List[_LinkSnapshot]) -> List[ViewCountResult]:
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def fetch_one(link: _LinkSnapshot) -> ViewCountResult:
            async with semaphore:
                try:
                    return await self.fetchers.fetch(link.platform, link.content_url)
                except Exception as e:
                    self.logger.warning(
                        "View fetcher raised",
                        link_id=link.id,
                        platform=Platform(link.platform).value,
                        error=str(e)
                    )
                    return ViewCountResult.unavailable(f"Fetcher error: {e}")

        return await asyncio.gather(*(fetch_one(link) for link in links))

    async def _fetch_within(self, links: List[_LinkSnapshot], deadline: Optional[float]) -> List[ViewCountResult]:
        if deadline is None:
            return await self._fetch_all(links)

        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(self._fetch_all(links), timeout=remaining)

    async def _store_results(
        self,
        report: ApplicationRefreshReport,
        links: List[_LinkSnapshot],
        results: List[ViewCountResult]
    ) -> ApplicationRefreshReport:
        checked_at = datetime.now(timezone.utc)
        for link, result in zip(links, results):
            report.outcomes.append(await self._apply_result(link, result, checked_at))

        try:
            tracking = await self.repository.refresh_aggregate(report.campaign_id, report.influencer_id, checked_at)
            report.aggregate_views = tracking.views_tracked
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to refresh view aggregate",
                application_id=report.application_id,
                campaign_id=report.campaign_id,
                error=str(e)
            )

        self.logger.info(
            "Application views refreshed",
            application_id=report.application_id,
            updated=report.updated,
            skipped=report.skipped,
            anomalies=report.anomalies,
            failed=report.failed
        )
        return report

    async def _apply_result(
        self,
        link: _LinkSnapshot,
        result: ViewCountResult,
        checked_at: datetime
    ) -> LinkRefreshOutcome:
        if not result.available:
            return LinkRefreshOutcome(
                link_id=link.id,
                status=LinkRefreshStatus.SKIPPED,
                previous_views=link.views_tracked,
                reason=result.reason
            )

        new_views = result.view_count
        if new_views < link.views_tracked and not self.allow_view_count_decrease:
            return self._decreased(link, new_views)

        try:
            async with get_async_session() as db:
                delta = await ContentLinkRegistry(db).update_view_count(
                    link.id,
                    new_views,
                    checked_at,
                    allow_decrease=self.allow_view_count_decrease
                )
        except ViewCountDecreasedError:
            return self._decreased(link, new_views)
        except (InfluencerPlatformException, SQLAlchemyError) as e:
            self.logger.error("Failed to store view count", link_id=link.id, error=str(e))
            return LinkRefreshOutcome(
                link_id=link.id,
                status=LinkRefreshStatus.FAILED,
                previous_views=link.views_tracked,
                new_views=new_views,
                reason=str(e)
            )

        return LinkRefreshOutcome(
            link_id=link.id,
            status=LinkRefreshStatus.UPDATED,
            previous_views=link.views_tracked,
            new_views=new_views,
            delta=delta
        )

    def _decreased(self, link: _LinkSnapshot, new_views: int) -> LinkRefreshOutcome:
        self.logger.warning(
            "View count decreased, link left unchanged",
            link_id=link.id,
            stored_views=link.views_tracked,
            reported_views=new_views
        )
        return LinkRefreshOutcome(
            link_id=link.id,
            status=LinkRefreshStatus.DECREASED,
            previous_views=link.views_tracked,
            new_views=new_views,
            reason="Reported view count is lower than the stored count"
        )
