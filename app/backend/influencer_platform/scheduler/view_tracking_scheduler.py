"""
View Tracking Scheduler.

This service provides:
- Periodic view count refresh for all approved applications
- A deadline on every batch run
- Manual triggering for admins and tools
- Monitoring and health checks
"""

import asyncio
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from enum import Enum
import structlog

from influencer_platform.core.config import settings
from influencer_platform.core.exceptions import InvalidStateError
from influencer_platform.core.results import OperationResult
from influencer_platform.services.view_tracking import ViewTrackingOrchestrator, BatchRefreshStats


logger = structlog.get_logger(__name__)


class SchedulerStatus(Enum):
    """Status of the view tracking scheduler."""
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SchedulerStats:
    """Statistics for scheduler operations."""
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    timed_out_runs: int = 0
    last_batch_stats: Optional[BatchRefreshStats] = None
    uptime_start: Optional[datetime] = None


class ViewTrackingScheduler:
    """
    Runs the view tracking batch every ``view_tracking_interval_seconds``.

    Each run is bounded by ``view_tracking_batch_timeout_seconds``; a run that
    hits its deadline still counts as successful and is reported as timed out.
    """

    def __init__(
        self,
        orchestrator: Optional[ViewTrackingOrchestrator] = None,
        interval_seconds: Optional[float] = None,
        batch_timeout_seconds: Optional[float] = None,
        enabled: Optional[bool] = None,
        check_interval: float = 60.0
    ):
        self.logger = logger.bind(service="view_tracking_scheduler")

        self.enabled = settings.scheduler_enabled if enabled is None else enabled
        self.interval_seconds = interval_seconds or settings.view_tracking_interval_seconds
        self.batch_timeout_seconds = batch_timeout_seconds or settings.view_tracking_batch_timeout_seconds
        self.check_interval = check_interval
        self.orchestrator = orchestrator or ViewTrackingOrchestrator()

        # State
        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats(uptime_start=datetime.now(timezone.utc))
        self._should_stop = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._run_lock = asyncio.Lock()

        self.logger.info(
            "View tracking scheduler initialized",
            enabled=self.enabled,
            interval_seconds=self.interval_seconds,
            batch_timeout_seconds=self.batch_timeout_seconds
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def _calculate_next_run_time(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self.interval_seconds)

    def _should_run(self) -> bool:
        return self.stats.next_run is not None and datetime.now(timezone.utc) >= self.stats.next_run

    async def start(self):
        """Start the view tracking scheduler."""
        if not self.enabled:
            self.logger.info("View tracking scheduler is disabled")
            return

        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self.logger.info("Starting view tracking scheduler")

        self._should_stop = False
        self.status = SchedulerStatus.WAITING
        self.stats.next_run = self._calculate_next_run_time()
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

        self.logger.info("View tracking scheduler started", next_run=self.stats.next_run.isoformat())

    async def stop(self):
        """Stop the view tracking scheduler."""
        if self.status == SchedulerStatus.STOPPED:
            return

        self.logger.info("Stopping view tracking scheduler")
        self._should_stop = True

        if self._scheduler_task and not self._scheduler_task.done():
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass

        self._scheduler_task = None
        self.status = SchedulerStatus.STOPPED
        self.logger.info("View tracking scheduler stopped")

    async def _scheduler_loop(self):
        """Main scheduler loop."""
        self.logger.info("Scheduler loop started")

        while not self._should_stop:
            try:
                if self._should_run():
                    await self._run_batch(triggered_by="scheduler")
                    self.stats.next_run = self._calculate_next_run_time()

                remaining = (self.stats.next_run - datetime.now(timezone.utc)).total_seconds()
                await asyncio.sleep(max(0.0, min(self.check_interval, remaining)))

            except asyncio.CancelledError:
                self.logger.info("Scheduler loop cancelled")
                break

            except Exception as e:
                self.logger.error("Error in scheduler loop", error=str(e))
                self.status = SchedulerStatus.ERROR
                self.stats.next_run = self._calculate_next_run_time()
                await asyncio.sleep(self.check_interval)
                self.status = SchedulerStatus.WAITING

        self.logger.info("Scheduler loop stopped")

    async def _run_batch(
        self,
        triggered_by: str,
        campaign_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ) -> OperationResult:
        async with self._run_lock:
            previous_status = self.status
            self.status = SchedulerStatus.PROCESSING
            self.stats.total_runs += 1

            self.logger.info("Starting view tracking run", triggered_by=triggered_by, campaign_id=campaign_id)

            try:
                result = await self.orchestrator.batch_refresh(
                    campaign_id=campaign_id,
                    timeout_seconds=timeout_seconds or self.batch_timeout_seconds
                )
            except Exception as e:
                self.stats.failed_runs += 1
                self.status = SchedulerStatus.ERROR if previous_status != SchedulerStatus.STOPPED else previous_status
                self.logger.error("View tracking run crashed", triggered_by=triggered_by, error=str(e))
                raise

            if not result.success:
                self.stats.failed_runs += 1
                self.status = SchedulerStatus.ERROR if previous_status != SchedulerStatus.STOPPED else previous_status
                self.logger.error(
                    "View tracking run failed",
                    triggered_by=triggered_by,
                    error_code=result.error_code,
                    error=result.message,
                    total_runs=self.stats.total_runs,
                    failed_runs=self.stats.failed_runs
                )
                return result

            batch_stats = result.data
            self.stats.last_run = datetime.now(timezone.utc)
            self.stats.last_batch_stats = batch_stats
            self.stats.successful_runs += 1
            if batch_stats.timed_out:
                self.stats.timed_out_runs += 1
            self.status = SchedulerStatus.WAITING if previous_status != SchedulerStatus.STOPPED else previous_status

            self.logger.info(
                "View tracking run completed",
                triggered_by=triggered_by,
                applications=batch_stats.total_applications,
                applications_updated=batch_stats.applications_updated,
                anomalies=batch_stats.anomalies,
                timed_out=batch_stats.timed_out,
                success_rate=f"{batch_stats.success_rate:.0%}",
                processing_time=f"{batch_stats.total_processing_time:.2f}s"
            )

            if batch_stats.anomalies:
                self.logger.warning(
                    "View count anomalies detected - manual review needed",
                    anomalies=batch_stats.anomalies
                )

            return result

    async def trigger_manual_run(
        self,
        campaign_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ) -> OperationResult:
        """
        Manually trigger a view tracking run (for admins and tools).

        Returns:
            OperationResult with BatchRefreshStats; failed with
            ``BATCH_ALREADY_RUNNING`` if a run is already in progress
        """
        if self.status == SchedulerStatus.PROCESSING:
            self.logger.warning("Manual run refused, run already in progress", campaign_id=campaign_id)
            return OperationResult.fail(
                InvalidStateError("View tracking run already in progress", code="BATCH_ALREADY_RUNNING")
            )

        self.logger.info("Manual view tracking run triggered", campaign_id=campaign_id)
        return await self._run_batch("manual", campaign_id, timeout_seconds)

    async def health_check(self) -> Dict[str, Any]:
        """Perform health check."""
        try:
            uptime_seconds = (datetime.now(timezone.utc) - self.stats.uptime_start).total_seconds()

            return {
                "status": self.status.value,
                "enabled": self.enabled,
                "uptime_seconds": uptime_seconds,
                "scheduler_stats": asdict(self.stats),
                "orchestrator_status": self.orchestrator.get_status(),
                "configuration": {
                    "interval_seconds": self.interval_seconds,
                    "batch_timeout_seconds": self.batch_timeout_seconds,
                },
                "next_run_in_seconds": (
                    (self.stats.next_run - datetime.now(timezone.utc)).total_seconds()
                    if self.stats.next_run else None
                )
            }

        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "scheduler_stats": asdict(self.stats)
            }

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        return {
            "status": self.status.value,
            "enabled": self.enabled,
            "stats": asdict(self.stats),
            "next_run": self.stats.next_run.isoformat() if self.stats.next_run else None
        }


# Global scheduler instance
_view_tracking_scheduler: Optional[ViewTrackingScheduler] = None


async def get_view_tracking_scheduler() -> ViewTrackingScheduler:
    """Get or create global ViewTrackingScheduler instance."""
    global _view_tracking_scheduler
    if _view_tracking_scheduler is None:
        _view_tracking_scheduler = ViewTrackingScheduler()
    return _view_tracking_scheduler


async def start_view_tracking_scheduler():
    """Start the global view tracking scheduler."""
    scheduler = await get_view_tracking_scheduler()
    await scheduler.start()


async def shutdown_view_tracking_scheduler():
    """Stop the global view tracking scheduler and release its fetchers."""
    global _view_tracking_scheduler
    if _view_tracking_scheduler:
        await _view_tracking_scheduler.stop()
        await _view_tracking_scheduler.orchestrator.shutdown()
        _view_tracking_scheduler = None

