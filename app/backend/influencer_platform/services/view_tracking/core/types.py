"""
Types for view tracking.
"""

from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List


class OrchestratorStatus(Enum):
    """Status of the view tracking orchestrator."""
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"
    COMPLETED = "completed"


class LinkRefreshStatus(str, Enum):
    """What happened to one content link during a refresh."""
    UPDATED = "updated"
    SKIPPED = "skipped"
    DECREASED = "decreased"
    FAILED = "failed"


@dataclass
class LinkRefreshOutcome:
    """Per-link result of a refresh."""
    link_id: str
    status: LinkRefreshStatus
    previous_views: int = 0
    new_views: Optional[int] = None
    delta: int = 0
    reason: Optional[str] = None


@dataclass
class ApplicationRefreshReport:
    """Result of refreshing every selected link of one application."""
    application_id: str
    campaign_id: str
    influencer_id: str
    outcomes: List[LinkRefreshOutcome] = field(default_factory=list)
    aggregate_views: Optional[int] = None

    def count(self, status: LinkRefreshStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def updated(self) -> int:
        return self.count(LinkRefreshStatus.UPDATED)

    @property
    def skipped(self) -> int:
        return self.count(LinkRefreshStatus.SKIPPED)

    @property
    def anomalies(self) -> int:
        return self.count(LinkRefreshStatus.DECREASED)

    @property
    def failed(self) -> int:
        return self.count(LinkRefreshStatus.FAILED)

    @property
    def has_updates(self) -> bool:
        return self.updated > 0


@dataclass
class BatchRefreshStats:
    """Statistics for a batch refresh run."""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    campaign_id: Optional[str] = None
    total_applications: int = 0
    processed_applications: int = 0
    applications_updated: int = 0
    failed_applications: int = 0
    links_updated: int = 0
    links_skipped: int = 0
    links_failed: int = 0
    anomalies: int = 0
    timed_out: bool = False
    unprocessed_applications: int = 0
    total_processing_time: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if self.processed_applications == 0:
            return 0.0
        return (self.processed_applications - self.failed_applications) / self.processed_applications

    def record(self, report: ApplicationRefreshReport) -> None:
        """Fold one application report into the totals."""
        self.processed_applications += 1
        if report.has_updates:
            self.applications_updated += 1
        self.links_updated += report.updated
        self.links_skipped += report.skipped
        self.links_failed += report.failed
        self.anomalies += report.anomalies
