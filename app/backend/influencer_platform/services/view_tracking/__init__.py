"""
View tracking services.

Refreshes view counters of selected content links from the platforms and keeps
the per (campaign, creator) aggregate current.
"""

from .core import (
    ViewTrackingOrchestrator,
    OrchestratorStatus,
    LinkRefreshStatus,
    LinkRefreshOutcome,
    ApplicationRefreshReport,
    BatchRefreshStats,
)
from .database import TrackingRepository
from .fetchers import (
    ViewCountResult,
    PlatformViewFetcher,
    FetcherRegistry,
    create_default_registry,
)

__all__ = [
    "ViewTrackingOrchestrator",
    "OrchestratorStatus",
    "LinkRefreshStatus",
    "LinkRefreshOutcome",
    "ApplicationRefreshReport",
    "BatchRefreshStats",
    "TrackingRepository",
    "ViewCountResult",
    "PlatformViewFetcher",
    "FetcherRegistry",
    "create_default_registry",
]
