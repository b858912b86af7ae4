"""
Core view tracking components.
"""

from .types import (
    OrchestratorStatus,
    LinkRefreshStatus,
    LinkRefreshOutcome,
    ApplicationRefreshReport,
    BatchRefreshStats,
)
from .orchestrator import ViewTrackingOrchestrator

__all__ = [
    "OrchestratorStatus",
    "LinkRefreshStatus",
    "LinkRefreshOutcome",
    "ApplicationRefreshReport",
    "BatchRefreshStats",
    "ViewTrackingOrchestrator",
]
