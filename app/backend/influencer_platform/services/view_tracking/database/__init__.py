"""
Database operations for view tracking.
"""

from .tracking_repository import TrackingRepository

__all__ = [
    "TrackingRepository",
]
