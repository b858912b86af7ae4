"""
Custom exception classes for the application.
Provides structured error handling across all modules.

Every exception carries an ``ErrorKind`` so results handed to callers can be
branched on without inspecting messages.
"""

from enum import Enum
from typing import Any, Optional, Dict


class ErrorKind(str, Enum):
    """Caller-visible error categories."""
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_INPUT = "invalid_input"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    PERSISTENCE_FAILURE = "persistence_failure"


class InfluencerPlatformException(Exception):
    """Base exception class for the influencer platform backend."""

    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(InfluencerPlatformException):
    """Raised when a store read or write fails."""

    kind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PERSISTENCE_FAILURE", details)


class ValidationError(InfluencerPlatformException):
    """Raised when data validation fails."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationError(InfluencerPlatformException):
    """Raised when no caller identity is available."""

    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "UNAUTHENTICATED", details)


class AuthorizationError(InfluencerPlatformException):
    """Raised when the caller has the wrong role or ownership for an action."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "UNAUTHORIZED"
    ):
        super().__init__(message, code, details)


class NotFoundError(InfluencerPlatformException):
    """Raised when a requested resource is not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "NOT_FOUND"
    ):
        super().__init__(message, code, details)


class InvalidStateError(InfluencerPlatformException):
    """Raised when an operation is illegal in the current state."""

    kind = ErrorKind.INVALID_STATE

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "INVALID_STATE"
    ):
        super().__init__(message, code, details)


class UpstreamUnavailableError(InfluencerPlatformException):
    """Raised when a platform view source could not answer."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "UPSTREAM_UNAVAILABLE", details)


# Identity exceptions
class NotAnInfluencerError(AuthorizationError):
    """Raised when a non-influencer tries to apply to a campaign."""

    def __init__(self, user_id: str):
        super().__init__(
            "Only influencers can apply to campaigns",
            {"user_id": user_id},
            code="NOT_AN_INFLUENCER"
        )


# Lookup exceptions
class ApplicationNotFoundError(NotFoundError):
    """Raised when an application is not found."""

    def __init__(self, application_id: str):
        super().__init__(
            f"Application not found: {application_id}",
            {"application_id": application_id},
            code="APPLICATION_NOT_FOUND"
        )


class CampaignNotFoundError(NotFoundError):
    """Raised when a campaign is not found."""

    def __init__(self, campaign_id: str):
        super().__init__(
            f"Campaign not found: {campaign_id}",
            {"campaign_id": campaign_id},
            code="CAMPAIGN_NOT_FOUND"
        )


# State machine exceptions
class CampaignNotActiveError(InvalidStateError):
    """Raised when applying to a campaign that is not active."""

    def __init__(self, campaign_id: str, status: str):
        super().__init__(
            f"Campaign {campaign_id} is not active (status: {status})",
            {"campaign_id": campaign_id, "status": status},
            code="CAMPAIGN_NOT_ACTIVE"
        )


class DuplicateApplicationError(InvalidStateError):
    """Raised when a creator already has an open application for a campaign."""

    def __init__(self, campaign_id: str, influencer_id: str):
        super().__init__(
            "You have already applied to this campaign",
            {"campaign_id": campaign_id, "influencer_id": influencer_id},
            code="DUPLICATE_APPLICATION"
        )


class InvalidTransitionError(InvalidStateError):
    """Raised when a status transition is not allowed."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move application from {current} to {requested}",
            {"current_status": current, "requested_status": requested},
            code="INVALID_TRANSITION"
        )


class ConcurrentModificationError(InvalidStateError):
    """Raised when an application changed underneath a transition."""

    def __init__(self, application_id: str):
        super().__init__(
            f"Application {application_id} was modified concurrently",
            {"application_id": application_id},
            code="CONCURRENT_MODIFICATION"
        )


class ViewCountDecreasedError(InvalidStateError):
    """Raised when a view counter write would move the counter backwards."""

    def __init__(self, link_id: str, current: int, reported: int):
        super().__init__(
            f"View count for link {link_id} decreased from {current} to {reported}",
            {"link_id": link_id, "current_views": current, "reported_views": reported},
            code="VIEW_COUNT_DECREASED"
        )


# Earnings exceptions
class UnsupportedPaymentModelError(InvalidStateError):
    """Raised when a campaign's payment model cannot be priced."""

    def __init__(self, payment_model: Optional[str], reason: str = "Invalid payment model"):
        super().__init__(
            reason,
            {"payment_model": payment_model},
            code="UNSUPPORTED_PAYMENT_MODEL"
        )
