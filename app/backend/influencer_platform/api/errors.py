"""
Translation of failed operation results into HTTP error responses.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

import structlog

from influencer_platform.core.exceptions import ErrorKind, InfluencerPlatformException
from influencer_platform.core.results import OperationResult
from influencer_platform.api.schemas.common import create_error_response


logger = structlog.get_logger(__name__)


ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PERSISTENCE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class OperationFailed(Exception):
    """Raised by routes to return a failed result as an error response."""

    def __init__(
        self,
        error_kind: Optional[ErrorKind],
        message: Optional[str],
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_kind = error_kind or ErrorKind.PERSISTENCE_FAILURE
        self.message = message or "Operation failed"
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @classmethod
    def from_result(cls, result: OperationResult) -> "OperationFailed":
        return cls(result.error_kind, result.message, result.error_code, result.details)

    @classmethod
    def from_exception(cls, error: InfluencerPlatformException) -> "OperationFailed":
        return cls(error.kind, error.message, error.code, error.details)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES.get(self.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


def unwrap_result(result: OperationResult) -> Any:
    """Return the result's data or raise ``OperationFailed``."""
    if not result.success:
        raise OperationFailed.from_result(result)
    return result.data


async def operation_failed_handler(request: Request, exc: OperationFailed) -> JSONResponse:
    logger.info(
        "Request rejected",
        path=request.url.path,
        status_code=exc.status_code,
        error_kind=exc.error_kind.value,
        error_code=exc.error_code
    )
    body = create_error_response(
        message=exc.message,
        error_kind=exc.error_kind.value,
        error_code=exc.error_code,
        details=exc.details
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


async def platform_exception_handler(request: Request, exc: InfluencerPlatformException) -> JSONResponse:
    return await operation_failed_handler(request, OperationFailed.from_exception(exc))


def add_exception_handlers(app: FastAPI) -> None:
    """Register error envelope handlers on the app."""
    app.add_exception_handler(OperationFailed, operation_failed_handler)
    app.add_exception_handler(InfluencerPlatformException, platform_exception_handler)
