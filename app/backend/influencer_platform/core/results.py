"""
Tagged operation results.

Public service operations never let exceptions cross their boundary; they
return an ``OperationResult`` that callers (API routes, schedulers, CLI) branch
on deterministically.
"""

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

import structlog

from .exceptions import ErrorKind, InfluencerPlatformException, DatabaseError

logger = structlog.get_logger(__name__)


@dataclass
class OperationResult:
    """Outcome of a service operation."""
    success: bool
    data: Any = None
    error_kind: Optional[ErrorKind] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: InfluencerPlatformException) -> "OperationResult":
        return cls(
            success=False,
            error_kind=error.kind,
            error_code=error.code,
            message=error.message,
            details=dict(error.details),
        )

    def unwrap(self) -> Any:
        """Return ``data`` or raise the failure as an exception (tools and tests)."""
        if not self.success:
            raise RuntimeError(f"{self.error_code}: {self.message}")
        return self.data


def service_operation(name: str, commit: bool = True) -> Callable:
    """
    Wrap an async service method that works on ``self.db``.

    Commits on success, rolls back on any failure and converts domain
    exceptions and SQLAlchemy errors into failed ``OperationResult``s.

    Args:
        name: Operation name used in log events
        commit: Commit the session after a successful call
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> OperationResult:
            try:
                data = await func(self, *args, **kwargs)
                if commit:
                    await self.db.commit()
                return OperationResult.ok(data)

            except InfluencerPlatformException as e:
                await self.db.rollback()
                logger.warning(
                    "Operation rejected",
                    operation=name,
                    error_kind=e.kind.value,
                    error_code=e.code,
                    error=e.message,
                    details=e.details
                )
                return OperationResult.fail(e)

            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("Operation failed in store", operation=name, error=str(e))
                return OperationResult.fail(
                    DatabaseError(f"Failed to {name.replace('_', ' ')}", {"operation": name})
                )

        return wrapper
    return decorator
