"""
Uniform success/failure envelope returned by every ledger operation.
"""
import logging
import math
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Generic, List, Optional, TypeVar

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from hotel_inventory.core.errors import FailureKind, LedgerError


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    is_success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    detail: Optional[str] = None
    kind: Optional[FailureKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, data: Optional[T] = None, message: Optional[str] = None) -> "OperationResult[T]":
        return cls(is_success=True, data=data, message=message)

    @classmethod
    def failure(cls, kind: FailureKind, error: str, detail: Optional[str] = None) -> "OperationResult[T]":
        return cls(is_success=False, kind=kind, error=error, detail=detail or error)


@dataclass
class PagedResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages


def _session_from(args, kwargs) -> Optional[Session]:
    db = kwargs.get("db", args[0] if args else None)
    return db if isinstance(db, Session) else None


def ledger_operation(error: str, detail: str) -> Callable:
    """
    Component boundary for a ledger operation.

    Expected failures (LedgerError) become typed failed results. Anything else
    is rolled back, logged with the call parameters and reported with the
    generic ``error``/``detail`` pair so internals never reach the caller.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., OperationResult]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> OperationResult:
            try:
                result = func(*args, **kwargs)
            except LedgerError as exc:
                level = logging.ERROR if exc.kind == FailureKind.unexpected else logging.INFO
                logger.log(level, "%s rejected: %s (%s) params=%s", func.__name__, exc.message, exc.detail, kwargs)
                return OperationResult.failure(exc.kind, exc.message, exc.detail)
            except Exception:
                db = _session_from(args, kwargs)
                if db is not None:
                    db.rollback()
                logger.exception("%s failed args=%s params=%s", func.__name__, args[1:], kwargs)
                return OperationResult.failure(FailureKind.unexpected, error, detail)
            if isinstance(result, OperationResult):
                return result
            return OperationResult.success(result)

        return wrapper

    return decorator


_HTTP_STATUS = {
    FailureKind.not_found: status.HTTP_404_NOT_FOUND,
    FailureKind.conflict: status.HTTP_409_CONFLICT,
    FailureKind.insufficient_stock: status.HTTP_400_BAD_REQUEST,
    FailureKind.validation: status.HTTP_400_BAD_REQUEST,
    FailureKind.unexpected: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: OperationResult[T]) -> T:
    """Return the payload of a successful result or raise the matching HTTPException"""
    if result.is_success:
        return result.data
    raise HTTPException(
        status_code=_HTTP_STATUS.get(result.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"error": result.error, "detail": result.detail},
    )
