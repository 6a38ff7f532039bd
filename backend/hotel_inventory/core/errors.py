"""
Typed failures raised inside the inventory ledger.

Services raise these internally; ``ledger_operation`` turns them into failed
``OperationResult`` values at the service boundary, so callers never need a
try/except for expected conditions.
"""
from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    not_found = "not_found"
    conflict = "conflict"
    insufficient_stock = "insufficient_stock"
    validation = "validation"
    unexpected = "unexpected"


class LedgerError(Exception):
    """Base class for expected ledger failures"""

    kind = FailureKind.unexpected

    def __init__(self, message: str, detail: Optional[str] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or message
        self.payload = payload

    def to_dict(self) -> Dict[str, Any]:
        rv = dict(self.payload or ())
        rv["error"] = self.message
        rv["detail"] = self.detail
        rv["kind"] = self.kind.value
        return rv


class NotFoundError(LedgerError):
    """Record missing or owned by another tenant (reported the same way)"""

    kind = FailureKind.not_found


class ConflictError(LedgerError):
    kind = FailureKind.conflict


class InsufficientStockError(LedgerError):
    kind = FailureKind.insufficient_stock

    def __init__(self, available: int, requested: int, detail: Optional[str] = None):
        super().__init__(
            "Insufficient inventory quantity",
            detail or f"Available: {available}, Requested: {requested}",
            payload={"available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class LedgerValidationError(LedgerError):
    kind = FailureKind.validation


class ImmutableRecordError(LedgerError):
    """Raised by ORM listeners when something tries to rewrite ledger history"""

    kind = FailureKind.unexpected

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} records are append-only",
            f"Attempted to modify or delete {entity_type} {entity_id}",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
