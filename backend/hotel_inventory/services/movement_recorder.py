"""
Append-only movement history for inventory records.

Every quantity change made through the ledger leaves exactly one
InventoryMovement row. Rows are never updated or deleted (see the ORM
listeners in ``models.inventory_movement``).
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional, TypedDict

from pydantic import BaseModel, field_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from hotel_inventory.core.config import settings
from hotel_inventory.core.database import unit_of_work
from hotel_inventory.core.errors import LedgerValidationError, NotFoundError
from hotel_inventory.core.results import PagedResult, ledger_operation
from hotel_inventory.models.inventory_movement import InventoryMovement, MovementMetadata
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.services import inventory_store


logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a filter bound to UTC; naive values are taken as UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MovementFilter(BaseModel):
    kind: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    user_id: Optional[str] = None
    sort_by: Optional[str] = None  # "date" | "kind" | "quantity"
    descending: bool = True
    page: int = 1
    page_size: int = 20

    @field_validator("date_from", "date_to")
    @classmethod
    def _bounds_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("page")
    @classmethod
    def _clamp_page(cls, value: int) -> int:
        return max(1, value)

    @field_validator("page_size")
    @classmethod
    def _clamp_page_size(cls, value: int) -> int:
        return min(max(1, value), settings.movement_page_size_max)


class MovementStatistics(TypedDict):
    total_count: int
    count_by_kind: Dict[str, int]
    count_by_day: Dict[str, int]
    top_actors: Dict[str, int]
    period_start: datetime
    period_end: datetime


_SORT_COLUMNS = {
    "date": InventoryMovement.created_at,
    "kind": InventoryMovement.movement_type,
    "quantity": InventoryMovement.quantity_delta,
}


def append_movement(
    db: Session,
    record: InventoryRecord,
    kind: str,
    quantity_before: int,
    quantity_after: int,
    reason: Optional[str],
    user_id: str,
    ip_address: Optional[str] = None,
    metadata: Optional[MovementMetadata] = None,
    document_number: Optional[str] = None,
    transfer_id: Optional[str] = None,
) -> InventoryMovement:
    """Add a movement for ``record`` to the session. The caller owns the transaction."""
    if quantity_after < 0:
        raise LedgerValidationError(
            "Invalid movement",
            f"Quantity after movement cannot be negative ({quantity_after})",
        )
    movement = InventoryMovement(
        tenant_id=record.tenant_id,
        inventory_id=record.id,
        article_id=record.article_id,
        movement_type=kind,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        quantity_delta=quantity_after - quantity_before,
        reason=reason,
        document_number=document_number,
        transfer_id=transfer_id,
        created_at=datetime.now(timezone.utc),
        user_id=user_id,
        ip_address=ip_address,
        movement_metadata=metadata,
    )
    db.add(movement)
    db.flush()
    return movement


@ledger_operation("Error recording movement", "An error occurred while recording the inventory movement")
def record_movement(
    db: Session,
    inventory_id: int,
    tenant_id: int,
    kind: str,
    quantity_before: int,
    quantity_after: int,
    reason: Optional[str],
    user_id: str,
    ip_address: Optional[str] = None,
    metadata: Optional[MovementMetadata] = None,
    document_number: Optional[str] = None,
    transfer_id: Optional[str] = None,
) -> InventoryMovement:
    with unit_of_work(db):
        record = inventory_store.find_record(db, inventory_id, tenant_id)
        movement = append_movement(
            db,
            record,
            kind,
            quantity_before,
            quantity_after,
            reason,
            user_id,
            ip_address=ip_address,
            metadata=metadata,
            document_number=document_number,
            transfer_id=transfer_id,
        )
    logger.info(
        "Movement %s recorded inventory=%s kind=%s delta=%s user=%s tenant=%s",
        movement.id, inventory_id, kind, movement.quantity_delta, user_id, tenant_id,
    )
    return movement


@ledger_operation("Error retrieving movements", "An error occurred while retrieving inventory movements")
def list_movements(
    db: Session,
    inventory_id: int,
    tenant_id: int,
    movement_filter: Optional[MovementFilter] = None,
) -> PagedResult[InventoryMovement]:
    movement_filter = movement_filter or MovementFilter()
    # Existence check keeps other tenants' ids indistinguishable from missing ones
    inventory_store.find_record(db, inventory_id, tenant_id)

    query = db.query(InventoryMovement).filter(
        InventoryMovement.tenant_id == tenant_id,
        InventoryMovement.inventory_id == inventory_id,
    )
    if movement_filter.kind:
        query = query.filter(InventoryMovement.movement_type == movement_filter.kind)
    if movement_filter.date_from is not None:
        query = query.filter(InventoryMovement.created_at >= movement_filter.date_from)
    if movement_filter.date_to is not None:
        query = query.filter(InventoryMovement.created_at <= movement_filter.date_to)
    if movement_filter.user_id:
        query = query.filter(InventoryMovement.user_id == movement_filter.user_id)

    total = query.count()

    column = _SORT_COLUMNS.get((movement_filter.sort_by or "date").lower(), InventoryMovement.created_at)
    if movement_filter.descending:
        query = query.order_by(column.desc(), InventoryMovement.id.desc())
    else:
        query = query.order_by(column.asc(), InventoryMovement.id.asc())

    items = (
        query.offset((movement_filter.page - 1) * movement_filter.page_size)
        .limit(movement_filter.page_size)
        .all()
    )
    return PagedResult(
        items=items,
        total_count=total,
        page=movement_filter.page,
        page_size=movement_filter.page_size,
    )


@ledger_operation("Error retrieving movement", "An error occurred while retrieving the inventory movement")
def get_movement(db: Session, movement_id: int, tenant_id: int) -> InventoryMovement:
    movement = (
        db.query(InventoryMovement)
        .filter(InventoryMovement.id == movement_id, InventoryMovement.tenant_id == tenant_id)
        .first()
    )
    if movement is None:
        raise NotFoundError("Movement not found", f"No inventory movement {movement_id} in this organization")
    return movement


def _day_key(value) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


@ledger_operation("Error retrieving statistics", "An error occurred while computing movement statistics")
def movement_statistics(
    db: Session,
    tenant_id: int,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> MovementStatistics:
    """
    Aggregate counts over the tenant's movements.

    ``total_count`` and ``count_by_kind`` cover the requested range.
    ``count_by_day`` and ``top_actors`` additionally restrict to the last
    ``settings.movement_stats_window_days`` days.
    """
    now = datetime.now(timezone.utc)
    date_from = as_utc(date_from)
    date_to = as_utc(date_to)
    window_start = now - timedelta(days=settings.movement_stats_window_days)

    query = db.query(InventoryMovement).filter(InventoryMovement.tenant_id == tenant_id)
    if date_from is not None:
        query = query.filter(InventoryMovement.created_at >= date_from)
    if date_to is not None:
        query = query.filter(InventoryMovement.created_at <= date_to)

    total = query.count()

    by_kind = dict(
        query.with_entities(InventoryMovement.movement_type, func.count(InventoryMovement.id))
        .group_by(InventoryMovement.movement_type)
        .all()
    )

    recent = query.filter(InventoryMovement.created_at >= window_start)

    by_day: Dict[str, int] = {}
    for (created_at,) in recent.with_entities(InventoryMovement.created_at).all():
        key = _day_key(created_at)
        by_day[key] = by_day.get(key, 0) + 1

    count = func.count(InventoryMovement.id)
    top_actors = dict(
        recent.with_entities(InventoryMovement.user_id, count)
        .group_by(InventoryMovement.user_id)
        .order_by(count.desc(), InventoryMovement.user_id)
        .limit(settings.movement_stats_top_actors)
        .all()
    )

    return {
        "total_count": total,
        "count_by_kind": by_kind,
        "count_by_day": dict(sorted(by_day.items())),
        "top_actors": top_actors,
        "period_start": date_from or window_start,
        "period_end": date_to or now,
    }
