"""
Authoritative quantity-on-hand per (article, location), always scoped by tenant.

Public functions return ``OperationResult``. ``find_record`` and
``apply_quantity`` raise instead and are meant for callers that already hold a
``unit_of_work`` (the consumption poster).
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, TypedDict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload, object_session

from hotel_inventory.core.database import unit_of_work
from hotel_inventory.core.errors import ConflictError, LedgerValidationError, NotFoundError
from hotel_inventory.core.results import ledger_operation
from hotel_inventory.core.stock_rules import LocationType, validate_location
from hotel_inventory.models.article import Article
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.room import Room
from hotel_inventory.services import stock_alerts


logger = logging.getLogger(__name__)


class QuantityUpdate(TypedDict):
    inventory_id: int
    quantity: int


class StockRequest(TypedDict, total=False):
    article_id: int
    requested_quantity: int
    location_type: int
    location_id: Optional[int]


class StockValidation(TypedDict):
    article_id: int
    requested_quantity: int
    available_quantity: int
    is_valid: bool
    location_type: int
    location_id: Optional[int]


def _tenant_records(db: Session, tenant_id: int) -> Query:
    return db.query(InventoryRecord).filter(InventoryRecord.tenant_id == tenant_id)


def _location_filter(query: Query, location_type: LocationType, location_id: Optional[int]) -> Query:
    query = query.filter(InventoryRecord.location_type == int(location_type))
    if location_id is None:
        return query.filter(InventoryRecord.location_id.is_(None))
    return query.filter(InventoryRecord.location_id == location_id)


def find_record(db: Session, inventory_id: int, tenant_id: int, for_update: bool = False) -> InventoryRecord:
    query = _tenant_records(db, tenant_id).filter(InventoryRecord.id == inventory_id)
    if for_update:
        query = query.with_for_update()
    record = query.first()
    if record is None:
        raise NotFoundError("Inventory not found", f"No inventory record {inventory_id} in this organization")
    return record


def lock_records(db: Session, tenant_id: int, inventory_ids: Iterable[int]) -> Dict[int, InventoryRecord]:
    """Lock the tenant's records among ``inventory_ids`` in id order; unknown ids are simply absent."""
    records = (
        _tenant_records(db, tenant_id)
        .filter(InventoryRecord.id.in_(sorted(set(inventory_ids))))
        .order_by(InventoryRecord.id)
        .with_for_update()
        .all()
    )
    return {record.id: record for record in records}


def find_location_record(
    db: Session,
    tenant_id: int,
    article_id: int,
    location_type: LocationType,
    location_id: Optional[int],
    for_update: bool = False,
) -> Optional[InventoryRecord]:
    query = _location_filter(
        _tenant_records(db, tenant_id).filter(InventoryRecord.article_id == article_id),
        location_type,
        location_id,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def apply_quantity(record: InventoryRecord, new_quantity: int) -> InventoryRecord:
    """Set the quantity on hand and re-evaluate the record's stock alerts in the same session."""
    if new_quantity < 0:
        raise LedgerValidationError(
            "Invalid quantity",
            f"Inventory {record.id} cannot hold a negative quantity ({new_quantity})",
        )
    record.quantity = new_quantity
    record.last_updated_at = datetime.now(timezone.utc)
    db = object_session(record)
    if db is not None:
        stock_alerts.evaluate_record(db, record)
    return record


@ledger_operation("Error retrieving inventory", "An error occurred while retrieving the inventory")
def get_inventory(
    db: Session,
    tenant_id: int,
    location_type: Optional[LocationType] = None,
    location_id: Optional[int] = None,
) -> List[InventoryRecord]:
    query = _tenant_records(db, tenant_id).options(
        joinedload(InventoryRecord.article),
        joinedload(InventoryRecord.room),
    )
    if location_type is not None:
        query = query.filter(InventoryRecord.location_type == int(location_type))
    if location_id is not None:
        query = query.filter(InventoryRecord.location_id == location_id)
    return query.order_by(InventoryRecord.location_type, InventoryRecord.location_id, InventoryRecord.id).all()


@ledger_operation("Error retrieving inventory item", "An error occurred while retrieving the inventory item")
def get_inventory_by_id(db: Session, inventory_id: int, tenant_id: int) -> InventoryRecord:
    return find_record(db, inventory_id, tenant_id)


@ledger_operation("Error creating inventory", "An error occurred while creating the inventory record")
def create_inventory(
    db: Session,
    tenant_id: int,
    article_id: int,
    location_type: LocationType,
    location_id: Optional[int] = None,
    quantity: int = 0,
    user_id: Optional[str] = None,
    min_quantity: int = 0,
) -> InventoryRecord:
    location_type = LocationType(location_type)
    validate_location(location_type, location_id)
    if quantity < 0:
        raise LedgerValidationError("Invalid quantity", "Initial quantity cannot be negative")

    if find_location_record(db, tenant_id, article_id, location_type, location_id) is not None:
        raise ConflictError(
            "Inventory already exists for this article in this location",
            f"Article {article_id} already has stock at {location_type.name}:{location_id}",
        )

    article = db.query(Article).filter(Article.id == article_id, Article.tenant_id == tenant_id).first()
    if article is None:
        raise NotFoundError("Article not found", f"No article {article_id} in this organization")

    if location_type == LocationType.room:
        room = db.query(Room).filter(Room.id == location_id, Room.tenant_id == tenant_id).first()
        if room is None:
            raise NotFoundError("Room not found", f"No room {location_id} in this organization")

    now = datetime.now(timezone.utc)
    record = InventoryRecord(
        tenant_id=tenant_id,
        article_id=article_id,
        location_type=int(location_type),
        location_id=location_id,
        quantity=quantity,
        min_quantity=min_quantity,
        registered_at=now,
        last_updated_at=now,
        registered_by=user_id or "system",
    )
    try:
        with unit_of_work(db):
            db.add(record)
    except IntegrityError:
        raise ConflictError(
            "Inventory already exists for this article in this location",
            f"Article {article_id} already has stock at {location_type.name}:{location_id}",
        )

    logger.info(
        "Inventory created tenant=%s article=%s location=%s:%s quantity=%s",
        tenant_id, article_id, location_type.name, location_id, quantity,
    )
    return record


@ledger_operation("Error updating inventory", "An error occurred while updating the inventory quantity")
def set_quantity(db: Session, inventory_id: int, new_quantity: int, tenant_id: int) -> InventoryRecord:
    with unit_of_work(db):
        record = find_record(db, inventory_id, tenant_id, for_update=True)
        apply_quantity(record, new_quantity)
    logger.info("Inventory %s quantity set to %s tenant=%s", inventory_id, new_quantity, tenant_id)
    return record


@ledger_operation("Error deleting inventory", "An error occurred while deleting the inventory record")
def delete_inventory(db: Session, inventory_id: int, tenant_id: int) -> int:
    with unit_of_work(db):
        record = find_record(db, inventory_id, tenant_id)
        db.delete(record)
    logger.info("Inventory %s deleted tenant=%s", inventory_id, tenant_id)
    return inventory_id


@ledger_operation("Error synchronizing general inventory", "An error occurred while synchronizing general inventory")
def synchronize_general_stock(db: Session, tenant_id: int) -> int:
    """Create a zero-quantity General record for every article that lacks one."""
    stocked = {
        article_id
        for (article_id,) in _location_filter(_tenant_records(db, tenant_id), LocationType.general, None)
        .with_entities(InventoryRecord.article_id)
        .all()
    }
    missing = [
        article_id
        for (article_id,) in db.query(Article.id).filter(Article.tenant_id == tenant_id).order_by(Article.id).all()
        if article_id not in stocked
    ]

    now = datetime.now(timezone.utc)
    with unit_of_work(db):
        for article_id in missing:
            db.add(
                InventoryRecord(
                    tenant_id=tenant_id,
                    article_id=article_id,
                    location_type=int(LocationType.general),
                    location_id=None,
                    quantity=0,
                    registered_at=now,
                    last_updated_at=now,
                    registered_by="system",
                )
            )

    logger.info("Synchronized %s articles to general inventory tenant=%s", len(missing), tenant_id)
    return len(missing)


@ledger_operation("Error in batch update", "An error occurred while updating the inventory batch")
def batch_set_quantity(db: Session, tenant_id: int, items: Iterable[QuantityUpdate]) -> int:
    updated = 0
    with unit_of_work(db):
        for item in items:
            record = (
                _tenant_records(db, tenant_id)
                .filter(InventoryRecord.id == item["inventory_id"])
                .with_for_update()
                .first()
            )
            if record is None:
                logger.warning("Batch update skipped unknown inventory %s tenant=%s", item["inventory_id"], tenant_id)
                continue
            apply_quantity(record, item["quantity"])
            updated += 1
    logger.info("Batch updated %s inventory records tenant=%s", updated, tenant_id)
    return updated


@ledger_operation("Error retrieving low stock", "An error occurred while retrieving low stock items")
def list_low_stock(db: Session, tenant_id: int) -> List[InventoryRecord]:
    return (
        _tenant_records(db, tenant_id)
        .options(joinedload(InventoryRecord.article), joinedload(InventoryRecord.room))
        .filter(InventoryRecord.min_quantity > 0, InventoryRecord.quantity <= InventoryRecord.min_quantity)
        .order_by(InventoryRecord.quantity, InventoryRecord.id)
        .all()
    )


def _available(
    db: Session, tenant_id: int, article_id: int, location_type: LocationType, location_id: Optional[int]
) -> int:
    record = find_location_record(db, tenant_id, article_id, LocationType(location_type), location_id)
    return record.quantity if record is not None else 0


@ledger_operation("Error getting available quantity", "An error occurred while reading the available quantity")
def get_available_quantity(
    db: Session,
    tenant_id: int,
    article_id: int,
    location_type: LocationType = LocationType.general,
    location_id: Optional[int] = None,
) -> int:
    return _available(db, tenant_id, article_id, location_type, location_id)


@ledger_operation("Error validating stock", "An error occurred while validating stock availability")
def validate_stock(db: Session, tenant_id: int, requests: Iterable[StockRequest]) -> List[StockValidation]:
    validations: List[StockValidation] = []
    for request in requests:
        location_type = LocationType(request.get("location_type", LocationType.general))
        location_id = request.get("location_id")
        available = _available(db, tenant_id, request["article_id"], location_type, location_id)
        validations.append(
            {
                "article_id": request["article_id"],
                "requested_quantity": request["requested_quantity"],
                "available_quantity": available,
                "is_valid": available >= request["requested_quantity"],
                "location_type": int(location_type),
                "location_id": location_id,
            }
        )
    return validations
