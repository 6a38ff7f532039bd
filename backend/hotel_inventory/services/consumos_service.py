"""
Service for visit consumptions (mini-bar / room service lines).

Coarser than the consumption poster: a whole batch of lines is applied in one
transaction, stock is decremented under ``settings.stay_consumption_policy``
(clamp by default) and each change is logged in the secondary StockMovement
table instead of the movement ledger.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, TypedDict

from sqlalchemy.orm import Session, joinedload

from hotel_inventory.core.config import settings
from hotel_inventory.core.database import unit_of_work
from hotel_inventory.core.errors import ConflictError, LedgerValidationError, NotFoundError
from hotel_inventory.core.results import OperationResult, ledger_operation
from hotel_inventory.core.stock_rules import LocationType, StockPolicy, apply_decrement, direction_for
from hotel_inventory.models.article import Article
from hotel_inventory.models.consumption import Consumption, StayMovement
from hotel_inventory.models.room import Room
from hotel_inventory.models.stock_movement import StockMovement
from hotel_inventory.services import inventory_store


logger = logging.getLogger(__name__)


class ConsumptionLine(TypedDict, total=False):
    article_id: int
    quantity: int
    unit_price: Optional[Decimal]


class VisitConsumptionSummary(TypedDict):
    visit_id: int
    total_lines: int
    total_general: Decimal
    total_room: Decimal
    total_amount: Decimal
    consumptions: List[Consumption]


def _get_or_create_stay(db: Session, tenant_id: int, visit_id: int, room_id: int) -> StayMovement:
    stay = (
        db.query(StayMovement)
        .filter(
            StayMovement.tenant_id == tenant_id,
            StayMovement.visit_id == visit_id,
            StayMovement.cancelled.is_(False),
        )
        .first()
    )
    if stay is not None:
        return stay

    room = db.query(Room).filter(Room.id == room_id, Room.tenant_id == tenant_id).first()
    if room is None:
        raise NotFoundError("Room not found", f"No room {room_id} in this organization")

    now = datetime.now(timezone.utc)
    stay = StayMovement(
        tenant_id=tenant_id,
        visit_id=visit_id,
        room_id=room_id,
        started_at=now,
        registered_at=now,
        total_billed=0,
        cancelled=False,
    )
    db.add(stay)
    db.flush()
    logger.info("Created stay movement %s for visit %s tenant=%s", stay.id, visit_id, tenant_id)
    return stay


def _update_stock(
    db: Session,
    tenant_id: int,
    article_id: int,
    change: int,
    room_id: Optional[int],
    policy: StockPolicy,
) -> None:
    """Apply ``change`` to the room (or general) record and log a StockMovement."""
    if room_id is not None:
        record = inventory_store.find_location_record(
            db, tenant_id, article_id, LocationType.room, room_id, for_update=True
        )
    else:
        record = inventory_store.find_location_record(
            db, tenant_id, article_id, LocationType.general, None, for_update=True
        )

    if record is not None:
        if change < 0:
            new_quantity = apply_decrement(record.quantity, -change, policy)
        else:
            new_quantity = record.quantity + change
        inventory_store.apply_quantity(record, new_quantity)
    else:
        logger.warning(
            "No stock record for article %s at %s tenant=%s; stock movement only",
            article_id, f"room {room_id}" if room_id is not None else "general", tenant_id,
        )

    now = datetime.now(timezone.utc)
    db.add(
        StockMovement(
            tenant_id=tenant_id,
            article_id=article_id,
            quantity=abs(change),
            movement_type_id=int(direction_for(change)),
            moved_at=now,
            registered_at=now,
        )
    )


def _find_consumption(db: Session, tenant_id: int, consumption_id: int) -> Consumption:
    consumption = (
        db.query(Consumption)
        .options(joinedload(Consumption.stay_movement), joinedload(Consumption.article))
        .filter(Consumption.id == consumption_id, Consumption.tenant_id == tenant_id)
        .first()
    )
    if consumption is None:
        raise NotFoundError("Consumption not found", f"No consumption {consumption_id} in this organization")
    return consumption


def _stock_room(consumption: Consumption) -> Optional[int]:
    return consumption.stay_movement.room_id if consumption.is_room else None


@ledger_operation("Error adding consumptions", "An error occurred while adding the consumptions")
def add_consumptions(
    db: Session,
    tenant_id: int,
    room_id: int,
    visit_id: int,
    items: Iterable[ConsumptionLine],
    in_room: bool,
    user_id: Optional[str] = None,
) -> OperationResult[List[Consumption]]:
    items = list(items)
    if not items:
        raise LedgerValidationError("No items", "At least one consumption line is required")
    for item in items:
        if item.get("quantity", 0) <= 0:
            raise LedgerValidationError(
                "Invalid quantity",
                f"Quantity for article {item.get('article_id')} must be greater than zero",
            )

    policy = StockPolicy(settings.stay_consumption_policy)
    created: List[Consumption] = []
    with unit_of_work(db):
        stay = _get_or_create_stay(db, tenant_id, visit_id, room_id)
        for item in items:
            article = (
                db.query(Article)
                .filter(Article.id == item["article_id"], Article.tenant_id == tenant_id)
                .first()
            )
            if article is None:
                raise NotFoundError("Article not found", f"No article {item['article_id']} in this organization")

            unit_price = item.get("unit_price")
            consumption = Consumption(
                tenant_id=tenant_id,
                stay_movement_id=stay.id,
                article_id=article.id,
                quantity=item["quantity"],
                unit_price=article.price if unit_price is None else unit_price,
                is_room=in_room,
                cancelled=False,
            )
            db.add(consumption)
            created.append(consumption)

            _update_stock(db, tenant_id, article.id, -item["quantity"], room_id if in_room else None, policy)

    logger.info(
        "Added %s %s consumptions for visit %s user=%s tenant=%s",
        len(created), "room" if in_room else "general", visit_id, user_id, tenant_id,
    )
    message = "Room consumptions added successfully" if in_room else "Consumptions added successfully"
    return OperationResult.success(created, message=message)


@ledger_operation("Error cancelling consumption", "An error occurred while cancelling the consumption")
def cancel_consumption(db: Session, tenant_id: int, consumption_id: int) -> Consumption:
    policy = StockPolicy(settings.stay_consumption_policy)
    with unit_of_work(db):
        consumption = _find_consumption(db, tenant_id, consumption_id)
        if consumption.cancelled:
            raise ConflictError("Consumption already cancelled", f"Consumption {consumption_id} was already cancelled")
        consumption.cancelled = True
        _update_stock(db, tenant_id, consumption.article_id, consumption.quantity, _stock_room(consumption), policy)

    logger.info("Cancelled consumption %s tenant=%s", consumption_id, tenant_id)
    return consumption


@ledger_operation("Error updating consumption", "An error occurred while updating the consumption")
def update_consumption_quantity(db: Session, tenant_id: int, consumption_id: int, quantity: int) -> Consumption:
    if quantity <= 0:
        raise LedgerValidationError("Invalid quantity", "Quantity must be greater than zero")

    policy = StockPolicy(settings.stay_consumption_policy)
    with unit_of_work(db):
        consumption = _find_consumption(db, tenant_id, consumption_id)
        if consumption.cancelled:
            raise ConflictError("Consumption cancelled", f"Consumption {consumption_id} is cancelled")
        # Positive difference returns stock, negative takes more
        difference = consumption.quantity - quantity
        consumption.quantity = quantity
        if difference:
            _update_stock(db, tenant_id, consumption.article_id, difference, _stock_room(consumption), policy)

    logger.info("Updated consumption %s quantity to %s tenant=%s", consumption_id, quantity, tenant_id)
    return consumption


def _active_lines(db: Session, tenant_id: int, visit_id: int) -> List[Consumption]:
    return (
        db.query(Consumption)
        .join(StayMovement, Consumption.stay_movement_id == StayMovement.id)
        .options(joinedload(Consumption.article), joinedload(Consumption.stay_movement))
        .filter(
            Consumption.tenant_id == tenant_id,
            StayMovement.visit_id == visit_id,
            Consumption.cancelled.is_(False),
        )
        .order_by(Consumption.id)
        .all()
    )


@ledger_operation("Error retrieving consumptions", "An error occurred while retrieving the consumptions")
def list_visit_consumptions(db: Session, tenant_id: int, visit_id: int) -> List[Consumption]:
    return _active_lines(db, tenant_id, visit_id)


@ledger_operation("Error generating summary", "An error occurred while generating the consumptions summary")
def visit_consumption_summary(db: Session, tenant_id: int, visit_id: int) -> VisitConsumptionSummary:
    lines = _active_lines(db, tenant_id, visit_id)
    total_general = sum((Decimal(c.unit_price) * c.quantity for c in lines if not c.is_room), Decimal("0"))
    total_room = sum((Decimal(c.unit_price) * c.quantity for c in lines if c.is_room), Decimal("0"))
    return {
        "visit_id": visit_id,
        "total_lines": len(lines),
        "total_general": total_general,
        "total_room": total_room,
        "total_amount": total_general + total_room,
        "consumptions": lines,
    }
