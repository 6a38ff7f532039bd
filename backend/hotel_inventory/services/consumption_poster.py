"""
Posting of adjustments, consumptions and transfers.

This is the only place where a stock quantity change and its movement entry
are written together. Each posting runs inside a single ``unit_of_work``: if
anything fails neither the quantity nor the movement survives. The stock row
is read with ``SELECT ... FOR UPDATE`` so two concurrent postings on the same
record serialize instead of both reading the same "before" quantity.
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from hotel_inventory.core.config import settings
from hotel_inventory.core.database import unit_of_work
from hotel_inventory.core.errors import InsufficientStockError, LedgerValidationError
from hotel_inventory.core.results import OperationResult, ledger_operation
from hotel_inventory.core.stock_rules import MovementKind, StockPolicy, apply_decrement
from hotel_inventory.models.inventory_movement import InventoryMovement, MovementMetadata
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.services import inventory_store, movement_recorder


logger = logging.getLogger(__name__)

DEFAULT_CONSUMPTION_REASON = "Consumo registrado"


@ledger_operation("Error registering adjustment", "An error occurred while registering the inventory adjustment")
def post_adjustment(
    db: Session,
    inventory_id: int,
    new_quantity: int,
    reason: Optional[str],
    tenant_id: int,
    user_id: str,
    ip_address: Optional[str] = None,
) -> OperationResult[InventoryMovement]:
    with unit_of_work(db):
        record = inventory_store.find_record(db, inventory_id, tenant_id, for_update=True)
        before = record.quantity
        inventory_store.apply_quantity(record, new_quantity)
        movement = movement_recorder.append_movement(
            db,
            record,
            MovementKind.ajuste,
            before,
            new_quantity,
            reason,
            user_id,
            ip_address=ip_address,
        )

    logger.info(
        "Adjustment posted inventory=%s %s->%s user=%s tenant=%s",
        inventory_id, before, new_quantity, user_id, tenant_id,
    )
    return OperationResult.success(movement, message="Adjustment registered successfully")


@ledger_operation("Error registering consumption", "An error occurred while registering the consumption")
def post_consumption(
    db: Session,
    inventory_id: int,
    quantity: int,
    tenant_id: int,
    user_id: str,
    consumo_id: Optional[int] = None,
    details: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> OperationResult[InventoryMovement]:
    if quantity <= 0:
        raise LedgerValidationError("Invalid quantity", "Consumed quantity must be greater than zero")

    policy = StockPolicy(settings.ledger_consumption_policy)
    with unit_of_work(db):
        record = inventory_store.find_record(db, inventory_id, tenant_id, for_update=True)
        before = record.quantity
        after = apply_decrement(before, quantity, policy)
        inventory_store.apply_quantity(record, after)
        metadata = None
        if consumo_id is not None or details:
            metadata = MovementMetadata(consumo_id=consumo_id, details=details)
        movement = movement_recorder.append_movement(
            db,
            record,
            MovementKind.consumo,
            before,
            after,
            details or DEFAULT_CONSUMPTION_REASON,
            user_id,
            ip_address=ip_address,
            metadata=metadata,
        )

    logger.info(
        "Consumption posted inventory=%s quantity=%s %s->%s user=%s tenant=%s",
        inventory_id, quantity, before, after, user_id, tenant_id,
    )
    return OperationResult.success(movement, message="Consumption registered successfully")


def move_stock(
    db: Session,
    source: InventoryRecord,
    destination: InventoryRecord,
    quantity: int,
    reason: str,
    user_id: str,
    transfer_id: str,
    ip_address: Optional[str] = None,
    outgoing_reason: Optional[str] = None,
) -> List[InventoryMovement]:
    """
    Move ``quantity`` units from ``source`` to ``destination`` and write both movements.

    Both records must already be locked by the caller, who also owns the
    transaction. ``outgoing_reason`` overrides ``reason`` on the source side.
    """
    if source.article_id != destination.article_id:
        raise LedgerValidationError("Invalid transfer", "Source and destination hold different articles")
    if source.quantity < quantity:
        raise InsufficientStockError(available=source.quantity, requested=quantity)

    source_before = source.quantity
    destination_before = destination.quantity
    inventory_store.apply_quantity(source, source_before - quantity)
    inventory_store.apply_quantity(destination, destination_before + quantity)

    outgoing = movement_recorder.append_movement(
        db,
        source,
        MovementKind.transferencia,
        source_before,
        source.quantity,
        outgoing_reason or reason,
        user_id,
        ip_address=ip_address,
        transfer_id=transfer_id,
        metadata=MovementMetadata(
            transfer_number=transfer_id,
            operation="out",
            counterpart_inventory_id=destination.id,
        ),
    )
    incoming = movement_recorder.append_movement(
        db,
        destination,
        MovementKind.transferencia,
        destination_before,
        destination.quantity,
        reason,
        user_id,
        ip_address=ip_address,
        transfer_id=transfer_id,
        metadata=MovementMetadata(
            transfer_number=transfer_id,
            operation="in",
            counterpart_inventory_id=source.id,
        ),
    )
    return [outgoing, incoming]


@ledger_operation("Error executing transfer", "An error occurred while transferring inventory")
def post_transfer(
    db: Session,
    source_inventory_id: int,
    destination_inventory_id: int,
    quantity: int,
    tenant_id: int,
    user_id: str,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> OperationResult[List[InventoryMovement]]:
    """
    Move ``quantity`` units between two records of the same article.

    Writes one ``Transferencia`` movement on each side; both share a generated
    ``transfer_id`` which is also stored as ``transfer_number`` in the metadata.
    """
    if quantity <= 0:
        raise LedgerValidationError("Invalid quantity", "Transferred quantity must be greater than zero")
    if source_inventory_id == destination_inventory_id:
        raise LedgerValidationError("Invalid transfer", "Source and destination must be different records")

    transfer_id = uuid.uuid4().hex
    with unit_of_work(db):
        # Lock in id order so opposite transfers cannot deadlock each other
        first_id, second_id = sorted((source_inventory_id, destination_inventory_id))
        locked = {
            first_id: inventory_store.find_record(db, first_id, tenant_id, for_update=True),
            second_id: inventory_store.find_record(db, second_id, tenant_id, for_update=True),
        }
        outgoing, incoming = move_stock(
            db,
            locked[source_inventory_id],
            locked[destination_inventory_id],
            quantity,
            reason or f"Transferencia {transfer_id[:8]}",
            user_id,
            transfer_id,
            ip_address=ip_address,
        )

    logger.info(
        "Transfer %s posted %s->%s quantity=%s user=%s tenant=%s",
        transfer_id, source_inventory_id, destination_inventory_id, quantity, user_id, tenant_id,
    )
    return OperationResult.success([outgoing, incoming], message="Transfer executed successfully")
