"""
Transfer documents: stock moves between two locations that go through an
approval workflow instead of being posted immediately.

    Pendiente -> Aprobada -> Completada | ParcialmenteCompletada | Rechazada
    Pendiente -> Rechazada
    Pendiente | Aprobada | Rechazada -> Cancelada

Creating a document checks availability but reserves nothing. Stock is checked
again and moved by ``execute_transfer``, line by line, through
``consumption_poster.move_stock``; every moved line leaves two
``Transferencia`` movements whose ``transfer_id`` is the document's
``transfer_number``.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, TypedDict

from sqlalchemy.orm import Session, selectinload

from hotel_inventory.core.config import settings
from hotel_inventory.core.database import unit_of_work
from hotel_inventory.core.errors import (
    ConflictError,
    InsufficientStockError,
    LedgerError,
    LedgerValidationError,
    NotFoundError,
)
from hotel_inventory.core.results import OperationResult, PagedResult, ledger_operation
from hotel_inventory.core.stock_rules import LocationType, TransferPriority, TransferStatus, validate_location
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.room import Room
from hotel_inventory.models.transfer_document import TransferDocument, TransferLine
from hotel_inventory.services import consumption_poster, inventory_store


logger = logging.getLogger(__name__)

# Statuses from which no further transition is allowed by cancel
_FINAL_STATUSES = (TransferStatus.completed, TransferStatus.partially_completed, TransferStatus.cancelled)


class TransferLineRequest(TypedDict, total=False):
    inventory_id: int
    quantity: int
    notes: Optional[str]


class TransferRequest(TypedDict, total=False):
    source_location_type: int
    source_location_id: Optional[int]
    destination_location_type: int
    destination_location_id: Optional[int]
    lines: List[TransferLineRequest]
    priority: Optional[str]
    reason: Optional[str]
    notes: Optional[str]
    requires_approval: bool


def _next_transfer_number(db: Session, tenant_id: int) -> str:
    prefix = f"TRF-{tenant_id:04d}-{datetime.now(timezone.utc):%Y%m}"
    last = (
        db.query(TransferDocument.transfer_number)
        .filter(TransferDocument.tenant_id == tenant_id, TransferDocument.transfer_number.like(f"{prefix}-%"))
        .order_by(TransferDocument.transfer_number.desc())
        .first()
    )
    sequence = 1
    if last is not None:
        tail = last[0].rsplit("-", 1)[-1]
        if tail.isdigit():
            sequence = int(tail) + 1
    return f"{prefix}-{sequence:04d}"


def _find_document(db: Session, tenant_id: int, transfer_id: int, for_update: bool = False) -> TransferDocument:
    query = db.query(TransferDocument).filter(
        TransferDocument.id == transfer_id,
        TransferDocument.tenant_id == tenant_id,
    )
    if for_update:
        query = query.with_for_update()
    document = query.first()
    if document is None:
        raise NotFoundError("Transfer not found", f"No transfer {transfer_id} in this organization")
    return document


def _destination_record(
    db: Session,
    tenant_id: int,
    article_id: int,
    location_type: LocationType,
    location_id: Optional[int],
    user_id: str,
) -> InventoryRecord:
    record = inventory_store.find_location_record(db, tenant_id, article_id, location_type, location_id)
    if record is not None:
        return record
    now = datetime.now(timezone.utc)
    record = InventoryRecord(
        tenant_id=tenant_id,
        article_id=article_id,
        location_type=int(location_type),
        location_id=location_id,
        quantity=0,
        registered_at=now,
        last_updated_at=now,
        registered_by=user_id,
    )
    db.add(record)
    db.flush()
    return record


def _build_document(
    db: Session,
    tenant_id: int,
    user_id: str,
    request: TransferRequest,
    ip_address: Optional[str],
) -> TransferDocument:
    source_type = LocationType(request["source_location_type"])
    source_id = request.get("source_location_id")
    destination_type = LocationType(request["destination_location_type"])
    destination_id = request.get("destination_location_id")
    validate_location(source_type, source_id)
    validate_location(destination_type, destination_id)
    if (source_type, source_id) == (destination_type, destination_id):
        raise LedgerValidationError("Invalid transfer", "Source and destination locations must be different")

    lines = request.get("lines") or []
    if not lines:
        raise LedgerValidationError("Invalid transfer", "A transfer needs at least one line")

    priority = request.get("priority") or TransferPriority.medium
    if priority not in TransferPriority.choices:
        raise LedgerValidationError("Invalid transfer", f"Unknown priority {priority}")

    if destination_type == LocationType.room:
        room = db.query(Room).filter(Room.id == destination_id, Room.tenant_id == tenant_id).first()
        if room is None:
            raise NotFoundError("Room not found", f"No room {destination_id} in this organization")

    now = datetime.now(timezone.utc)
    requires_approval = request.get("requires_approval", True)
    document = TransferDocument(
        tenant_id=tenant_id,
        transfer_number=_next_transfer_number(db, tenant_id),
        source_location_type=int(source_type),
        source_location_id=source_id,
        destination_location_type=int(destination_type),
        destination_location_id=destination_id,
        status=TransferStatus.pending if requires_approval else TransferStatus.approved,
        priority=priority,
        reason=request.get("reason"),
        notes=request.get("notes"),
        requires_approval=requires_approval,
        created_at=now,
        created_by=user_id,
        ip_address=ip_address,
    )
    if not requires_approval:
        document.approved_at = now
        document.approved_by = user_id

    for line in lines:
        quantity = line["quantity"]
        if quantity <= 0:
            raise LedgerValidationError("Invalid quantity", "Transferred quantity must be greater than zero")

        source = inventory_store.find_record(db, line["inventory_id"], tenant_id)
        if source.location_type != int(source_type) or (source_id is not None and source.location_id != source_id):
            raise NotFoundError(
                "Inventory not found",
                f"Source inventory {source.id} not found or not in specified source location",
            )
        if source.quantity < quantity:
            raise InsufficientStockError(available=source.quantity, requested=quantity)

        destination = _destination_record(db, tenant_id, source.article_id, destination_type, destination_id, user_id)
        document.lines.append(
            TransferLine(
                source_inventory_id=source.id,
                destination_inventory_id=destination.id,
                article_id=source.article_id,
                requested_quantity=quantity,
                available_quantity=source.quantity,
                notes=line.get("notes"),
            )
        )

    db.add(document)
    db.flush()
    return document


@ledger_operation("Error creating transfer", "An error occurred while creating the transfer")
def create_transfer(
    db: Session,
    tenant_id: int,
    user_id: str,
    request: TransferRequest,
    ip_address: Optional[str] = None,
) -> OperationResult[TransferDocument]:
    with unit_of_work(db):
        document = _build_document(db, tenant_id, user_id, request, ip_address)
    logger.info(
        "Transfer %s created with %s lines user=%s tenant=%s",
        document.transfer_number, len(document.lines), user_id, tenant_id,
    )
    return OperationResult.success(document, message="Transfer created successfully")


@ledger_operation("Error creating batch transfers", "An error occurred while creating the batch transfers")
def create_transfers_batch(
    db: Session,
    tenant_id: int,
    user_id: str,
    requests: Iterable[TransferRequest],
    ip_address: Optional[str] = None,
) -> OperationResult[List[TransferDocument]]:
    """Create every document or none; a failure names the offending position."""
    documents: List[TransferDocument] = []
    with unit_of_work(db):
        for position, request in enumerate(requests, start=1):
            try:
                documents.append(_build_document(db, tenant_id, user_id, request, ip_address))
            except LedgerError as exc:
                exc.detail = f"Transfer {position}: {exc.detail}"
                raise
    logger.info("Batch created %s transfers user=%s tenant=%s", len(documents), user_id, tenant_id)
    return OperationResult.success(documents, message=f"All {len(documents)} transfers created successfully")


@ledger_operation("Error retrieving transfer", "An error occurred while retrieving the transfer")
def get_transfer(db: Session, tenant_id: int, transfer_id: int) -> TransferDocument:
    return _find_document(db, tenant_id, transfer_id)


@ledger_operation("Error retrieving transfers", "An error occurred while retrieving transfers")
def list_transfers(
    db: Session,
    tenant_id: int,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> PagedResult[TransferDocument]:
    page = max(1, page)
    page_size = min(max(1, page_size), settings.transfer_page_size_max)

    query = db.query(TransferDocument).filter(TransferDocument.tenant_id == tenant_id)
    if status:
        query = query.filter(TransferDocument.status == status)
    total = query.count()
    items = (
        query.options(selectinload(TransferDocument.lines))
        .order_by(TransferDocument.created_at.desc(), TransferDocument.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return PagedResult(items=items, total_count=total, page=page, page_size=page_size)


@ledger_operation("Error processing approval", "An error occurred while processing the transfer approval")
def approve_transfer(
    db: Session,
    tenant_id: int,
    transfer_id: int,
    user_id: str,
    approved: bool = True,
    comments: Optional[str] = None,
) -> OperationResult[TransferDocument]:
    with unit_of_work(db):
        document = _find_document(db, tenant_id, transfer_id, for_update=True)
        if document.status != TransferStatus.pending:
            raise ConflictError(
                "Transfer is not pending approval",
                f"Transfer is not pending approval. Current status: {document.status}",
            )
        now = datetime.now(timezone.utc)
        if approved:
            document.status = TransferStatus.approved
            document.approved_at = now
            document.approved_by = user_id
            document.approval_comments = comments
        else:
            document.status = TransferStatus.rejected
            document.rejected_at = now
            document.rejected_by = user_id
            document.rejection_reason = comments or "No reason provided"

    action = "approved" if approved else "rejected"
    logger.info("Transfer %s %s user=%s tenant=%s", document.transfer_number, action, user_id, tenant_id)
    return OperationResult.success(document, message=f"Transfer {action} successfully")


def _execute_line(
    db: Session,
    document: TransferDocument,
    line: TransferLine,
    user_id: str,
    ip_address: Optional[str],
) -> None:
    locked = inventory_store.lock_records(
        db, document.tenant_id, (line.source_inventory_id, line.destination_inventory_id)
    )
    source = locked.get(line.source_inventory_id)
    destination = locked.get(line.destination_inventory_id)

    if source is None or source.quantity < line.requested_quantity:
        available = source.quantity if source is not None else 0
        line.transferred = False
        line.failure_reason = f"Insufficient inventory. Available: {available}, Required: {line.requested_quantity}"
        return
    if destination is None:
        line.transferred = False
        line.failure_reason = "Destination inventory not found"
        return

    consumption_poster.move_stock(
        db,
        source,
        destination,
        line.requested_quantity,
        f"Transferencia entrante - {document.transfer_number}",
        user_id,
        document.transfer_number,
        ip_address=ip_address,
        outgoing_reason=f"Transferencia saliente - {document.transfer_number}",
    )
    line.transferred = True
    line.transferred_quantity = line.requested_quantity


@ledger_operation("Error executing transfer", "An error occurred while executing the transfer")
def execute_transfer(
    db: Session,
    tenant_id: int,
    transfer_id: int,
    user_id: str,
    notes: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> OperationResult[TransferDocument]:
    """
    Move the stock of an approved document.

    Lines that cannot be moved (stock consumed since approval, destination
    deleted) are marked with a failure reason while the rest still move; the
    final status reflects how many lines succeeded.
    """
    with unit_of_work(db):
        document = _find_document(db, tenant_id, transfer_id, for_update=True)
        if document.status != TransferStatus.approved:
            raise ConflictError(
                "Transfer is not approved",
                f"Transfer is not approved. Current status: {document.status}",
            )

        for line in document.lines:
            _execute_line(db, document, line, user_id, ip_address)

        completed = sum(1 for line in document.lines if line.transferred)
        failed = len(document.lines) - completed
        if failed == 0:
            document.status = TransferStatus.completed
        elif completed > 0:
            document.status = TransferStatus.partially_completed
        else:
            document.status = TransferStatus.rejected
        document.completed_at = datetime.now(timezone.utc)
        document.completed_by = user_id
        document.completion_notes = notes or f"Execution completed: {completed} successful, {failed} failed"

    logger.info(
        "Transfer %s executed: %s completed, %s failed user=%s tenant=%s",
        document.transfer_number, completed, failed, user_id, tenant_id,
    )
    return OperationResult.success(
        document,
        message=f"Transfer execution completed: {completed} successful, {failed} failed",
    )


@ledger_operation("Error cancelling transfer", "An error occurred while cancelling the transfer")
def cancel_transfer(
    db: Session,
    tenant_id: int,
    transfer_id: int,
    user_id: str,
    reason: Optional[str] = None,
) -> OperationResult[TransferDocument]:
    with unit_of_work(db):
        document = _find_document(db, tenant_id, transfer_id, for_update=True)
        if document.status in _FINAL_STATUSES:
            raise ConflictError(
                "Transfer cannot be cancelled",
                f"Cannot cancel transfer with status: {document.status}",
            )
        document.status = TransferStatus.cancelled
        document.rejected_at = datetime.now(timezone.utc)
        document.rejected_by = user_id
        document.rejection_reason = reason

    logger.info("Transfer %s cancelled user=%s tenant=%s", document.transfer_number, user_id, tenant_id)
    return OperationResult.success(document, message="Transfer cancelled successfully")
