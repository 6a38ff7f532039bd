from datetime import datetime, timezone

import pytest

from hotel_inventory.core.errors import FailureKind
from hotel_inventory.core.stock_rules import LocationType, TransferPriority, TransferStatus
from hotel_inventory.models.inventory_movement import InventoryMovement
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.transfer_document import TransferDocument
from hotel_inventory.services import consumption_poster, transfer_documents


@pytest.fixture()
def warehouse(db, tenant, make_article, make_room, make_record):
    """General stock of two articles and an empty room to send them to."""
    water = make_article(tenant, name="Agua")
    beer = make_article(tenant, name="Cerveza")
    return {
        "room": make_room(tenant, name="301"),
        "water": make_record(tenant, water, quantity=10),
        "beer": make_record(tenant, beer, quantity=4),
    }


def _request(warehouse, *lines, **overrides):
    request = {
        "source_location_type": LocationType.general,
        "destination_location_type": LocationType.room,
        "destination_location_id": warehouse["room"].id,
        "lines": [{"inventory_id": record.id, "quantity": quantity} for record, quantity in lines],
    }
    request.update(overrides)
    return request


def _room_quantity(db, tenant, warehouse, key):
    record = (
        db.query(InventoryRecord)
        .filter(
            InventoryRecord.tenant_id == tenant.id,
            InventoryRecord.article_id == warehouse[key].article_id,
            InventoryRecord.location_type == int(LocationType.room),
            InventoryRecord.location_id == warehouse["room"].id,
        )
        .one()
    )
    return record.quantity


def test_create_records_pending_document_without_moving_stock(db, tenant, warehouse):
    result = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 3), (warehouse["beer"], 1)), ip_address="10.0.0.1"
    )

    assert result.is_success
    assert result.message == "Transfer created successfully"
    document = result.data
    assert document.status == TransferStatus.pending
    assert document.priority == TransferPriority.medium
    assert document.transfer_number == f"TRF-{tenant.id:04d}-{datetime.now(timezone.utc):%Y%m}-0001"
    assert [line.requested_quantity for line in document.lines] == [3, 1]
    assert [line.available_quantity for line in document.lines] == [10, 4]
    assert all(line.transferred is None for line in document.lines)

    # Destination records exist but nothing moved yet
    assert _room_quantity(db, tenant, warehouse, "water") == 0
    db.refresh(warehouse["water"])
    assert warehouse["water"].quantity == 10
    assert db.query(InventoryMovement).count() == 0

    second = transfer_documents.create_transfer(db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1)))
    assert second.data.transfer_number.endswith("-0002")


def test_approve_and_execute_moves_every_line(db, tenant, warehouse):
    document = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 3), (warehouse["beer"], 4))
    ).data

    approved = transfer_documents.approve_transfer(db, tenant.id, document.id, "boss", comments="ok")
    assert approved.message == "Transfer approved successfully"
    assert (approved.data.status, approved.data.approved_by) == (TransferStatus.approved, "boss")

    executed = transfer_documents.execute_transfer(db, tenant.id, document.id, "u2")
    assert executed.is_success
    assert executed.message == "Transfer execution completed: 2 successful, 0 failed"
    assert executed.data.status == TransferStatus.completed
    assert executed.data.completion_notes == "Execution completed: 2 successful, 0 failed"
    assert all(line.transferred and line.transferred_quantity == line.requested_quantity for line in document.lines)

    db.refresh(warehouse["water"])
    db.refresh(warehouse["beer"])
    assert (warehouse["water"].quantity, warehouse["beer"].quantity) == (7, 0)
    assert _room_quantity(db, tenant, warehouse, "water") == 3
    assert _room_quantity(db, tenant, warehouse, "beer") == 4

    movements = db.query(InventoryMovement).order_by(InventoryMovement.id).all()
    assert len(movements) == 4
    assert {m.transfer_id for m in movements} == {document.transfer_number}
    assert movements[0].reason == f"Transferencia saliente - {document.transfer_number}"
    assert movements[1].reason == f"Transferencia entrante - {document.transfer_number}"


def test_document_without_approval_step_starts_approved(db, tenant, warehouse):
    document = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 2), requires_approval=False)
    ).data

    assert document.status == TransferStatus.approved
    assert document.approved_by == "u1"
    assert transfer_documents.execute_transfer(db, tenant.id, document.id, "u1").data.status == (
        TransferStatus.completed
    )


def test_stock_consumed_after_approval_completes_partially(db, tenant, warehouse):
    document = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 3), (warehouse["beer"], 4), requires_approval=False)
    ).data
    consumption_poster.post_consumption(db, warehouse["beer"].id, 2, tenant.id, "u1")

    executed = transfer_documents.execute_transfer(db, tenant.id, document.id, "u2", notes="turno noche")

    assert executed.data.status == TransferStatus.partially_completed
    assert executed.data.completion_notes == "turno noche"
    water_line, beer_line = executed.data.lines
    assert water_line.transferred
    assert beer_line.transferred is False
    assert beer_line.failure_reason == "Insufficient inventory. Available: 2, Required: 4"
    db.refresh(warehouse["beer"])
    assert warehouse["beer"].quantity == 2


def test_execution_with_no_movable_line_is_rejected(db, tenant, warehouse):
    document = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["beer"], 4), requires_approval=False)
    ).data
    consumption_poster.post_consumption(db, warehouse["beer"].id, 1, tenant.id, "u1")

    executed = transfer_documents.execute_transfer(db, tenant.id, document.id, "u2")

    assert executed.data.status == TransferStatus.rejected
    assert executed.message == "Transfer execution completed: 0 successful, 1 failed"


def test_state_machine_guards(db, tenant, warehouse):
    document = transfer_documents.create_transfer(db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1))).data

    early = transfer_documents.execute_transfer(db, tenant.id, document.id, "u1")
    assert early.kind == FailureKind.conflict
    assert early.detail == "Transfer is not approved. Current status: Pendiente"

    rejected = transfer_documents.approve_transfer(db, tenant.id, document.id, "boss", approved=False)
    assert rejected.message == "Transfer rejected successfully"
    assert rejected.data.rejection_reason == "No reason provided"

    twice = transfer_documents.approve_transfer(db, tenant.id, document.id, "boss")
    assert twice.kind == FailureKind.conflict

    cancelled = transfer_documents.cancel_transfer(db, tenant.id, document.id, "u1", reason="duplicado")
    assert cancelled.data.status == TransferStatus.cancelled
    assert cancelled.data.rejection_reason == "duplicado"

    again = transfer_documents.cancel_transfer(db, tenant.id, document.id, "u1")
    assert again.kind == FailureKind.conflict
    assert again.detail == "Cannot cancel transfer with status: Cancelada"


def test_completed_document_cannot_be_cancelled(db, tenant, warehouse):
    document = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1), requires_approval=False)
    ).data
    transfer_documents.execute_transfer(db, tenant.id, document.id, "u1")

    result = transfer_documents.cancel_transfer(db, tenant.id, document.id, "u1")

    assert result.kind == FailureKind.conflict
    assert result.detail == "Cannot cancel transfer with status: Completada"


def test_create_rejections(db, tenant, other_tenant, warehouse, make_room):
    short = transfer_documents.create_transfer(db, tenant.id, "u1", _request(warehouse, (warehouse["beer"], 5)))
    assert short.kind == FailureKind.insufficient_stock

    same_place = transfer_documents.create_transfer(
        db,
        tenant.id,
        "u1",
        _request(warehouse, (warehouse["water"], 1), destination_location_type=LocationType.general, destination_location_id=None),
    )
    assert same_place.kind == FailureKind.validation

    empty = transfer_documents.create_transfer(db, tenant.id, "u1", _request(warehouse))
    assert empty.detail == "A transfer needs at least one line"

    bad_priority = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1), priority="Mañana")
    )
    assert bad_priority.kind == FailureKind.validation

    foreign_room = make_room(other_tenant, name="999")
    elsewhere = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1), destination_location_id=foreign_room.id)
    )
    assert elsewhere.kind == FailureKind.not_found

    wrong_source = transfer_documents.create_transfer(
        db,
        tenant.id,
        "u1",
        _request(warehouse, (warehouse["water"], 1), source_location_type=LocationType.warehouse, source_location_id=1),
    )
    assert wrong_source.kind == FailureKind.not_found

    assert db.query(TransferDocument).count() == 0


def test_batch_is_all_or_nothing(db, tenant, warehouse):
    failed = transfer_documents.create_transfers_batch(
        db,
        tenant.id,
        "u1",
        [_request(warehouse, (warehouse["water"], 1)), _request(warehouse, (warehouse["beer"], 50))],
    )
    assert failed.kind == FailureKind.insufficient_stock
    assert failed.detail == "Transfer 2: Available: 4, Requested: 50"
    assert db.query(TransferDocument).count() == 0

    created = transfer_documents.create_transfers_batch(
        db,
        tenant.id,
        "u1",
        [_request(warehouse, (warehouse["water"], 1)), _request(warehouse, (warehouse["beer"], 2))],
    )
    assert created.message == "All 2 transfers created successfully"
    assert [d.transfer_number[-4:] for d in created.data] == ["0001", "0002"]


def test_list_and_get_are_tenant_scoped(db, tenant, other_tenant, warehouse):
    for _ in range(3):
        transfer_documents.create_transfer(db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1)))
    approved = transfer_documents.create_transfer(
        db, tenant.id, "u1", _request(warehouse, (warehouse["water"], 1), requires_approval=False)
    ).data

    page = transfer_documents.list_transfers(db, tenant.id, page=1, page_size=3).data
    assert (page.total_count, page.total_pages, len(page.items)) == (4, 2, 3)

    only_approved = transfer_documents.list_transfers(db, tenant.id, status=TransferStatus.approved).data
    assert [d.id for d in only_approved.items] == [approved.id]

    assert transfer_documents.list_transfers(db, other_tenant.id).data.total_count == 0
    assert transfer_documents.get_transfer(db, other_tenant.id, approved.id).kind == FailureKind.not_found
    assert transfer_documents.execute_transfer(db, other_tenant.id, approved.id, "u1").kind == FailureKind.not_found
    assert transfer_documents.get_transfer(db, tenant.id, approved.id).data.id == approved.id
