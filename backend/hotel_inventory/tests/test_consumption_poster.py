import pytest

from hotel_inventory.core.config import settings
from hotel_inventory.core.errors import FailureKind
from hotel_inventory.core.stock_rules import LocationType
from hotel_inventory.models.inventory_movement import InventoryMovement, MovementMetadata
from hotel_inventory.services import consumption_poster, movement_recorder


def _movements(db, record):
    return db.query(InventoryMovement).filter(InventoryMovement.inventory_id == record.id).all()


def test_consumption_from_room_stock(db, tenant, make_article, make_room, make_record):
    room = make_room(tenant, name="5")
    record = make_record(tenant, make_article(tenant), quantity=10, location_type=LocationType.room, location_id=room.id)

    result = consumption_poster.post_consumption(db, record.id, 4, tenant.id, "u1")

    assert result.is_success
    assert result.message == "Consumption registered successfully"
    db.refresh(record)
    assert record.quantity == 6

    movement = result.data
    assert (movement.quantity_before, movement.quantity_after, movement.quantity_delta) == (10, 6, -4)
    assert movement.movement_type == "Consumo"
    assert movement.user_id == "u1"
    assert movement.reason == "Consumo registrado"
    assert len(_movements(db, record)) == 1


def test_consumption_beyond_stock_is_rejected(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=10)

    result = consumption_poster.post_consumption(db, record.id, 20, tenant.id, "u1")

    assert result.kind == FailureKind.insufficient_stock
    assert result.error == "Insufficient inventory quantity"
    assert result.detail == "Available: 10, Requested: 20"
    db.refresh(record)
    assert record.quantity == 10
    assert _movements(db, record) == []


def test_consumption_of_exact_stock_reaches_zero(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=3)

    result = consumption_poster.post_consumption(db, record.id, 3, tenant.id, "u1")

    assert result.data.quantity_after == 0
    db.refresh(record)
    assert record.quantity == 0


def test_consumption_requires_positive_quantity(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=3)

    assert consumption_poster.post_consumption(db, record.id, 0, tenant.id, "u1").kind == FailureKind.validation
    assert consumption_poster.post_consumption(db, record.id, -2, tenant.id, "u1").kind == FailureKind.validation
    assert _movements(db, record) == []


def test_consumption_metadata(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=5)

    result = consumption_poster.post_consumption(
        db, record.id, 1, tenant.id, "u1", consumo_id=77, details="Minibar hab. 5", ip_address="192.168.1.10"
    )

    movement = movement_recorder.get_movement(db, result.data.id, tenant.id).data
    assert movement.movement_metadata == MovementMetadata(consumo_id=77, details="Minibar hab. 5")
    assert movement.reason == "Minibar hab. 5"
    assert movement.ip_address == "192.168.1.10"


def test_consumption_on_other_tenant_record(db, tenant, other_tenant, make_article, make_record):
    record = make_record(other_tenant, make_article(other_tenant), quantity=10)

    result = consumption_poster.post_consumption(db, record.id, 1, tenant.id, "u1")

    assert result.kind == FailureKind.not_found
    db.refresh(record)
    assert record.quantity == 10
    assert _movements(db, record) == []


def test_clamp_policy_for_ledger_consumption(db, tenant, make_article, make_record, monkeypatch):
    monkeypatch.setattr(settings, "ledger_consumption_policy", "clamp")
    record = make_record(tenant, make_article(tenant), quantity=2)

    result = consumption_poster.post_consumption(db, record.id, 5, tenant.id, "u1")

    assert result.is_success
    assert (result.data.quantity_before, result.data.quantity_after, result.data.quantity_delta) == (2, 0, -2)


def test_failed_append_rolls_back_quantity(db, tenant, make_article, make_record, monkeypatch):
    record = make_record(tenant, make_article(tenant), quantity=10)

    def broken_append(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(movement_recorder, "append_movement", broken_append)

    result = consumption_poster.post_consumption(db, record.id, 4, tenant.id, "u1")

    assert result.kind == FailureKind.unexpected
    assert result.error == "Error registering consumption"
    assert "disk full" not in result.detail
    db.refresh(record)
    assert record.quantity == 10


class _RequestCancelled(BaseException):
    pass


def test_cancelled_posting_rolls_back(db, tenant, make_article, make_record, monkeypatch):
    record = make_record(tenant, make_article(tenant), quantity=10)
    real_append = movement_recorder.append_movement

    def append_then_cancel(*args, **kwargs):
        real_append(*args, **kwargs)
        raise _RequestCancelled()

    monkeypatch.setattr(movement_recorder, "append_movement", append_then_cancel)

    with pytest.raises(_RequestCancelled):
        consumption_poster.post_consumption(db, record.id, 4, tenant.id, "u1")

    db.refresh(record)
    assert record.quantity == 10
    assert _movements(db, record) == []


def test_adjustment_after_consumption(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=10)
    consumption_poster.post_consumption(db, record.id, 4, tenant.id, "u1")

    result = consumption_poster.post_adjustment(db, record.id, 50, "recount", tenant.id, "u1")

    assert result.is_success
    movement = result.data
    assert (movement.quantity_before, movement.quantity_after, movement.quantity_delta) == (6, 50, 44)
    assert movement.movement_type == "Ajuste"
    assert movement.reason == "recount"
    db.refresh(record)
    assert record.quantity == 50
    assert len(_movements(db, record)) == 2


def test_adjustment_to_zero_and_negative(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=8)

    zero = consumption_poster.post_adjustment(db, record.id, 0, "merma", tenant.id, "u1")
    assert zero.data.quantity_delta == -8

    negative = consumption_poster.post_adjustment(db, record.id, -1, "typo", tenant.id, "u1")
    assert negative.kind == FailureKind.validation
    db.refresh(record)
    assert record.quantity == 0
    assert len(_movements(db, record)) == 1


def test_adjustment_other_tenant(db, tenant, other_tenant, make_article, make_record):
    record = make_record(other_tenant, make_article(other_tenant), quantity=8)

    assert consumption_poster.post_adjustment(db, record.id, 1, "x", tenant.id, "u1").kind == FailureKind.not_found
    db.refresh(record)
    assert record.quantity == 8


def test_transfer_moves_stock_atomically(db, tenant, make_article, make_room, make_record):
    article = make_article(tenant)
    room = make_room(tenant)
    general = make_record(tenant, article, quantity=10)
    minibar = make_record(tenant, article, quantity=1, location_type=LocationType.room, location_id=room.id)

    result = consumption_poster.post_transfer(db, general.id, minibar.id, 4, tenant.id, "u1")

    assert result.is_success
    outgoing, incoming = result.data
    assert outgoing.transfer_id == incoming.transfer_id
    assert outgoing.movement_metadata.transfer_number == outgoing.transfer_id
    assert (outgoing.quantity_delta, incoming.quantity_delta) == (-4, 4)
    assert {outgoing.movement_type, incoming.movement_type} == {"Transferencia"}
    db.refresh(general)
    db.refresh(minibar)
    assert (general.quantity, minibar.quantity) == (6, 5)


def test_transfer_rejections(db, tenant, make_article, make_room, make_record):
    room = make_room(tenant)
    water = make_article(tenant, name="Agua")
    beer = make_article(tenant, name="Cerveza")
    general = make_record(tenant, water, quantity=2)
    minibar = make_record(tenant, water, quantity=0, location_type=LocationType.room, location_id=room.id)
    beer_stock = make_record(tenant, beer, quantity=10)

    short = consumption_poster.post_transfer(db, general.id, minibar.id, 3, tenant.id, "u1")
    assert short.kind == FailureKind.insufficient_stock

    mixed = consumption_poster.post_transfer(db, beer_stock.id, minibar.id, 1, tenant.id, "u1")
    assert mixed.kind == FailureKind.validation

    same = consumption_poster.post_transfer(db, general.id, general.id, 1, tenant.id, "u1")
    assert same.kind == FailureKind.validation

    db.refresh(general)
    db.refresh(minibar)
    assert (general.quantity, minibar.quantity) == (2, 0)
    assert db.query(InventoryMovement).count() == 0
