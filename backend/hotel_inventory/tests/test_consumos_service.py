from decimal import Decimal

import pytest

from hotel_inventory.core.config import settings
from hotel_inventory.core.errors import FailureKind, ImmutableRecordError
from hotel_inventory.core.stock_rules import LocationType, StockDirection
from hotel_inventory.models.consumption import Consumption, StayMovement
from hotel_inventory.models.inventory_movement import InventoryMovement
from hotel_inventory.models.stock_movement import StockMovement
from hotel_inventory.services import consumos_service


@pytest.fixture()
def stocked(db, tenant, make_article, make_room, make_record):
    """Two articles with general stock and one room mini-bar."""
    room = make_room(tenant, name="204")
    water = make_article(tenant, name="Agua", price="20.00")
    beer = make_article(tenant, name="Cerveza", price="45.00")
    return {
        "room": room,
        "water": water,
        "beer": beer,
        "water_general": make_record(tenant, water, quantity=5),
        "beer_general": make_record(tenant, beer, quantity=1),
        "water_room": make_record(tenant, water, quantity=2, location_type=LocationType.room, location_id=room.id),
    }


def test_general_consumptions_clamp_to_zero(db, tenant, stocked):
    result = consumos_service.add_consumptions(
        db,
        tenant.id,
        stocked["room"].id,
        visit_id=900,
        items=[{"article_id": stocked["water"].id, "quantity": 2}, {"article_id": stocked["beer"].id, "quantity": 3}],
        in_room=False,
    )

    assert result.is_success
    assert len(result.data) == 2
    assert all(not c.is_room for c in result.data)
    assert result.data[1].unit_price == Decimal("45.00")

    db.refresh(stocked["water_general"])
    db.refresh(stocked["beer_general"])
    assert stocked["water_general"].quantity == 3
    assert stocked["beer_general"].quantity == 0

    logs = db.query(StockMovement).order_by(StockMovement.id).all()
    assert [(m.quantity, m.movement_type_id) for m in logs] == [
        (2, StockDirection.outbound),
        (3, StockDirection.outbound),
    ]
    # The coarse path never writes to the movement ledger
    assert db.query(InventoryMovement).count() == 0


def test_room_consumptions_use_room_stock(db, tenant, stocked):
    result = consumos_service.add_consumptions(
        db,
        tenant.id,
        stocked["room"].id,
        visit_id=901,
        items=[{"article_id": stocked["water"].id, "quantity": 1, "unit_price": Decimal("30.00")}],
        in_room=True,
    )

    assert result.is_success
    assert result.data[0].is_room
    assert result.data[0].unit_price == Decimal("30.00")
    db.refresh(stocked["water_room"])
    db.refresh(stocked["water_general"])
    assert stocked["water_room"].quantity == 1
    assert stocked["water_general"].quantity == 5


def test_reject_policy_rolls_back_whole_batch(db, tenant, stocked, monkeypatch):
    monkeypatch.setattr(settings, "stay_consumption_policy", "reject")

    result = consumos_service.add_consumptions(
        db,
        tenant.id,
        stocked["room"].id,
        visit_id=902,
        items=[{"article_id": stocked["water"].id, "quantity": 2}, {"article_id": stocked["beer"].id, "quantity": 3}],
        in_room=False,
    )

    assert result.kind == FailureKind.insufficient_stock
    db.refresh(stocked["water_general"])
    assert stocked["water_general"].quantity == 5
    assert db.query(Consumption).count() == 0
    assert db.query(StayMovement).count() == 0
    assert db.query(StockMovement).count() == 0


def test_stay_movement_is_reused_per_visit(db, tenant, stocked):
    item = [{"article_id": stocked["water"].id, "quantity": 1}]
    consumos_service.add_consumptions(db, tenant.id, stocked["room"].id, 903, item, in_room=False)
    consumos_service.add_consumptions(db, tenant.id, stocked["room"].id, 903, item, in_room=True)

    assert db.query(StayMovement).filter(StayMovement.visit_id == 903).count() == 1
    assert len(consumos_service.list_visit_consumptions(db, tenant.id, 903).data) == 2


def test_missing_stock_record_still_logs(db, tenant, make_article, make_room):
    room = make_room(tenant)
    snack = make_article(tenant, name="Papas")

    result = consumos_service.add_consumptions(
        db, tenant.id, room.id, 904, [{"article_id": snack.id, "quantity": 2}], in_room=False
    )

    assert result.is_success
    log = db.query(StockMovement).one()
    assert (log.article_id, log.quantity) == (snack.id, 2)


def test_unknown_article_or_room(db, tenant, other_tenant, stocked, make_article, make_room):
    foreign_article = make_article(other_tenant, name="Agua")
    foreign_room = make_room(other_tenant, name="204")

    bad_article = consumos_service.add_consumptions(
        db,
        tenant.id,
        stocked["room"].id,
        905,
        [{"article_id": stocked["water"].id, "quantity": 1}, {"article_id": foreign_article.id, "quantity": 1}],
        in_room=False,
    )
    assert bad_article.kind == FailureKind.not_found
    db.refresh(stocked["water_general"])
    assert stocked["water_general"].quantity == 5

    bad_room = consumos_service.add_consumptions(
        db, tenant.id, foreign_room.id, 906, [{"article_id": stocked["water"].id, "quantity": 1}], in_room=False
    )
    assert bad_room.kind == FailureKind.not_found
    assert db.query(Consumption).count() == 0


def test_invalid_lines(db, tenant, stocked):
    assert consumos_service.add_consumptions(db, tenant.id, stocked["room"].id, 907, [], False).kind == (
        FailureKind.validation
    )
    zero = [{"article_id": stocked["water"].id, "quantity": 0}]
    assert consumos_service.add_consumptions(db, tenant.id, stocked["room"].id, 907, zero, False).kind == (
        FailureKind.validation
    )


def test_cancel_returns_stock(db, tenant, stocked):
    created = consumos_service.add_consumptions(
        db, tenant.id, stocked["room"].id, 908, [{"article_id": stocked["water"].id, "quantity": 2}], in_room=True
    ).data
    consumption_id = created[0].id

    cancelled = consumos_service.cancel_consumption(db, tenant.id, consumption_id)

    assert cancelled.is_success
    assert cancelled.data.cancelled
    db.refresh(stocked["water_room"])
    assert stocked["water_room"].quantity == 2
    inbound = db.query(StockMovement).order_by(StockMovement.id.desc()).first()
    assert inbound.movement_type_id == StockDirection.inbound
    assert consumos_service.list_visit_consumptions(db, tenant.id, 908).data == []

    again = consumos_service.cancel_consumption(db, tenant.id, consumption_id)
    assert again.kind == FailureKind.conflict


def test_cancel_other_tenant_consumption(db, tenant, other_tenant, stocked):
    created = consumos_service.add_consumptions(
        db, tenant.id, stocked["room"].id, 909, [{"article_id": stocked["water"].id, "quantity": 1}], in_room=False
    ).data

    assert consumos_service.cancel_consumption(db, other_tenant.id, created[0].id).kind == FailureKind.not_found


def test_update_quantity_applies_difference(db, tenant, stocked):
    created = consumos_service.add_consumptions(
        db, tenant.id, stocked["room"].id, 910, [{"article_id": stocked["water"].id, "quantity": 1}], in_room=False
    ).data
    consumption_id = created[0].id

    more = consumos_service.update_consumption_quantity(db, tenant.id, consumption_id, 3)
    assert more.data.quantity == 3
    db.refresh(stocked["water_general"])
    assert stocked["water_general"].quantity == 2

    fewer = consumos_service.update_consumption_quantity(db, tenant.id, consumption_id, 2)
    assert fewer.is_success
    db.refresh(stocked["water_general"])
    assert stocked["water_general"].quantity == 3

    assert consumos_service.update_consumption_quantity(db, tenant.id, consumption_id, 0).kind == (
        FailureKind.validation
    )


def test_visit_summary_splits_totals(db, tenant, stocked):
    consumos_service.add_consumptions(
        db, tenant.id, stocked["room"].id, 911, [{"article_id": stocked["beer"].id, "quantity": 2}], in_room=False
    )
    consumos_service.add_consumptions(
        db, tenant.id, stocked["room"].id, 911, [{"article_id": stocked["water"].id, "quantity": 1}], in_room=True
    )

    summary = consumos_service.visit_consumption_summary(db, tenant.id, 911).data

    assert summary["total_lines"] == 2
    assert summary["total_general"] == Decimal("90.00")
    assert summary["total_room"] == Decimal("20.00")
    assert summary["total_amount"] == Decimal("110.00")


def test_stock_movements_are_append_only(db, tenant, stocked):
    consumos_service.add_consumptions(
        db, tenant.id, stocked["room"].id, 912, [{"article_id": stocked["water"].id, "quantity": 1}], in_room=False
    )
    log = db.query(StockMovement).one()

    log.quantity = 50
    with pytest.raises(ImmutableRecordError):
        db.commit()
    db.rollback()
