from hotel_inventory.core.errors import FailureKind
from hotel_inventory.core.stock_rules import AlertSeverity, AlertType
from hotel_inventory.models.stock_alert import StockAlert
from hotel_inventory.services import consumption_poster, inventory_store, movement_recorder, stock_alerts
from hotel_inventory.services.stock_alerts import AUTO_RESOLUTION_NOTE


def _active_types(db, record):
    alerts = db.query(StockAlert).filter(StockAlert.inventory_id == record.id, StockAlert.active.is_(True)).all()
    return {a.alert_type for a in alerts}


def _watched(db, tenant, make_article, make_record, quantity=10, **thresholds):
    record = make_record(tenant, make_article(tenant, name="Cerveza"), quantity=quantity)
    config = {"min_stock": 5, "critical_stock": 2, "max_stock": 15}
    config.update(thresholds)
    assert stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", **config).is_success
    return record


def test_configure_creates_then_updates(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant))

    created = stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", min_stock=5)
    assert created.message == "Alert configuration created successfully"
    assert created.data.created_by == "admin"
    assert created.data.updated_at is None

    updated = stock_alerts.configure_alerts(db, tenant.id, record.id, "other", min_stock=8, max_stock=30)
    assert updated.message == "Alert configuration updated successfully"
    assert updated.data.id == created.data.id
    assert (updated.data.min_stock, updated.data.max_stock) == (8, 30)
    assert updated.data.updated_by == "other"

    fetched = stock_alerts.get_alert_configuration(db, tenant.id, record.id)
    assert fetched.data.min_stock == 8


def test_configure_rejects_inconsistent_thresholds(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant))

    result = stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", min_stock=5, critical_stock=6)
    assert result.kind == FailureKind.validation
    assert result.detail == "critical_stock cannot exceed min_stock"

    result = stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", min_stock=20, max_stock=10)
    assert result.detail == "min_stock cannot exceed max_stock"

    result = stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", max_stock=-1)
    assert result.detail == "max_stock cannot be negative"

    assert stock_alerts.get_alert_configuration(db, tenant.id, record.id).kind == FailureKind.not_found


def test_other_tenant_record_cannot_be_configured(db, tenant, other_tenant, make_article, make_record):
    foreign = make_record(other_tenant, make_article(other_tenant))

    assert stock_alerts.configure_alerts(db, tenant.id, foreign.id, "admin", min_stock=1).kind == FailureKind.not_found
    assert stock_alerts.check_alerts(db, tenant.id, foreign.id).kind == FailureKind.not_found


def test_postings_raise_and_resolve_alerts(db, tenant, make_article, make_record):
    record = _watched(db, tenant, make_article, make_record, high_alerts_enabled=True)
    assert _active_types(db, record) == set()

    consumption_poster.post_consumption(db, record.id, 6, tenant.id, "u1")
    assert _active_types(db, record) == {AlertType.low}
    low = db.query(StockAlert).filter(StockAlert.alert_type == AlertType.low).one()
    assert (low.severity, low.current_quantity, low.threshold) == (AlertSeverity.medium, 4, 5)
    assert low.message == "Stock bajo para Cerveza - 4 unidades restantes"

    consumption_poster.post_consumption(db, record.id, 2, tenant.id, "u1")
    assert _active_types(db, record) == {AlertType.low, AlertType.critical}

    consumption_poster.post_consumption(db, record.id, 2, tenant.id, "u1")
    assert _active_types(db, record) == {AlertType.low, AlertType.critical, AlertType.out_of_stock}

    consumption_poster.post_adjustment(db, record.id, 20, "restock", tenant.id, "u1")
    assert _active_types(db, record) == {AlertType.high}

    resolved = db.query(StockAlert).filter(StockAlert.active.is_(False)).all()
    assert len(resolved) == 3
    assert all(a.resolution_notes == AUTO_RESOLUTION_NOTE and a.resolved_at is not None for a in resolved)


def test_open_alert_is_not_duplicated(db, tenant, make_article, make_record):
    record = _watched(db, tenant, make_article, make_record)

    consumption_poster.post_consumption(db, record.id, 6, tenant.id, "u1")
    consumption_poster.post_consumption(db, record.id, 1, tenant.id, "u1")
    inventory_store.set_quantity(db, record.id, 4, tenant.id)

    assert db.query(StockAlert).filter(StockAlert.inventory_id == record.id).count() == 1


def test_disabled_levels_and_inactive_configuration(db, tenant, make_article, make_record):
    record = _watched(db, tenant, make_article, make_record, low_alerts_enabled=False, critical_alerts_enabled=False)

    inventory_store.set_quantity(db, record.id, 1, tenant.id)
    assert _active_types(db, record) == set()
    inventory_store.set_quantity(db, record.id, 0, tenant.id)
    assert _active_types(db, record) == {AlertType.out_of_stock}

    stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", min_stock=5, active=False)
    inventory_store.set_quantity(db, record.id, 3, tenant.id)
    # No evaluation happens while the configuration is inactive
    assert _active_types(db, record) == {AlertType.out_of_stock}


def test_failed_posting_leaves_no_alert(db, tenant, make_article, make_record, monkeypatch):
    record = _watched(db, tenant, make_article, make_record)

    def broken_append(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(movement_recorder, "append_movement", broken_append)
    result = consumption_poster.post_consumption(db, record.id, 9, tenant.id, "u1")

    assert result.kind == FailureKind.unexpected
    db.refresh(record)
    assert record.quantity == 10
    assert db.query(StockAlert).count() == 0


def test_check_alerts_evaluates_current_quantity(db, tenant, make_article, make_record):
    record = make_record(tenant, make_article(tenant), quantity=3)
    stock_alerts.configure_alerts(db, tenant.id, record.id, "admin", min_stock=5)

    result = stock_alerts.check_alerts(db, tenant.id, record.id)

    assert result.message == "Generated 1 new alerts, deactivated 0 resolved alerts"
    assert [a.alert_type for a in result.data["created"]] == [AlertType.low]

    again = stock_alerts.check_alerts(db, tenant.id, record.id)
    assert again.message == "Generated 0 new alerts, deactivated 0 resolved alerts"


def test_acknowledge_and_resolve(db, tenant, make_article, make_record):
    record = _watched(db, tenant, make_article, make_record, quantity=0)
    stock_alerts.check_alerts(db, tenant.id, record.id)
    alert = stock_alerts.list_alerts(db, tenant.id).data[0]

    result = stock_alerts.acknowledge_alert(db, tenant.id, alert.id, "u2", notes="pedido enviado")
    assert result.message == "Alert acknowledged successfully"
    assert result.data.acknowledged_by == "u2"
    assert result.data.active

    again = stock_alerts.acknowledge_alert(db, tenant.id, alert.id, "u2")
    assert again.kind == FailureKind.conflict
    assert again.error == "Alert has already been acknowledged"

    resolved = stock_alerts.resolve_alerts(db, tenant.id, [alert.id, 9999], "repuesto", "u3")
    assert resolved.data == 1
    db.refresh(alert)
    assert not alert.active
    assert (alert.resolved_by, alert.resolution_notes, alert.acknowledged_by) == ("u3", "repuesto", "u2")

    none_left = stock_alerts.resolve_alerts(db, tenant.id, [alert.id], None, "u3")
    assert none_left.kind == FailureKind.not_found
    assert stock_alerts.list_alerts(db, tenant.id).data == []
    assert len(stock_alerts.list_alerts(db, tenant.id, active_only=False).data) == 1


def test_acknowledge_with_resolve_closes_alert(db, tenant, make_article, make_record):
    record = _watched(db, tenant, make_article, make_record, quantity=0)
    alert = stock_alerts.check_alerts(db, tenant.id, record.id).data["created"][0]

    result = stock_alerts.acknowledge_alert(db, tenant.id, alert.id, "u2", resolve=True, resolution_notes="ok")

    assert result.message == "Alert acknowledged and resolved successfully"
    assert not result.data.active
    assert result.data.resolved_by == "u2"


def test_list_alerts_filters_and_isolates_tenants(db, tenant, other_tenant, make_article, make_record):
    record = _watched(db, tenant, make_article, make_record, quantity=20, high_alerts_enabled=True)
    foreign = make_record(other_tenant, make_article(other_tenant), quantity=0)
    stock_alerts.configure_alerts(db, other_tenant.id, foreign.id, "admin", min_stock=1)
    stock_alerts.check_alerts(db, tenant.id, record.id)
    stock_alerts.check_alerts(db, other_tenant.id, foreign.id)

    alerts = stock_alerts.list_alerts(db, tenant.id).data
    assert [a.alert_type for a in alerts] == [AlertType.high]
    assert stock_alerts.list_alerts(db, tenant.id, severity=AlertSeverity.critical).data == []
    assert stock_alerts.list_alerts(db, tenant.id, alert_type=AlertType.high, inventory_id=record.id).data == alerts

    foreign_alert = stock_alerts.list_alerts(db, other_tenant.id).data[0]
    assert stock_alerts.acknowledge_alert(db, tenant.id, foreign_alert.id, "u1").kind == FailureKind.not_found
