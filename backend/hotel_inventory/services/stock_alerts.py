"""
Stock alerts: thresholds configured per inventory record and the alerts raised
when the quantity crosses them.

``evaluate_record`` runs inside the transaction that changed the quantity
(``inventory_store.apply_quantity`` calls it), so an alert is created or
auto-resolved together with the stock change that caused it.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, TypedDict

from sqlalchemy.orm import Session

from hotel_inventory.core.database import unit_of_work
from hotel_inventory.core.errors import ConflictError, LedgerValidationError, NotFoundError
from hotel_inventory.core.results import OperationResult, ledger_operation
from hotel_inventory.core.stock_rules import AlertSeverity, AlertType
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.stock_alert import AlertConfiguration, StockAlert


logger = logging.getLogger(__name__)

AUTO_RESOLUTION_NOTE = "Resuelto automáticamente - condición ya no aplica"


class AlertCheck(TypedDict):
    inventory_id: int
    created: List[StockAlert]
    resolved: List[int]


def _find_record(db: Session, inventory_id: int, tenant_id: int) -> InventoryRecord:
    record = (
        db.query(InventoryRecord)
        .filter(InventoryRecord.id == inventory_id, InventoryRecord.tenant_id == tenant_id)
        .first()
    )
    if record is None:
        raise NotFoundError("Inventory not found", f"No inventory record {inventory_id} in this organization")
    return record


def _find_config(db: Session, inventory_id: int) -> Optional[AlertConfiguration]:
    return db.query(AlertConfiguration).filter(AlertConfiguration.inventory_id == inventory_id).first()


def _condition_cleared(alert_type: str, quantity: int, config: AlertConfiguration) -> bool:
    if alert_type == AlertType.out_of_stock:
        return quantity > 0
    if alert_type == AlertType.critical:
        return config.critical_stock is None or quantity > config.critical_stock
    if alert_type == AlertType.low:
        return config.min_stock is None or quantity > config.min_stock
    if alert_type == AlertType.high:
        return config.max_stock is None or quantity <= config.max_stock
    return False


def _raised_conditions(
    quantity: int, config: AlertConfiguration, article_name: str
) -> List[Tuple[str, str, str, Optional[int]]]:
    """(alert_type, severity, message, threshold) for every condition that currently holds"""
    raised = []
    # Out of stock, critical and low are exclusive; the most severe wins
    if quantity == 0:
        raised.append((AlertType.out_of_stock, AlertSeverity.critical, f"Stock agotado para {article_name}", 0))
    elif config.critical_alerts_enabled and config.critical_stock is not None and quantity <= config.critical_stock:
        raised.append(
            (
                AlertType.critical,
                AlertSeverity.high,
                f"Stock crítico para {article_name} - {quantity} unidades restantes",
                config.critical_stock,
            )
        )
    elif config.low_alerts_enabled and config.min_stock is not None and quantity <= config.min_stock:
        raised.append(
            (
                AlertType.low,
                AlertSeverity.medium,
                f"Stock bajo para {article_name} - {quantity} unidades restantes",
                config.min_stock,
            )
        )

    if config.high_alerts_enabled and config.max_stock is not None and quantity > config.max_stock:
        raised.append(
            (
                AlertType.high,
                AlertSeverity.low,
                f"Stock alto para {article_name} - {quantity} unidades",
                config.max_stock,
            )
        )
    return raised


def evaluate_record(db: Session, record: InventoryRecord) -> AlertCheck:
    """
    Resolve alerts whose condition no longer holds and raise new ones.

    Does nothing without an active configuration. At most one active alert
    per type exists for a record. The caller owns the transaction.
    """
    check: AlertCheck = {"inventory_id": record.id, "created": [], "resolved": []}
    config = _find_config(db, record.id)
    if config is None or not config.active:
        return check

    now = datetime.now(timezone.utc)
    still_open = set()
    active = (
        db.query(StockAlert)
        .filter(StockAlert.inventory_id == record.id, StockAlert.active.is_(True))
        .all()
    )
    for alert in active:
        if _condition_cleared(alert.alert_type, record.quantity, config):
            alert.active = False
            alert.resolved_at = now
            alert.resolution_notes = AUTO_RESOLUTION_NOTE
            check["resolved"].append(alert.id)
        else:
            still_open.add(alert.alert_type)

    article_name = record.article.name if record.article is not None else f"artículo {record.article_id}"
    for alert_type, severity, message, threshold in _raised_conditions(record.quantity, config, article_name):
        if alert_type in still_open:
            continue
        alert = StockAlert(
            tenant_id=record.tenant_id,
            inventory_id=record.id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            current_quantity=record.quantity,
            threshold=threshold,
            created_at=now,
        )
        db.add(alert)
        check["created"].append(alert)

    if check["created"] or check["resolved"]:
        db.flush()
        logger.info(
            "Alerts for inventory %s: %s raised, %s resolved tenant=%s",
            record.id, len(check["created"]), len(check["resolved"]), record.tenant_id,
        )
    return check


def _validate_thresholds(min_stock: Optional[int], max_stock: Optional[int], critical_stock: Optional[int]) -> None:
    for name, value in (("min_stock", min_stock), ("max_stock", max_stock), ("critical_stock", critical_stock)):
        if value is not None and value < 0:
            raise LedgerValidationError("Invalid alert configuration", f"{name} cannot be negative")
    if critical_stock is not None and min_stock is not None and critical_stock > min_stock:
        raise LedgerValidationError("Invalid alert configuration", "critical_stock cannot exceed min_stock")
    if min_stock is not None and max_stock is not None and min_stock > max_stock:
        raise LedgerValidationError("Invalid alert configuration", "min_stock cannot exceed max_stock")


@ledger_operation("Error configuring alerts", "An error occurred while configuring the alert settings")
def configure_alerts(
    db: Session,
    tenant_id: int,
    inventory_id: int,
    user_id: str,
    min_stock: Optional[int] = None,
    max_stock: Optional[int] = None,
    critical_stock: Optional[int] = None,
    low_alerts_enabled: bool = True,
    high_alerts_enabled: bool = False,
    critical_alerts_enabled: bool = True,
    active: bool = True,
) -> OperationResult[AlertConfiguration]:
    _validate_thresholds(min_stock, max_stock, critical_stock)

    with unit_of_work(db):
        _find_record(db, inventory_id, tenant_id)
        config = _find_config(db, inventory_id)
        created = config is None
        if created:
            config = AlertConfiguration(tenant_id=tenant_id, inventory_id=inventory_id, created_by=user_id)
            db.add(config)
        else:
            config.updated_at = datetime.now(timezone.utc)
            config.updated_by = user_id
        config.min_stock = min_stock
        config.max_stock = max_stock
        config.critical_stock = critical_stock
        config.low_alerts_enabled = low_alerts_enabled
        config.high_alerts_enabled = high_alerts_enabled
        config.critical_alerts_enabled = critical_alerts_enabled
        config.active = active

    action = "created" if created else "updated"
    logger.info("Alert configuration %s for inventory %s user=%s tenant=%s", action, inventory_id, user_id, tenant_id)
    return OperationResult.success(config, message=f"Alert configuration {action} successfully")


@ledger_operation("Error retrieving alert configuration", "An error occurred while retrieving the alert configuration")
def get_alert_configuration(db: Session, tenant_id: int, inventory_id: int) -> AlertConfiguration:
    _find_record(db, inventory_id, tenant_id)
    config = _find_config(db, inventory_id)
    if config is None:
        raise NotFoundError("Alert configuration not found", f"Inventory {inventory_id} has no alert configuration")
    return config


@ledger_operation("Error checking alerts", "An error occurred while checking and generating alerts")
def check_alerts(db: Session, tenant_id: int, inventory_id: int) -> OperationResult[AlertCheck]:
    with unit_of_work(db):
        record = _find_record(db, inventory_id, tenant_id)
        check = evaluate_record(db, record)
    return OperationResult.success(
        check,
        message=f"Generated {len(check['created'])} new alerts, deactivated {len(check['resolved'])} resolved alerts",
    )


@ledger_operation("Error retrieving alerts", "An error occurred while retrieving inventory alerts")
def list_alerts(
    db: Session,
    tenant_id: int,
    active_only: bool = True,
    inventory_id: Optional[int] = None,
    severity: Optional[str] = None,
    alert_type: Optional[str] = None,
) -> List[StockAlert]:
    query = db.query(StockAlert).filter(StockAlert.tenant_id == tenant_id)
    if active_only:
        query = query.filter(StockAlert.active.is_(True))
    if inventory_id is not None:
        query = query.filter(StockAlert.inventory_id == inventory_id)
    if severity:
        query = query.filter(StockAlert.severity == severity)
    if alert_type:
        query = query.filter(StockAlert.alert_type == alert_type)
    return query.order_by(StockAlert.created_at.desc(), StockAlert.id.desc()).all()


@ledger_operation("Error acknowledging alert", "An error occurred while acknowledging the alert")
def acknowledge_alert(
    db: Session,
    tenant_id: int,
    alert_id: int,
    user_id: str,
    notes: Optional[str] = None,
    resolve: bool = False,
    resolution_notes: Optional[str] = None,
) -> OperationResult[StockAlert]:
    with unit_of_work(db):
        alert = (
            db.query(StockAlert)
            .filter(StockAlert.id == alert_id, StockAlert.tenant_id == tenant_id)
            .with_for_update()
            .first()
        )
        if alert is None:
            raise NotFoundError("Alert not found", f"No alert {alert_id} in this organization")
        if alert.acknowledged:
            raise ConflictError("Alert has already been acknowledged")
        if not alert.active:
            raise ConflictError("Alert is not active")

        now = datetime.now(timezone.utc)
        alert.acknowledged = True
        alert.acknowledged_at = now
        alert.acknowledged_by = user_id
        alert.acknowledgment_notes = notes
        if resolve:
            alert.active = False
            alert.resolved_at = now
            alert.resolved_by = user_id
            alert.resolution_notes = resolution_notes

    logger.info("Alert %s acknowledged resolved=%s user=%s tenant=%s", alert_id, resolve, user_id, tenant_id)
    action = "acknowledged and resolved" if resolve else "acknowledged"
    return OperationResult.success(alert, message=f"Alert {action} successfully")


@ledger_operation("Error resolving alerts", "An error occurred while resolving the alerts")
def resolve_alerts(
    db: Session,
    tenant_id: int,
    alert_ids: Iterable[int],
    resolution_notes: Optional[str],
    user_id: str,
) -> OperationResult[int]:
    alert_ids = list(alert_ids)
    with unit_of_work(db):
        alerts = (
            db.query(StockAlert)
            .filter(
                StockAlert.id.in_(alert_ids),
                StockAlert.tenant_id == tenant_id,
                StockAlert.active.is_(True),
            )
            .with_for_update()
            .all()
        )
        if not alerts:
            raise NotFoundError("No active alerts found with the provided IDs")

        now = datetime.now(timezone.utc)
        for alert in alerts:
            alert.active = False
            alert.acknowledged = True
            alert.acknowledged_at = alert.acknowledged_at or now
            alert.acknowledged_by = alert.acknowledged_by or user_id
            alert.resolved_at = now
            alert.resolved_by = user_id
            alert.resolution_notes = resolution_notes

    logger.info("Resolved %s alerts user=%s tenant=%s", len(alerts), user_id, tenant_id)
    return OperationResult.success(len(alerts), message=f"Successfully resolved {len(alerts)} alerts")
