from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_current_user, get_tenant, require_admin
from hotel_inventory.core.results import unwrap
from hotel_inventory.models.stock_alert import AlertConfiguration, StockAlert
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User
from hotel_inventory.services import stock_alerts


router = APIRouter()


class AlertConfigIn(BaseModel):
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    critical_stock: Optional[int] = Field(None, ge=0)
    low_alerts_enabled: bool = True
    high_alerts_enabled: bool = False
    critical_alerts_enabled: bool = True
    active: bool = True


class AlertConfigOut(AlertConfigIn):
    id: int
    inventory_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    created_by: str
    updated_by: Optional[str] = None


class AlertOut(BaseModel):
    id: int
    inventory_id: int
    article_name: Optional[str] = None
    alert_type: str
    severity: str
    message: str
    current_quantity: int
    threshold: Optional[int] = None
    active: bool
    acknowledged: bool
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None


class AlertCheckOut(BaseModel):
    inventory_id: int
    created: List[AlertOut]
    resolved: List[int]
    message: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)
    resolve: bool = False
    resolution_notes: Optional[str] = Field(None, max_length=500)


class ResolveRequest(BaseModel):
    alert_ids: List[int]
    resolution_notes: Optional[str] = Field(None, max_length=500)


def config_out(config: AlertConfiguration) -> AlertConfigOut:
    return AlertConfigOut(
        id=config.id,
        inventory_id=config.inventory_id,
        min_stock=config.min_stock,
        max_stock=config.max_stock,
        critical_stock=config.critical_stock,
        low_alerts_enabled=config.low_alerts_enabled,
        high_alerts_enabled=config.high_alerts_enabled,
        critical_alerts_enabled=config.critical_alerts_enabled,
        active=config.active,
        created_at=config.created_at,
        updated_at=config.updated_at,
        created_by=config.created_by,
        updated_by=config.updated_by,
    )


def alert_out(alert: StockAlert) -> AlertOut:
    record = alert.inventory
    return AlertOut(
        id=alert.id,
        inventory_id=alert.inventory_id,
        article_name=record.article.name if record is not None and record.article is not None else None,
        alert_type=alert.alert_type,
        severity=alert.severity,
        message=alert.message,
        current_quantity=alert.current_quantity,
        threshold=alert.threshold,
        active=alert.active,
        acknowledged=alert.acknowledged,
        created_at=alert.created_at,
        acknowledged_at=alert.acknowledged_at,
        acknowledged_by=alert.acknowledged_by,
        resolved_at=alert.resolved_at,
        resolved_by=alert.resolved_by,
        resolution_notes=alert.resolution_notes,
    )


@router.get("", response_model=List[AlertOut])
def list_alerts(
    active_only: bool = Query(True),
    inventory_id: Optional[int] = Query(None),
    severity: Optional[str] = Query(None),
    alert_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    alerts = unwrap(
        stock_alerts.list_alerts(
            db, tenant.id, active_only=active_only, inventory_id=inventory_id, severity=severity, alert_type=alert_type
        )
    )
    return [alert_out(a) for a in alerts]


@router.post("/resolve")
def resolve_alerts(
    data: ResolveRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    resolved = unwrap(
        stock_alerts.resolve_alerts(db, tenant.id, data.alert_ids, data.resolution_notes, str(current_user.id))
    )
    return {"resolved": resolved}


@router.put("/configurations/{inventory_id}", response_model=AlertConfigOut)
def configure_alerts(
    inventory_id: int,
    data: AlertConfigIn,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    config = unwrap(
        stock_alerts.configure_alerts(db, tenant.id, inventory_id, str(current_user.id), **data.model_dump())
    )
    return config_out(config)


@router.get("/configurations/{inventory_id}", response_model=AlertConfigOut)
def get_alert_configuration(
    inventory_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return config_out(unwrap(stock_alerts.get_alert_configuration(db, tenant.id, inventory_id)))


@router.post("/check/{inventory_id}", response_model=AlertCheckOut)
def check_alerts(
    inventory_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    result = stock_alerts.check_alerts(db, tenant.id, inventory_id)
    check = unwrap(result)
    return AlertCheckOut(
        inventory_id=check["inventory_id"],
        created=[alert_out(a) for a in check["created"]],
        resolved=check["resolved"],
        message=result.message,
    )


@router.post("/{alert_id}/acknowledge", response_model=AlertOut)
def acknowledge_alert(
    alert_id: int,
    data: AcknowledgeRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    alert = unwrap(
        stock_alerts.acknowledge_alert(
            db,
            tenant.id,
            alert_id,
            str(current_user.id),
            notes=data.notes,
            resolve=data.resolve,
            resolution_notes=data.resolution_notes,
        )
    )
    return alert_out(alert)
