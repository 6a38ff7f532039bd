from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, condecimal
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_current_user, get_tenant
from hotel_inventory.core.results import unwrap
from hotel_inventory.models.consumption import Consumption
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User
from hotel_inventory.services import consumos_service


router = APIRouter()


class ConsumptionItem(BaseModel):
    article_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Optional[condecimal(max_digits=10, decimal_places=2)] = None


class ConsumptionBatch(BaseModel):
    room_id: int
    visit_id: int
    items: List[ConsumptionItem]


class QuantityRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class ConsumptionOut(BaseModel):
    id: int
    article_id: int
    article_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total: Decimal
    is_room: bool
    active: bool
    visit_id: int
    room_id: Optional[int] = None
    created_at: Optional[datetime] = None


class ConsumptionSummaryOut(BaseModel):
    visit_id: int
    total_lines: int
    total_general: Decimal
    total_room: Decimal
    total_amount: Decimal
    consumptions: List[ConsumptionOut]


def consumption_out(consumption: Consumption) -> ConsumptionOut:
    unit_price = Decimal(consumption.unit_price or 0)
    stay = consumption.stay_movement
    return ConsumptionOut(
        id=consumption.id,
        article_id=consumption.article_id,
        article_name=consumption.article.name if consumption.article else None,
        quantity=consumption.quantity,
        unit_price=unit_price,
        total=unit_price * consumption.quantity,
        is_room=consumption.is_room,
        active=not consumption.cancelled,
        visit_id=stay.visit_id,
        room_id=stay.room_id,
        created_at=consumption.created_at,
    )


def _add(data: ConsumptionBatch, in_room: bool, db: Session, tenant: Tenant, user: User) -> List[ConsumptionOut]:
    lines = unwrap(
        consumos_service.add_consumptions(
            db,
            tenant.id,
            data.room_id,
            data.visit_id,
            [item.model_dump() for item in data.items],
            in_room,
            user_id=str(user.id),
        )
    )
    return [consumption_out(c) for c in lines]


@router.post("/general", response_model=List[ConsumptionOut], status_code=201)
def add_general_consumptions(
    data: ConsumptionBatch,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return _add(data, False, db, tenant, current_user)


@router.post("/room", response_model=List[ConsumptionOut], status_code=201)
def add_room_consumptions(
    data: ConsumptionBatch,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return _add(data, True, db, tenant, current_user)


@router.post("/{consumption_id}/cancel", response_model=ConsumptionOut)
def cancel_consumption(
    consumption_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return consumption_out(unwrap(consumos_service.cancel_consumption(db, tenant.id, consumption_id)))


@router.put("/{consumption_id}/quantity", response_model=ConsumptionOut)
def update_consumption_quantity(
    consumption_id: int,
    data: QuantityRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    consumption = unwrap(
        consumos_service.update_consumption_quantity(db, tenant.id, consumption_id, data.quantity)
    )
    return consumption_out(consumption)


@router.get("/visit/{visit_id}", response_model=List[ConsumptionOut])
def list_visit_consumptions(
    visit_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return [consumption_out(c) for c in unwrap(consumos_service.list_visit_consumptions(db, tenant.id, visit_id))]


@router.get("/visit/{visit_id}/summary", response_model=ConsumptionSummaryOut)
def visit_summary(
    visit_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    summary = unwrap(consumos_service.visit_consumption_summary(db, tenant.id, visit_id))
    return ConsumptionSummaryOut(
        visit_id=summary["visit_id"],
        total_lines=summary["total_lines"],
        total_general=summary["total_general"],
        total_room=summary["total_room"],
        total_amount=summary["total_amount"],
        consumptions=[consumption_out(c) for c in summary["consumptions"]],
    )
