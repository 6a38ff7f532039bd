from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_client_ip, get_current_user, get_tenant, require_admin
from hotel_inventory.core.results import unwrap
from hotel_inventory.models.inventory_movement import InventoryMovement, MovementMetadata
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User
from hotel_inventory.services import movement_recorder


router = APIRouter()


class MovementOut(BaseModel):
    id: int
    inventory_id: int
    article_id: int
    movement_type: str
    quantity_before: int
    quantity_after: int
    quantity_delta: int
    reason: Optional[str] = None
    document_number: Optional[str] = None
    transfer_id: Optional[str] = None
    created_at: datetime
    user_id: str
    ip_address: Optional[str] = None
    metadata: Optional[Dict] = None


class MovementCreate(BaseModel):
    inventory_id: int
    movement_type: str = Field(..., max_length=20)
    quantity_before: int
    quantity_after: int
    reason: Optional[str] = None
    document_number: Optional[str] = None
    transfer_id: Optional[str] = None
    metadata: Optional[MovementMetadata] = None


class MovementStatisticsOut(BaseModel):
    total_count: int
    count_by_kind: Dict[str, int]
    count_by_day: Dict[str, int]
    top_actors: Dict[str, int]
    period_start: datetime
    period_end: datetime


def movement_out(movement: InventoryMovement) -> MovementOut:
    metadata = movement.movement_metadata
    return MovementOut(
        id=movement.id,
        inventory_id=movement.inventory_id,
        article_id=movement.article_id,
        movement_type=movement.movement_type,
        quantity_before=movement.quantity_before,
        quantity_after=movement.quantity_after,
        quantity_delta=movement.quantity_delta,
        reason=movement.reason,
        document_number=movement.document_number,
        transfer_id=movement.transfer_id,
        created_at=movement.created_at,
        user_id=movement.user_id,
        ip_address=movement.ip_address,
        metadata=metadata.model_dump(exclude_none=True) if metadata is not None else None,
    )


@router.post("", response_model=MovementOut, status_code=201)
def record_movement(
    data: MovementCreate,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    """Append a movement entry without touching the stock quantity"""
    movement = unwrap(
        movement_recorder.record_movement(
            db,
            data.inventory_id,
            tenant.id,
            data.movement_type,
            data.quantity_before,
            data.quantity_after,
            data.reason,
            str(current_user.id),
            ip_address=get_client_ip(request),
            metadata=data.metadata,
            document_number=data.document_number,
            transfer_id=data.transfer_id,
        )
    )
    return movement_out(movement)


@router.get("/statistics", response_model=MovementStatisticsOut)
def movement_statistics(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    stats = unwrap(movement_recorder.movement_statistics(db, tenant.id, date_from=date_from, date_to=date_to))
    return MovementStatisticsOut(**stats)


@router.get("/{movement_id}", response_model=MovementOut)
def get_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return movement_out(unwrap(movement_recorder.get_movement(db, movement_id, tenant.id)))
