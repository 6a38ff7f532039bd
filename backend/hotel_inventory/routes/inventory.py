from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_client_ip, get_current_user, get_tenant, require_admin
from hotel_inventory.core.results import unwrap
from hotel_inventory.core.stock_rules import LocationType, location_name
from hotel_inventory.models.inventory_record import InventoryRecord
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User
from hotel_inventory.routes.movements import MovementOut, movement_out
from hotel_inventory.services import consumption_poster, inventory_store, movement_recorder
from hotel_inventory.services.movement_recorder import MovementFilter


router = APIRouter()


class InventoryOut(BaseModel):
    id: int
    article_id: int
    article_name: Optional[str] = None
    article_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    location_type: int
    location_id: Optional[int] = None
    location_name: str
    quantity: int
    min_quantity: int
    registered_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None


class InventoryCreate(BaseModel):
    article_id: int
    location_type: LocationType = LocationType.general
    location_id: Optional[int] = None
    quantity: int = 0
    min_quantity: int = 0


class QuantityUpdateRequest(BaseModel):
    quantity: int


class BatchItem(BaseModel):
    inventory_id: int
    quantity: int


class BatchUpdateRequest(BaseModel):
    items: List[BatchItem]


class StockRequestItem(BaseModel):
    article_id: int
    requested_quantity: int
    location_type: LocationType = LocationType.general
    location_id: Optional[int] = None


class StockValidationRequest(BaseModel):
    items: List[StockRequestItem]


class StockValidationOut(BaseModel):
    article_id: int
    requested_quantity: int
    available_quantity: int
    is_valid: bool
    location_type: int
    location_id: Optional[int] = None


class AdjustmentRequest(BaseModel):
    new_quantity: int
    reason: str = Field(..., max_length=500)


class ConsumptionRequest(BaseModel):
    quantity: int = Field(..., gt=0)
    consumo_id: Optional[int] = None
    details: Optional[str] = Field(None, max_length=500)


class TransferRequest(BaseModel):
    source_inventory_id: int
    destination_inventory_id: int
    quantity: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=500)


class MovementPage(BaseModel):
    items: List[MovementOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool


def inventory_out(record: InventoryRecord) -> InventoryOut:
    article = record.article
    room = record.room
    return InventoryOut(
        id=record.id,
        article_id=record.article_id,
        article_name=article.name if article else None,
        article_price=article.price if article else None,
        image_url=article.image_url if article else None,
        location_type=record.location_type,
        location_id=record.location_id,
        location_name=location_name(record.location_type, record.location_id, room.name if room else None),
        quantity=record.quantity,
        min_quantity=record.min_quantity,
        registered_at=record.registered_at,
        last_updated_at=record.last_updated_at,
    )


@router.get("", response_model=List[InventoryOut])
def list_inventory(
    location_type: Optional[LocationType] = Query(None),
    location_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    records = unwrap(inventory_store.get_inventory(db, tenant.id, location_type, location_id))
    return [inventory_out(r) for r in records]


@router.get("/low-stock", response_model=List[InventoryOut])
def low_stock(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return [inventory_out(r) for r in unwrap(inventory_store.list_low_stock(db, tenant.id))]


@router.get("/available")
def available_quantity(
    article_id: int,
    location_type: LocationType = Query(LocationType.general),
    location_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    available = unwrap(
        inventory_store.get_available_quantity(db, tenant.id, article_id, location_type, location_id)
    )
    return {"article_id": article_id, "available": available}


@router.post("/validate", response_model=List[StockValidationOut])
def validate_stock(
    data: StockValidationRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    requests = [item.model_dump() for item in data.items]
    return [StockValidationOut(**v) for v in unwrap(inventory_store.validate_stock(db, tenant.id, requests))]


@router.post("/synchronize")
def synchronize_general_stock(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    created = unwrap(inventory_store.synchronize_general_stock(db, tenant.id))
    return {"created": created}


@router.post("/batch")
def batch_update(
    data: BatchUpdateRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    items = [item.model_dump() for item in data.items]
    return {"updated": unwrap(inventory_store.batch_set_quantity(db, tenant.id, items))}


@router.post("/transfers", response_model=List[MovementOut])
def transfer(
    data: TransferRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    movements = unwrap(
        consumption_poster.post_transfer(
            db,
            data.source_inventory_id,
            data.destination_inventory_id,
            data.quantity,
            tenant.id,
            str(current_user.id),
            reason=data.reason,
            ip_address=get_client_ip(request),
        )
    )
    return [movement_out(m) for m in movements]


@router.post("", response_model=InventoryOut, status_code=201)
def create_inventory(
    data: InventoryCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    record = unwrap(
        inventory_store.create_inventory(
            db,
            tenant.id,
            data.article_id,
            data.location_type,
            data.location_id,
            quantity=data.quantity,
            user_id=str(current_user.id),
            min_quantity=data.min_quantity,
        )
    )
    return inventory_out(record)


@router.get("/{inventory_id}", response_model=InventoryOut)
def get_inventory_item(
    inventory_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return inventory_out(unwrap(inventory_store.get_inventory_by_id(db, inventory_id, tenant.id)))


@router.put("/{inventory_id}/quantity", response_model=InventoryOut)
def set_quantity(
    inventory_id: int,
    data: QuantityUpdateRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    """Overwrite the quantity without a movement entry (use adjustments to keep the trail)"""
    return inventory_out(unwrap(inventory_store.set_quantity(db, inventory_id, data.quantity, tenant.id)))


@router.delete("/{inventory_id}")
def delete_inventory(
    inventory_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    deleted = unwrap(inventory_store.delete_inventory(db, inventory_id, tenant.id))
    return {"deleted": deleted}


@router.post("/{inventory_id}/adjustments", response_model=MovementOut, status_code=201)
def post_adjustment(
    inventory_id: int,
    data: AdjustmentRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    movement = unwrap(
        consumption_poster.post_adjustment(
            db,
            inventory_id,
            data.new_quantity,
            data.reason,
            tenant.id,
            str(current_user.id),
            ip_address=get_client_ip(request),
        )
    )
    return movement_out(movement)


@router.post("/{inventory_id}/consumptions", response_model=MovementOut, status_code=201)
def post_consumption(
    inventory_id: int,
    data: ConsumptionRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    movement = unwrap(
        consumption_poster.post_consumption(
            db,
            inventory_id,
            data.quantity,
            tenant.id,
            str(current_user.id),
            consumo_id=data.consumo_id,
            details=data.details,
            ip_address=get_client_ip(request),
        )
    )
    return movement_out(movement)


@router.get("/{inventory_id}/movements", response_model=MovementPage)
def list_movements(
    inventory_id: int,
    kind: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    user_id: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, description="date, kind or quantity"),
    descending: bool = Query(True),
    page: int = Query(1),
    page_size: int = Query(20),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    movement_filter = MovementFilter(
        kind=kind,
        date_from=date_from,
        date_to=date_to,
        user_id=user_id,
        sort_by=sort_by,
        descending=descending,
        page=page,
        page_size=page_size,
    )
    result = unwrap(movement_recorder.list_movements(db, inventory_id, tenant.id, movement_filter))
    return MovementPage(
        items=[movement_out(m) for m in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_previous_page=result.has_previous_page,
        has_next_page=result.has_next_page,
    )
