from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_client_ip, get_current_user, get_tenant, require_admin
from hotel_inventory.core.results import unwrap
from hotel_inventory.core.stock_rules import LocationType, TransferPriority
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.transfer_document import TransferDocument
from hotel_inventory.models.user import User
from hotel_inventory.services import transfer_documents


router = APIRouter()


class TransferLineIn(BaseModel):
    inventory_id: int
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=500)


class TransferCreate(BaseModel):
    source_location_type: LocationType = LocationType.general
    source_location_id: Optional[int] = None
    destination_location_type: LocationType
    destination_location_id: Optional[int] = None
    lines: List[TransferLineIn]
    priority: str = TransferPriority.medium
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    requires_approval: bool = True


class TransferBatchCreate(BaseModel):
    transfers: List[TransferCreate]


class ApprovalRequest(BaseModel):
    approved: bool = True
    comments: Optional[str] = Field(None, max_length=500)


class ExecutionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class TransferLineOut(BaseModel):
    id: int
    source_inventory_id: int
    destination_inventory_id: Optional[int] = None
    article_id: int
    requested_quantity: int
    available_quantity: Optional[int] = None
    transferred_quantity: Optional[int] = None
    transferred: Optional[bool] = None
    failure_reason: Optional[str] = None
    notes: Optional[str] = None


class TransferOut(BaseModel):
    id: int
    transfer_number: str
    source_location_type: int
    source_location_id: Optional[int] = None
    destination_location_type: int
    destination_location_id: Optional[int] = None
    status: str
    priority: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    requires_approval: bool
    created_at: datetime
    created_by: str
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    completion_notes: Optional[str] = None
    lines: List[TransferLineOut]


class TransferPage(BaseModel):
    items: List[TransferOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int


def transfer_out(document: TransferDocument) -> TransferOut:
    return TransferOut(
        id=document.id,
        transfer_number=document.transfer_number,
        source_location_type=document.source_location_type,
        source_location_id=document.source_location_id,
        destination_location_type=document.destination_location_type,
        destination_location_id=document.destination_location_id,
        status=document.status,
        priority=document.priority,
        reason=document.reason,
        notes=document.notes,
        requires_approval=document.requires_approval,
        created_at=document.created_at,
        created_by=document.created_by,
        approved_at=document.approved_at,
        approved_by=document.approved_by,
        rejected_at=document.rejected_at,
        rejected_by=document.rejected_by,
        rejection_reason=document.rejection_reason,
        completed_at=document.completed_at,
        completed_by=document.completed_by,
        completion_notes=document.completion_notes,
        lines=[
            TransferLineOut(
                id=line.id,
                source_inventory_id=line.source_inventory_id,
                destination_inventory_id=line.destination_inventory_id,
                article_id=line.article_id,
                requested_quantity=line.requested_quantity,
                available_quantity=line.available_quantity,
                transferred_quantity=line.transferred_quantity,
                transferred=line.transferred,
                failure_reason=line.failure_reason,
                notes=line.notes,
            )
            for line in document.lines
        ],
    )


@router.get("", response_model=TransferPage)
def list_transfers(
    status: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: int = Query(20),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    paged = unwrap(transfer_documents.list_transfers(db, tenant.id, status=status, page=page, page_size=page_size))
    return TransferPage(
        items=[transfer_out(d) for d in paged.items],
        total_count=paged.total_count,
        page=paged.page,
        page_size=paged.page_size,
        total_pages=paged.total_pages,
    )


@router.post("", response_model=TransferOut, status_code=201)
def create_transfer(
    data: TransferCreate,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    document = unwrap(
        transfer_documents.create_transfer(
            db, tenant.id, str(current_user.id), data.model_dump(), ip_address=get_client_ip(request)
        )
    )
    return transfer_out(document)


@router.post("/batch", response_model=List[TransferOut], status_code=201)
def create_transfers_batch(
    data: TransferBatchCreate,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    documents = unwrap(
        transfer_documents.create_transfers_batch(
            db,
            tenant.id,
            str(current_user.id),
            [t.model_dump() for t in data.transfers],
            ip_address=get_client_ip(request),
        )
    )
    return [transfer_out(d) for d in documents]


@router.get("/{transfer_id}", response_model=TransferOut)
def get_transfer(
    transfer_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    return transfer_out(unwrap(transfer_documents.get_transfer(db, tenant.id, transfer_id)))


@router.post("/{transfer_id}/approve", response_model=TransferOut)
def approve_transfer(
    transfer_id: int,
    data: ApprovalRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    document = unwrap(
        transfer_documents.approve_transfer(
            db, tenant.id, transfer_id, str(current_user.id), approved=data.approved, comments=data.comments
        )
    )
    return transfer_out(document)


@router.post("/{transfer_id}/execute", response_model=TransferOut)
def execute_transfer(
    transfer_id: int,
    data: ExecutionRequest,
    request: Request,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    document = unwrap(
        transfer_documents.execute_transfer(
            db, tenant.id, transfer_id, str(current_user.id), notes=data.notes, ip_address=get_client_ip(request)
        )
    )
    return transfer_out(document)


@router.post("/{transfer_id}/cancel", response_model=TransferOut)
def cancel_transfer(
    transfer_id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(require_admin),
):
    document = unwrap(
        transfer_documents.cancel_transfer(db, tenant.id, transfer_id, str(current_user.id), reason=data.reason)
    )
    return transfer_out(document)
