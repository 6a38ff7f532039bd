from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, condecimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_current_user, get_tenant, require_admin
from hotel_inventory.models.article import Article
from hotel_inventory.models.room import Room
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User


router = APIRouter()


class ArticleBase(BaseModel):
    name: str
    price: condecimal(max_digits=10, decimal_places=2) = 0
    image_url: Optional[str] = None
    category: Optional[str] = None
    active: bool = True


class ArticleOut(ArticleBase):
    id: int

    class Config:
        from_attributes = True


class RoomBase(BaseModel):
    name: str
    active: bool = True


class RoomOut(RoomBase):
    id: int

    class Config:
        from_attributes = True


@router.get("/articles", response_model=List[ArticleOut])
def list_articles(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
    category: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
):
    query = db.query(Article).filter(Article.tenant_id == tenant.id)
    if category:
        query = query.filter(Article.category == category)
    if active is not None:
        query = query.filter(Article.active == active)
    return [ArticleOut.model_validate(a) for a in query.order_by(Article.name).all()]


@router.post("/articles", response_model=ArticleOut, status_code=201)
def create_article(
    data: ArticleBase,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_admin),
):
    article = Article(tenant_id=tenant.id, **data.model_dump())
    db.add(article)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Article name already exists")
    db.refresh(article)
    return ArticleOut.model_validate(article)


@router.get("/rooms", response_model=List[RoomOut])
def list_rooms(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    rooms = db.query(Room).filter(Room.tenant_id == tenant.id).order_by(Room.name).all()
    return [RoomOut.model_validate(r) for r in rooms]


@router.post("/rooms", response_model=RoomOut, status_code=201)
def create_room(
    data: RoomBase,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_admin),
):
    room = Room(tenant_id=tenant.id, **data.model_dump())
    db.add(room)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Room name already exists")
    db.refresh(room)
    return RoomOut.model_validate(room)
