import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.deps import get_current_user, get_tenant
from hotel_inventory.core.roles import Role
from hotel_inventory.core.security import create_token_pair, decode_token, hash_password, verify_password
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User


router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    role: Role = Role.owner
    tenant_name: str
    tenant_slug: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class MeResponse(BaseModel):
    id: int
    email: str
    role: str
    tenant_id: int
    tenant_slug: str


def _tokens_for(user: User) -> TokenResponse:
    access, refresh = create_token_pair(user.id, user.tenant_id)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/register", response_model=TokenResponse)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    existing_tenant = db.query(Tenant).filter(Tenant.slug == data.tenant_slug).first()
    if existing_tenant:
        raise HTTPException(status_code=400, detail="Tenant already exists")

    tenant = Tenant(name=data.tenant_name, slug=data.tenant_slug)
    db.add(tenant)
    db.flush()

    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        role=data.role.value,
        tenant_id=tenant.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Registered tenant %s with user %s", tenant.slug, user.id)
    return _tokens_for(user)


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    user = db.query(User).filter(User.email == data.email, User.tenant_id == tenant.id).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.info("Failed login for %s on tenant %s", data.email, tenant.slug)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _tokens_for(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token_endpoint(data: RefreshRequest, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    payload = decode_token(data.refresh_token)
    if not payload or payload.get("type") != "refresh" or payload.get("tid") != tenant.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.query(User).filter(User.id == int(payload["sub"]), User.tenant_id == tenant.id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return _tokens_for(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user), tenant: Tenant = Depends(get_tenant)):
    return MeResponse(id=user.id, email=user.email, role=user.role, tenant_id=tenant.id, tenant_slug=tenant.slug)
