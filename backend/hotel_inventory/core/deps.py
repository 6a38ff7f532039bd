from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from hotel_inventory.core.database import get_db
from hotel_inventory.core.roles import ADMIN_ROLES
from hotel_inventory.core.security import decode_token
from hotel_inventory.models.tenant import Tenant
from hotel_inventory.models.user import User


def get_tenant_slug(request: Request, x_tenant_id: Optional[str] = Header(None)) -> str:
    if x_tenant_id:
        return x_tenant_id
    # Fallback: subdomain e.g., hotel.myapp.com
    host = request.headers.get("host", "")
    parts = host.split(":")[0].split(".")
    if len(parts) >= 3:
        return parts[0]
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing tenant header")


def get_tenant(db: Session = Depends(get_db), tenant_slug: str = Depends(get_tenant_slug)) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.slug == tenant_slug, Tenant.is_active.is_(True)).first()
    if not tenant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return tenant


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
    tenant: Tenant = Depends(get_tenant),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    payload = decode_token(authorization.split(" ", 1)[1])
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    # A token issued for one tenant is never valid against another
    if payload.get("tid") != tenant.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.query(User).filter(User.id == int(payload["sub"]), User.tenant_id == tenant.id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role not in {r.value for r in ADMIN_ROLES}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return user


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]
    return request.client.host if request.client else None
