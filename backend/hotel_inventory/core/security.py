from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import jwt
from passlib.context import CryptContext

from hotel_inventory.core.config import settings


password_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    return password_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return password_context.verify(password, hashed_password)


def create_token(subject: str, tenant_id: int, expires_minutes: int, token_type: str) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "tid": tenant_id,
        "type": token_type,
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_token_pair(user_id: int, tenant_id: int) -> Tuple[str, str]:
    access = create_token(str(user_id), tenant_id, settings.access_token_expire_minutes, token_type="access")
    refresh = create_token(str(user_id), tenant_id, settings.refresh_token_expire_minutes, token_type="refresh")
    return access, refresh


def decode_token(token: str) -> Optional[dict[str, Any]]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
