"""
Password hashing and staff access tokens.

Tokens carry the user id twice (`sub` and `user_id`) and the staff role, so
role checks on the list and workflow endpoints never need a second lookup
before the user row is loaded.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from admission_portal.core.config import settings


def hash_password(plain_password: str) -> str:
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=settings.bcrypt_rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    """False for a wrong password, and for accounts whose stored hash is missing or not bcrypt."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: UUID,
    role: str,
    *,
    expires_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "user_id": str(user_id),
        "role": role,
        "iat": int(issued_at.timestamp()),
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Claims of a valid token, with `user_id` parsed to a UUID.

    Returns None for a bad signature, an expired token, or a token that does
    not name a user.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    try:
        payload["user_id"] = UUID(payload.get("user_id") or payload.get("sub") or "")
    except ValueError:
        return None
    return payload
