import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.auth.models import User
from admission_portal.auth.schemas import LoginRequest, LoginResponse, UserInfo
from admission_portal.auth.security import create_access_token, hash_password, verify_password
from admission_portal.core.config import settings
from admission_portal.core.enums import UserRole
from admission_portal.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find user by email (case-insensitive)
    user_stmt = select(User).where(func.lower(User.email) == func.lower(payload.email))
    user_result = await db.execute(user_stmt)
    user: Optional[User] = user_result.scalar_one_or_none()
    if not user:
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. Verify password hash
    if not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 3. Check user status
    if user.status != "ACTIVE":
        raise ServiceError("User is inactive", status.HTTP_403_FORBIDDEN)

    issued_at = datetime.now(timezone.utc)
    access_token = create_access_token(user.id, user.role, now=issued_at)
    logger.info("User logged in", extra={"user_id": str(user.id), "role": user.role})

    return LoginResponse(
        access_token=access_token,
        user=UserInfo(id=user.id, name=user.full_name, email=user.email, role=user.role),
        issued_at=issued_at,
    )


async def create_user(
    db: AsyncSession,
    *,
    full_name: str,
    email: str,
    password: str,
    role: str,
    phone: Optional[str] = None,
) -> User:
    existing = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    if existing.scalar_one_or_none():
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)
    if role not in {r.value for r in UserRole}:
        raise ServiceError(f"Unknown role: {role}", status.HTTP_400_BAD_REQUEST)
    user = User(
        full_name=full_name,
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        status="ACTIVE",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def ensure_super_admin(db: AsyncSession) -> None:
    """Create the configured super admin on first start. No-op when not configured or present."""
    email = settings.super_admin_email
    password = settings.super_admin_password
    if not email or not password:
        logger.warning("SUPER_ADMIN_EMAIL/SUPER_ADMIN_PASSWORD not set; skipping super admin bootstrap")
        return
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    if result.scalar_one_or_none():
        return
    await create_user(
        db,
        full_name="Super Admin",
        email=email,
        password=password,
        role=UserRole.SUPER_ADMIN.value,
    )
    logger.info("Super admin account created", extra={"email": email})
