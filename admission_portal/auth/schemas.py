from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo
    issued_at: datetime


class CurrentUser(BaseModel):
    """Authenticated caller resolved from the access token."""

    id: UUID
    role: str
    email: str
    full_name: str

    @property
    def is_admin(self) -> bool:
        return self.role in ("staff", "super_admin")
