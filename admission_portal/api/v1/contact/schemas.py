from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from admission_portal.core.patterns import (
    MESSAGE_MAX_LENGTH,
    MESSAGE_MIN_LENGTH,
    NAME_PATTERN,
    PHONE_PATTERN,
)


class ContactForm(BaseModel):
    name: str = Field(..., min_length=2, max_length=100, pattern=NAME_PATTERN)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    subject: str = Field(..., min_length=3, max_length=200)
    message: str = Field(..., min_length=MESSAGE_MIN_LENGTH, max_length=MESSAGE_MAX_LENGTH)

    @field_validator("name", "phone", "subject", "message", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ContactResponse(BaseModel):
    success: bool
    message: str
    documents_count: Optional[int] = Field(None, serialization_alias="documentsCount")
