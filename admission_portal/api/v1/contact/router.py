from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.core.exceptions import RateLimitExceededError, ServiceError
from admission_portal.db.session import get_db

from . import service
from .schemas import ContactForm, ContactResponse

router = APIRouter(prefix="/api/v1/contact", tags=["contact"])


@router.post("/submit", response_model=ContactResponse, response_model_by_alias=True)
async def submit_contact_form(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    phone: str = Form(...),
    subject: str = Form(...),
    message: str = Form(...),
    recaptcha_token: Optional[str] = Form(None),
    website: Optional[str] = Form(None),
    documents: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
) -> ContactResponse:
    """Public contact form. Up to 5 attachments of 10 MB each."""
    try:
        form = ContactForm(name=name, email=email, phone=phone, subject=subject, message=message)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=jsonable_encoder(e.errors(include_url=False, include_context=False)),
        )

    client_ip = request.client.host if request.client else None
    try:
        return await service.submit_contact(
            db,
            form,
            documents or [],
            recaptcha_token=recaptcha_token,
            honeypot=website,
            client_ip=client_ip,
        )
    except RateLimitExceededError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"Retry-After": str(e.retry_after)},
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
