"""
Public contact form: bot checks, attachment validation and persistence.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.core.config import settings
from admission_portal.core.exceptions import RateLimitExceededError, ServiceError
from admission_portal.core.models import ContactSubmission
from admission_portal.core.patterns import ATTACHMENT_EXTENSIONS, MAX_ATTACHMENTS
from admission_portal.services.storage import storage_service

from .rate_limit import SlidingWindowRateLimiter
from .recaptcha import verify_recaptcha
from .schemas import ContactForm, ContactResponse

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Contact form submitted successfully. We will get back to you soon!"

rate_limiter = SlidingWindowRateLimiter(
    limit=settings.contact_rate_limit,
    window=settings.contact_rate_window_seconds,
)


async def _read_attachments(files: List[UploadFile]) -> List[tuple]:
    """Validate count, extension and size; returns (filename, content_type, bytes) per file."""
    files = [f for f in files if f is not None and f.filename]
    if len(files) > MAX_ATTACHMENTS:
        raise ServiceError(f"At most {MAX_ATTACHMENTS} files can be attached", status.HTTP_400_BAD_REQUEST)
    max_bytes = settings.max_upload_mb * 1024 * 1024
    attachments = []
    for f in files:
        if Path(f.filename).suffix.lower() not in ATTACHMENT_EXTENSIONS:
            raise ServiceError(
                "Invalid file type. Only PDF, DOC, DOCX, JPG, PNG, TXT files are allowed.",
                status.HTTP_400_BAD_REQUEST,
            )
        content = await f.read()
        if len(content) > max_bytes:
            raise ServiceError(
                f"{f.filename} exceeds the {settings.max_upload_mb} MB limit",
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            )
        attachments.append((f.filename, f.content_type, content))
    return attachments


async def submit_contact(
    db: AsyncSession,
    form: ContactForm,
    files: List[UploadFile],
    *,
    recaptcha_token: Optional[str] = None,
    honeypot: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> ContactResponse:
    retry_after = rate_limiter.hit(client_ip or "unknown")
    if retry_after is not None:
        logger.warning(f"Contact rate limit hit for {client_ip}")
        raise RateLimitExceededError(retry_after)

    if honeypot and honeypot.strip():
        # Bots get the same answer as people; nothing is stored
        logger.info(f"Honeypot filled, dropping contact submission from {client_ip}")
        return ContactResponse(success=True, message=SUCCESS_MESSAGE)

    verified = False
    if settings.recaptcha_secret_key:
        if recaptcha_token:
            result = await verify_recaptcha(recaptcha_token, client_ip)
            if result is None:
                logger.warning(f"Accepting contact submission from {client_ip} unverified: reCAPTCHA unavailable")
            elif not result:
                raise ServiceError("reCAPTCHA verification failed", status.HTTP_400_BAD_REQUEST)
            verified = bool(result)
        else:
            logger.warning(f"Contact submission without reCAPTCHA token from {client_ip}")

    attachments = await _read_attachments(files)
    stored = []
    for filename, content_type, content in attachments:
        path, _checksum = await storage_service.save(content, filename, folder="contact")
        stored.append({"fileName": filename, "filePath": path, "mimeType": content_type, "size": len(content)})

    submission = ContactSubmission(
        name=form.name,
        email=str(form.email),
        phone=form.phone,
        subject=form.subject,
        message=form.message,
        attachments=stored,
        recaptcha_verified=verified,
        client_ip=client_ip,
    )
    db.add(submission)
    await db.commit()
    logger.info(
        "Contact submission stored",
        extra={"subject": form.subject, "attachments": len(stored), "recaptcha_verified": verified},
    )
    return ContactResponse(success=True, message=SUCCESS_MESSAGE, documents_count=len(stored))
