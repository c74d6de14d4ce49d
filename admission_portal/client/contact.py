"""
Contact form submission: local validation, best-effort anti-bot token, multipart post.
"""

import asyncio
import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import pydantic

from admission_portal.api.v1.contact.schemas import ContactForm
from admission_portal.core.patterns import (
    ATTACHMENT_EXTENSIONS,
    MAX_ATTACHMENTS,
    MESSAGE_MAX_LENGTH,
    MESSAGE_MIN_LENGTH,
    PHONE_PATTERN,
)

from .config import client_settings
from .errors import PortalClientError, RateLimitError, ServerValidationError, ValidationError
from .http import PortalApiClient
from .notifications import Notifier

logger = logging.getLogger(__name__)

FIELD_MESSAGES = {
    "name": "Name must be 2-100 letters and spaces",
    "email": "Valid email is required",
    "phone": "Phone must be 10 digits starting with 6, 7, 8 or 9",
    "subject": "Subject must be 3-200 characters",
    "message": f"Message must be {MESSAGE_MIN_LENGTH}-{MESSAGE_MAX_LENGTH} characters",
}
MAX_FILE_BYTES = 10 * 1024 * 1024


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path) -> "Attachment":
        path = Path(path)
        return cls(path.name, path.read_bytes(), mimetypes.guess_type(path.name)[0])


def is_valid_phone(phone: str) -> bool:
    return re.match(PHONE_PATTERN, (phone or "").strip()) is not None


def is_valid_message(message: str) -> bool:
    return MESSAGE_MIN_LENGTH <= len((message or "").strip()) <= MESSAGE_MAX_LENGTH


def validate_contact_form(form: Dict[str, str], attachments: List[Attachment]) -> None:
    """
    Raises ValidationError listing every bad field.

    Text fields are checked with the same ContactForm model the API validates
    against; only the attachment limits are checked here.
    """
    errors: Dict[str, str] = {}
    try:
        ContactForm(**{k: (form.get(k) or "").strip() for k in FIELD_MESSAGES})
    except pydantic.ValidationError as e:
        for err in e.errors(include_url=False):
            field = str(err["loc"][0]) if err["loc"] else "form"
            errors.setdefault(field, FIELD_MESSAGES.get(field, err["msg"]))

    if len(attachments) > MAX_ATTACHMENTS:
        errors["documents"] = f"At most {MAX_ATTACHMENTS} files can be attached"
    for a in attachments:
        if Path(a.filename).suffix.lower() not in ATTACHMENT_EXTENSIONS:
            errors["documents"] = f"{a.filename}: only PDF, DOC, DOCX, JPG, PNG, TXT files are allowed"
        elif len(a.content) > MAX_FILE_BYTES:
            errors["documents"] = f"{a.filename} is larger than 10 MB"

    if errors:
        raise ValidationError("Please correct the highlighted fields", errors)


class ContactSubmission:
    def __init__(
        self,
        api: PortalApiClient,
        notifier: Notifier,
        *,
        token_provider: Optional[Callable[[], Awaitable[Optional[str]]]] = None,
        token_timeout: Optional[float] = None,
    ) -> None:
        self.api = api
        self.notifier = notifier
        self.token_provider = token_provider
        self.token_timeout = token_timeout or client_settings.recaptcha_timeout_seconds

    async def acquire_token(self) -> Optional[str]:
        """Anti-bot token, or None if the provider is missing, slow or failing."""
        if self.token_provider is None:
            return None
        try:
            return await asyncio.wait_for(self.token_provider(), timeout=self.token_timeout)
        except asyncio.TimeoutError:
            logger.info(f"reCAPTCHA token not ready after {self.token_timeout}s; submitting without it")
        except Exception as e:
            logger.info(f"reCAPTCHA token unavailable: {e}")
        return None

    async def submit(self, form: Dict[str, str], attachments: Optional[List[Attachment]] = None) -> bool:
        attachments = attachments or []
        try:
            validate_contact_form(form, attachments)
        except ValidationError as e:
            self.notifier.error("; ".join(e.field_errors.values()) or e.message)
            return False

        data = {k: (form.get(k) or "").strip() for k in ("name", "email", "phone", "subject", "message")}
        # Honeypot: always sent, always empty
        data["website"] = ""
        token = await self.acquire_token()
        if token:
            data["recaptcha_token"] = token
        files = [("documents", (a.filename, a.content, a.content_type or "application/octet-stream")) for a in attachments]

        try:
            result = await self.api.submit_contact(data, files)
        except RateLimitError as e:
            self.notifier.error(f"Too many messages sent. Please try again in {e.retry_after_text}.")
            return False
        except ServerValidationError as e:
            self.notifier.error("; ".join(e.errors))
            return False
        except PortalClientError as e:
            self.notifier.error(f"Failed to send message: {e.message}")
            return False

        self.notifier.success(result.get("message") or "Message sent")
        return True
