"""Async admin client for the admission portal API."""

from .bundle import DocumentBundleRequest
from .contact import Attachment, ContactSubmission
from .errors import (
    ApiError,
    GenerationPreconditionError,
    PortalClientError,
    RateLimitError,
    RequestTimeoutError,
    ServerValidationError,
    TransportError,
    ValidationError,
)
from .export import BulkExportEngine
from .http import PortalApiClient
from .notifications import Notifier
from .session import SessionContext
from .students import StudentListQuery
from .workflow import StatusWorkflow

__all__ = [
    "ApiError",
    "Attachment",
    "BulkExportEngine",
    "ContactSubmission",
    "DocumentBundleRequest",
    "GenerationPreconditionError",
    "Notifier",
    "PortalApiClient",
    "PortalClientError",
    "RateLimitError",
    "RequestTimeoutError",
    "ServerValidationError",
    "SessionContext",
    "StatusWorkflow",
    "StudentListQuery",
    "TransportError",
    "ValidationError",
]
