"""
Errors raised by the admin client. Actions catch PortalClientError and report it
through the Notifier; callers using PortalApiClient directly see them raised.
"""

from typing import Dict, List, Optional


class PortalClientError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PortalClientError):
    """Pre-flight check failed; no request was sent."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}


class TransportError(PortalClientError):
    """No response received (offline, DNS, connection refused)."""


class RequestTimeoutError(TransportError):
    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or "The request timed out. Try again with fewer items or on a faster connection."
        )


class GenerationPreconditionError(PortalClientError):
    """Bundle requested for documents that are missing or not approved."""


class ApiError(PortalClientError):
    """Server answered with an error status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServerValidationError(ApiError):
    """4xx with a list of field errors."""

    def __init__(self, message: str, status_code: int, errors: List[str]) -> None:
        super().__init__(message, status_code)
        self.errors = errors


class RateLimitError(ApiError):
    def __init__(self, message: str, retry_after: Optional[int] = None) -> None:
        super().__init__(message, 429)
        self.retry_after = retry_after

    @property
    def retry_after_text(self) -> str:
        return format_duration(self.retry_after) if self.retry_after else "a little while"


def format_duration(seconds: int) -> str:
    """900 -> "15 minutes", 45 -> "45 seconds", 3600 -> "1 hour"."""
    if seconds < 60:
        value, unit = seconds, "second"
    elif seconds < 3600:
        value, unit = -(-seconds // 60), "minute"
    else:
        value, unit = -(-seconds // 3600), "hour"
    return f"{value} {unit}{'' if value == 1 else 's'}"
