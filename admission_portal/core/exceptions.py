from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidTransitionError(ServiceError):
    """Requested status change is not allowed from the record's current status."""

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Invalid status transition: {from_status} -> {to_status}",
            status.HTTP_400_BAD_REQUEST,
        )
        self.from_status = from_status
        self.to_status = to_status


class RateLimitExceededError(ServiceError):
    def __init__(self, retry_after: int) -> None:
        super().__init__(
            f"Too many submissions. Try again in {retry_after} seconds.",
            status.HTTP_429_TOO_MANY_REQUESTS,
        )
        self.retry_after = retry_after
