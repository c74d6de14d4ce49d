import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from admission_portal.core.enums import ApplicationStatus
from admission_portal.core.rejection_reasons import REJECTION_REASON_IDS

from .errors import PortalClientError, ValidationError
from .http import PortalApiClient
from .notifications import Notifier

logger = logging.getLogger(__name__)

SUCCESS_MESSAGES = {
    ApplicationStatus.SUBMITTED: "Application submitted",
    ApplicationStatus.UNDER_REVIEW: "Application moved to review",
    ApplicationStatus.APPROVED: "Application approved",
    ApplicationStatus.REJECTED: "Application rejected",
    ApplicationStatus.COMPLETE: "Application marked complete",
    ApplicationStatus.CANCELLED: "Application cancelled",
}


def build_status_request(
    status: str,
    *,
    notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    rejection_message: Optional[str] = None,
    rejection_details: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Validate a status change and build the request body. Raises ValidationError."""
    try:
        target = ApplicationStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status}", {"status": "invalid"})

    body: Dict[str, Any] = {"status": target.value}
    if notes:
        body["notes"] = notes
    if target != ApplicationStatus.REJECTED:
        return body

    reason = (rejection_reason or "").strip()
    message = (rejection_message or "").strip()
    errors = {}
    if not reason:
        errors["rejectionReason"] = "required"
    elif reason not in REJECTION_REASON_IDS:
        errors["rejectionReason"] = "unknown reason"
    if not message:
        errors["rejectionMessage"] = "required"
    if errors:
        raise ValidationError("Rejection reason and message are required", errors)

    body.update(
        rejectionReason=reason,
        rejectionMessage=message,
        rejectionDetails=rejection_details or [],
    )
    return body


class StatusWorkflow:
    """
    Status changes from the dashboard.

    The refresh callback runs only after the mutation has finished, whether it
    succeeded or failed, so the list never reads ahead of the write.
    """

    def __init__(
        self,
        api: PortalApiClient,
        notifier: Notifier,
        refresh: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> None:
        self.api = api
        self.notifier = notifier
        self.refresh = refresh

    async def _after_mutation(self) -> None:
        if self.refresh is not None:
            await self.refresh()

    async def update_status(self, student_id: str, status: str, **kwargs) -> Optional[Dict[str, Any]]:
        """Returns the updated record, or None when the change was refused or failed."""
        try:
            body = build_status_request(status, **kwargs)
        except ValidationError as e:
            self.notifier.error(e.message)
            return None

        updated = None
        try:
            updated = await self.api.update_status(student_id, body)
        except PortalClientError as e:
            logger.warning(f"Status update for {student_id} failed: {e.message}")
            self.notifier.error(f"Failed to update status: {e.message}")
        else:
            self.notifier.success(SUCCESS_MESSAGES.get(ApplicationStatus(body["status"]), "Status updated"))
        await self._after_mutation()
        return updated

    async def approve(self, student_id: str, notes: Optional[str] = None):
        return await self.update_status(student_id, ApplicationStatus.APPROVED.value, notes=notes)

    async def reject(
        self,
        student_id: str,
        rejection_reason: Optional[str],
        rejection_message: Optional[str],
        rejection_details: Optional[List[Dict[str, Any]]] = None,
        notes: Optional[str] = None,
    ):
        return await self.update_status(
            student_id,
            ApplicationStatus.REJECTED.value,
            notes=notes,
            rejection_reason=rejection_reason,
            rejection_message=rejection_message,
            rejection_details=rejection_details,
        )

    async def start_review(self, student_id: str):
        return await self.update_status(student_id, ApplicationStatus.UNDER_REVIEW.value)

    async def complete(self, student_id: str):
        return await self.update_status(student_id, ApplicationStatus.COMPLETE.value)

    async def cancel(self, student_id: str, notes: Optional[str] = None):
        return await self.update_status(student_id, ApplicationStatus.CANCELLED.value, notes=notes)

    async def resubmit(self, student_id: str, reason: Optional[str] = None) -> Optional[Dict[str, Any]]:
        updated = None
        try:
            updated = await self.api.resubmit(student_id, reason)
        except PortalClientError as e:
            self.notifier.error(f"Failed to resubmit application: {e.message}")
        else:
            self.notifier.success("Application resubmitted for review")
        await self._after_mutation()
        return updated

    async def bulk_delete(self, student_ids: List[str]) -> Optional[Dict[str, Any]]:
        if not student_ids:
            self.notifier.error("Select at least one application to delete")
            return None
        result = None
        try:
            result = await self.api.bulk_delete(student_ids)
        except PortalClientError as e:
            self.notifier.error(f"Bulk delete failed: {e.message}")
        else:
            message = f"Deleted {result.get('deletedCount', 0)} application(s)"
            if result.get("invalidIds"):
                message += f"; {len(result['invalidIds'])} not found"
            self.notifier.success(message)
        await self._after_mutation()
        return result
