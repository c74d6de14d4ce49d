from admission_portal.auth.models import User
from admission_portal.core.models.student_application import ApplicationDocument, StudentApplication
from admission_portal.core.models.audit_log import ApplicationAuditLog
from admission_portal.core.models.contact_submission import ContactSubmission

__all__ = [
    "ApplicationAuditLog",
    "ApplicationDocument",
    "ContactSubmission",
    "StudentApplication",
    "User",
]
