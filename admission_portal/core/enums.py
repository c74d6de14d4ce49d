from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DocumentReviewStatus(str, Enum):
    NOT_VERIFIED = "NOT_VERIFIED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    ALL_APPROVED = "ALL_APPROVED"
    ALL_REJECTED = "ALL_REJECTED"


class UserRole(str, Enum):
    STUDENT = "student"
    AGENT = "agent"
    STAFF = "staff"
    SUPER_ADMIN = "super_admin"


class RejectionPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class BundleKind(str, Enum):
    PDF = "pdf"
    ZIP = "zip"


class StorageType(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


ADMIN_ROLES = (UserRole.STAFF.value, UserRole.SUPER_ADMIN.value)
