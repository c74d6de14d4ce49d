from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from admission_portal.core.enums import (
    ApplicationStatus,
    DocumentReviewStatus,
    DocumentStatus,
    RejectionPriority,
)
from admission_portal.core.patterns import PHONE_PATTERN
from admission_portal.core.rejection_reasons import REJECTION_REASON_IDS


class CamelModel(BaseModel):
    """Wire format is camelCase; Python attributes stay snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ----- Nested application sections -----

class Address(CamelModel):
    street: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^\d{6}$")
    country: Optional[str] = Field("India", max_length=100)


class PersonalDetails(CamelModel):
    full_name: str = Field(..., min_length=2, max_length=255)
    fathers_name: Optional[str] = Field(None, max_length=255)
    mothers_name: Optional[str] = Field(None, max_length=255)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=30)
    aadhar_number: Optional[str] = Field(None, pattern=r"^\d{12}$", description="12-digit national id")
    category: Optional[str] = Field(None, max_length=50)
    registration_date: Optional[date] = None


class ContactDetails(CamelModel):
    email: Optional[EmailStr] = None
    primary_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    secondary_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    permanent_address: Address = Field(default_factory=Address)


class CourseDetails(CamelModel):
    institution_name: Optional[str] = Field(None, max_length=255)
    selected_course: Optional[str] = Field(None, max_length=255)
    stream: Optional[str] = Field(None, max_length=255)
    campus: Optional[str] = Field(None, max_length=255)
    custom_course: Optional[str] = Field(None, max_length=255)


class GuardianDetails(CamelModel):
    name: Optional[str] = Field(None, max_length=255)
    relationship: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None


class RejectionDetail(CamelModel):
    issue: str = Field(..., min_length=1, max_length=500)
    document_type: Optional[str] = Field(None, max_length=100)
    action_required: Optional[str] = Field(None, max_length=500)
    priority: RejectionPriority = RejectionPriority.MEDIUM
    specific_feedback: Optional[str] = Field(None, max_length=2000)


class ReviewInfo(CamelModel):
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejection_message: Optional[str] = None
    rejection_details: List[RejectionDetail] = Field(default_factory=list)


class DocumentCounts(CamelModel):
    total: int = 0
    approved: int = 0
    rejected: int = 0
    pending: int = 0


class DocumentResponse(CamelModel):
    id: UUID
    document_type: str
    file_name: str
    file_path: str
    url: str
    storage_type: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    status: DocumentStatus
    remarks: Optional[str] = None
    uploaded_at: datetime
    reviewed_at: Optional[datetime] = None


# ----- Requests -----

class StudentApplicationCreate(CamelModel):
    """Create a DRAFT application. Submitter and role come from the token."""

    personal_details: PersonalDetails
    contact_details: ContactDetails = Field(default_factory=ContactDetails)
    course_details: CourseDetails = Field(default_factory=CourseDetails)
    guardian_details: GuardianDetails = Field(default_factory=GuardianDetails)
    referred_by: Optional[str] = Field(None, max_length=255)


class StudentApplicationUpdate(CamelModel):
    """Partial edit; allowed while DRAFT or REJECTED. Sections replace the stored section."""

    personal_details: Optional[PersonalDetails] = None
    contact_details: Optional[ContactDetails] = None
    course_details: Optional[CourseDetails] = None
    guardian_details: Optional[GuardianDetails] = None
    referred_by: Optional[str] = Field(None, max_length=255)


class StatusUpdateRequest(CamelModel):
    status: ApplicationStatus
    notes: Optional[str] = Field(None, max_length=2000)
    rejection_reason: Optional[str] = Field(None, max_length=50)
    rejection_message: Optional[str] = Field(None, max_length=2000)
    rejection_details: List[RejectionDetail] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_rejection_fields(self) -> "StatusUpdateRequest":
        if self.status != ApplicationStatus.REJECTED:
            return self
        reason = (self.rejection_reason or "").strip()
        message = (self.rejection_message or "").strip()
        if not reason or not message:
            raise ValueError("rejectionReason and rejectionMessage are required to reject an application")
        if reason not in REJECTION_REASON_IDS:
            raise ValueError(f"Unknown rejectionReason: {reason}")
        self.rejection_reason = reason
        self.rejection_message = message
        return self


class ResubmitRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=2000)


class DocumentReviewRequest(CamelModel):
    status: DocumentStatus
    remarks: Optional[str] = Field(None, max_length=2000)


class BulkDeleteRequest(CamelModel):
    student_ids: List[str] = Field(..., min_length=1)


# ----- Responses -----

class StudentApplicationResponse(CamelModel):
    id: UUID
    application_id: str
    status: ApplicationStatus
    personal_details: PersonalDetails
    contact_details: ContactDetails
    course_details: CourseDetails
    guardian_details: GuardianDetails
    documents: List[DocumentResponse] = Field(default_factory=list)
    review_info: Optional[ReviewInfo] = None
    document_counts: DocumentCounts
    overall_document_review_status: DocumentReviewStatus
    submitted_by: Optional[UUID] = None
    submitter_role: str
    referred_by: Optional[str] = None
    resubmission_count: int = 0
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class SubmitterOption(CamelModel):
    id: UUID
    name: str
    role: str
    count: int


class FilterOptions(CamelModel):
    statuses: List[str] = Field(default_factory=lambda: [s.value for s in ApplicationStatus])
    courses: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    colleges: List[str] = Field(default_factory=list)
    genders: List[str] = Field(default_factory=list)
    districts: List[str] = Field(default_factory=list)
    cities: List[str] = Field(default_factory=list)
    states: List[str] = Field(default_factory=list)
    streams: List[str] = Field(default_factory=list)
    campuses: List[str] = Field(default_factory=list)
    submitters: List[SubmitterOption] = Field(default_factory=list)


class StudentListResponse(CamelModel):
    students: List[StudentApplicationResponse]
    pagination: Pagination
    filters: FilterOptions


class BulkDeleteResponse(CamelModel):
    deleted_count: int
    invalid_ids: List[str] = Field(default_factory=list)


class AuditLogEntry(CamelModel):
    id: UUID
    action: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    performed_by: Optional[UUID] = None
    performed_by_role: Optional[str] = None
    timestamp: datetime
    remarks: Optional[str] = None
