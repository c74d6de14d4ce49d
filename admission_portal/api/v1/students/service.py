"""
Student applications: creation, edits, status workflow, document review and bulk delete.
Status changes go through core.workflow and are written to the audit trail.
"""

import logging
import secrets
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from fastapi import UploadFile, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.auth.schemas import CurrentUser
from admission_portal.core.config import settings
from admission_portal.core.enums import (
    ApplicationStatus,
    DocumentReviewStatus,
    DocumentStatus,
    StorageType,
)
from admission_portal.core.exceptions import ServiceError
from admission_portal.core.models import ApplicationDocument, StudentApplication
from admission_portal.core.workflow import EDITABLE_STATUSES, action_for, check_transition
from admission_portal.services.storage import storage_service

from . import audit_service
from .query import StudentListParams, load_filter_facets, run_student_list_query, total_pages_for
from .schemas import (
    Address,
    AuditLogEntry,
    BulkDeleteResponse,
    ContactDetails,
    CourseDetails,
    DocumentCounts,
    DocumentResponse,
    DocumentReviewRequest,
    FilterOptions,
    GuardianDetails,
    Pagination,
    PersonalDetails,
    ResubmitRequest,
    ReviewInfo,
    StatusUpdateRequest,
    StudentApplicationCreate,
    StudentApplicationResponse,
    StudentApplicationUpdate,
    StudentListResponse,
)

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png"}


# ----- Conversion -----

def document_counts(documents: List[ApplicationDocument]) -> DocumentCounts:
    counts = DocumentCounts(total=len(documents))
    for doc in documents:
        if doc.status == DocumentStatus.APPROVED.value:
            counts.approved += 1
        elif doc.status == DocumentStatus.REJECTED.value:
            counts.rejected += 1
        else:
            counts.pending += 1
    return counts


def overall_review_status(counts: DocumentCounts) -> DocumentReviewStatus:
    if counts.total == 0 or counts.pending == counts.total:
        return DocumentReviewStatus.NOT_VERIFIED
    if counts.approved == counts.total:
        return DocumentReviewStatus.ALL_APPROVED
    if counts.rejected == counts.total:
        return DocumentReviewStatus.ALL_REJECTED
    return DocumentReviewStatus.PARTIALLY_APPROVED


def _document_to_response(doc: ApplicationDocument) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        document_type=doc.document_type,
        file_name=doc.file_name,
        file_path=doc.file_path,
        url=storage_service.public_url(doc.file_path),
        storage_type=doc.storage_type,
        mime_type=doc.mime_type,
        file_size=doc.file_size,
        status=doc.status,
        remarks=doc.remarks,
        uploaded_at=doc.uploaded_at,
        reviewed_at=doc.reviewed_at,
    )


def _review_info(app: StudentApplication) -> Optional[ReviewInfo]:
    if not app.reviewed_by and not app.reviewed_at and not app.rejection_reason:
        return None
    return ReviewInfo(
        reviewed_by=app.reviewed_by,
        reviewed_at=app.reviewed_at,
        remarks=app.review_remarks,
        rejection_reason=app.rejection_reason,
        rejection_message=app.rejection_message,
        rejection_details=app.rejection_details or [],
    )


def application_to_response(app: StudentApplication) -> StudentApplicationResponse:
    counts = document_counts(app.documents)
    return StudentApplicationResponse(
        id=app.id,
        application_id=app.application_id,
        status=app.status,
        personal_details=PersonalDetails(
            full_name=app.full_name,
            fathers_name=app.fathers_name,
            mothers_name=app.mothers_name,
            date_of_birth=app.date_of_birth,
            gender=app.gender,
            aadhar_number=app.aadhar_number,
            category=app.category,
            registration_date=app.registration_date,
        ),
        contact_details=ContactDetails(
            email=app.email,
            primary_phone=app.primary_phone,
            secondary_phone=app.secondary_phone,
            permanent_address=Address(
                street=app.street,
                city=app.city,
                district=app.district,
                state=app.state,
                pincode=app.pincode,
                country=app.country,
            ),
        ),
        course_details=CourseDetails(
            institution_name=app.institution_name,
            selected_course=app.course,
            stream=app.stream,
            campus=app.campus,
            custom_course=app.custom_course,
        ),
        guardian_details=GuardianDetails(
            name=app.guardian_name,
            relationship=app.guardian_relationship,
            phone=app.guardian_phone,
            email=app.guardian_email,
        ),
        documents=[_document_to_response(d) for d in app.documents],
        review_info=_review_info(app),
        document_counts=counts,
        overall_document_review_status=overall_review_status(counts),
        submitted_by=app.submitted_by,
        submitter_role=app.submitter_role,
        referred_by=app.referred_by,
        resubmission_count=app.resubmission_count or 0,
        submitted_at=app.submitted_at,
        created_at=app.created_at,
        updated_at=app.updated_at,
    )


def _apply_sections(
    app: StudentApplication,
    personal: Optional[PersonalDetails],
    contact: Optional[ContactDetails],
    course: Optional[CourseDetails],
    guardian: Optional[GuardianDetails],
) -> None:
    if personal is not None:
        app.full_name = personal.full_name.strip()
        app.fathers_name = personal.fathers_name
        app.mothers_name = personal.mothers_name
        app.date_of_birth = personal.date_of_birth
        app.gender = personal.gender
        app.aadhar_number = personal.aadhar_number
        app.category = personal.category
        if personal.registration_date:
            app.registration_date = personal.registration_date
    if contact is not None:
        address = contact.permanent_address
        app.email = str(contact.email) if contact.email else None
        app.primary_phone = contact.primary_phone
        app.secondary_phone = contact.secondary_phone
        app.street = address.street
        app.city = address.city
        app.district = address.district
        app.state = address.state
        app.pincode = address.pincode
        app.country = address.country
    if course is not None:
        app.institution_name = course.institution_name
        app.course = course.selected_course
        app.stream = course.stream
        app.campus = course.campus
        app.custom_course = course.custom_course
    if guardian is not None:
        app.guardian_name = guardian.name
        app.guardian_relationship = guardian.relationship
        app.guardian_phone = guardian.phone
        app.guardian_email = str(guardian.email) if guardian.email else None


# ----- Lookup -----

async def _generate_application_id(db: AsyncSession) -> str:
    year = datetime.utcnow().year
    for _ in range(10):
        candidate = f"APP{year}{secrets.randbelow(10**6):06d}"
        exists = await db.execute(
            select(StudentApplication.id).where(StudentApplication.application_id == candidate)
        )
        if exists.scalar_one_or_none() is None:
            return candidate
    raise ServiceError("Could not allocate an application id", status.HTTP_500_INTERNAL_SERVER_ERROR)


async def get_application(db: AsyncSession, key: str) -> Optional[StudentApplication]:
    """Look up by internal UUID or by human-readable application id."""
    try:
        clause = StudentApplication.id == UUID(str(key))
    except ValueError:
        clause = StudentApplication.application_id == key
    result = await db.execute(
        select(StudentApplication).where(clause).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_application_for_user(
    db: AsyncSession,
    key: str,
    current_user: CurrentUser,
) -> StudentApplication:
    app = await get_application(db, key)
    # Non-admins never learn about records they did not submit
    if not app or (not current_user.is_admin and app.submitted_by != current_user.id):
        raise ServiceError("Application not found", status.HTTP_404_NOT_FOUND)
    return app


# ----- Create / edit -----

async def create_application(
    db: AsyncSession,
    payload: StudentApplicationCreate,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    """Create a DRAFT application owned by the caller."""
    app = StudentApplication(
        application_id=await _generate_application_id(db),
        status=ApplicationStatus.DRAFT.value,
        submitted_by=current_user.id,
        submitter_role=current_user.role,
        referred_by=payload.referred_by,
        registration_date=payload.personal_details.registration_date or datetime.utcnow().date(),
        resubmission_count=0,
    )
    _apply_sections(
        app,
        payload.personal_details,
        payload.contact_details,
        payload.course_details,
        payload.guardian_details,
    )
    db.add(app)
    await db.flush()
    await audit_service.log_audit(
        db,
        "student_application",
        app.id,
        "SAVE_DRAFT",
        to_status=ApplicationStatus.DRAFT.value,
        performed_by=current_user.id,
        performed_by_role=current_user.role,
    )
    await db.commit()
    logger.info(
        "Application created",
        extra={"application_id": app.application_id, "submitter_role": current_user.role},
    )
    app = await get_application(db, str(app.id))
    return application_to_response(app)


async def update_application(
    db: AsyncSession,
    key: str,
    payload: StudentApplicationUpdate,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    """Edit sections while the record is DRAFT or REJECTED."""
    app = await get_application_for_user(db, key, current_user)
    if ApplicationStatus(app.status) not in EDITABLE_STATUSES:
        raise ServiceError(
            f"Application can only be edited in DRAFT or REJECTED status (current: {app.status})",
            status.HTTP_400_BAD_REQUEST,
        )
    _apply_sections(
        app,
        payload.personal_details,
        payload.contact_details,
        payload.course_details,
        payload.guardian_details,
    )
    if payload.referred_by is not None:
        app.referred_by = payload.referred_by
    await db.commit()
    app = await get_application(db, str(app.id))
    return application_to_response(app)


# ----- Status workflow -----

def _clear_review(app: StudentApplication) -> None:
    app.reviewed_by = None
    app.reviewed_at = None
    app.review_remarks = None
    app.rejection_reason = None
    app.rejection_message = None
    app.rejection_details = None


def _apply_transition(
    app: StudentApplication,
    target: ApplicationStatus,
    current_user: CurrentUser,
    *,
    notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    rejection_message: Optional[str] = None,
    rejection_details: Optional[list] = None,
) -> bool:
    """Mutate app for current -> target. Returns False when already in target (idempotent no-op)."""
    current = ApplicationStatus(app.status)
    if current == target:
        return False
    check_transition(current, target)
    now = datetime.utcnow()

    if target == ApplicationStatus.SUBMITTED:
        app.submitted_at = now
        if current == ApplicationStatus.REJECTED:
            _clear_review(app)
            app.resubmission_count = (app.resubmission_count or 0) + 1
            for doc in app.documents:
                doc.status = DocumentStatus.PENDING.value
                doc.remarks = None
                doc.reviewed_by = None
                doc.reviewed_at = None
    elif target == ApplicationStatus.APPROVED:
        _clear_review(app)
        app.reviewed_by = current_user.id
        app.reviewed_at = now
        app.review_remarks = notes
    elif target == ApplicationStatus.REJECTED:
        if not rejection_reason or not rejection_message:
            raise ServiceError(
                "rejectionReason and rejectionMessage are required to reject an application",
                status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        app.reviewed_by = current_user.id
        app.reviewed_at = now
        app.review_remarks = notes
        app.rejection_reason = rejection_reason
        app.rejection_message = rejection_message
        app.rejection_details = rejection_details or []
    elif notes:
        app.review_remarks = notes

    app.status = target.value
    return True


async def _transition_and_commit(
    db: AsyncSession,
    app: StudentApplication,
    target: ApplicationStatus,
    current_user: CurrentUser,
    *,
    remarks: Optional[str] = None,
    **review,
) -> StudentApplicationResponse:
    from_status = app.status
    changed = _apply_transition(app, target, current_user, notes=remarks, **review)
    if changed:
        await audit_service.log_audit(
            db,
            "student_application",
            app.id,
            action_for(ApplicationStatus(from_status), target),
            from_status=from_status,
            to_status=target.value,
            performed_by=current_user.id,
            performed_by_role=current_user.role,
            remarks=review.get("rejection_message") or remarks,
        )
        await db.commit()
        logger.info(
            "Application status changed",
            extra={
                "application_id": app.application_id,
                "from_status": from_status,
                "to_status": target.value,
                "performed_by_role": current_user.role,
            },
        )
    app = await get_application(db, str(app.id))
    return application_to_response(app)


async def submit_application(
    db: AsyncSession,
    key: str,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    """DRAFT -> SUBMITTED."""
    app = await get_application_for_user(db, key, current_user)
    if app.status != ApplicationStatus.DRAFT.value:
        raise ServiceError(
            f"Only DRAFT applications can be submitted (current: {app.status})",
            status.HTTP_400_BAD_REQUEST,
        )
    return await _transition_and_commit(db, app, ApplicationStatus.SUBMITTED, current_user)


async def resubmit_application(
    db: AsyncSession,
    key: str,
    payload: ResubmitRequest,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    """REJECTED -> SUBMITTED. Clears review info and re-queues every document for review."""
    app = await get_application_for_user(db, key, current_user)
    if app.status != ApplicationStatus.REJECTED.value:
        raise ServiceError(
            f"Only REJECTED applications can be resubmitted (current: {app.status})",
            status.HTTP_400_BAD_REQUEST,
        )
    return await _transition_and_commit(
        db, app, ApplicationStatus.SUBMITTED, current_user, remarks=payload.reason
    )


async def update_status(
    db: AsyncSession,
    key: str,
    payload: StatusUpdateRequest,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    """Reviewer status change. Same status again is a no-op; last write wins otherwise."""
    app = await get_application_for_user(db, key, current_user)
    return await _transition_and_commit(
        db,
        app,
        payload.status,
        current_user,
        remarks=payload.notes,
        rejection_reason=payload.rejection_reason,
        rejection_message=payload.rejection_message,
        rejection_details=[d.model_dump(by_alias=True, mode="json") for d in payload.rejection_details],
    )


async def get_history(
    db: AsyncSession,
    key: str,
    current_user: CurrentUser,
) -> List[AuditLogEntry]:
    app = await get_application_for_user(db, key, current_user)
    entries = await audit_service.list_audit_entries(db, app.id)
    return [AuditLogEntry.model_validate(e) for e in entries]


# ----- Listing -----

async def list_students(
    db: AsyncSession,
    params: StudentListParams,
    current_user: CurrentUser,
) -> StudentListResponse:
    rows, total = await run_student_list_query(db, params, current_user)
    facets = await load_filter_facets(db, params, current_user)
    return StudentListResponse(
        students=[application_to_response(r) for r in rows],
        pagination=Pagination(
            current_page=params.page,
            total_pages=total_pages_for(total, params.limit),
            total_items=total,
            items_per_page=params.limit,
        ),
        filters=FilterOptions(**facets),
    )


# ----- Bulk delete -----

async def bulk_delete(
    db: AsyncSession,
    student_ids: List[str],
    current_user: CurrentUser,
) -> BulkDeleteResponse:
    """Hard-delete applications (and their stored documents). Unknown or malformed ids are reported back."""
    valid: List[UUID] = []
    invalid: List[str] = []
    for raw in dict.fromkeys(student_ids):
        try:
            valid.append(UUID(str(raw)))
        except ValueError:
            invalid.append(raw)

    found = []
    if valid:
        result = await db.execute(select(StudentApplication).where(StudentApplication.id.in_(valid)))
        found = list(result.scalars().all())
    found_ids = {a.id for a in found}
    invalid.extend(str(v) for v in valid if v not in found_ids)

    file_paths = [d.file_path for a in found for d in a.documents if d.storage_type == StorageType.LOCAL.value]
    if found_ids:
        await db.execute(delete(ApplicationDocument).where(ApplicationDocument.application_pk.in_(found_ids)))
        await db.execute(delete(StudentApplication).where(StudentApplication.id.in_(found_ids)))
        for app in found:
            await audit_service.log_audit(
                db,
                "student_application",
                app.id,
                "DELETE",
                from_status=app.status,
                performed_by=current_user.id,
                performed_by_role=current_user.role,
                remarks=app.application_id,
            )
        await db.commit()

    for path in file_paths:
        try:
            await storage_service.delete(path)
        except OSError as e:
            logger.warning(f"Could not delete stored file {path}: {e}")

    logger.info(
        "Bulk delete completed",
        extra={"deleted_count": len(found_ids), "invalid_count": len(invalid)},
    )
    return BulkDeleteResponse(deleted_count=len(found_ids), invalid_ids=invalid)


# ----- Documents -----

async def upload_document(
    db: AsyncSession,
    key: str,
    document_type: str,
    file: UploadFile,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    app = await get_application_for_user(db, key, current_user)
    if not current_user.is_admin and ApplicationStatus(app.status) not in EDITABLE_STATUSES:
        raise ServiceError(
            "Documents can only be uploaded while the application is DRAFT or REJECTED",
            status.HTTP_400_BAD_REQUEST,
        )
    if app.status == ApplicationStatus.CANCELLED.value:
        raise ServiceError("Application is cancelled", status.HTTP_400_BAD_REQUEST)

    document_type = (document_type or "").strip()
    if not document_type:
        raise ServiceError("documentType is required", status.HTTP_400_BAD_REQUEST)
    filename = file.filename or "document"
    if Path(filename).suffix.lower() not in DOCUMENT_EXTENSIONS:
        raise ServiceError(
            f"Invalid file type. Allowed: {', '.join(sorted(e.lstrip('.') for e in DOCUMENT_EXTENSIONS))}",
            status.HTTP_400_BAD_REQUEST,
        )
    content = await file.read()
    if not content:
        raise ServiceError("Uploaded file is empty", status.HTTP_400_BAD_REQUEST)
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise ServiceError(
            f"File size must be <= {settings.max_upload_mb} MB",
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    file_path, _checksum = await storage_service.save(content, filename, folder=f"applications/{app.id}")
    doc = ApplicationDocument(
        application_pk=app.id,
        document_type=document_type,
        file_name=filename,
        file_path=file_path,
        storage_type=StorageType.LOCAL.value,
        mime_type=file.content_type,
        file_size=len(content),
        status=DocumentStatus.PENDING.value,
        uploaded_at=datetime.utcnow(),
    )
    db.add(doc)
    await db.commit()
    app = await get_application(db, str(app.id))
    return application_to_response(app)


async def review_document(
    db: AsyncSession,
    key: str,
    document_id: UUID,
    payload: DocumentReviewRequest,
    current_user: CurrentUser,
) -> StudentApplicationResponse:
    app = await get_application_for_user(db, key, current_user)
    doc = next((d for d in app.documents if d.id == document_id), None)
    if not doc:
        raise ServiceError("Document not found", status.HTTP_404_NOT_FOUND)
    from_status = doc.status
    doc.status = payload.status.value
    doc.remarks = payload.remarks
    doc.reviewed_by = current_user.id
    doc.reviewed_at = datetime.utcnow()
    await audit_service.log_audit(
        db,
        "application_document",
        app.id,
        f"DOCUMENT_{payload.status.value}",
        from_status=from_status,
        to_status=payload.status.value,
        performed_by=current_user.id,
        performed_by_role=current_user.role,
        remarks=f"{doc.document_type}: {payload.remarks}" if payload.remarks else doc.document_type,
    )
    await db.commit()
    app = await get_application(db, str(app.id))
    return application_to_response(app)
