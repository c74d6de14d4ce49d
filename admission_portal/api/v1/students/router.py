from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.auth.dependencies import get_current_user
from admission_portal.auth.rbac import require_roles, require_super_admin
from admission_portal.auth.schemas import CurrentUser
from admission_portal.core.enums import ADMIN_ROLES
from admission_portal.core.exceptions import ServiceError
from admission_portal.core.rejection_reasons import REJECTION_REASONS
from admission_portal.db.session import get_db

from . import service
from .query import StudentListParams
from .schemas import (
    AuditLogEntry,
    BulkDeleteRequest,
    BulkDeleteResponse,
    DocumentReviewRequest,
    ResubmitRequest,
    StatusUpdateRequest,
    StudentApplicationCreate,
    StudentApplicationResponse,
    StudentApplicationUpdate,
    StudentListResponse,
)

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.get("", response_model=StudentListResponse, response_model_by_alias=True)
async def list_students(
    session: Optional[str] = Query(None, description="Academic session, e.g. 2024-25"),
    page: int = Query(1),
    limit: int = Query(20),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    course: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    college: Optional[str] = Query(None),
    gender: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    stream: Optional[str] = Query(None),
    campus: Optional[str] = Query(None),
    submitter_role: Optional[str] = Query(None, alias="submitterRole"),
    ids: Optional[str] = Query(None, description="Comma-separated record ids or application ids"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentListResponse:
    """Session-scoped, filtered, sorted, paginated list plus filter facets."""
    params = StudentListParams(
        session=session or "",
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        filters={
            "status": status_filter,
            "course": course,
            "category": category,
            "college": college,
            "gender": gender,
            "district": district,
            "city": city,
            "state": state,
            "stream": stream,
            "campus": campus,
        },
        submitter_role=submitter_role,
        ids=[i.strip() for i in ids.split(",") if i.strip()] if ids else [],
    )
    try:
        return await service.list_students(db, params, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/rejection-reasons")
async def get_rejection_reasons(
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Reason taxonomy used when rejecting an application."""
    return REJECTION_REASONS


@router.delete("/bulk", response_model=BulkDeleteResponse, response_model_by_alias=True)
async def bulk_delete_students(
    payload: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_super_admin),
) -> BulkDeleteResponse:
    return await service.bulk_delete(db, payload.student_ids, current_user)


@router.post(
    "",
    response_model=StudentApplicationResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    payload: StudentApplicationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentApplicationResponse:
    """Create a DRAFT application. Submitter is the caller."""
    try:
        return await service.create_application(db, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{student_id}", response_model=StudentApplicationResponse, response_model_by_alias=True)
async def get_student(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentApplicationResponse:
    try:
        app = await service.get_application_for_user(db, student_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return service.application_to_response(app)


@router.put("/{student_id}", response_model=StudentApplicationResponse, response_model_by_alias=True)
async def update_student(
    student_id: str,
    payload: StudentApplicationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentApplicationResponse:
    """Edit an application while it is DRAFT or REJECTED."""
    try:
        return await service.update_application(db, student_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{student_id}/submit", response_model=StudentApplicationResponse, response_model_by_alias=True)
async def submit_student(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentApplicationResponse:
    try:
        return await service.submit_application(db, student_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{student_id}/resubmit", response_model=StudentApplicationResponse, response_model_by_alias=True)
async def resubmit_student(
    student_id: str,
    payload: Optional[ResubmitRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentApplicationResponse:
    """Resubmit a REJECTED application. Review info is cleared and documents go back to PENDING."""
    try:
        return await service.resubmit_application(db, student_id, payload or ResubmitRequest(), current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{student_id}/status", response_model=StudentApplicationResponse, response_model_by_alias=True)
async def update_student_status(
    student_id: str,
    payload: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*ADMIN_ROLES)),
) -> StudentApplicationResponse:
    """Move an application along the workflow. Re-sending the current status is a no-op."""
    try:
        return await service.update_status(db, student_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{student_id}/history", response_model=List[AuditLogEntry], response_model_by_alias=True)
async def get_student_history(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AuditLogEntry]:
    try:
        return await service.get_history(db, student_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/documents",
    response_model=StudentApplicationResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def upload_student_document(
    student_id: str,
    document_type: str = Form(..., alias="documentType"),
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentApplicationResponse:
    try:
        return await service.upload_document(db, student_id, document_type, file, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{student_id}/documents/{document_id}/status",
    response_model=StudentApplicationResponse,
    response_model_by_alias=True,
)
async def review_student_document(
    student_id: str,
    document_id: UUID,
    payload: DocumentReviewRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*ADMIN_ROLES)),
) -> StudentApplicationResponse:
    try:
        return await service.review_document(db, student_id, document_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
