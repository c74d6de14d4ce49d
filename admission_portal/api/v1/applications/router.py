from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.auth.rbac import require_roles
from admission_portal.auth.schemas import CurrentUser
from admission_portal.core.enums import ADMIN_ROLES, BundleKind
from admission_portal.core.exceptions import ServiceError
from admission_portal.db.session import get_db

from . import service
from .schemas import BundleRequest, HostedBundleResponse

router = APIRouter(prefix="/api/v1/applications", tags=["applications"])


async def _bundle_response(
    db: AsyncSession,
    application_id: str,
    kind: BundleKind,
    payload: BundleRequest,
    current_user: CurrentUser,
):
    try:
        result = await service.generate_bundle(db, application_id, kind, payload.selected_documents, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if isinstance(result, HostedBundleResponse):
        return result.model_dump(by_alias=True)
    content, filename, media_type = result
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{application_id}/combined-pdf")
async def generate_combined_pdf(
    application_id: str,
    payload: BundleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*ADMIN_ROLES)),
):
    """Merge the selected approved documents into a single PDF."""
    return await _bundle_response(db, application_id, BundleKind.PDF, payload, current_user)


@router.post("/{application_id}/documents-zip")
async def generate_documents_zip(
    application_id: str,
    payload: BundleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(*ADMIN_ROLES)),
):
    """Package the selected approved documents, unchanged, into a ZIP archive."""
    return await _bundle_response(db, application_id, BundleKind.ZIP, payload, current_user)
