import mimetypes
from pathlib import PurePosixPath

from fastapi import APIRouter, Depends, HTTPException, Response, status

from admission_portal.auth.dependencies import get_current_user
from admission_portal.auth.schemas import CurrentUser
from admission_portal.services.storage import storage_service

router = APIRouter(prefix="/api/v1/files", tags=["files"])


@router.get("/{file_path:path}")
async def download_file(
    file_path: str,
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    """Serve a stored document or hosted bundle by its storage path."""
    if storage_service.is_remote(file_path):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        content = await storage_service.retrieve(file_path)
    except FileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    filename = PurePosixPath(file_path).name
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
