"""
Document bundles: combine an application's approved documents into one PDF or one ZIP.
"""

import asyncio
import io
import logging
import zipfile
from pathlib import Path
from typing import List, Tuple, Union
from uuid import UUID

from fastapi import status
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.api.v1.students.service import get_application_for_user
from admission_portal.auth.schemas import CurrentUser
from admission_portal.core.config import settings
from admission_portal.core.enums import BundleKind, DocumentStatus, StorageType
from admission_portal.core.exceptions import ServiceError
from admission_portal.core.models import ApplicationDocument, StudentApplication
from admission_portal.services.storage import storage_service

from .schemas import HostedBundleResponse

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
MEDIA_TYPES = {BundleKind.PDF: "application/pdf", BundleKind.ZIP: "application/zip"}


def bundle_filename(application_id: str, kind: BundleKind) -> str:
    suffix = "combined.pdf" if kind == BundleKind.PDF else "documents.zip"
    return f"application_{application_id}_{suffix}"


def select_documents(app: StudentApplication, document_ids: List[UUID]) -> List[ApplicationDocument]:
    """Every requested document must belong to the application and be APPROVED."""
    by_id = {d.id: d for d in app.documents}
    missing = [str(i) for i in document_ids if i not in by_id]
    if missing:
        raise ServiceError(
            f"Documents not found on application {app.application_id}: {', '.join(missing)}",
            status.HTTP_400_BAD_REQUEST,
        )
    not_approved = [by_id[i] for i in document_ids if by_id[i].status != DocumentStatus.APPROVED.value]
    if not_approved:
        names = ", ".join(f"{d.document_type} ({d.status})" for d in not_approved)
        raise ServiceError(
            f"Only approved documents can be bundled. Not approved: {names}",
            status.HTTP_400_BAD_REQUEST,
        )
    # Keep request order, drop duplicates
    return [by_id[i] for i in dict.fromkeys(document_ids)]


def _kind_of(doc: ApplicationDocument) -> str:
    mime = (doc.mime_type or "").lower()
    ext = Path(doc.file_name or doc.file_path).suffix.lower()
    if mime == "application/pdf" or ext == ".pdf":
        return "pdf"
    if mime.startswith("image/") or ext in IMAGE_EXTENSIONS:
        return "image"
    return "other"


def _image_to_pdf(content: bytes) -> bytes:
    image = Image.open(io.BytesIO(content))
    if image.mode != "RGB":
        image = image.convert("RGB")
    output = io.BytesIO()
    image.save(output, format="PDF", resolution=150.0)
    return output.getvalue()


def build_combined_pdf(files: List[Tuple[ApplicationDocument, bytes]]) -> bytes:
    """Merge PDFs page by page; images become one page each; other formats are skipped."""
    writer = PdfWriter()
    for doc, content in files:
        kind = _kind_of(doc)
        try:
            if kind == "pdf":
                reader = PdfReader(io.BytesIO(content))
            elif kind == "image":
                reader = PdfReader(io.BytesIO(_image_to_pdf(content)))
            else:
                logger.info(f"Skipping {doc.file_name}: {doc.mime_type or 'unknown type'} cannot be combined into a PDF")
                continue
        except (PdfReadError, UnidentifiedImageError, OSError) as e:
            logger.warning(f"Skipping unreadable document {doc.file_name}: {e}")
            continue
        for page in reader.pages:
            writer.add_page(page)

    if len(writer.pages) == 0:
        raise ServiceError(
            "None of the selected documents could be combined into a PDF",
            status.HTTP_400_BAD_REQUEST,
        )
    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()


def build_documents_zip(files: List[Tuple[ApplicationDocument, bytes]]) -> bytes:
    """Original files, named {documentType}_{fileName}; repeated names get a counter."""
    buffer = io.BytesIO()
    used = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zip_file:
        for doc, content in files:
            base = f"{doc.document_type}_{doc.file_name}".replace("/", "_").replace("\\", "_")
            name, n = base, 1
            while name in used:
                stem, ext = Path(base).stem, Path(base).suffix
                name = f"{stem}_{n}{ext}"
                n += 1
            used.add(name)
            zip_file.writestr(name, content)
    return buffer.getvalue()


async def _load_files(docs: List[ApplicationDocument]) -> List[Tuple[ApplicationDocument, bytes]]:
    files = []
    for doc in docs:
        try:
            files.append((doc, await storage_service.retrieve(doc.file_path)))
        except FileNotFoundError:
            raise ServiceError(
                f"Stored file for {doc.document_type} ({doc.file_name}) is missing",
                status.HTTP_404_NOT_FOUND,
            )
    return files


async def generate_bundle(
    db: AsyncSession,
    key: str,
    kind: BundleKind,
    document_ids: List[UUID],
    current_user: CurrentUser,
) -> Union[Tuple[bytes, str, str], HostedBundleResponse]:
    """
    Build a bundle for the selected documents.

    Returns (content, filename, media_type) for inline delivery, or a
    HostedBundleResponse when BUNDLE_DELIVERY is "hosted".
    """
    app = await get_application_for_user(db, key, current_user)
    docs = select_documents(app, document_ids)
    files = await _load_files(docs)

    builder = build_combined_pdf if kind == BundleKind.PDF else build_documents_zip
    content = await asyncio.to_thread(builder, files)
    filename = bundle_filename(app.application_id, kind)
    logger.info(
        "Bundle generated",
        extra={
            "application_id": app.application_id,
            "kind": kind.value,
            "documents": len(docs),
            "size": len(content),
        },
    )

    if settings.bundle_delivery == "hosted":
        path, _checksum = await storage_service.save(content, filename, folder=f"bundles/{app.id}")
        return HostedBundleResponse(
            url=storage_service.public_url(path),
            file_name=filename,
            storage_type=StorageType.LOCAL.value,
        )
    return content, filename, MEDIA_TYPES[kind]
