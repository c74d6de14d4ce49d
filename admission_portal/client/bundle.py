import logging
import webbrowser
from email.message import Message
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import aiofiles

from .errors import GenerationPreconditionError, PortalClientError
from .http import PortalApiClient
from .notifications import Notifier

logger = logging.getLogger(__name__)

BUNDLE_KINDS = {"pdf": "pdf", "zip": "zip"}


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    """Filename from a Content-Disposition header, if it names one."""
    if not header:
        return None
    msg = Message()
    msg["content-disposition"] = header
    name = msg.get_filename()
    return PurePosixPath(name).name if name else None


def fallback_filename(application_id: str, kind: str) -> str:
    return f"application_{application_id}_{kind}.{BUNDLE_KINDS[kind]}"


def check_bundle_preconditions(application: Dict[str, Any], document_ids: List[str]) -> None:
    """Every requested document must be on the record and APPROVED. Raises GenerationPreconditionError."""
    if not document_ids:
        raise GenerationPreconditionError("Please select at least one document")
    documents = {str(d.get("id")): d for d in application.get("documents") or []}
    missing = [i for i in document_ids if str(i) not in documents]
    if missing:
        raise GenerationPreconditionError(f"Documents not found on this application: {', '.join(missing)}")
    not_approved = [documents[str(i)] for i in document_ids if documents[str(i)].get("status") != "APPROVED"]
    if not_approved:
        names = ", ".join(d.get("documentType") or str(d.get("id")) for d in not_approved)
        raise GenerationPreconditionError(f"Only approved documents can be included. Not approved: {names}")


class DocumentBundleRequest:
    """
    Generate a combined PDF or a ZIP of approved documents and save it locally.

    The server answers with the file itself, or with JSON {url, fileName,
    storageType} when bundles are hosted. Hosted files are then downloaded;
    if that fails the URL is handed to `opener` (the browser by default).
    """

    def __init__(
        self,
        api: PortalApiClient,
        notifier: Notifier,
        *,
        download_dir: Path = Path("."),
        opener: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        self.api = api
        self.notifier = notifier
        self.download_dir = Path(download_dir)
        self.opener = opener

    async def _save(self, content: bytes, filename: str) -> Path:
        self.download_dir.mkdir(parents=True, exist_ok=True)
        path = self.download_dir / filename
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        return path

    async def generate(self, application: Dict[str, Any], kind: str, document_ids: List[str]) -> Optional[Path]:
        """Returns the saved file, or None when refused or failed (reported via the notifier)."""
        if kind not in BUNDLE_KINDS:
            raise ValueError(f"Unknown bundle kind: {kind}")
        application_id = application.get("applicationId") or str(application.get("id"))
        try:
            check_bundle_preconditions(application, document_ids)
        except GenerationPreconditionError as e:
            self.notifier.error(e.message)
            return None

        try:
            response = await self.api.generate_bundle(application_id, kind, [str(i) for i in document_ids])
        except PortalClientError as e:
            logger.warning(f"Bundle generation for {application_id} failed: {e.message}")
            self.notifier.error(f"Failed to generate {kind.upper()}: {e.message}")
            return None

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            descriptor = response.json()
            return await self._download_hosted(descriptor, application_id, kind)

        filename = filename_from_disposition(response.headers.get("content-disposition"))
        path = await self._save(response.content, filename or fallback_filename(application_id, kind))
        self.notifier.success(f"{kind.upper()} generated successfully")
        return path

    async def _download_hosted(self, descriptor: Dict[str, Any], application_id: str, kind: str) -> Optional[Path]:
        url = descriptor.get("url")
        if not url:
            self.notifier.error(f"Failed to generate {kind.upper()}: server returned no file location")
            return None
        filename = (
            descriptor.get("fileName")
            or PurePosixPath(urlparse(url).path).name
            or fallback_filename(application_id, kind)
        )
        try:
            content = await self.api.fetch_bytes(url)
        except PortalClientError as e:
            logger.warning(f"Hosted bundle download failed ({e.message}); opening {url}")
            self.notifier.error("File generated but download failed. Opening it directly instead.")
            self.opener(url)
            return None
        path = await self._save(content, PurePosixPath(filename).name)
        self.notifier.success(f"{kind.upper()} generated successfully")
        return path
