import hashlib
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from admission_portal.core.config import settings

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    async def save(self, file_content: bytes, filename: str, folder: str = "") -> tuple[str, str]:
        """
        Save file content and return (file_path, checksum).
        """
        pass

    @abstractmethod
    async def retrieve(self, file_path: str) -> bytes:
        """
        Retrieve file content by path.
        """
        pass

    @abstractmethod
    async def delete(self, file_path: str) -> None:
        """
        Delete file by path.
        """
        pass

    @abstractmethod
    async def exists(self, file_path: str) -> bool:
        """
        Check if file exists.
        """
        pass


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or settings.storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _generate_file_path(self, original_filename: str, folder: str) -> Path:
        """Generate unique file path using UUID."""
        ext = Path(original_filename).suffix.lower()
        directory = self.base_path / folder if folder else self.base_path
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"{uuid.uuid4()}{ext}"

    def _resolve_path(self, file_path: str) -> Path:
        """
        Resolve a stored relative path under base_path. Paths escaping the base are refused.
        """
        base = self.base_path.resolve()
        full = (base / file_path).resolve()
        if base != full and base not in full.parents:
            raise FileNotFoundError(f"File not found: {file_path}")
        return full

    def _calculate_checksum(self, content: bytes) -> str:
        """Calculate SHA256 checksum."""
        return hashlib.sha256(content).hexdigest()

    async def save(self, file_content: bytes, filename: str, folder: str = "") -> tuple[str, str]:
        """Save file content to local filesystem."""
        file_path = self._generate_file_path(filename, folder)
        checksum = self._calculate_checksum(file_content)

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(file_content)

        # Return path relative to base_path for storage
        relative_path = file_path.relative_to(self.base_path)
        return relative_path.as_posix(), checksum

    async def retrieve(self, file_path: str) -> bytes:
        """Retrieve file content from local filesystem."""
        full_path = self._resolve_path(file_path)
        if not full_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        async with aiofiles.open(full_path, "rb") as f:
            return await f.read()

    async def delete(self, file_path: str) -> None:
        """Delete file from local filesystem."""
        full_path = self._resolve_path(file_path)
        if full_path.is_file():
            os.remove(full_path)

    async def exists(self, file_path: str) -> bool:
        try:
            return self._resolve_path(file_path).is_file()
        except FileNotFoundError:
            return False


class StorageService:
    """Service layer for storage operations. Absolute http(s) paths are fetched remotely."""

    def __init__(self, backend: Optional[StorageBackend] = None):
        self._backend = backend

    @property
    def backend(self) -> StorageBackend:
        # Created lazily so settings overrides in tests take effect
        if self._backend is None:
            self._backend = LocalStorageBackend()
        return self._backend

    @staticmethod
    def is_remote(file_path: str) -> bool:
        return file_path.startswith(("http://", "https://"))

    async def save(self, file_content: bytes, filename: str, folder: str = "") -> tuple[str, str]:
        return await self.backend.save(file_content, filename, folder)

    async def retrieve(self, file_path: str) -> bytes:
        if self.is_remote(file_path):
            async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as client:
                response = await client.get(file_path)
            if response.status_code != 200:
                raise FileNotFoundError(f"Remote file unavailable ({response.status_code}): {file_path}")
            return response.content
        return await self.backend.retrieve(file_path)

    async def delete(self, file_path: str) -> None:
        if self.is_remote(file_path):
            logger.debug(f"Skipping delete of remote file {file_path}")
            return
        await self.backend.delete(file_path)

    def public_url(self, file_path: str) -> str:
        """Absolute URL a client can download the file from."""
        if self.is_remote(file_path):
            return file_path
        return f"{settings.public_base_url.rstrip('/')}/api/v1/files/{file_path}"


storage_service = StorageService()
