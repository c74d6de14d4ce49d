"""
Async HTTP client for the admission portal API.

Every call goes through `request`, which maps transport failures and error
responses onto the client error taxonomy. Error bodies are decoded from raw
bytes, since bundle endpoints answer with binary payloads on success.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import client_settings
from .errors import (
    ApiError,
    RateLimitError,
    RequestTimeoutError,
    ServerValidationError,
    TransportError,
)

logger = logging.getLogger(__name__)

BUNDLE_ENDPOINTS = {"pdf": "combined-pdf", "zip": "documents-zip"}


def decode_error_body(content: bytes) -> Any:
    """JSON payload of an error body, or None when it is not JSON."""
    if not content:
        return None
    try:
        return json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


def _format_validation_item(item: Any) -> str:
    if isinstance(item, dict):
        loc = [str(p) for p in item.get("loc", []) if p not in ("body", "query", "path")]
        msg = item.get("msg") or item.get("message") or str(item)
        return f"{'.'.join(loc)}: {msg}" if loc else msg
    return str(item)


def raise_for_response(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    payload = decode_error_body(response.content)
    detail = None
    if isinstance(payload, dict):
        detail = payload.get("detail", payload.get("message"))
        if detail is None and isinstance(payload.get("errors"), list):
            detail = payload["errors"]

    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        raise RateLimitError(
            detail if isinstance(detail, str) else "Too many requests",
            int(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    if isinstance(detail, list):
        errors = [_format_validation_item(i) for i in detail]
        raise ServerValidationError("; ".join(errors) or "Validation failed", response.status_code, errors)
    if isinstance(detail, str) and detail:
        raise ApiError(detail, response.status_code)
    raise ApiError(f"Request failed with status {response.status_code}", response.status_code)


class PortalApiClient:
    """Thin wrapper over httpx.AsyncClient. Use as an async context manager or call close()."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        bundle_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        token = token or client_settings.api_token
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.bundle_timeout = bundle_timeout or client_settings.bundle_timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=(base_url or client_settings.api_url).rstrip("/"),
            headers=headers,
            timeout=timeout or client_settings.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "PortalApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {url} timed out: {e}")
            raise RequestTimeoutError()
        except httpx.TransportError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise TransportError("Network error. Check your connection and try again.")
        raise_for_response(response)
        return response

    async def _json(self, method: str, url: str, **kwargs) -> Any:
        response = await self.request(method, url, **kwargs)
        return response.json()

    # ----- Sessions -----

    async def get_sessions(self) -> Dict[str, Any]:
        return await self._json("GET", "/api/v1/sessions")

    # ----- Students -----

    async def list_students(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._json("GET", "/api/v1/students", params=params)

    async def get_student(self, student_id: str) -> Dict[str, Any]:
        return await self._json("GET", f"/api/v1/students/{student_id}")

    async def update_status(self, student_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._json("PUT", f"/api/v1/students/{student_id}/status", json=body)

    async def resubmit(self, student_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._json("POST", f"/api/v1/students/{student_id}/resubmit", json={"reason": reason})

    async def bulk_delete(self, student_ids: List[str]) -> Dict[str, Any]:
        return await self._json("DELETE", "/api/v1/students/bulk", json={"studentIds": student_ids})

    async def get_rejection_reasons(self) -> Dict[str, Any]:
        return await self._json("GET", "/api/v1/students/rejection-reasons")

    # ----- Bundles -----

    async def generate_bundle(self, application_id: str, kind: str, document_ids: List[str]) -> httpx.Response:
        """Raw response: file bytes, or a JSON descriptor for hosted delivery."""
        endpoint = BUNDLE_ENDPOINTS[kind]
        return await self.request(
            "POST",
            f"/api/v1/applications/{application_id}/{endpoint}",
            json={"selectedDocuments": document_ids},
            timeout=self.bundle_timeout,
        )

    async def fetch_bytes(self, url: str) -> bytes:
        """Download an absolute or API-relative URL."""
        response = await self.request("GET", url, timeout=self.bundle_timeout)
        return response.content

    # ----- Contact -----

    async def submit_contact(self, data: Dict[str, str], files: List[tuple]) -> Dict[str, Any]:
        return await self._json("POST", "/api/v1/contact/submit", data=data, files=files or None)
