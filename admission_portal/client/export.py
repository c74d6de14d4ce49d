"""
CSV export of student records.

Rows are always ordered by full name (case-insensitive), whatever the list
view's sort. Each distinct document type gets its own column after the fixed
ones. Empty cells read "N/A" so spreadsheet columns never shift, and digit
identifiers carry a leading tab so spreadsheets keep them as text.
"""

import asyncio
import logging
import re
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import aiofiles

from .config import client_settings
from .errors import PortalClientError, RequestTimeoutError
from .http import PortalApiClient
from .notifications import Notifier
from .session import SessionContext
from .students import StudentListQuery

logger = logging.getLogger(__name__)

EXPORT_PAGE_SIZE = 1000
PLACEHOLDER = "N/A"
TEXT_MARKER = "\t"
SPECIAL_CHARS = (",", '"', "\r", "\n")
URL_RE = re.compile(r"^https?://\S+$")

TEXT, IDENTIFIER = "text", "identifier"

# (header, dotted path into the record, kind)
FIXED_COLUMNS: List[Tuple[str, str, str]] = [
    ("Application ID", "applicationId", TEXT),
    ("Full Name", "personalDetails.fullName", TEXT),
    ("Father's Name", "personalDetails.fathersName", TEXT),
    ("Mother's Name", "personalDetails.mothersName", TEXT),
    ("Date of Birth", "personalDetails.dateOfBirth", TEXT),
    ("Gender", "personalDetails.gender", TEXT),
    ("Aadhar Number", "personalDetails.aadharNumber", IDENTIFIER),
    ("Category", "personalDetails.category", TEXT),
    ("Email", "contactDetails.email", TEXT),
    ("Primary Phone", "contactDetails.primaryPhone", IDENTIFIER),
    ("Secondary Phone", "contactDetails.secondaryPhone", IDENTIFIER),
    ("Street", "contactDetails.permanentAddress.street", TEXT),
    ("City", "contactDetails.permanentAddress.city", TEXT),
    ("District", "contactDetails.permanentAddress.district", TEXT),
    ("State", "contactDetails.permanentAddress.state", TEXT),
    ("Pincode", "contactDetails.permanentAddress.pincode", IDENTIFIER),
    ("Country", "contactDetails.permanentAddress.country", TEXT),
    ("Institution", "courseDetails.institutionName", TEXT),
    ("Course", "courseDetails.selectedCourse", TEXT),
    ("Stream", "courseDetails.stream", TEXT),
    ("Campus", "courseDetails.campus", TEXT),
    ("Guardian Name", "guardianDetails.name", TEXT),
    ("Guardian Relationship", "guardianDetails.relationship", TEXT),
    ("Guardian Phone", "guardianDetails.phone", IDENTIFIER),
    ("Status", "status", TEXT),
    ("Submitter Role", "submitterRole", TEXT),
    ("Referred By", "referredBy", TEXT),
    ("Rejection Reason", "reviewInfo.rejectionReason", TEXT),
    ("Rejection Message", "reviewInfo.rejectionMessage", TEXT),
    ("Submitted At", "submittedAt", TEXT),
    ("Created At", "createdAt", TEXT),
]


def _lookup(record: Dict[str, Any], path: str) -> Any:
    value: Any = record
    for key in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def escape_csv_field(value: Any) -> str:
    if _is_empty(value):
        return PLACEHOLDER
    text = str(value)
    if any(ch in text for ch in SPECIAL_CHARS):
        return '"' + text.replace('"', '""') + '"'
    return text


def format_identifier(value: Any) -> str:
    """Digits-only ids (phone, national id, pincode) get a leading tab so they stay text."""
    if _is_empty(value):
        return PLACEHOLDER
    return escape_csv_field(f"{TEXT_MARKER}{value}")


def format_url(value: Any) -> str:
    """Clean http(s) links are left bare so spreadsheets link them; anything else is escaped."""
    if _is_empty(value):
        return PLACEHOLDER
    text = str(value)
    if URL_RE.match(text) and "," not in text and '"' not in text:
        return text
    return escape_csv_field(text)


def document_types(students: Iterable[Dict[str, Any]]) -> List[str]:
    types = {
        doc.get("documentType")
        for s in students
        for doc in s.get("documents") or []
        if doc.get("documentType")
    }
    return sorted(types)


def _document_cell(student: Dict[str, Any], document_type: str) -> str:
    links = [
        doc.get("url") or doc.get("filePath")
        for doc in student.get("documents") or []
        if doc.get("documentType") == document_type and (doc.get("url") or doc.get("filePath"))
    ]
    if len(links) == 1:
        return format_url(links[0])
    return escape_csv_field("\n".join(links))


def sort_for_export(students: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(students, key=lambda s: (_lookup(s, "personalDetails.fullName") or "").casefold())


def build_csv(students: List[Dict[str, Any]]) -> str:
    doc_types = document_types(students)
    header = [escape_csv_field(h) for h, _, _ in FIXED_COLUMNS] + [escape_csv_field(t) for t in doc_types]
    lines = [",".join(header)]
    for student in sort_for_export(students):
        cells = []
        for _, path, kind in FIXED_COLUMNS:
            value = _lookup(student, path)
            cells.append(format_identifier(value) if kind == IDENTIFIER else escape_csv_field(value))
        cells.extend(_document_cell(student, t) for t in doc_types)
        lines.append(",".join(cells))
    return "\r\n".join(lines) + "\r\n"


def export_filename(session: str, day: Optional[date] = None) -> str:
    return f"students_export_{session}_{(day or date.today()).isoformat()}.csv"


class BulkExportEngine:
    def __init__(
        self,
        api: PortalApiClient,
        session_context: SessionContext,
        notifier: Notifier,
        *,
        output_dir: Path = Path("."),
        timeout: Optional[float] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.api = api
        self.session_context = session_context
        self.notifier = notifier
        self.output_dir = Path(output_dir)
        self.timeout = timeout or client_settings.export_timeout_seconds
        self.today = today or date.today

    async def _fetch_pages(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = await self.api.list_students({**params, "page": page, "limit": EXPORT_PAGE_SIZE})
            batch = data.get("students", [])
            rows.extend(batch)
            total_pages = (data.get("pagination") or {}).get("totalPages", 0)
            if len(batch) < EXPORT_PAGE_SIZE or page >= total_pages:
                return rows
            page += 1

    async def collect(
        self,
        query: StudentListQuery,
        selected_ids: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Selected records when ids are given, else every record matching the query's filters."""
        if selected_ids:
            params = {
                "session": self.session_context.session,
                "ids": ",".join(selected_ids),
                "sortBy": "createdAt",
                "sortOrder": "desc",
            }
        else:
            params = query.build_params()
        try:
            return await asyncio.wait_for(self._fetch_pages(params), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError("Export timed out while loading students. Narrow the filters and try again.")

    async def export(
        self,
        query: StudentListQuery,
        selected_ids: Optional[List[str]] = None,
    ) -> Optional[Path]:
        """Write the CSV and return its path. Any fetch failure writes nothing."""
        session = self.session_context.session
        if not session:
            self.notifier.error("Select an academic session before exporting")
            return None
        try:
            students = await self.collect(query, selected_ids)
        except PortalClientError as e:
            logger.warning(f"Export aborted: {e.message}")
            self.notifier.error(f"Export failed: {e.message}")
            return None
        if not students:
            self.notifier.error("No students to export")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / export_filename(session, self.today())
        # utf-8-sig writes the BOM spreadsheet tools use to detect UTF-8
        async with aiofiles.open(path, "w", encoding="utf-8-sig", newline="") as f:
            await f.write(build_csv(students))
        logger.info(f"Exported {len(students)} students to {path}")
        self.notifier.success(f"Exported {len(students)} student(s)")
        return path
