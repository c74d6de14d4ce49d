"""
Student list state for the admin dashboard: filters, sort, explicit search and paging.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import PortalClientError
from .http import PortalApiClient
from .notifications import Notifier
from .session import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_SORT = "newest"

# UI sort option -> (sortBy, sortOrder)
SORT_OPTIONS: Dict[str, Tuple[str, str]] = {
    "newest": ("createdAt", "desc"),
    "oldest": ("createdAt", "asc"),
    "name_asc": ("personalDetails.fullName", "asc"),
    "name_desc": ("personalDetails.fullName", "desc"),
    "application_id_asc": ("applicationId", "asc"),
    "application_id_desc": ("applicationId", "desc"),
    "status_asc": ("status", "asc"),
    "status_desc": ("status", "desc"),
    "submitted_newest": ("submittedAt", "desc"),
    "submitted_oldest": ("submittedAt", "asc"),
}

FILTER_NAMES = (
    "status",
    "course",
    "category",
    "college",
    "gender",
    "district",
    "city",
    "state",
    "stream",
    "campus",
    "submitterRole",
)


@dataclass
class StudentListResult:
    students: List[Dict[str, Any]] = field(default_factory=list)
    pagination: Dict[str, int] = field(default_factory=dict)
    filters: Dict[str, List[Any]] = field(default_factory=dict)

    @classmethod
    def empty(cls, limit: int) -> "StudentListResult":
        return cls(
            students=[],
            pagination={"currentPage": 1, "totalPages": 0, "totalItems": 0, "itemsPerPage": limit},
            filters={},
        )


class StudentListQuery:
    def __init__(
        self,
        api: PortalApiClient,
        session_context: SessionContext,
        notifier: Notifier,
        *,
        limit: int = 20,
    ) -> None:
        self.api = api
        self.session_context = session_context
        self.notifier = notifier
        self.limit = limit
        self.page = 1
        self.sort = DEFAULT_SORT
        self.filters: Dict[str, str] = {}
        self.search_text = ""
        self.applied_search = ""
        self.result = StudentListResult.empty(limit)
        # A different session means a different result set
        session_context.subscribe(lambda _session: self.set_page(1))

    def set_filter(self, name: str, value: Optional[str]) -> None:
        if name not in FILTER_NAMES:
            raise ValueError(f"Unknown filter: {name}")
        if value is None or value == "" or value == "all":
            self.filters.pop(name, None)
        else:
            self.filters[name] = value
        self.page = 1

    def clear_filters(self) -> None:
        self.filters.clear()
        self.page = 1

    def set_sort(self, option: str) -> None:
        if option not in SORT_OPTIONS:
            raise ValueError(f"Unknown sort option: {option}")
        self.sort = option
        self.page = 1

    def set_search_text(self, text: str) -> None:
        """Record typed text only. Nothing is fetched until apply_search()."""
        self.search_text = text

    def apply_search(self) -> None:
        self.applied_search = self.search_text.strip()
        self.page = 1

    def set_page(self, page: int) -> None:
        self.page = max(1, page)

    def set_limit(self, limit: int) -> None:
        self.limit = limit
        self.page = 1

    def build_params(self, *, page: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        sort_by, sort_order = SORT_OPTIONS[self.sort]
        params: Dict[str, Any] = {
            "session": self.session_context.session,
            "page": page or self.page,
            "limit": limit or self.limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }
        if self.applied_search:
            params["search"] = self.applied_search
        params.update(self.filters)
        return params

    async def fetch(self) -> StudentListResult:
        """Load the current page. Without a session the result is empty and no request is made."""
        if not self.session_context.session:
            self.result = StudentListResult.empty(self.limit)
            return self.result
        try:
            data = await self.api.list_students(self.build_params())
        except PortalClientError as e:
            logger.warning(f"Student list fetch failed: {e.message}")
            self.notifier.error(f"Failed to load students: {e.message}")
            self.result = StudentListResult.empty(self.limit)
            return self.result

        self.result = StudentListResult(
            students=data.get("students", []),
            pagination=data.get("pagination", {}),
            filters=data.get("filters", {}),
        )
        return self.result
