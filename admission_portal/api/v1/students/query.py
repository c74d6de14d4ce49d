"""
Session-scoped student list query: filters, search, whitelisted sort, pagination and filter facets.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.auth.models import User
from admission_portal.auth.schemas import CurrentUser
from admission_portal.core.academic_session import session_datetime_range, session_year_range
from admission_portal.core.exceptions import ServiceError
from admission_portal.core.models import StudentApplication

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000

# Backend sort vocabulary -> column
SORT_COLUMNS = {
    "createdAt": StudentApplication.created_at,
    "updatedAt": StudentApplication.updated_at,
    "submittedAt": StudentApplication.submitted_at,
    "applicationId": StudentApplication.application_id,
    "status": StudentApplication.status,
    "personalDetails.fullName": StudentApplication.full_name,
}

# Query parameter -> column for exact-match filters
FILTER_COLUMNS = {
    "status": StudentApplication.status,
    "course": StudentApplication.course,
    "category": StudentApplication.category,
    "college": StudentApplication.institution_name,
    "gender": StudentApplication.gender,
    "district": StudentApplication.district,
    "city": StudentApplication.city,
    "state": StudentApplication.state,
    "stream": StudentApplication.stream,
    "campus": StudentApplication.campus,
}

SEARCH_COLUMNS = (
    StudentApplication.full_name,
    StudentApplication.aadhar_number,
    StudentApplication.primary_phone,
    StudentApplication.email,
    StudentApplication.application_id,
)

FACET_COLUMNS = {
    "courses": StudentApplication.course,
    "categories": StudentApplication.category,
    "colleges": StudentApplication.institution_name,
    "genders": StudentApplication.gender,
    "districts": StudentApplication.district,
    "cities": StudentApplication.city,
    "states": StudentApplication.state,
    "streams": StudentApplication.stream,
    "campuses": StudentApplication.campus,
}


@dataclass
class StudentListParams:
    session: str
    page: int = 1
    limit: int = 20
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    search: Optional[str] = None
    filters: Dict[str, Optional[str]] = field(default_factory=dict)
    submitter_role: Optional[str] = None
    ids: List[str] = field(default_factory=list)


def _is_set(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() != "all"


def _session_clause(session: str):
    """Registration date in the session's year, or created_at when no registration date was recorded."""
    try:
        first_day, last_day = session_year_range(session)
        created_from, created_to = session_datetime_range(session)
    except ValueError as e:
        raise ServiceError(str(e), status.HTTP_400_BAD_REQUEST)
    return or_(
        and_(
            StudentApplication.registration_date.is_not(None),
            StudentApplication.registration_date >= first_day,
            StudentApplication.registration_date <= last_day,
        ),
        and_(
            StudentApplication.registration_date.is_(None),
            StudentApplication.created_at >= created_from,
            StudentApplication.created_at < created_to,
        ),
    )


def _visibility_clause(current_user: CurrentUser):
    """Agents and students only see the records they submitted."""
    if current_user.is_admin:
        return None
    return StudentApplication.submitted_by == current_user.id


def _build_conditions(params: StudentListParams, current_user: CurrentUser) -> List:
    conditions = [_session_clause(params.session)]
    visibility = _visibility_clause(current_user)
    if visibility is not None:
        conditions.append(visibility)

    for name, value in params.filters.items():
        if _is_set(value):
            conditions.append(FILTER_COLUMNS[name] == value.strip())

    if _is_set(params.submitter_role):
        value = params.submitter_role.strip()
        try:
            conditions.append(StudentApplication.submitted_by == UUID(value))
        except ValueError:
            conditions.append(StudentApplication.submitter_role == value)

    term = (params.search or "").strip()
    if term:
        pattern = f"%{term}%"
        conditions.append(or_(*[col.ilike(pattern) for col in SEARCH_COLUMNS]))

    if params.ids:
        parsed = []
        for raw in params.ids:
            try:
                parsed.append(UUID(raw))
            except ValueError:
                continue
        conditions.append(
            or_(StudentApplication.id.in_(parsed), StudentApplication.application_id.in_(params.ids))
        )
    return conditions


def _order_by(sort_by: str, sort_order: str):
    column = SORT_COLUMNS.get(sort_by)
    if column is None:
        raise ServiceError(
            f"Unsupported sortBy: {sort_by}. Allowed: {', '.join(SORT_COLUMNS)}",
            status.HTTP_400_BAD_REQUEST,
        )
    if sort_order not in ("asc", "desc"):
        raise ServiceError("sortOrder must be 'asc' or 'desc'", status.HTTP_400_BAD_REQUEST)
    primary = column.asc() if sort_order == "asc" else column.desc()
    # Tie-breaker keeps pages stable when the sort column repeats
    return [primary, StudentApplication.id.asc()]


async def _distinct_values(db: AsyncSession, column, base_conditions: List) -> List[str]:
    stmt = (
        select(column)
        .where(*base_conditions, column.is_not(None), column != "")
        .distinct()
        .order_by(column)
    )
    result = await db.execute(stmt)
    return [row[0] for row in result.all()]


async def load_filter_facets(db: AsyncSession, params: StudentListParams, current_user: CurrentUser) -> Dict:
    """Facet values are scoped to the session (and visibility), not to the other active filters."""
    base = [_session_clause(params.session)]
    visibility = _visibility_clause(current_user)
    if visibility is not None:
        base.append(visibility)

    facets: Dict[str, List] = {}
    for name, column in FACET_COLUMNS.items():
        facets[name] = await _distinct_values(db, column, base)

    submitter_stmt = (
        select(User.id, User.full_name, User.role, func.count(StudentApplication.id))
        .join(StudentApplication, StudentApplication.submitted_by == User.id)
        .where(*base, StudentApplication.submitter_role.in_(("agent", "staff")))
        .group_by(User.id, User.full_name, User.role)
        .order_by(User.full_name)
    )
    result = await db.execute(submitter_stmt)
    facets["submitters"] = [
        {"id": row[0], "name": row[1], "role": row[2], "count": row[3]} for row in result.all()
    ]
    return facets


async def run_student_list_query(
    db: AsyncSession,
    params: StudentListParams,
    current_user: CurrentUser,
) -> Tuple[List[StudentApplication], int]:
    """Return (page rows, total matching rows)."""
    if not params.session or not params.session.strip():
        raise ServiceError("Session parameter is required", status.HTTP_400_BAD_REQUEST)
    if params.limit < 1 or params.limit > MAX_PAGE_SIZE:
        raise ServiceError(f"limit must be between 1 and {MAX_PAGE_SIZE}", status.HTTP_400_BAD_REQUEST)
    if params.page < 1:
        raise ServiceError("page must be >= 1", status.HTTP_400_BAD_REQUEST)

    conditions = _build_conditions(params, current_user)
    order = _order_by(params.sort_by, params.sort_order)

    count_stmt = select(func.count()).select_from(StudentApplication).where(*conditions)
    total = (await db.execute(count_stmt)).scalar() or 0

    offset = (params.page - 1) * params.limit
    stmt = select(StudentApplication).where(*conditions).order_by(*order).offset(offset).limit(params.limit)
    rows = (await db.execute(stmt)).scalars().all()

    logger.debug(
        "Student list query",
        extra={"session": params.session, "page": params.page, "limit": params.limit, "total": total},
    )
    return list(rows), total


def total_pages_for(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0
