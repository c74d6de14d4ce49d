"""
Academic sessions are school years written as "2024-25". A session starts in April:
dates in January-March belong to the session that started the previous calendar year.
"""

import re
from datetime import date, datetime
from typing import List, Optional, Tuple

SESSION_START_MONTH = 4
AVAILABLE_SESSION_COUNT = 6

_SESSION_RE = re.compile(r"^(\d{2}|\d{4})-(\d{2})$")


def format_session(start_year: int) -> str:
    return f"{start_year}-{str(start_year + 1)[-2:]}"


def session_start_year_for(day: date) -> int:
    if day.month < SESSION_START_MONTH:
        return day.year - 1
    return day.year


def current_session(today: Optional[date] = None) -> str:
    """Session token for today (or the given date)."""
    return format_session(session_start_year_for(today or date.today()))


def available_sessions(today: Optional[date] = None, count: int = AVAILABLE_SESSION_COUNT) -> List[str]:
    """Current session first, followed by the previous ones."""
    start = session_start_year_for(today or date.today())
    return [format_session(start - i) for i in range(count)]


def parse_session_start_year(session: str) -> int:
    """
    Start year of a session token. "2025-26" -> 2025, "26-27" -> 2026.
    Raises ValueError for anything else, including tokens whose second year
    does not follow the first ("2024-99").
    """
    match = _SESSION_RE.match((session or "").strip())
    if not match:
        raise ValueError(f"Invalid session format: {session!r}")
    start_year = int(match.group(1))
    if start_year < 100:
        start_year += 2000
    if int(match.group(2)) != (start_year + 1) % 100:
        raise ValueError(f"Invalid session format: {session!r}")
    return start_year


def session_year_range(session: str) -> Tuple[date, date]:
    """
    First and last day of the registration year a session covers.
    Students registered during calendar year N are listed under session N-(N+1).
    """
    start_year = parse_session_start_year(session)
    return date(start_year, 1, 1), date(start_year, 12, 31)


def session_datetime_range(session: str) -> Tuple[datetime, datetime]:
    """Naive UTC bounds (inclusive start, exclusive end) matching session_year_range."""
    first, last = session_year_range(session)
    return datetime(first.year, 1, 1), datetime(last.year + 1, 1, 1)
