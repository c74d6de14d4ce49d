"""
Export students of an academic session to CSV through the API.

Usage:
  python -m admission_portal.scripts.export_students --session 2024-25
  python -m admission_portal.scripts.export_students --session 2024-25 --status APPROVED --course BBA
  python -m admission_portal.scripts.export_students --ids APP2024123456,APP2024654321 -o exports/

Reads PORTAL_API_URL and PORTAL_API_TOKEN unless --api-url / --token are given.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from admission_portal.client import (
    BulkExportEngine,
    Notifier,
    PortalApiClient,
    SessionContext,
    StudentListQuery,
)
from admission_portal.client.notifications import ERROR, Notification
from admission_portal.client.students import FILTER_NAMES
from admission_portal.core.academic_session import parse_session_start_year
from admission_portal.logging_config import setup_logging


def _session_arg(value: str) -> str:
    try:
        parse_session_start_year(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    return value.strip()


def _print_notification(note: Notification) -> None:
    stream = sys.stderr if note.level == ERROR else sys.stdout
    print(f"[{note.level}] {note.message}", file=stream)


async def run_export(
    session: Optional[str],
    filters: dict,
    search: Optional[str],
    ids: List[str],
    output_dir: Path,
    api_url: Optional[str] = None,
    token: Optional[str] = None,
) -> Optional[Path]:
    notifier = Notifier(sink=_print_notification)
    context = SessionContext(session=session) if session else SessionContext()
    async with PortalApiClient(api_url, token) as api:
        query = StudentListQuery(api, context, notifier)
        for name, value in filters.items():
            query.set_filter(name, value)
        if search:
            query.set_search_text(search)
            query.apply_search()
        engine = BulkExportEngine(api, context, notifier, output_dir=output_dir)
        return await engine.export(query, ids or None)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Export student applications to CSV")
    parser.add_argument("--session", type=_session_arg, help="Academic session, e.g. 2024-25 (default: current)")
    parser.add_argument("--search", help="Name, national id, phone, email or application id")
    parser.add_argument("--ids", help="Comma-separated record ids or application ids to export")
    parser.add_argument("-o", "--output-dir", type=Path, default=Path("."))
    parser.add_argument("--api-url", help="API base URL (default: PORTAL_API_URL)")
    parser.add_argument("--token", help="Bearer token (default: PORTAL_API_TOKEN)")
    for name in FILTER_NAMES:
        parser.add_argument(f"--{name}", dest=f"filter_{name}", metavar="VALUE")
    args = parser.parse_args(argv)

    setup_logging()
    filters = {
        name: getattr(args, f"filter_{name}")
        for name in FILTER_NAMES
        if getattr(args, f"filter_{name}")
    }
    ids = [i.strip() for i in (args.ids or "").split(",") if i.strip()]
    path = asyncio.run(
        run_export(args.session, filters, args.search, ids, args.output_dir, args.api_url, args.token)
    )
    if path is None:
        return 1
    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
