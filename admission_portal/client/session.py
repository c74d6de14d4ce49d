import logging
from datetime import date
from typing import Callable, List, Optional

from admission_portal.core.academic_session import (
    available_sessions,
    current_session,
    parse_session_start_year,
)

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Selected academic session shared by list, export and dashboard views.

    Starts on the given session, or the current one. Listeners are called with the new value
    whenever the selection changes.
    """

    def __init__(self, today: Optional[date] = None, session: Optional[str] = None) -> None:
        self.available: List[str] = available_sessions(today)
        if session is not None:
            parse_session_start_year(session)
        self._session: Optional[str] = session if session is not None else current_session(today)
        self._listeners: List[Callable[[Optional[str]], None]] = []

    @property
    def session(self) -> Optional[str]:
        return self._session

    def select(self, session: Optional[str]) -> None:
        """Switch session. None clears it; anything else must be a valid token such as "2024-25"."""
        if session is not None:
            parse_session_start_year(session)
        if session == self._session:
            return
        logger.debug(f"Academic session changed: {self._session} -> {session}")
        self._session = session
        for listener in list(self._listeners):
            listener(session)

    def clear(self) -> None:
        self.select(None)

    def subscribe(self, listener: Callable[[Optional[str]], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def load_from_server(self, payload: dict) -> None:
        """Apply a /sessions response. Keeps an explicit selection if the server still offers it."""
        self.available = list(payload.get("available") or self.available)
        if self._session not in self.available:
            self.select(payload.get("current"))
