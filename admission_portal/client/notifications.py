import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
INFO = "info"


@dataclass
class Notification:
    level: str
    message: str


class Notifier:
    """Collects user-facing messages; an optional sink (e.g. a CLI printer) receives each one."""

    def __init__(self, sink: Optional[Callable[[Notification], None]] = None) -> None:
        self.sink = sink
        self.history: List[Notification] = []

    def _emit(self, level: str, message: str) -> None:
        note = Notification(level, message)
        self.history.append(note)
        if level == ERROR:
            logger.warning(message)
        else:
            logger.info(message)
        if self.sink:
            self.sink(note)

    def success(self, message: str) -> None:
        self._emit(SUCCESS, message)

    def error(self, message: str) -> None:
        self._emit(ERROR, message)

    def info(self, message: str) -> None:
        self._emit(INFO, message)

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def errors(self) -> List[str]:
        return [n.message for n in self.history if n.level == ERROR]
