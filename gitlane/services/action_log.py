"""User action and command log"""
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, List, Optional

from gitlane.constants import COMMAND_LOG_LIMIT
from gitlane.logging_config import COMMAND_LOGGER, get_logger

logger = get_logger(COMMAND_LOGGER)


@dataclass(frozen=True)
class LogEntry:
    text: str
    # None for actions; True for shell commands the user typed, False for internal calls
    is_command_line: Optional[bool] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_action(self) -> bool:
        return self.is_command_line is None


class ActionLog:
    """Records what the user did and which commands ran as a result."""

    def __init__(self, limit: int = COMMAND_LOG_LIMIT):
        self._entries: Deque[LogEntry] = deque(maxlen=limit)
        self._lock = threading.Lock()
        self._listener: Optional[Callable[[LogEntry], None]] = None

    def set_listener(self, listener: Optional[Callable[[LogEntry], None]]) -> None:
        self._listener = listener

    def log_action(self, action: str) -> None:
        logger.info(f"Action: {action}")
        self._add(LogEntry(action))

    def log_command(self, cmd_str: str, is_command_line: bool) -> None:
        prefix = "$ " if is_command_line else "  "
        logger.info(f"{prefix}{cmd_str}")
        self._add(LogEntry(cmd_str, is_command_line=is_command_line))

    def entries(self) -> List[LogEntry]:
        with self._lock:
            return list(self._entries)

    def _add(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)
        if self._listener is not None:
            self._listener(entry)
