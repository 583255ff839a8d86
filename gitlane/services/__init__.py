"""External collaborators: commands, subprocesses, persisted state, logging."""

from .action_log import ActionLog, LogEntry
from .app_state_service import AppState, JsonAppStateStore
from .command_runner import CommandResult, CommandRunner, git_args
from .subprocess_runner import SubprocessRunner

__all__ = [
    "ActionLog",
    "LogEntry",
    "AppState",
    "JsonAppStateStore",
    "CommandResult",
    "CommandRunner",
    "git_args",
    "SubprocessRunner",
]
