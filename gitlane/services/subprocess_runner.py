"""Interactive subprocesses that take over the terminal."""
import shlex
import subprocess
from contextlib import nullcontext
from typing import Callable, ContextManager, Optional, Sequence

from gitlane.concurrency.mutexes import Domain, Mutexes
from gitlane.logging_config import get_logger
from gitlane.services.action_log import ActionLog

logger = get_logger(__name__)


class SubprocessRunner:
    """Runs a command with the terminal handed over to it.

    Only one subprocess may own the terminal at a time, so the subprocess
    and pty mutexes are held for the whole run.
    """

    def __init__(
        self,
        repo_path: str,
        mutexes: Mutexes,
        action_log: ActionLog,
        suspend: Optional[Callable[[], ContextManager]] = None,
    ):
        self.repo_path = repo_path
        self._mutexes = mutexes
        self._action_log = action_log
        self._suspend = suspend

    def set_suspend(self, suspend: Optional[Callable[[], ContextManager]]) -> None:
        """Context manager factory that releases the terminal from the TUI."""
        self._suspend = suspend

    def run_subprocess(self, args: Sequence[str], interactive: bool = True) -> bool:
        """Returns True if the command exited successfully."""
        cmd_str = shlex.join(args)
        self._action_log.log_command(cmd_str, is_command_line=True)
        domains = [Domain.SUBPROCESS, Domain.PTY] if interactive else [Domain.SUBPROCESS]

        with self._mutexes.acquire(*domains):
            suspend = self._suspend() if (interactive and self._suspend) else nullcontext()
            with suspend:
                try:
                    completed = subprocess.run(list(args), cwd=self.repo_path)
                except OSError as e:
                    logger.error(f"Failed to start {cmd_str}: {e}")
                    raise
        logger.debug(f"{cmd_str} exited with {completed.returncode}")
        return completed.returncode == 0
