"""Runs repository commands on workers, cancellable per process."""
import shlex
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from git import Git
from git.exc import GitCommandNotFound

from gitlane.concurrency.coordinator import Task
from gitlane.exceptions import GitCommandError
from gitlane.logging_config import get_logger
from gitlane.services.action_log import ActionLog

logger = get_logger(__name__)

POLL_INTERVAL = 0.05
TERMINATE_GRACE = 2.0
# Exit code reported when the executable cannot be started
NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True)
class CommandResult:
    args: tuple
    exit_code: int
    output: str
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Spawns commands in the repository through GitPython and waits cooperatively.

    A watcher polls the worker's task while the command runs; on cancellation
    the process is terminated (killed if it does not exit in time) and
    ``OperationCancelledError`` is raised.
    """

    def __init__(self, repo_path: str, action_log: Optional[ActionLog] = None):
        self.repo_path = repo_path
        self._action_log = action_log
        self._git = Git(repo_path)

    def run(self, args: Sequence[str], task: Optional[Task] = None, check: bool = True) -> CommandResult:
        """Run to completion and capture output."""
        handle = self._start(args)
        proc = handle.proc
        with _CancelWatch(proc, task):
            stdout, stderr = proc.communicate()
        if task is not None:
            task.raise_if_cancelled()

        result = CommandResult(tuple(args), proc.returncode, stdout or "", stderr or "")
        if check and not result.success:
            raise GitCommandError(shlex.join(args), result.exit_code, result.stderr or result.output)
        return result

    def stream(
        self,
        args: Sequence[str],
        task: Task,
        write: Callable[[str], None],
        check: bool = False,
    ) -> int:
        """Run and hand each line of output to ``write`` as it arrives.

        Whatever the command printed to stderr follows its stdout.
        """
        handle = self._start(args)
        proc = handle.proc
        with _CancelWatch(proc, task):
            try:
                for line in proc.stdout:
                    if task.is_cancelled:
                        break
                    write(line)
                stderr = proc.stderr.read() if not task.is_cancelled else ""
                proc.wait()
            finally:
                proc.stdout.close()
                proc.stderr.close()

        task.raise_if_cancelled()
        for line in stderr.splitlines(keepends=True):
            write(line)
        if check and proc.returncode != 0:
            raise GitCommandError(shlex.join(args), proc.returncode, stderr)
        return proc.returncode

    def _start(self, args: Sequence[str]):
        self._log(args)
        try:
            return self._git.execute(
                list(args), as_process=True, universal_newlines=True
            )
        except GitCommandNotFound as e:
            raise GitCommandError(shlex.join(args), NOT_FOUND_EXIT_CODE, str(e)) from e

    def _log(self, args: Sequence[str]) -> None:
        if self._action_log is not None:
            self._action_log.log_command(shlex.join(args), is_command_line=False)


class _CancelWatch:
    """Terminates ``proc`` from a side thread once ``task`` is cancelled."""

    def __init__(self, proc, task: Optional[Task]):
        self._proc = proc
        self._task = task
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self):
        if self._task is not None:
            self._thread = threading.Thread(target=self._watch, name="cancel-watch", daemon=True)
            self._thread.start()
        return self

    def __exit__(self, *exc):
        self._done.set()
        return False

    def _watch(self) -> None:
        while not self._done.wait(POLL_INTERVAL):
            if self._task.is_cancelled:
                terminate(self._proc)
                return


def terminate(proc) -> None:
    """Terminate a process, killing it if it outlives the grace period."""
    if proc.poll() is not None:
        return
    logger.debug(f"Terminating process {proc.pid}")
    proc.terminate()
    deadline = time.monotonic() + TERMINATE_GRACE
    while proc.poll() is None:
        if time.monotonic() >= deadline:
            proc.kill()
            proc.wait()
            return
        time.sleep(POLL_INTERVAL)


def git_args(*args: str) -> List[str]:
    return ["git", *args]
