"""Persisted app state (recent repos, UI toggles, prompt history)."""
import json
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from gitlane.exceptions import AppStateSaveError
from gitlane.logging_config import get_log_dir, get_logger

# Import fcntl for POSIX file locking (Unix/Linux/macOS)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

logger = get_logger(__name__)

MAX_RECENT_REPOS = 20
MAX_PROMPT_HISTORY = 100


@dataclass
class AppState:
    recent_repos: List[str] = field(default_factory=list)
    hide_command_log: bool = False
    screen_mode: str = "normal"
    prompt_history: List[str] = field(default_factory=list)
    # Anything this version does not know about is kept as-is
    extra: Dict[str, Any] = field(default_factory=dict)

    def add_recent_repo(self, path: str) -> None:
        if path in self.recent_repos:
            self.recent_repos.remove(path)
        self.recent_repos.insert(0, path)
        del self.recent_repos[MAX_RECENT_REPOS:]

    def add_prompt_history(self, entry: str) -> None:
        if not entry:
            return
        if entry in self.prompt_history:
            self.prompt_history.remove(entry)
        self.prompt_history.insert(0, entry)
        del self.prompt_history[MAX_PROMPT_HISTORY:]

    def to_dict(self) -> dict:
        data = asdict(self)
        extra = data.pop("extra")
        return {**extra, **data}

    @classmethod
    def from_dict(cls, data: dict) -> "AppState":
        known = {k for k in cls.__dataclass_fields__ if k != "extra"}
        values = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        return cls(**values, extra=extra)


class JsonAppStateStore:
    """Loads and saves ``AppState`` as JSON with advisory file locking."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else get_log_dir() / "state.json"
        self._state: Optional[AppState] = None

    @contextmanager
    def _acquire_lock(self, file_handle, operation: str = "read"):
        """Shared lock for reads, exclusive for writes."""
        if not HAS_FCNTL:
            logger.debug("File locking not available on this platform")
            yield
            return

        try:
            lock_type = fcntl.LOCK_EX if operation == "write" else fcntl.LOCK_SH
            fcntl.flock(file_handle.fileno(), lock_type)
            yield
        finally:
            try:
                fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
            except OSError as e:
                logger.debug(f"Error releasing lock: {e}")

    def get(self) -> AppState:
        """The in-memory state, loading it on first use."""
        if self._state is None:
            self._state = self.load()
        return self._state

    def load(self) -> AppState:
        if not self.path.exists():
            logger.debug("No state file found")
            return AppState()

        try:
            with open(self.path, "r") as f:
                with self._acquire_lock(f, operation="read"):
                    data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in state file: {e}")
            return AppState()
        except OSError as e:
            logger.warning(f"Could not read state file: {e}")
            return AppState()

        if not isinstance(data, dict):
            logger.warning("State file does not contain an object, ignoring it")
            return AppState()
        return AppState.from_dict(data)

    def save(self, state: Optional[AppState] = None) -> None:
        """Write the state. Raises AppStateSaveError on I/O failure."""
        state = state if state is not None else self.get()
        self._state = state
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a+") as f:
                with self._acquire_lock(f, operation="write"):
                    f.seek(0)
                    f.truncate()
                    json.dump(state.to_dict(), f, indent=2)
        except OSError as e:
            raise AppStateSaveError(str(self.path), str(e)) from e
        logger.debug(f"Saved app state to {self.path}")
