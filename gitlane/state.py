"""Runtime GUI state: item operations, startup stage, screen mode."""
import threading
from typing import Dict, List, Optional, Protocol

from gitlane.logging_config import get_logger
from gitlane.models.enums import ItemOperation, ScreenMode, StartupStage

logger = get_logger(__name__)


class HasUrn(Protocol):
    def urn(self) -> str: ...


class ItemOperationRegistry:
    """At most one in-flight operation per item, keyed by the item's URN.

    Setting an operation on an item that already has one overwrites it;
    clearing removes the entry so the map does not grow without bound.
    """

    def __init__(self):
        self._operations: Dict[str, ItemOperation] = {}
        self._lock = threading.Lock()

    def get(self, item: HasUrn) -> ItemOperation:
        with self._lock:
            return self._operations.get(item.urn(), ItemOperation.NONE)

    def set(self, item: HasUrn, operation: ItemOperation) -> None:
        if operation is ItemOperation.NONE:
            self.clear(item)
            return
        with self._lock:
            self._operations[item.urn()] = operation

    def clear(self, item: HasUrn) -> None:
        with self._lock:
            self._operations.pop(item.urn(), None)

    def active(self) -> Dict[str, ItemOperation]:
        with self._lock:
            return dict(self._operations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)


class RepoState:
    """State scoped to the currently open repository."""

    def __init__(self):
        self._startup_stage = StartupStage.INITIAL
        self.screen_mode = ScreenMode.NORMAL
        self.split_main_panel = False
        self.views_setup = False
        self.window_view_names: Dict[str, str] = {}

    def get_startup_stage(self) -> StartupStage:
        return self._startup_stage

    def set_startup_stage(self, stage: StartupStage) -> None:
        """Startup only ever moves forward."""
        if stage < self._startup_stage:
            raise ValueError(
                f"Cannot move startup stage back from {self._startup_stage.name} to {stage.name}"
            )
        self._startup_stage = stage

    def get_screen_mode(self) -> ScreenMode:
        return self.screen_mode

    def set_screen_mode(self, mode: ScreenMode) -> None:
        self.screen_mode = ScreenMode(mode)

    def next_screen_mode(self) -> ScreenMode:
        self.screen_mode = self.screen_mode.next()
        return self.screen_mode

    def prev_screen_mode(self) -> ScreenMode:
        self.screen_mode = self.screen_mode.prev()
        return self.screen_mode


class StateAccessor:
    """Accessor over global and per-repo GUI state."""

    def __init__(self, repo_path: Optional[str] = None):
        self.repo_path_stack: List[str] = [repo_path] if repo_path else []
        self._repo_states: Dict[str, RepoState] = {}
        self.item_operations = ItemOperationRegistry()
        self._refreshing_files = threading.Event()
        self.updating = False
        self.show_extras_window = False
        self.retain_original_dir = False

    def get_repo_state(self) -> RepoState:
        key = self.repo_path_stack[-1] if self.repo_path_stack else ""
        state = self._repo_states.get(key)
        if state is None:
            state = RepoState()
            self._repo_states[key] = state
        return state

    def push_repo_path(self, path: str) -> None:
        self.repo_path_stack.append(path)

    def pop_repo_path(self) -> Optional[str]:
        if len(self.repo_path_stack) <= 1:
            return None
        return self.repo_path_stack.pop()

    def set_is_refreshing_files(self, value: bool) -> None:
        if value:
            self._refreshing_files.set()
        else:
            self._refreshing_files.clear()

    def get_is_refreshing_files(self) -> bool:
        return self._refreshing_files.is_set()

    def get_item_operation(self, item: HasUrn) -> ItemOperation:
        return self.item_operations.get(item)

    def set_item_operation(self, item: HasUrn, operation: ItemOperation) -> None:
        logger.debug(f"Item {item.urn()} -> {operation.value}")
        self.item_operations.set(item, operation)

    def clear_item_operation(self, item: HasUrn) -> None:
        logger.debug(f"Item {item.urn()} cleared")
        self.item_operations.clear(item)


class FilteringMode:
    """Restricts commit-ish views to entries touching a path."""

    def __init__(self):
        self.path = ""
        self.author = ""

    def active(self) -> bool:
        return bool(self.path or self.author)

    def reset(self) -> None:
        self.path = ""
        self.author = ""


class Modes:
    def __init__(self):
        self.filtering = FilteringMode()

    def is_any_mode_active(self) -> bool:
        return self.filtering.active()
