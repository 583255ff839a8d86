"""Contexts (logical panels) and the context manager."""
import threading
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from rich.text import Text

from gitlane.concurrency.coordinator import Coordinator
from gitlane.constants import item_operation_label, spinner_frame
from gitlane.logging_config import get_logger
from gitlane.main_views import MainViews, RefreshMainOpts, Renderer
from gitlane.models.enums import ItemOperation
from gitlane.state import StateAccessor

logger = get_logger(__name__)


class ContextKey(str, Enum):
    STATUS = "status"
    FILES = "files"
    LOCAL_BRANCHES = "local_branches"
    REMOTES = "remotes"
    REMOTE_BRANCHES = "remote_branches"
    TAGS = "tags"
    LOCAL_COMMITS = "local_commits"
    REFLOG_COMMITS = "reflog_commits"
    SUB_COMMITS = "sub_commits"
    COMMIT_FILES = "commit_files"
    STASH = "stash"
    WORKTREES = "worktrees"
    SUBMODULES = "submodules"
    MAIN = "main"
    MENU = "menu"
    CONFIRMATION = "confirmation"
    COMMAND_LOG = "command_log"


class ContextKind(Enum):
    SIDE = "side"
    MAIN = "main"
    TEMPORARY_POPUP = "temporary_popup"
    PERSISTENT_POPUP = "persistent_popup"
    EXTRAS = "extras"


class Context:
    """A logical panel bound to a view.

    ``depends_on`` names the refresh scopes whose data this context shows;
    the refresh engine re-renders it whenever one of them is reloaded.
    """

    def __init__(
        self,
        key: ContextKey,
        kind: ContextKind,
        view_name: Optional[str] = None,
        depends_on: Iterable[str] = (),
    ):
        self.key = key
        self.kind = kind
        self.view_name = view_name or key.value
        self.depends_on = frozenset(depends_on)
        self.render_count = 0

    def render_content(self) -> str:
        return ""

    def handle_render(self, renderer: Renderer) -> None:
        self.render_count += 1
        renderer.set_view_content(self.view_name, self.render_content())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key.value}>"


class ListContext(Context):
    """A side panel listing model items, with busy indicators overlaid.

    The items are re-read from ``get_items`` on every render, so the context
    itself never holds model data. View-local state (selection, expanded
    nodes) lives here and is what post-refresh updates adjust.
    """

    def __init__(
        self,
        key: ContextKey,
        get_items: Callable[[], Sequence],
        display: Callable[[object], str],
        state: StateAccessor,
        depends_on: Iterable[str] = (),
        view_name: Optional[str] = None,
    ):
        super().__init__(key, ContextKind.SIDE, view_name, depends_on)
        self._get_items = get_items
        self._display = display
        self._state = state
        self.selected_idx = 0
        self.collapsed: set = set()
        self.tick = 0

    def items(self) -> List:
        return list(self._get_items())

    def selected_item(self):
        items = self.items()
        if not items:
            return None
        return items[min(self.selected_idx, len(items) - 1)]

    def clamp_selection(self) -> None:
        count = len(self.items())
        self.selected_idx = max(0, min(self.selected_idx, count - 1)) if count else 0

    def select_urn(self, urn: str) -> bool:
        for i, item in enumerate(self.items()):
            if item.urn() == urn:
                self.selected_idx = i
                return True
        return False

    def toggle_collapsed(self, urn: str) -> None:
        if urn in self.collapsed:
            self.collapsed.discard(urn)
        else:
            self.collapsed.add(urn)

    def render_lines(self) -> List[Text]:
        lines = []
        for item in self.items():
            line = Text(self._display(item))
            operation = self._state.get_item_operation(item)
            if operation is not ItemOperation.NONE:
                line.append(f" {item_operation_label(operation)} {spinner_frame(self.tick)}", style="cyan")
            lines.append(line)
        return lines

    def render_content(self) -> str:
        return "\n".join(line.plain for line in self.render_lines())

    def handle_render(self, renderer: Renderer) -> None:
        self.clamp_selection()
        self.tick += 1
        super().handle_render(renderer)


class ContextMgr:
    """Tracks the active context stack and routes rendering to contexts."""

    def __init__(self, coordinator: Coordinator, renderer: Renderer, main_views: MainViews):
        self._coordinator = coordinator
        self._renderer = renderer
        self._main_views = main_views
        self._contexts: Dict[ContextKey, Context] = {}
        self._stack: List[Context] = []
        self._lock = threading.RLock()

    # Registry

    def register(self, context: Context) -> Context:
        with self._lock:
            self._contexts[context.key] = context
        return context

    def by_key(self, key: ContextKey) -> Context:
        with self._lock:
            return self._contexts[ContextKey(key)]

    def all(self) -> List[Context]:
        with self._lock:
            return list(self._contexts.values())

    def depending_on(self, scopes: Iterable[str]) -> List[Context]:
        wanted = set(scopes)
        return [c for c in self.all() if c.depends_on & wanted]

    # Stack

    def push(self, context: Context) -> None:
        self._coordinator.assert_ui_thread("the context stack")
        with self._lock:
            if self._stack and self._stack[-1] is context:
                return
            if context.kind is ContextKind.SIDE:
                # Side contexts replace each other rather than nest
                self._stack = [c for c in self._stack if c.kind is not ContextKind.SIDE]
            elif context in self._stack:
                self._stack.remove(context)
            self._stack.append(context)
        logger.debug(f"Context pushed: {context.key.value}")

    def pop(self) -> Optional[Context]:
        self._coordinator.assert_ui_thread("the context stack")
        with self._lock:
            if len(self._stack) <= 1:
                return None
            context = self._stack.pop()
        logger.debug(f"Context popped: {context.key.value}")
        return context

    def replace(self, context: Context) -> None:
        self._coordinator.assert_ui_thread("the context stack")
        with self._lock:
            if self._stack:
                self._stack[-1] = context
            else:
                self._stack.append(context)

    def current(self) -> Optional[Context]:
        with self._lock:
            return self._stack[-1] if self._stack else None

    def current_side(self) -> Optional[Context]:
        with self._lock:
            for context in reversed(self._stack):
                if context.kind is ContextKind.SIDE:
                    return context
            return None

    def is_current(self, key: ContextKey) -> bool:
        current = self.current()
        return current is not None and current.key == ContextKey(key)

    # Rendering

    def render_context(self, context: Context) -> None:
        self._coordinator.assert_ui_thread("views")
        context.handle_render(self._renderer)

    def render(self) -> None:
        self._coordinator.assert_ui_thread("views")
        self._renderer.render()
        self._coordinator.run_after_layout()

    def render_to_main_views(self, opts: RefreshMainOpts) -> None:
        self._main_views.render_to_main_views(opts)

    @property
    def main_views(self) -> MainViews:
        return self._main_views
