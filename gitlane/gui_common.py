"""Capability interfaces handed to helpers and controllers.

Instead of one object exposing everything, callers take the narrow
capabilities they use. ``GuiCommon`` bundles them for code that genuinely
needs several, and is what ``Gui`` builds at startup.
"""
import shlex
from typing import Callable, Optional, Protocol, Sequence

from gitlane.concurrency.coordinator import Task
from gitlane.concurrency.mutexes import Mutexes
from gitlane.config import Config
from gitlane.context import Context, ContextKey, ContextMgr
from gitlane.exceptions import AppStateSaveError, GitCommandError
from gitlane.logging_config import get_logger
from gitlane.main_views import RefreshMainOpts, Renderer
from gitlane.models.enums import ItemOperation
from gitlane.models.model import Model
from gitlane.popup.requests import ConfirmRequest, MenuRequest, PromptRequest
from gitlane.refresh import RefreshMode, RefreshOptions
from gitlane.services.action_log import ActionLog
from gitlane.services.app_state_service import AppState, JsonAppStateStore
from gitlane.state import HasUrn, Modes, StateAccessor

logger = get_logger(__name__)


class Concurrency(Protocol):
    def on_ui_thread(self, f: Callable[[], None]) -> None: ...

    def on_worker(self, f: Callable[[Task], None], name: str = "") -> Task: ...

    def after_layout(self, f: Callable[[], None]) -> None: ...

    def is_ui_thread(self) -> bool: ...


class Popups(Protocol):
    def error_handler(self, err: BaseException) -> None: ...

    def alert(self, title: str, message: str) -> None: ...

    def confirm(self, request: ConfirmRequest) -> None: ...

    def confirm_if(self, condition: bool, request: ConfirmRequest) -> None: ...

    def prompt(self, request: PromptRequest) -> None: ...

    def menu(self, request: MenuRequest) -> None: ...

    def toast(self, message: str) -> None: ...

    def error_toast(self, message: str) -> None: ...

    def with_waiting_status(self, message: str, f: Callable[[Task], None]) -> Task: ...

    def get_prompt_input(self) -> str: ...


class Refresher(Protocol):
    def refresh(self, options: Optional[RefreshOptions] = None) -> Optional[Task]: ...

    def post_refresh_update(self, context: Context) -> None: ...


class InlineStatus(Protocol):
    def with_inline_status(
        self,
        item: HasUrn,
        operation: ItemOperation,
        context_key: ContextKey,
        f: Callable[[Task], None],
    ) -> Task: ...


class GuiCommon:
    """Everything a controller may need, as separate capabilities."""

    def __init__(
        self,
        config: Config,
        concurrency: Concurrency,
        popups: Popups,
        refresher: Refresher,
        inline_status: InlineStatus,
        context_mgr: ContextMgr,
        renderer: Renderer,
        model: Model,
        modes: Modes,
        mutexes: Mutexes,
        state: StateAccessor,
        action_log: ActionLog,
        app_state_store: JsonAppStateStore,
        run_subprocess: Callable[[Sequence[str]], bool],
    ):
        self.config = config
        self.concurrency = concurrency
        self.popups = popups
        self.refresher = refresher
        self.inline_status = inline_status
        self.context_mgr = context_mgr
        self.renderer = renderer
        self.model = model
        self.modes = modes
        self.mutexes = mutexes
        self.state = state
        self.action_log = action_log
        self._app_state_store = app_state_store
        self._run_subprocess = run_subprocess

    # Logging

    def log_action(self, action: str) -> None:
        self.action_log.log_action(action)

    def log_command(self, cmd_str: str, is_command_line: bool) -> None:
        self.action_log.log_command(cmd_str, is_command_line)

    # Views

    def set_view_content(self, view_name: str, content: str) -> None:
        self.renderer.set_view_content(view_name, content)

    def reset_view_origin(self, view_name: str) -> None:
        self.renderer.reset_view_origin(view_name)

    def render(self) -> None:
        self.context_mgr.render()

    def render_to_main_views(self, opts: RefreshMainOpts) -> None:
        self.context_mgr.render_to_main_views(opts)

    def context(self) -> ContextMgr:
        return self.context_mgr

    def context_for_key(self, key: ContextKey) -> Context:
        return self.context_mgr.by_key(key)

    # Subprocesses

    def run_subprocess(self, args: Sequence[str]) -> bool:
        return self._run_subprocess(args)

    def run_subprocess_and_refresh(self, args: Sequence[str]) -> bool:
        """Run a terminal command, report a failed exit, then reload everything."""
        success = self.run_subprocess(args)
        if not success:
            self.popups.error_handler(GitCommandError(shlex.join(args)))
        self.refresher.refresh(RefreshOptions(mode=RefreshMode.ASYNC))
        return success

    # Persisted state

    def get_app_state(self) -> AppState:
        return self._app_state_store.get()

    def save_app_state(self) -> None:
        self._app_state_store.save()

    def save_app_state_and_log_error(self) -> None:
        """Save, and on failure log it and show a toast. Never raises."""
        try:
            self.save_app_state()
        except AppStateSaveError as e:
            logger.error(str(e))
            self.concurrency.on_ui_thread(lambda: self.popups.error_toast(str(e)))

    # Modes

    def running_integration_test(self) -> bool:
        return self.config.integration_test

    def in_demo(self) -> bool:
        return self.config.demo
