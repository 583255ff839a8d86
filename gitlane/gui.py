"""Builds the object graph for one repository and owns its lifecycle."""
import threading
from typing import Callable, Dict, List, Optional

from gitlane import formatters
from gitlane.concurrency import Coordinator, Mutexes, Task
from gitlane.config import Config
from gitlane.context import ContextKey, ContextMgr, ListContext
from gitlane.gui_common import GuiCommon
from gitlane.helpers import BranchActionsHelper, InlineStatusHelper
from gitlane.logging_config import get_logger
from gitlane.main_views import MainViews
from gitlane.models import Model
from gitlane.popup import PopupHandler, SuggestionsHelper
from gitlane.refresh import RefreshEngine, RefreshScope, RepositoryLoader
from gitlane.services import (
    ActionLog,
    CommandRunner,
    JsonAppStateStore,
    SubprocessRunner,
)
from gitlane.services.git import GitRepositoryLoader
from gitlane.state import Modes, StateAccessor

logger = get_logger(__name__)


class ViewBuffer:
    """Renderer that keeps view contents in memory.

    The Textual app draws from this buffer; headless runs and tests read it
    directly.
    """

    def __init__(self):
        self.contents: Dict[str, str] = {}
        self.origins_reset: List[str] = []
        self.render_count = 0
        self._lock = threading.Lock()

    def set_view_content(self, view_name: str, content: str) -> None:
        with self._lock:
            self.contents[view_name] = content

    def reset_view_origin(self, view_name: str) -> None:
        with self._lock:
            self.origins_reset.append(view_name)

    def render(self) -> None:
        self.render_count += 1

    def content(self, view_name: str) -> str:
        with self._lock:
            return self.contents.get(view_name, "")


# (key, model field, formatter, refresh scopes shown)
LIST_CONTEXTS = [
    (ContextKey.FILES, "files", formatters.format_file,
     {RefreshScope.FILES}),
    (ContextKey.SUBMODULES, "submodules", formatters.format_submodule,
     {RefreshScope.SUBMODULES}),
    (ContextKey.LOCAL_BRANCHES, "branches", formatters.format_branch,
     {RefreshScope.BRANCHES}),
    (ContextKey.REMOTES, "remotes", formatters.format_remote,
     {RefreshScope.REMOTES}),
    (ContextKey.REMOTE_BRANCHES, "remote_branches", formatters.format_remote_branch,
     {RefreshScope.REMOTES}),
    (ContextKey.TAGS, "tags", formatters.format_tag,
     {RefreshScope.TAGS}),
    (ContextKey.WORKTREES, "worktrees", formatters.format_worktree,
     {RefreshScope.WORKTREES}),
    (ContextKey.LOCAL_COMMITS, "commits", formatters.format_commit,
     {RefreshScope.COMMITS}),
    (ContextKey.REFLOG_COMMITS, "filtered_reflog_commits", formatters.format_reflog_entry,
     {RefreshScope.REFLOG}),
    (ContextKey.SUB_COMMITS, "sub_commits", formatters.format_commit,
     {RefreshScope.SUB_COMMITS}),
    (ContextKey.COMMIT_FILES, "commit_files", formatters.format_commit_file,
     {RefreshScope.COMMIT_FILES}),
    (ContextKey.STASH, "stash_entries", formatters.format_stash,
     {RefreshScope.STASH}),
]


class Gui:
    """Wires the core services together for one repository.

    Collaborators that touch the outside world (loader, renderer, command
    runner, state store) can be passed in; everything else is built here.
    """

    def __init__(
        self,
        config: Config,
        repo_path: str,
        loader: Optional[RepositoryLoader] = None,
        renderer=None,
        runner: Optional[CommandRunner] = None,
        app_state_store: Optional[JsonAppStateStore] = None,
    ):
        self.config = config
        self.repo_path = repo_path

        self.coordinator = Coordinator()
        self.mutexes = Mutexes(checks=config.lock_order_checks)
        self.model = Model()
        self.state = StateAccessor(repo_path)
        self.modes = Modes()
        self.renderer = renderer if renderer is not None else ViewBuffer()

        self.popup = PopupHandler(self.coordinator, self.mutexes)
        self.coordinator.set_error_handler(self.popup.error_handler)

        self.main_views = MainViews(self.renderer, self.coordinator, config.output_flush_ms)
        self.context_mgr = ContextMgr(self.coordinator, self.renderer, self.main_views)

        self.loader = loader if loader is not None else GitRepositoryLoader(repo_path)
        self.refresher = RefreshEngine(
            self.model,
            self.mutexes,
            self.coordinator,
            self.loader,
            self.context_mgr,
            self.state,
            modes=self.modes,
            waiting_status=self.popup.with_waiting_status,
        )
        self.inline_status = InlineStatusHelper(
            self.coordinator, self.state, self.context_mgr, config
        )

        self.action_log = ActionLog()
        self.runner = runner if runner is not None else CommandRunner(repo_path, self.action_log)
        self.subprocess_runner = SubprocessRunner(repo_path, self.mutexes, self.action_log)
        self.app_state_store = (
            app_state_store if app_state_store is not None
            else JsonAppStateStore(config.state_file)
        )
        self.suggestions = SuggestionsHelper(self.model)

        self.common = GuiCommon(
            config=config,
            concurrency=self.coordinator,
            popups=self.popup,
            refresher=self.refresher,
            inline_status=self.inline_status,
            context_mgr=self.context_mgr,
            renderer=self.renderer,
            model=self.model,
            modes=self.modes,
            mutexes=self.mutexes,
            state=self.state,
            action_log=self.action_log,
            app_state_store=self.app_state_store,
            run_subprocess=self.subprocess_runner.run_subprocess,
        )
        self.branch_actions = BranchActionsHelper(self.common, self.runner, self.suggestions)

        self._register_contexts()
        self._background_task: Optional[Task] = None

    def _register_contexts(self) -> None:
        for key, field_name, display, scopes in LIST_CONTEXTS:
            self.context_mgr.register(ListContext(
                key,
                self._items_getter(field_name),
                display,
                self.state,
                depends_on={s.value for s in scopes},
            ))

    def _items_getter(self, field_name: str) -> Callable[[], list]:
        return lambda: getattr(self.model, field_name)

    def list_context(self, key: ContextKey) -> ListContext:
        return self.context_mgr.by_key(key)

    def start(self) -> Task:
        """Kick off the initial load and the background refresh.

        Must be called on the UI thread once it is bound.
        """
        self.coordinator.assert_ui_thread("startup")
        self.context_mgr.push(self.list_context(ContextKey.FILES))
        state = self.app_state_store.get()
        state.add_recent_repo(self.repo_path)
        self.common.save_app_state_and_log_error()

        task = self.refresher.initial_load()
        if not self.config.integration_test:
            self._background_task = self.refresher.start_background_refresh(
                self.config.refresh_interval
            )
        logger.info(f"Started for {self.repo_path}")
        return task

    def stop(self) -> None:
        if self._background_task is not None:
            self._background_task.cancel()
            self._background_task = None
        self.coordinator.stop()
