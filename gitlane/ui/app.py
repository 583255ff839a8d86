"""Interactive TUI for gitlane using Textual."""

import asyncio
import shlex
from typing import Callable, Dict, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Footer, Static

from gitlane.__version__ import __version__
from gitlane.concurrency import Task
from gitlane.context import ContextKey, ListContext
from gitlane.exceptions import LockOrderViolationError
from gitlane.gui import Gui, ViewBuffer
from gitlane.logging_config import get_logger
from gitlane.main_views import MainViewPairs, RefreshMainOpts, StreamTask, ViewUpdate
from gitlane.models.entities import Branch, Commit, File, StashEntry
from gitlane.models.enums import ScreenMode, ToastKind
from gitlane.popup.requests import PopupView, PromptRequest
from gitlane.refresh import RefreshMode, RefreshOptions
from gitlane.services.command_runner import git_args
from gitlane.ui.screens import PopupScreen, screen_for
from gitlane.ui.widgets import ListPanel, NonExpandingHeader, StatusBar

logger = get_logger(__name__)

# Side panels in tab order, with their titles
SIDE_PANELS = [
    (ContextKey.FILES, "Files"),
    (ContextKey.LOCAL_BRANCHES, "Branches"),
    (ContextKey.LOCAL_COMMITS, "Commits"),
    (ContextKey.STASH, "Stash"),
]

KEY_HINTS = "tab: panel  j/k: move  space: checkout  P: push  p: pull  n: new  d: delete  m: menu  f: fetch  q: quit"


class TextualRenderer(ViewBuffer):
    """View buffer that also redraws the app whenever the views are rendered."""

    def __init__(self):
        super().__init__()
        self.app: Optional["GitlaneApp"] = None

    def set_view_content(self, view_name: str, content: str) -> None:
        super().set_view_content(view_name, content)
        if self.app is not None and view_name == MainViewPairs.NORMAL.main:
            self.app.update_main_view()

    def render(self) -> None:
        super().render()
        if self.app is not None:
            self.app.redraw_views()


class GitlaneApp(App):
    """Interactive TUI for gitlane."""

    TITLE = "gitlane"
    SUB_TITLE = f"v{__version__}"

    CSS = """
    Screen {
        background: $surface;
    }

    #side {
        width: 45%;
    }

    #main-scroll {
        width: 1fr;
        border: round $panel-lighten-2;
        padding: 0 1;
    }

    ToastRack {
        offset: 0 -1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("tab", "next_panel", "Next panel", show=False, priority=True),
        Binding("shift+tab", "prev_panel", "Previous panel", show=False, priority=True),
        Binding("j,down", "cursor(1)", "Down", show=False),
        Binding("k,up", "cursor(-1)", "Up", show=False),
        Binding("space", "checkout", "Checkout", show=False),
        Binding("P", "push", "Push", show=False),
        Binding("p", "pull", "Pull", show=False),
        Binding("n", "new_branch", "New branch", show=False),
        Binding("d", "delete", "Delete", show=False),
        Binding("m", "branch_menu", "Menu", show=False),
        Binding("f", "fetch", "Fetch", show=False),
        Binding("r", "refresh", "Refresh"),
        Binding("plus", "screen_mode(1)", "Zoom", show=False),
        Binding("underscore", "screen_mode(-1)", "Unzoom", show=False),
        Binding("colon", "shell_command", "Command", show=False),
    ]

    def __init__(self, gui: Gui, renderer: TextualRenderer):
        super().__init__()
        self.gui = gui
        self.view_buffer = renderer
        renderer.app = self
        self._popup_screen: Optional[PopupScreen] = None
        self._list_panels: Dict[ContextKey, ListPanel] = {}
        self._status_tick = 0

    def compose(self) -> ComposeResult:
        """Create child widgets."""
        yield NonExpandingHeader(show_clock=False, icon="")
        with Horizontal():
            with Vertical(id="side") as side:
                self._side = side
                for key, title in SIDE_PANELS:
                    panel = ListPanel(id=f"panel-{key.value}")
                    panel.border_title = title
                    self._list_panels[key] = panel
                    yield panel
            with VerticalScroll(id="main-scroll"):
                self._main_view = Static(id="main-view")
                yield self._main_view
        self._status_bar = StatusBar(id="status-bar")
        yield self._status_bar
        yield Footer()

    def on_mount(self) -> None:
        """Bind the UI thread to the event loop and start loading."""
        gui = self.gui
        loop = asyncio.get_running_loop()
        gui.coordinator.bind_ui_thread()
        gui.coordinator.set_wake(lambda: loop.call_soon_threadsafe(self._drain_ui_queue))

        gui.popup.set_presenter(self._present_popup)
        gui.popup.set_toast_func(self._toast)
        gui.popup.set_status_listener(self._show_status)
        gui.subprocess_runner.set_suspend(self.suspend)

        gui.start()
        self.set_interval(gui.config.spinner_rate_ms / 1000.0, self._tick_status)
        self._drain_ui_queue()

    # ------------------------------------------------------------------
    # UI thread plumbing
    # ------------------------------------------------------------------

    def _drain_ui_queue(self) -> None:
        try:
            self.gui.coordinator.drain()
        except LockOrderViolationError as e:
            logger.critical(str(e))
            self.panic(Text(str(e), style="bold red"))

    def run_on_ui(self, f: Callable[[], None]) -> None:
        """Run ``f`` through the UI queue so its errors reach the error handler."""
        self.gui.coordinator.on_ui_thread(f)

    def redraw_views(self) -> None:
        """Copy the view buffer and list contexts into the widgets."""
        current = self.gui.context_mgr.current_side()
        for key, panel in self._list_panels.items():
            context: ListContext = self.gui.list_context(key)
            panel.set_lines(context.render_lines(), context.selected_idx, context is current)
        self.update_main_view()
        self._apply_screen_mode()

    def update_main_view(self) -> None:
        self._main_view.update(
            Text(self.view_buffer.content(MainViewPairs.NORMAL.main))
        )

    def _apply_screen_mode(self) -> None:
        mode = self.gui.state.get_repo_state().get_screen_mode()
        self._side.display = mode is not ScreenMode.FULL
        self._side.styles.width = "45%" if mode is ScreenMode.NORMAL else "25%"

    def _present_popup(self, view: Optional[PopupView]) -> None:
        screen = self._popup_screen
        if view is None:
            if screen is not None:
                self._popup_screen = None
                if self.screen is screen:
                    self.pop_screen()
            return
        if screen is not None and screen.request is view.request:
            screen.update_view(view)
            return
        if screen is not None and self.screen is screen:
            self.pop_screen()
        self._popup_screen = screen_for(self.gui.popup, view)
        if self._popup_screen is not None:
            self.push_screen(self._popup_screen)

    def _toast(self, message: str, kind: ToastKind) -> None:
        severity = "error" if kind is ToastKind.ERROR else "information"
        self.notify(message, severity=severity)

    def _show_status(self, status: Optional[str]) -> None:
        self._status_bar.show_status(status, self._status_tick, KEY_HINTS)

    def _tick_status(self) -> None:
        self._status_tick += 1
        status = self.gui.popup.waiting_status()
        if status:
            self._show_status(status)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _current_context(self) -> ListContext:
        context = self.gui.context_mgr.current_side()
        return context if context is not None else self.gui.list_context(ContextKey.FILES)

    def _focus_panel(self, step: int) -> None:
        keys = [key for key, _ in SIDE_PANELS]
        index = keys.index(self._current_context().key) if self._current_context().key in keys else 0
        context = self.gui.list_context(keys[(index + step) % len(keys)])
        self.gui.context_mgr.push(context)
        self.gui.refresher.post_refresh_update(context)
        self._render_main_view()

    def action_next_panel(self) -> None:
        # Inside a popup tab keeps moving focus between its widgets
        if isinstance(self.screen, PopupScreen):
            self.screen.focus_next()
            return
        self.run_on_ui(lambda: self._focus_panel(1))

    def action_prev_panel(self) -> None:
        if isinstance(self.screen, PopupScreen):
            self.screen.focus_previous()
            return
        self.run_on_ui(lambda: self._focus_panel(-1))

    def action_cursor(self, step: int) -> None:
        def move() -> None:
            context = self._current_context()
            context.selected_idx += step
            context.clamp_selection()
            self.gui.refresher.post_refresh_update(context)
            self._render_main_view()
        self.run_on_ui(move)

    def action_screen_mode(self, step: int) -> None:
        def change() -> None:
            repo_state = self.gui.state.get_repo_state()
            if step > 0:
                repo_state.next_screen_mode()
            else:
                repo_state.prev_screen_mode()
            self.gui.context_mgr.render()
        self.run_on_ui(change)

    def _render_main_view(self) -> None:
        """Stream a diff or log for the selected item into the main view."""
        item = self._current_context().selected_item()
        if isinstance(item, File):
            args, title = git_args("diff", "HEAD", "--", item.path), "Diff"
        elif isinstance(item, Branch):
            args = git_args("log", "--graph", "--oneline", "--decorate", "-n", "200", item.name)
            title = "Log"
        elif isinstance(item, (Commit, StashEntry)):
            args, title = git_args("show", "--stat", "-p", item.id()), "Patch"
        else:
            return
        runner = self.gui.runner

        def stream(task: Task, write) -> None:
            runner.stream(args, task, write)

        self.gui.context_mgr.render_to_main_views(RefreshMainOpts(
            pair=MainViewPairs.NORMAL,
            main=ViewUpdate(StreamTask(stream, name=title.lower()), title=title),
        ))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _with_branch(self, f: Callable[[Branch], None]) -> None:
        def run() -> None:
            item = self._current_context().selected_item()
            if isinstance(item, Branch):
                f(item)
        self.run_on_ui(run)

    def action_checkout(self) -> None:
        self._with_branch(self.gui.branch_actions.checkout)

    def action_push(self) -> None:
        self._with_branch(self.gui.branch_actions.push)

    def action_pull(self) -> None:
        self._with_branch(self.gui.branch_actions.pull)

    def action_delete(self) -> None:
        self._with_branch(self.gui.branch_actions.delete)

    def action_branch_menu(self) -> None:
        self._with_branch(self.gui.branch_actions.options_menu)

    def action_new_branch(self) -> None:
        def run() -> None:
            item = self._current_context().selected_item()
            self.gui.branch_actions.new_branch(item if isinstance(item, Branch) else None)
        self.run_on_ui(run)

    def action_fetch(self) -> None:
        self.run_on_ui(self.gui.branch_actions.fetch_all)

    def action_refresh(self) -> None:
        self.run_on_ui(lambda: self.gui.refresher.refresh(RefreshOptions(mode=RefreshMode.ASYNC)))

    def action_shell_command(self) -> None:
        def run(text: str) -> None:
            self.gui.common.log_action(f"Shell command: {text}")
            self.gui.common.run_subprocess_and_refresh(shlex.split(text))

        self.run_on_ui(lambda: self.gui.popup.prompt(PromptRequest(
            title="Shell command:",
            on_confirm=run,
            validate=lambda text: None if text.strip() else "Command cannot be empty",
        )))

    async def action_quit(self) -> None:
        """Override quit action to stop background work before exiting."""
        try:
            self.gui.stop()
        finally:
            self.exit()
