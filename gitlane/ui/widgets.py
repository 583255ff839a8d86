"""Custom widgets for the gitlane TUI."""

from typing import List, Optional

from rich.text import Text
from textual.app import ComposeResult, RenderResult
from textual.events import Click
from textual.widgets import Header, Static
from textual.widgets._header import HeaderClockSpace, HeaderIcon, HeaderTitle

from gitlane.__version__ import __version__
from gitlane.constants import spinner_frame


class VersionDisplay(HeaderClockSpace):
    """Custom widget to display version in place of clock."""

    DEFAULT_CSS = """
    VersionDisplay {
        width: auto;
        dock: right;
        padding: 0 1;
        background: $foreground 5%;
        color: $text;
        text-align: center;
        text-opacity: 85%;
    }
    """

    def render(self) -> RenderResult:
        """Render the version string."""
        return Text(f"v{__version__}")


class NonExpandingHeader(Header):
    """Header widget that doesn't expand/contract on click and shows version instead of clock."""

    def compose(self) -> ComposeResult:
        """Compose the header with custom version display."""
        yield HeaderIcon().data_bind(Header.icon)
        yield HeaderTitle()
        yield VersionDisplay() if self._show_clock else HeaderClockSpace()

    def on_click(self, event: Click) -> None:
        """Override to disable click-to-expand behavior."""
        event.stop()


class ListPanel(Static):
    """A side panel showing one list context, with the selected line highlighted."""

    DEFAULT_CSS = """
    ListPanel {
        height: 1fr;
        border: round $panel-lighten-2;
        padding: 0 1;
        overflow-y: auto;
    }

    ListPanel.active {
        border: round $accent;
    }
    """

    def set_lines(self, lines: List[Text], selected: Optional[int], active: bool) -> None:
        text = Text()
        for i, line in enumerate(lines):
            if i:
                text.append("\n")
            if active and i == selected:
                line = line.copy()
                line.stylize("reverse")
            text.append_text(line)
        self.set_class(active, "active")
        self.update(text)


class StatusBar(Static):
    """Bottom line: waiting status with a spinner, or the key hints."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: $panel;
        padding: 0 1;
    }
    """

    def show_status(self, status: Optional[str], tick: int, hint: str = "") -> None:
        if status:
            self.update(Text(f"{status} {spinner_frame(tick)}", style="cyan"))
        else:
            self.update(Text(hint, style="dim"))
