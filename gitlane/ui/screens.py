"""Modal screens for the gitlane TUI.

Screens never close themselves. They report what the user did to the popup
handler, which decides whether the popup closes; the app then pops the
screen when the handler presents ``None``.
"""

from typing import TYPE_CHECKING, Optional

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, OptionList, Static
from textual.widgets.option_list import Option

from gitlane.models.enums import MenuWidget
from gitlane.popup.requests import (
    Closed,
    ConfirmRequest,
    Confirmed,
    MenuRequest,
    PopupView,
    PromptRequest,
    Selected,
    Submitted,
    SuggestionDeleted,
)

if TYPE_CHECKING:
    from gitlane.popup.handler import PopupHandler

WIDGET_MARKERS = {
    MenuWidget.NONE: "",
    MenuWidget.RADIO_BUTTON_SELECTED: "(•) ",
    MenuWidget.RADIO_BUTTON_UNSELECTED: "( ) ",
    MenuWidget.CHECKBOX_SELECTED: "[x] ",
    MenuWidget.CHECKBOX_UNSELECTED: "[ ] ",
}

POPUP_CSS = """
    {name} {{
        align: center middle;
    }}

    #popup-dialog {{
        width: 80%;
        height: auto;
        max-height: 80%;
        border: thick $background 80%;
        background: $surface;
        padding: 1 2;
    }}

    #popup-title {{
        text-style: bold;
        padding: 0 0 1 0;
    }}

    #popup-error {{
        color: $error;
        height: auto;
    }}

    #button-container {{
        width: 100%;
        height: auto;
        align: center middle;
        padding: 1 0;
    }}

    OptionList {{
        height: auto;
        max-height: 12;
    }}

    Button {{
        margin: 0 1;
    }}
"""


class PopupScreen(ModalScreen):
    """Base for the screens drawing a ``PopupView``."""

    BINDINGS = [Binding("escape", "close", "Close")]

    def __init__(self, handler: "PopupHandler", view: PopupView):
        super().__init__()
        self.handler = handler
        self.popup_view = view

    @property
    def request(self):
        return self.popup_view.request

    def update_view(self, view: PopupView) -> None:
        self.popup_view = view
        if self.is_mounted:
            self._refresh_error()

    def _refresh_error(self) -> None:
        error = self.query_one("#popup-error", Static)
        error.update(self.popup_view.error or "")

    def resolve(self, resolution) -> None:
        self.app.run_on_ui(lambda: self.handler.resolve(resolution))

    def action_close(self) -> None:
        self.resolve(Closed())


class ConfirmScreen(PopupScreen):
    """Modal confirmation dialog."""

    DEFAULT_CSS = POPUP_CSS.format(name="ConfirmScreen")

    BINDINGS = PopupScreen.BINDINGS + [Binding("enter", "confirm", "Confirm", show=False)]

    def compose(self) -> ComposeResult:
        request: ConfirmRequest = self.request
        with Vertical(id="popup-dialog"):
            yield Static(request.title, id="popup-title")
            if request.prompt:
                yield Static(request.prompt, id="confirm-message")
            if request.is_editable:
                yield Input(password=request.mask, id="popup-input")
            yield Static("", id="popup-error")
            with Container(id="button-container"):
                yield Button("Yes", variant="error", id="yes")
                yield Button("No", variant="primary", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button press."""
        self.resolve(Confirmed() if event.button.id == "yes" else Closed())

    def on_input_changed(self, event: Input.Changed) -> None:
        self.app.run_on_ui(lambda: self.handler.set_input(event.value))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.resolve(Submitted(event.value))

    def action_confirm(self) -> None:
        self.resolve(Confirmed())


class PromptScreen(PopupScreen):
    """Free text input with optional suggestions."""

    DEFAULT_CSS = POPUP_CSS.format(name="PromptScreen")

    BINDINGS = PopupScreen.BINDINGS + [
        Binding("ctrl+d", "delete_suggestion", "Delete suggestion", show=False),
    ]

    def compose(self) -> ComposeResult:
        request: PromptRequest = self.request
        with Vertical(id="popup-dialog"):
            yield Static(request.title, id="popup-title")
            yield Input(value=self.popup_view.input, password=request.mask, id="popup-input")
            yield Static(self.popup_view.error or "", id="popup-error")
            if request.find_suggestions is not None:
                yield OptionList(id="popup-suggestions")

    def on_mount(self) -> None:
        self._refresh_suggestions()
        self.query_one("#popup-input", Input).focus()

    def update_view(self, view: PopupView) -> None:
        super().update_view(view)
        if not self.is_mounted:
            return
        field = self.query_one("#popup-input", Input)
        if field.value != view.input:
            field.value = view.input
            field.cursor_position = len(view.input)
        self._refresh_suggestions()

    def _refresh_suggestions(self) -> None:
        if self.request.find_suggestions is None:
            return
        options = self.query_one("#popup-suggestions", OptionList)
        options.clear_options()
        options.add_options([Option(s.label) for s in self.popup_view.suggestions])

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.value != self.popup_view.input:
            self.app.run_on_ui(lambda: self.handler.set_input(event.value))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.resolve(Submitted(event.value))

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        index = event.option_index
        self.app.run_on_ui(lambda: self.handler.apply_suggestion(index))
        self.query_one("#popup-input", Input).focus()

    def action_delete_suggestion(self) -> None:
        if self.request.find_suggestions is None:
            return
        highlighted = self.query_one("#popup-suggestions", OptionList).highlighted
        if highlighted is not None:
            self.resolve(SuggestionDeleted(highlighted))


class MenuScreen(PopupScreen):
    """List of actions; an item's key invokes it directly."""

    DEFAULT_CSS = POPUP_CSS.format(name="MenuScreen")

    def compose(self) -> ComposeResult:
        request: MenuRequest = self.request
        with Vertical(id="popup-dialog"):
            yield Static(request.title, id="popup-title")
            if request.prompt:
                yield Static(request.prompt)
            yield OptionList(*[self._option(item) for item in request.items], id="menu-items")
            yield Static("", id="popup-error")

    @staticmethod
    def _option(item) -> Option:
        label = Text(WIDGET_MARKERS[item.widget])
        if item.key:
            label.append(f"{item.key:<6}", style="cyan")
        style = "dim" if item.disabled_reason is not None else ""
        label.append(item.display_label(), style=style)
        if item.tooltip:
            label.append(f"  {item.tooltip}", style="dim italic")
        return Option(label)

    def on_mount(self) -> None:
        self.query_one("#menu-items", OptionList).focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.resolve(Selected(event.option_index))

    def on_key(self, event: events.Key) -> None:
        if event.key in ("escape", "enter", "up", "down"):
            return
        request: MenuRequest = self.request
        if request.index_for_key(event.key) is None:
            return
        event.stop()
        key = event.key
        self.app.run_on_ui(lambda: self.handler.press_menu_key(key))


def screen_for(handler: "PopupHandler", view: PopupView) -> Optional[PopupScreen]:
    """The screen class drawing the request in ``view``."""
    if isinstance(view.request, MenuRequest):
        return MenuScreen(handler, view)
    if isinstance(view.request, PromptRequest):
        return PromptScreen(handler, view)
    if isinstance(view.request, ConfirmRequest):
        return ConfirmScreen(handler, view)
    return None
