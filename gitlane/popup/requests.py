"""Modal requests and their resolutions.

A modal request is one of three frozen variants. Each variant only carries
the fields that make sense for it (a menu cannot be masked, a plain confirm
cannot offer suggestions unless it is editable), and user interaction comes
back as one of a small set of resolutions handled by
``PopupHandler.resolve``.
"""
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple, Union

from gitlane.constants import CANCEL_LABEL, MASK_CHAR
from gitlane.models.enums import MenuWidget


@dataclass(frozen=True)
class Suggestion:
    """An autocomplete candidate: ``value`` is inserted, ``label`` is shown."""
    value: str
    label: str = ""

    def __post_init__(self):
        if not self.label:
            object.__setattr__(self, "label", self.value)


FindSuggestionsFunc = Callable[[str], List[Suggestion]]


@dataclass(frozen=True)
class DisabledReason:
    text: str
    # Show as an error panel instead of a toast (long or important reasons)
    show_error_in_panel: bool = False
    # Let the keybinding dispatcher keep looking for another handler
    allow_further_dispatching: bool = False


@dataclass(frozen=True)
class MenuSection:
    title: str
    column: int = 0


@dataclass(frozen=True)
class MenuItem:
    label: str = ""
    # Alternative to label; columns are aligned across items
    label_columns: Tuple[str, ...] = ()
    on_press: Optional[Callable[[], None]] = None
    opens_menu: bool = False
    key: Optional[str] = None
    widget: MenuWidget = MenuWidget.NONE
    tooltip: str = ""
    disabled_reason: Optional[DisabledReason] = None
    section: Optional[MenuSection] = None

    def id(self) -> str:
        return self.label

    def display_label(self) -> str:
        if self.label_columns:
            return " ".join(self.label_columns)
        if self.opens_menu:
            return f"{self.label}..."
        return self.label


@dataclass(frozen=True)
class ConfirmRequest:
    title: str
    prompt: str = ""
    on_confirm: Optional[Callable[[], None]] = None
    on_close: Optional[Callable[[], None]] = None
    find_suggestions: Optional[FindSuggestionsFunc] = None
    editable: bool = False
    mask: bool = False

    def __post_init__(self):
        if self.mask and not self.editable:
            raise ValueError("mask requires an editable confirm popup")
        if self.find_suggestions is not None and not self.editable:
            raise ValueError("suggestions require an editable confirm popup")

    @property
    def is_editable(self) -> bool:
        return self.editable

    @property
    def initial_content(self) -> str:
        return ""


@dataclass(frozen=True)
class PromptRequest:
    title: str
    on_confirm: Callable[[str], None]
    initial_content: str = ""
    find_suggestions: Optional[FindSuggestionsFunc] = None
    allow_edit_suggestion: bool = False
    on_close: Optional[Callable[[], None]] = None
    on_delete_suggestion: Optional[Callable[[int], None]] = None
    mask: bool = False
    # Returns an error message to keep the prompt open, or None to accept
    validate: Optional[Callable[[str], Optional[str]]] = None

    @property
    def is_editable(self) -> bool:
        return True

    @property
    def prompt(self) -> str:
        return ""


@dataclass(frozen=True)
class MenuRequest:
    title: str
    items: Tuple[MenuItem, ...] = ()
    prompt: str = ""
    hide_cancel: bool = False
    column_alignment: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def is_editable(self) -> bool:
        return False

    @property
    def mask(self) -> bool:
        return False

    @property
    def find_suggestions(self) -> None:
        return None

    @property
    def initial_content(self) -> str:
        return ""

    def with_cancel(self) -> "MenuRequest":
        """Append the Cancel entry unless hidden or already present."""
        if self.hide_cancel or any(item.label == CANCEL_LABEL for item in self.items):
            return self
        return replace(self, items=self.items + (MenuItem(label=CANCEL_LABEL),))

    def index_for_key(self, key: str) -> Optional[int]:
        for i, item in enumerate(self.items):
            if item.key == key:
                return i
        return None


ModalRequest = Union[ConfirmRequest, PromptRequest, MenuRequest]


@dataclass(frozen=True)
class Confirmed:
    pass


@dataclass(frozen=True)
class Submitted:
    text: str


@dataclass(frozen=True)
class Selected:
    index: int


@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class SuggestionDeleted:
    index: int


Resolution = Union[Confirmed, Submitted, Selected, Closed, SuggestionDeleted]


@dataclass(frozen=True)
class PopupView:
    """What the renderer needs to draw the current popup."""
    request: ModalRequest
    input: str = ""
    suggestions: Tuple[Suggestion, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def display_input(self) -> str:
        """Input as drawn on screen; masked requests hide every character."""
        if self.request.mask:
            return MASK_CHAR * len(self.input)
        return self.input
