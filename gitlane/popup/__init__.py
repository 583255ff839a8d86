"""Modal interaction: popups, menus, prompts and autocomplete."""

from .handler import PopupHandler
from .requests import (
    Closed,
    ConfirmRequest,
    Confirmed,
    DisabledReason,
    MenuItem,
    MenuRequest,
    MenuSection,
    ModalRequest,
    PopupView,
    PromptRequest,
    Resolution,
    Selected,
    Submitted,
    Suggestion,
    SuggestionDeleted,
)
from .suggestions import SuggestionsHelper, match_names

__all__ = [
    "PopupHandler",
    "Closed",
    "ConfirmRequest",
    "Confirmed",
    "DisabledReason",
    "MenuItem",
    "MenuRequest",
    "MenuSection",
    "ModalRequest",
    "PopupView",
    "PromptRequest",
    "Resolution",
    "Selected",
    "Submitted",
    "Suggestion",
    "SuggestionDeleted",
    "SuggestionsHelper",
    "match_names",
]
