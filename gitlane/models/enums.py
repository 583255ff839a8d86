"""Small finite enums shared across the core"""
from enum import Enum, IntEnum


class ItemOperation(Enum):
    """A long-running operation associated with an item.

    For example a branch that is being pushed; shown next to the item so
    several concurrent operations on different items stay visible.
    """
    NONE = "none"
    PUSHING = "pushing"
    PULLING = "pulling"
    FAST_FORWARDING = "fast-forwarding"
    DELETING = "deleting"
    FETCHING = "fetching"
    CHECKING_OUT = "checking-out"


class StartupStage(IntEnum):
    """Startup stages so we don't need to load everything at once."""
    INITIAL = 0
    COMPLETE = 1


class ScreenMode(IntEnum):
    """How much space the focused window takes up."""
    NORMAL = 0
    HALF = 1
    FULL = 2

    def next(self) -> "ScreenMode":
        members = list(ScreenMode)
        return members[(members.index(self) + 1) % len(members)]

    def prev(self) -> "ScreenMode":
        members = list(ScreenMode)
        return members[(members.index(self) - 1) % len(members)]


class ToastKind(Enum):
    STATUS = "status"
    ERROR = "error"


class MenuWidget(Enum):
    """Widget drawn in front of a menu item. Behaviour is up to the caller."""
    NONE = "none"
    RADIO_BUTTON_SELECTED = "radio-selected"
    RADIO_BUTTON_UNSELECTED = "radio-unselected"
    CHECKBOX_SELECTED = "checkbox-selected"
    CHECKBOX_UNSELECTED = "checkbox-unselected"

    @classmethod
    def radio_button(cls, value: bool) -> "MenuWidget":
        return cls.RADIO_BUTTON_SELECTED if value else cls.RADIO_BUTTON_UNSELECTED

    @classmethod
    def checkbox(cls, value: bool) -> "MenuWidget":
        return cls.CHECKBOX_SELECTED if value else cls.CHECKBOX_UNSELECTED


class WorkingTreeState(Enum):
    """Repository state at the time of the last commits refresh."""
    NONE = "none"
    REBASING = "rebasing"
    MERGING = "merging"
    CHERRY_PICKING = "cherry-picking"
    REVERTING = "reverting"
    BISECTING = "bisecting"
