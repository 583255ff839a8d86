"""Shared constants for gitlane."""

from typing import Dict, List

from gitlane.models.enums import ItemOperation


# Spinner frames used for inline busy indicators
SPINNER_FRAMES: List[str] = ["|", "/", "-", "\\"]

# Demo recordings slow the spinner down so it reads well on video
DEMO_SPINNER_SLOWDOWN = 4

# Labels shown next to an item while an operation runs on it
ITEM_OPERATION_LABELS: Dict[ItemOperation, str] = {
    ItemOperation.NONE: "",
    ItemOperation.PUSHING: "Pushing",
    ItemOperation.PULLING: "Pulling",
    ItemOperation.FAST_FORWARDING: "Fast-forwarding",
    ItemOperation.DELETING: "Deleting",
    ItemOperation.FETCHING: "Fetching",
    ItemOperation.CHECKING_OUT: "Checking out",
}

# Maximum number of entries kept by the in-memory command log
COMMAND_LOG_LIMIT = 1000

# Popup labels
CANCEL_LABEL = "Cancel"
ERROR_TITLE = "Error"
MASK_CHAR = "*"


def item_operation_label(operation: ItemOperation) -> str:
    """Human readable label for an item operation."""
    return ITEM_OPERATION_LABELS.get(operation, "")


def spinner_frame(tick: int) -> str:
    """Spinner character for the given animation tick."""
    return SPINNER_FRAMES[tick % len(SPINNER_FRAMES)]
