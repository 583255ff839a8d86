"""Custom exceptions for gitlane"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from gitlane.popup.requests import DisabledReason


class GitlaneError(Exception):
    """Base exception for all gitlane errors."""
    pass


class UserInputError(GitlaneError):
    """Invalid content typed into a prompt. The popup stays open."""
    pass


class GitCommandError(GitlaneError):
    """Exception raised when a repository command fails."""

    def __init__(self, command: str, exit_code: Optional[int] = None, stderr: Optional[str] = None):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr

        error_msg = f"Command '{command}' failed"
        if exit_code is not None:
            error_msg += f" with exit code {exit_code}"
        if stderr:
            error_msg += f": {stderr.strip()}"

        super().__init__(error_msg)


class OperationCancelledError(GitlaneError):
    """Raised at a cancellation checkpoint when the task was cancelled."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)


class PopupAlreadyShowingError(GitlaneError):
    """Raised when a modal is requested while another one is showing."""

    def __init__(self, current_title: str, requested_title: str):
        self.current_title = current_title
        self.requested_title = requested_title
        super().__init__(
            f"Cannot show popup '{requested_title}': popup '{current_title}' is already showing"
        )


class LockOrderViolationError(GitlaneError):
    """Two domain mutexes were acquired in inconsistent order.

    This is a programming defect and is never retried.
    """

    def __init__(self, acquiring: str, held: str, cycle: Optional[list] = None):
        self.acquiring = acquiring
        self.held = held
        self.cycle = cycle or []

        error_msg = f"Lock order violation: acquiring '{acquiring}' while holding '{held}'"
        if self.cycle:
            error_msg += f" (existing order: {' -> '.join(self.cycle)})"

        super().__init__(error_msg)


class WrongThreadError(GitlaneError):
    """View-facing state touched from a thread other than the UI thread."""

    def __init__(self, what: str = "view state"):
        super().__init__(f"{what} may only be accessed from the UI thread")


class AppStateSaveError(GitlaneError):
    """Persisted app state could not be written."""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        self.message = message

        error_msg = f"Failed to save app state to '{path}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class DisabledReasonError(GitlaneError):
    """A disabled menu item or keybinding was invoked."""

    def __init__(self, reason: "DisabledReason"):
        self.reason = reason
        super().__init__(reason.text)
