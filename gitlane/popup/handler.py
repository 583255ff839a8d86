"""Modal interaction manager.

One popup at a time: ``Idle -> Showing(request) -> Idle``. Every method here
runs on the UI thread. Resolving a popup returns to ``Idle`` before its
handler runs, so a handler is free to open the next popup.
"""
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from gitlane.concurrency.coordinator import Coordinator, Task
from gitlane.concurrency.mutexes import Mutexes
from gitlane.constants import ERROR_TITLE
from gitlane.exceptions import (
    DisabledReasonError,
    GitCommandError,
    LockOrderViolationError,
    OperationCancelledError,
    PopupAlreadyShowingError,
    UserInputError,
)
from gitlane.logging_config import get_logger
from gitlane.models.enums import ToastKind
from gitlane.popup.requests import (
    Closed,
    ConfirmRequest,
    Confirmed,
    MenuRequest,
    ModalRequest,
    PopupView,
    PromptRequest,
    Resolution,
    Selected,
    Submitted,
    Suggestion,
    SuggestionDeleted,
)

logger = get_logger(__name__)

ToastFunc = Callable[[str, ToastKind], None]
Presenter = Callable[[Optional[PopupView]], None]

TOAST_HISTORY = 50


class PopupHandler:
    """Shows confirm/prompt/menu popups, toasts and waiting statuses."""

    def __init__(self, coordinator: Coordinator, mutexes: Mutexes):
        self._coordinator = coordinator
        self._mutexes = mutexes
        self._current: Optional[ModalRequest] = None
        self._input = ""
        self._suggestions: Tuple[Suggestion, ...] = ()
        self._error: Optional[str] = None
        self._presenter: Optional[Presenter] = None
        self._toast_func: Optional[ToastFunc] = None
        self.toasts: Deque[Tuple[str, ToastKind]] = deque(maxlen=TOAST_HISTORY)
        self._waiting_statuses: List[str] = []
        self._on_status_change: Optional[Callable[[Optional[str]], None]] = None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def set_presenter(self, presenter: Optional[Presenter]) -> None:
        """Called with the popup to draw, or None when idle."""
        self._presenter = presenter

    def set_toast_func(self, toast_func: Optional[ToastFunc]) -> None:
        self._toast_func = toast_func

    def set_status_listener(self, listener: Optional[Callable[[Optional[str]], None]]) -> None:
        self._on_status_change = listener

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current(self) -> Optional[ModalRequest]:
        return self._current

    def is_showing(self) -> bool:
        return self._current is not None

    def view(self) -> Optional[PopupView]:
        if self._current is None:
            return None
        return PopupView(
            request=self._current,
            input=self._input,
            suggestions=self._suggestions,
            error=self._error,
        )

    def get_prompt_input(self) -> str:
        """Text currently typed into the popup (kept after it closes)."""
        return self._input

    def display_input(self) -> str:
        view = self.view()
        return view.display_input if view else ""

    @property
    def suggestions(self) -> Tuple[Suggestion, ...]:
        return self._suggestions

    # ------------------------------------------------------------------
    # Showing popups
    # ------------------------------------------------------------------

    def confirm(self, request: ConfirmRequest) -> None:
        """Show a popup asking the user for confirmation."""
        self._show(request)

    def confirm_if(self, condition: bool, request: ConfirmRequest) -> None:
        """Ask for confirmation only if ``condition`` holds.

        Otherwise the confirm handler runs right away, exactly as if the
        user had confirmed. Errors from the handler propagate to the caller.
        """
        if condition:
            self._show(request)
            return
        if request.on_confirm is not None:
            request.on_confirm()

    def prompt(self, request: PromptRequest) -> None:
        """Show a popup prompting the user for input."""
        self._show(request)

    def menu(self, request: MenuRequest) -> None:
        self._show(request.with_cancel())

    def alert(self, title: str, message: str) -> None:
        """Notification popup; closes on confirm or cancel."""
        self._show(ConfirmRequest(title=title, prompt=message))

    def _show(self, request: ModalRequest, initial_input: Optional[str] = None,
              error: Optional[str] = None) -> None:
        self._coordinator.assert_ui_thread("popups")
        with self._mutexes.popup:
            if self._current is not None:
                raise PopupAlreadyShowingError(self._current.title, request.title)
            self._current = request
            self._input = request.initial_content if initial_input is None else initial_input
            self._suggestions = ()
            self._error = error
        logger.debug(f"Showing {type(request).__name__} '{request.title}'")
        if request.find_suggestions is not None:
            self._update_suggestions()
        self._present()

    def _close(self) -> Optional[ModalRequest]:
        with self._mutexes.popup:
            request = self._current
            self._current = None
            self._suggestions = ()
            self._error = None
        self._present()
        return request

    def _present(self) -> None:
        if self._presenter is not None:
            self._presenter(self.view())

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def set_input(self, text: str) -> None:
        """Keystroke in an editable popup: store text, refresh suggestions."""
        self._coordinator.assert_ui_thread("popup input")
        if self._current is None or not self._current.is_editable:
            return
        self._input = text
        self._error = None
        self._update_suggestions()
        self._present()

    def apply_suggestion(self, index: int) -> None:
        if 0 <= index < len(self._suggestions):
            self.set_input(self._suggestions[index].value)

    def _update_suggestions(self) -> None:
        find = self._current.find_suggestions if self._current else None
        self._suggestions = tuple(find(self._input)) if find else ()

    def press_menu_key(self, key: str) -> bool:
        """Invoke the menu item bound to ``key``. Returns False if there is none."""
        if not isinstance(self._current, MenuRequest):
            return False
        index = self._current.index_for_key(key)
        if index is None:
            return False
        self.resolve(Selected(index))
        return True

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, resolution: Resolution) -> None:
        """Single entry point for every way a popup can be answered."""
        self._coordinator.assert_ui_thread("popups")
        request = self._current
        if request is None:
            logger.warning(f"Ignoring {type(resolution).__name__}: no popup is showing")
            return

        if isinstance(resolution, SuggestionDeleted):
            self._delete_suggestion(request, resolution.index)
            return

        if isinstance(resolution, Submitted):
            self._input = resolution.text

        validate = getattr(request, "validate", None)
        if validate is not None and isinstance(resolution, (Submitted, Confirmed)):
            message = validate(self._input)
            if message:
                self._error = message
                self._present()
                return

        if isinstance(resolution, Selected):
            if not isinstance(request, MenuRequest):
                raise ValueError(f"Selected is not a valid answer to {type(request).__name__}")
            if not 0 <= resolution.index < len(request.items):
                raise IndexError(f"Menu item {resolution.index} out of range")
            item = request.items[resolution.index]
            if item.disabled_reason is not None:
                self.error_handler(DisabledReasonError(item.disabled_reason))
                return

        handler = self._handler_for(request, resolution)
        typed = self._input
        self._close()

        if handler is None:
            return
        try:
            handler()
        except UserInputError as e:
            if self._current is None and isinstance(request, PromptRequest):
                self._show(request, initial_input=typed, error=str(e))
            else:
                self.error_handler(e)
        except LockOrderViolationError:
            raise
        except Exception as e:
            self.error_handler(e)

    def _handler_for(self, request: ModalRequest, resolution: Resolution):
        if isinstance(resolution, Closed):
            return getattr(request, "on_close", None)

        if isinstance(request, ConfirmRequest):
            if isinstance(resolution, (Confirmed, Submitted)):
                return request.on_confirm
        elif isinstance(request, PromptRequest):
            if isinstance(resolution, (Confirmed, Submitted)):
                text = self._input
                return lambda: request.on_confirm(text)
        elif isinstance(request, MenuRequest):
            if isinstance(resolution, Selected):
                return request.items[resolution.index].on_press
            if isinstance(resolution, Confirmed):
                raise ValueError("A menu is answered with Selected, not Confirmed")

        raise ValueError(
            f"{type(resolution).__name__} is not a valid answer to {type(request).__name__}"
        )

    def _delete_suggestion(self, request: ModalRequest, index: int) -> None:
        on_delete = getattr(request, "on_delete_suggestion", None)
        if on_delete is None:
            return
        try:
            on_delete(index)
        except LockOrderViolationError:
            raise
        except Exception as e:
            self.error_handler(e)
            return
        self._update_suggestions()
        self._present()

    # ------------------------------------------------------------------
    # Errors and toasts
    # ------------------------------------------------------------------

    def error_handler(self, err: BaseException) -> None:
        """Decide how an error reaches the user. The only presentation point."""
        if isinstance(err, LockOrderViolationError):
            # Fatal; it must reach the UI loop instead of becoming a popup
            raise err

        if isinstance(err, OperationCancelledError):
            logger.debug(f"Cancelled: {err}")
            return

        if isinstance(err, UserInputError):
            if self._current is not None:
                self._error = str(err)
                self._present()
            else:
                self.error_toast(str(err))
            return

        if isinstance(err, DisabledReasonError):
            if err.reason.show_error_in_panel and self._current is None:
                self.alert(ERROR_TITLE, err.reason.text)
            else:
                self.error_toast(err.reason.text)
            return

        if isinstance(err, GitCommandError):
            logger.warning(str(err))
            self.error_toast(str(err))
            return

        logger.error(f"Error: {err}", exc_info=err)
        if self._current is not None:
            self.error_toast(str(err))
        else:
            self.alert(ERROR_TITLE, str(err))

    def toast(self, message: str) -> None:
        self._emit_toast(message, ToastKind.STATUS)

    def error_toast(self, message: str) -> None:
        self._emit_toast(message, ToastKind.ERROR)

    def _emit_toast(self, message: str, kind: ToastKind) -> None:
        self.toasts.append((message, kind))
        if kind is ToastKind.ERROR:
            logger.info(f"Error toast: {message}")
        if self._toast_func is not None:
            self._toast_func(message, kind)

    # ------------------------------------------------------------------
    # Waiting status
    # ------------------------------------------------------------------

    def waiting_status(self) -> Optional[str]:
        return self._waiting_statuses[-1] if self._waiting_statuses else None

    def _push_status(self, message: str) -> None:
        self._waiting_statuses.append(message)
        self._status_changed()

    def _pop_status(self, message: str) -> None:
        if message in self._waiting_statuses:
            self._waiting_statuses.remove(message)
        self._status_changed()

    def _status_changed(self) -> None:
        if self._on_status_change is not None:
            self._on_status_change(self.waiting_status())

    def with_waiting_status(self, message: str, f: Callable[[Task], None]) -> Task:
        """Run ``f`` on a worker while ``message`` is shown in the status bar."""
        coordinator = self._coordinator

        def run(task: Task) -> None:
            coordinator.on_ui_thread(lambda: self._push_status(message))
            try:
                f(task)
            finally:
                coordinator.on_ui_thread(lambda: self._pop_status(message))

        return coordinator.on_worker(run, name=message)

    def with_waiting_status_sync(self, message: str, f: Callable[[], None]) -> None:
        """Run ``f`` on the UI thread with ``message`` shown while it runs."""
        self._coordinator.assert_ui_thread("waiting status")
        self._push_status(message)
        try:
            f()
        finally:
            self._pop_status(message)
