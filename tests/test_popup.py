"""Tests for the popup handler and suggestion helpers."""
from unittest.mock import Mock

import pytest

from gitlane.concurrency import Coordinator, Domain, Mutexes
from gitlane.exceptions import (
    DisabledReasonError,
    GitCommandError,
    LockOrderViolationError,
    OperationCancelledError,
    PopupAlreadyShowingError,
    UserInputError,
    WrongThreadError,
)
from gitlane.models import Model
from gitlane.models.entities import Branch, File, RemoteBranch
from gitlane.models.enums import ToastKind
from gitlane.popup import (
    Closed,
    ConfirmRequest,
    Confirmed,
    DisabledReason,
    MenuItem,
    MenuRequest,
    PopupHandler,
    PromptRequest,
    Selected,
    Submitted,
    Suggestion,
    SuggestionDeleted,
    SuggestionsHelper,
    match_names,
)


@pytest.fixture
def coordinator():
    coordinator = Coordinator()
    coordinator.bind_ui_thread()
    return coordinator


@pytest.fixture
def popup(coordinator):
    handler = PopupHandler(coordinator, Mutexes())
    coordinator.set_error_handler(handler.error_handler)
    return handler


def error_toasts(popup):
    return [m for m, kind in popup.toasts if kind is ToastKind.ERROR]


class TestPopupStateMachine:
    """Idle -> Showing -> Idle, one popup at a time."""

    def test_confirm_then_resolve(self, popup):
        on_confirm = Mock()
        popup.confirm(ConfirmRequest(title="Sure?", on_confirm=on_confirm))
        assert popup.is_showing()
        assert popup.current.title == "Sure?"

        popup.resolve(Confirmed())
        assert not popup.is_showing()
        on_confirm.assert_called_once_with()

    def test_close_runs_on_close_only(self, popup):
        on_confirm, on_close = Mock(), Mock()
        popup.confirm(ConfirmRequest(title="Sure?", on_confirm=on_confirm, on_close=on_close))
        popup.resolve(Closed())
        on_close.assert_called_once_with()
        on_confirm.assert_not_called()

    def test_second_popup_is_rejected(self, popup):
        popup.confirm(ConfirmRequest(title="First"))
        with pytest.raises(PopupAlreadyShowingError) as exc_info:
            popup.prompt(PromptRequest(title="Second", on_confirm=lambda text: None))
        assert exc_info.value.current_title == "First"
        assert popup.current.title == "First"

    def test_handler_can_open_next_popup(self, popup):
        popup.confirm(ConfirmRequest(
            title="First",
            on_confirm=lambda: popup.confirm(ConfirmRequest(title="Second")),
        ))
        popup.resolve(Confirmed())
        assert popup.current.title == "Second"

    def test_resolve_with_nothing_showing_is_ignored(self, popup):
        popup.resolve(Confirmed())
        assert not popup.is_showing()

    def test_presenter_sees_every_change(self, popup):
        views = []
        popup.set_presenter(views.append)
        popup.prompt(PromptRequest(title="Name", on_confirm=lambda text: None))
        popup.set_input("abc")
        popup.resolve(Closed())
        assert [v.input if v else None for v in views] == ["", "abc", None]

    def test_popups_only_on_ui_thread(self):
        handler = PopupHandler(Coordinator(), Mutexes())
        with pytest.raises(WrongThreadError):
            handler.confirm(ConfirmRequest(title="x"))

    def test_alert(self, popup):
        popup.alert("Error", "Something broke")
        assert popup.current.prompt == "Something broke"
        popup.resolve(Confirmed())
        assert not popup.is_showing()


class TestConfirmIf:
    def test_condition_true_shows_popup(self, popup):
        on_confirm = Mock()
        popup.confirm_if(True, ConfirmRequest(title="Sure?", on_confirm=on_confirm))
        assert popup.is_showing()
        on_confirm.assert_not_called()

    def test_condition_false_runs_handler_immediately(self, popup):
        on_confirm = Mock()
        popup.confirm_if(False, ConfirmRequest(title="Sure?", on_confirm=on_confirm))
        assert not popup.is_showing()
        on_confirm.assert_called_once_with()

    def test_condition_false_propagates_errors(self, popup):
        def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError):
            popup.confirm_if(False, ConfirmRequest(title="Sure?", on_confirm=fail))


class TestConfirmRequestValidation:
    def test_mask_requires_editable(self):
        with pytest.raises(ValueError):
            ConfirmRequest(title="Password", mask=True)

    def test_suggestions_require_editable(self):
        with pytest.raises(ValueError):
            ConfirmRequest(title="x", find_suggestions=lambda text: [])

    def test_editable_masked_confirm(self, popup):
        popup.confirm(ConfirmRequest(title="Password", editable=True, mask=True))
        popup.set_input("hunter2")
        assert popup.display_input() == "*******"
        assert popup.get_prompt_input() == "hunter2"


class TestPrompt:
    """Prompts collect text, offer suggestions and validate on submit."""

    def test_submit_passes_text(self, popup):
        received = []
        popup.prompt(PromptRequest(title="Name", on_confirm=received.append, initial_content="x"))
        assert popup.get_prompt_input() == "x"
        popup.resolve(Submitted("feature/login"))
        assert received == ["feature/login"]

    def test_confirm_uses_typed_text(self, popup):
        received = []
        popup.prompt(PromptRequest(title="Name", on_confirm=received.append))
        popup.set_input("typed")
        popup.resolve(Confirmed())
        assert received == ["typed"]

    def test_suggestions_follow_input(self, popup):
        model = Model()
        model.replace(files=[File("a.go"), File("b.go"), File("ab.go")])
        helper = SuggestionsHelper(model)
        popup.prompt(PromptRequest(
            title="File", on_confirm=lambda text: None,
            find_suggestions=helper.file_path_suggestions(),
        ))
        assert [s.value for s in popup.suggestions] == ["a.go", "b.go", "ab.go"]
        popup.set_input("a")
        assert [s.value for s in popup.suggestions] == ["a.go", "ab.go"]
        popup.apply_suggestion(1)
        assert popup.get_prompt_input() == "ab.go"

    def test_masked_prompt_display(self, popup):
        popup.prompt(PromptRequest(title="Token", on_confirm=lambda text: None, mask=True))
        popup.set_input("secret")
        assert popup.view().display_input == "******"
        assert popup.view().input == "secret"

    def test_validation_keeps_prompt_open(self, popup):
        received = []
        popup.prompt(PromptRequest(
            title="Name",
            on_confirm=received.append,
            validate=lambda text: None if text else "Name cannot be empty",
        ))
        popup.resolve(Submitted(""))
        assert popup.is_showing()
        assert popup.view().error == "Name cannot be empty"
        assert received == []

        popup.set_input("ok")
        assert popup.view().error is None
        popup.resolve(Confirmed())
        assert received == ["ok"]

    def test_user_input_error_reopens_prompt_with_text(self, popup):
        def on_confirm(text):
            raise UserInputError(f"'{text}' already exists")

        popup.prompt(PromptRequest(title="Name", on_confirm=on_confirm))
        popup.resolve(Submitted("main"))
        assert popup.is_showing()
        view = popup.view()
        assert view.input == "main"
        assert view.error == "'main' already exists"

    def test_suggestion_deleted(self, popup):
        names = ["one", "two", "three"]

        popup.prompt(PromptRequest(
            title="History",
            on_confirm=lambda text: None,
            find_suggestions=lambda text: [Suggestion(n) for n in names],
            on_delete_suggestion=lambda index: names.pop(index),
        ))
        popup.resolve(SuggestionDeleted(1))
        assert popup.is_showing()
        assert [s.value for s in popup.suggestions] == ["one", "three"]

    def test_suggestion_deleted_without_callback_is_ignored(self, popup):
        popup.prompt(PromptRequest(
            title="x", on_confirm=lambda text: None,
            find_suggestions=lambda text: [Suggestion("a")],
        ))
        popup.resolve(SuggestionDeleted(0))
        assert [s.value for s in popup.suggestions] == ["a"]

    def test_suggestion_label_defaults_to_value(self):
        assert Suggestion("main").label == "main"
        assert Suggestion("main", "main (current)").label == "main (current)"


class TestMenu:
    def test_cancel_item_appended(self, popup):
        popup.menu(MenuRequest(title="Branch", items=[MenuItem(label="Push")]))
        assert [i.label for i in popup.current.items] == ["Push", "Cancel"]

    def test_hide_cancel(self, popup):
        popup.menu(MenuRequest(title="Branch", items=[MenuItem(label="Push")], hide_cancel=True))
        assert [i.label for i in popup.current.items] == ["Push"]

    def test_select_runs_item(self, popup):
        pressed = Mock()
        popup.menu(MenuRequest(title="Branch", items=[MenuItem(label="Push", on_press=pressed)]))
        popup.resolve(Selected(0))
        pressed.assert_called_once_with()
        assert not popup.is_showing()

    def test_select_cancel_closes(self, popup):
        popup.menu(MenuRequest(title="Branch", items=[MenuItem(label="Push")]))
        popup.resolve(Selected(1))
        assert not popup.is_showing()

    def test_disabled_item_shows_reason_and_stays_open(self, popup):
        pressed = Mock()
        popup.menu(MenuRequest(title="Branch", items=[
            MenuItem(label="Push", on_press=pressed, disabled_reason=DisabledReason("No remotes")),
        ]))
        popup.resolve(Selected(0))
        pressed.assert_not_called()
        assert popup.is_showing()
        assert error_toasts(popup) == ["No remotes"]

    def test_press_menu_key(self, popup):
        pressed = Mock()
        popup.menu(MenuRequest(title="Branch", items=[
            MenuItem(label="Push", key="P", on_press=pressed),
        ]))
        assert popup.press_menu_key("x") is False
        assert popup.press_menu_key("P") is True
        pressed.assert_called_once_with()

    def test_press_menu_key_without_menu(self, popup):
        assert popup.press_menu_key("P") is False

    def test_confirmed_is_not_a_menu_answer(self, popup):
        popup.menu(MenuRequest(title="Branch", items=[MenuItem(label="Push")]))
        with pytest.raises(ValueError):
            popup.resolve(Confirmed())

    def test_selected_is_not_a_confirm_answer(self, popup):
        popup.confirm(ConfirmRequest(title="Sure?"))
        with pytest.raises(ValueError):
            popup.resolve(Selected(0))

    def test_display_labels(self):
        assert MenuItem(label="New branch", opens_menu=True).display_label() == "New branch..."
        assert MenuItem(label_columns=("a", "b")).display_label() == "a b"


class TestErrorHandler:
    """Errors are routed to a toast, an inline error or an alert."""

    def test_cancellation_is_silent(self, popup):
        popup.error_handler(OperationCancelledError())
        assert not popup.toasts
        assert not popup.is_showing()

    def test_user_input_error_inline_when_showing(self, popup):
        popup.prompt(PromptRequest(title="Name", on_confirm=lambda text: None))
        popup.error_handler(UserInputError("bad name"))
        assert popup.view().error == "bad name"
        assert not popup.toasts

    def test_user_input_error_toast_when_idle(self, popup):
        popup.error_handler(UserInputError("bad name"))
        assert error_toasts(popup) == ["bad name"]

    def test_disabled_reason_in_panel(self, popup):
        popup.error_handler(DisabledReasonError(DisabledReason("Long reason", show_error_in_panel=True)))
        assert popup.current.title == "Error"
        assert popup.current.prompt == "Long reason"

    def test_git_command_error_is_toast(self, popup):
        popup.error_handler(GitCommandError("git push", 1, "rejected"))
        assert not popup.is_showing()
        assert error_toasts(popup) == ["Command 'git push' failed with exit code 1: rejected"]

    def test_unexpected_error_alerts(self, popup):
        popup.error_handler(RuntimeError("boom"))
        assert popup.current.title == "Error"

    def test_unexpected_error_toasts_when_popup_showing(self, popup):
        popup.confirm(ConfirmRequest(title="Sure?"))
        popup.error_handler(RuntimeError("boom"))
        assert popup.current.title == "Sure?"
        assert error_toasts(popup) == ["boom"]

    def test_error_from_handler_is_routed(self, popup):
        def fail():
            raise RuntimeError("handler failed")

        popup.confirm(ConfirmRequest(title="Sure?", on_confirm=fail))
        popup.resolve(Confirmed())
        assert popup.current.title == "Error"
        assert popup.current.prompt == "handler failed"

    def test_lock_order_violation_from_handler_propagates(self, popup):
        """A lock-order violation in a confirm handler is fatal, never an alert."""
        mutexes = Mutexes()

        def take_locks_out_of_order():
            with mutexes.acquire(Domain.STATUS):
                with mutexes.acquire(Domain.BRANCHES):
                    pass

        popup.confirm(ConfirmRequest(title="Sure?", on_confirm=take_locks_out_of_order))
        with pytest.raises(LockOrderViolationError):
            popup.resolve(Confirmed())
        assert not popup.is_showing()
        assert not popup.toasts

    def test_lock_order_violation_reaches_drain(self, popup, coordinator):
        mutexes = Mutexes()

        def take_locks_out_of_order(text):
            with mutexes.acquire(Domain.STATUS):
                with mutexes.acquire(Domain.BRANCHES):
                    pass

        popup.prompt(PromptRequest(title="Name", on_confirm=take_locks_out_of_order))
        coordinator.on_ui_thread(lambda: popup.resolve(Submitted("x")))
        with pytest.raises(LockOrderViolationError):
            coordinator.drain()
        assert not popup.toasts

    def test_lock_order_violation_from_suggestion_delete_propagates(self, popup):
        mutexes = Mutexes()

        def delete(index):
            with mutexes.acquire(Domain.STATUS):
                with mutexes.acquire(Domain.AUTHORS):
                    pass

        popup.prompt(PromptRequest(
            title="History", on_confirm=lambda text: None,
            find_suggestions=lambda text: [Suggestion("a")],
            on_delete_suggestion=delete,
        ))
        with pytest.raises(LockOrderViolationError):
            popup.resolve(SuggestionDeleted(0))
        assert popup.current.title == "History"

    def test_error_handler_reraises_lock_order_violation(self, popup):
        with pytest.raises(LockOrderViolationError):
            popup.error_handler(LockOrderViolationError("branches", "status", ["status", "branches"]))
        assert not popup.is_showing()

    def test_toast_func_receives_kind(self, popup):
        toast_func = Mock()
        popup.set_toast_func(toast_func)
        popup.toast("Done")
        popup.error_toast("Failed")
        assert toast_func.call_args_list[0].args == ("Done", ToastKind.STATUS)
        assert toast_func.call_args_list[1].args == ("Failed", ToastKind.ERROR)


class TestWaitingStatus:
    def test_sync_status_shown_while_running(self, popup):
        seen = []
        statuses = []
        popup.set_status_listener(statuses.append)
        popup.with_waiting_status_sync("Loading...", lambda: seen.append(popup.waiting_status()))
        assert seen == ["Loading..."]
        assert popup.waiting_status() is None
        assert statuses == ["Loading...", None]

    def test_async_status_is_pushed_and_popped(self, popup, coordinator):
        task = popup.with_waiting_status("Fetching...", lambda task: None)
        assert task.wait(2)
        coordinator.drain()
        assert popup.waiting_status() is None


class TestSuggestionsHelper:
    def test_match_names_prefix_first(self):
        names = ["feature/main-fix", "main", "maintenance", "other"]
        assert match_names(names, "main") == ["main", "maintenance", "feature/main-fix"]

    def test_match_names_case_insensitive_and_limited(self):
        assert match_names(["Alpha", "alphabet", "beta"], "ALP", limit=1) == ["Alpha"]
        assert match_names(["x", "y"], "") == ["x", "y"]

    def test_branch_and_remote_branch_suggestions(self):
        model = Model()
        model.replace(
            branches=[Branch("main"), Branch("feature")],
            remote_branches=[RemoteBranch("main", "origin")],
        )
        helper = SuggestionsHelper(model)
        assert [s.value for s in helper.branch_name_suggestions()("fea")] == ["feature"]
        assert [s.value for s in helper.remote_branch_suggestions()("origin")] == ["origin/main"]
        assert [s.value for s in helper.ref_suggestions()("main")] == ["main", "origin/main"]

    def test_suggestions_see_latest_model(self):
        model = Model()
        helper = SuggestionsHelper(model)
        find = helper.branch_name_suggestions()
        assert find("") == []
        model.replace(branches=[Branch("new")])
        assert [s.value for s in find("")] == ["new"]
