"""Tests for branch actions driven through popups and workers."""
import pytest

from gitlane.exceptions import DisabledReasonError, GitCommandError
from gitlane.helpers.branch_actions import validate_branch_name
from gitlane.models.entities import Branch, File, Remote
from gitlane.models.enums import ItemOperation, ToastKind
from gitlane.popup import Confirmed, MenuRequest, PromptRequest, Selected, Submitted


def commands(runner):
    return [c.args[0] for c in runner.run.call_args_list]


@pytest.fixture
def main_branch():
    return Branch("main", hash="abc", head=True, upstream_remote="origin", upstream_branch="main")


@pytest.fixture
def feature_branch():
    return Branch("feature", hash="def")


@pytest.fixture
def with_branches(gui, main_branch, feature_branch):
    gui.model.replace(
        branches=[main_branch, feature_branch],
        remotes=[Remote("origin")],
        checked_out_branch="main",
    )
    return gui


class TestValidateBranchName:
    @pytest.mark.parametrize("name", ["feature/login", "fix-123", "release/v1.2"])
    def test_valid(self, name):
        assert validate_branch_name(name) is None

    @pytest.mark.parametrize("name", ["", "  ", "has space", "-x", "x/", "x.lock", "a..b", "a:b", "a~1"])
    def test_invalid(self, name):
        assert validate_branch_name(name) is not None


class TestPush:
    def test_push_tracking_branch(self, with_branches, ui, mock_runner, fake_loader, main_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.push(main_branch))
        ui.settle()
        assert commands(mock_runner) == [["git", "push", "origin", "main:main"]]
        assert fake_loader.calls["branches"] == 1
        assert fake_loader.calls["files"] == 0
        assert gui.state.get_item_operation(main_branch) is ItemOperation.NONE
        assert gui.action_log.entries()[0].text == "Push main"

    def test_push_without_upstream_prompts(self, with_branches, ui, mock_runner, feature_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.push(feature_branch))
        request = gui.popup.current
        assert isinstance(request, PromptRequest)
        assert gui.popup.get_prompt_input() == "origin feature"

        ui.call(lambda: gui.popup.resolve(Submitted("origin/feature")))
        ui.settle()
        assert commands(mock_runner) == [["git", "push", "--set-upstream", "origin", "feature"]]

    def test_invalid_upstream_keeps_prompt_open(self, with_branches, ui, mock_runner, feature_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.push(feature_branch))
        ui.call(lambda: gui.popup.resolve(Submitted("origin")))
        assert gui.popup.is_showing()
        assert gui.popup.view().error == "Upstream must be '<remote> <branchname>'"
        mock_runner.run.assert_not_called()

    def test_push_disabled_without_remotes(self, gui, ui, feature_branch):
        with pytest.raises(DisabledReasonError) as exc_info:
            ui.call(lambda: gui.branch_actions.push(feature_branch))
        assert exc_info.value.reason.text == "No remotes configured"


class TestPull:
    def test_pull_checked_out_branch(self, with_branches, ui, mock_runner, main_branch):
        ui.call(lambda: with_branches.branch_actions.pull(main_branch))
        ui.settle()
        assert commands(mock_runner) == [["git", "pull", "--no-edit", "origin", "main"]]

    def test_fast_forward_other_branch(self, with_branches, ui, mock_runner):
        other = Branch("dev", upstream_remote="origin", upstream_branch="dev")
        ui.call(lambda: with_branches.branch_actions.pull(other))
        ui.settle()
        assert commands(mock_runner) == [["git", "fetch", "origin", "dev:dev"]]

    def test_pull_without_upstream_disabled(self, with_branches, ui, feature_branch):
        with pytest.raises(DisabledReasonError):
            ui.call(lambda: with_branches.branch_actions.pull(feature_branch))


class TestFetch:
    def test_fetch_all_with_waiting_status(self, with_branches, ui, mock_runner, fake_loader):
        statuses = []
        with_branches.popup.set_status_listener(statuses.append)
        ui.call(with_branches.branch_actions.fetch_all)
        ui.settle()
        assert commands(mock_runner) == [["git", "fetch", "--all", "--prune"]]
        assert statuses == ["Fetching...", None]
        assert fake_loader.calls["tags"] == 1

    def test_fetch_remote(self, with_branches, ui, mock_runner):
        ui.call(lambda: with_branches.branch_actions.fetch_remote(Remote("origin")))
        ui.settle()
        assert commands(mock_runner) == [["git", "fetch", "origin", "--prune"]]


class TestDelete:
    def test_delete_after_confirm(self, with_branches, ui, mock_runner, feature_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.delete(feature_branch))
        assert gui.popup.current.title == "Delete branch"
        mock_runner.run.assert_not_called()

        ui.call(lambda: gui.popup.resolve(Confirmed()))
        ui.settle()
        assert commands(mock_runner) == [["git", "branch", "-d", "feature"]]

    def test_not_fully_merged_asks_to_force(self, with_branches, ui, mock_runner, feature_branch):
        gui = with_branches

        def run(args, task=None, check=True):
            if args[2] == "-d":
                raise GitCommandError(
                    "git branch -d feature", 1,
                    "error: The branch 'feature' is not fully merged.",
                )
            return None

        mock_runner.run.side_effect = run
        ui.call(lambda: gui.branch_actions.delete(feature_branch))
        ui.call(lambda: gui.popup.resolve(Confirmed()))
        ui.settle()
        assert gui.popup.current.title == "Force delete branch"
        assert not gui.popup.toasts

        ui.call(lambda: gui.popup.resolve(Confirmed()))
        ui.settle()
        assert commands(mock_runner)[-1] == ["git", "branch", "-D", "feature"]
        assert not gui.popup.is_showing()

    def test_other_delete_errors_are_toasted(self, with_branches, ui, mock_runner, feature_branch):
        gui = with_branches
        mock_runner.run.side_effect = GitCommandError("git branch -d feature", 1, "fatal: oops")
        ui.call(lambda: gui.branch_actions.delete(feature_branch))
        ui.call(lambda: gui.popup.resolve(Confirmed()))
        ui.settle()
        assert not gui.popup.is_showing()
        assert [kind for _, kind in gui.popup.toasts] == [ToastKind.ERROR]

    def test_cannot_delete_checked_out_branch(self, with_branches, ui, main_branch):
        with pytest.raises(DisabledReasonError) as exc_info:
            ui.call(lambda: with_branches.branch_actions.delete(main_branch))
        assert exc_info.value.reason.text == "You cannot delete the checked out branch!"


class TestCheckout:
    def test_checkout_clean_tree_runs_immediately(self, with_branches, ui, mock_runner, fake_loader,
                                                  feature_branch):
        ui.call(lambda: with_branches.branch_actions.checkout(feature_branch))
        ui.settle()
        assert not with_branches.popup.is_showing()
        assert commands(mock_runner) == [["git", "checkout", "feature"]]
        assert fake_loader.calls["files"] == 1
        assert fake_loader.calls["reflog"] == 1

    def test_checkout_with_changes_asks_first(self, with_branches, ui, mock_runner, feature_branch):
        gui = with_branches
        gui.model.replace(files=[File("dirty.txt", short_status=" M")])
        ui.call(lambda: gui.branch_actions.checkout(feature_branch))
        assert gui.popup.current.title == "Checkout branch"
        mock_runner.run.assert_not_called()

        ui.call(lambda: gui.popup.resolve(Confirmed()))
        ui.settle()
        assert commands(mock_runner) == [["git", "checkout", "feature"]]

    def test_checkout_current_branch_toasts(self, with_branches, ui, mock_runner, main_branch):
        ui.call(lambda: with_branches.branch_actions.checkout(main_branch))
        assert list(with_branches.popup.toasts) == [("Already on 'main'", ToastKind.STATUS)]
        mock_runner.run.assert_not_called()


class TestNewBranch:
    def test_create_from_base(self, with_branches, ui, mock_runner, main_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.new_branch(main_branch))
        assert "main" in gui.popup.current.title
        ui.call(lambda: gui.popup.resolve(Submitted("feature/login")))
        ui.settle()
        assert commands(mock_runner) == [["git", "checkout", "-b", "feature/login", "main"]]

    def test_existing_name_reopens_prompt(self, with_branches, ui, mock_runner):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.new_branch())
        ui.call(lambda: gui.popup.resolve(Submitted("feature")))
        assert gui.popup.is_showing()
        assert gui.popup.view().error == "A branch named 'feature' already exists"
        assert gui.popup.get_prompt_input() == "feature"
        mock_runner.run.assert_not_called()

    def test_invalid_name_rejected(self, with_branches, ui, mock_runner):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.new_branch())
        ui.call(lambda: gui.popup.resolve(Submitted("bad name")))
        assert gui.popup.view().error == "Branch name cannot contain spaces"

    def test_branch_name_suggestions(self, with_branches, ui):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.new_branch())
        ui.call(lambda: gui.popup.set_input("fea"))
        assert [s.value for s in gui.popup.suggestions] == ["feature"]


class TestOptionsMenu:
    def test_menu_items_and_disabled_reasons(self, with_branches, ui, main_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.options_menu(main_branch))
        menu = gui.popup.current
        assert isinstance(menu, MenuRequest)
        assert [i.display_label() for i in menu.items] == [
            "Checkout", "Push", "Pull", "New branch...", "Delete", "Cancel",
        ]
        delete = menu.items[4]
        assert delete.disabled_reason.text == "You cannot delete the checked out branch!"

    def test_disabled_item_key_shows_reason(self, with_branches, ui, feature_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.options_menu(feature_branch))
        assert gui.popup.current.items[2].label == "Fast-forward"
        assert ui.call(lambda: gui.popup.press_menu_key("p")) is True
        assert gui.popup.is_showing()
        assert gui.popup.toasts[-1] == ("Branch 'feature' has no upstream", ToastKind.ERROR)

    def test_menu_item_opens_next_popup(self, with_branches, ui, feature_branch):
        gui = with_branches
        ui.call(lambda: gui.branch_actions.options_menu(feature_branch))
        ui.call(lambda: gui.popup.resolve(Selected(4)))
        assert gui.popup.current.title == "Delete branch"
