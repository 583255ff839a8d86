"""Branch operations: push, pull, fetch, delete, checkout, create."""
from typing import Optional

from gitlane.concurrency.coordinator import Task
from gitlane.context import ContextKey
from gitlane.exceptions import DisabledReasonError, GitCommandError, UserInputError
from gitlane.gui_common import GuiCommon
from gitlane.logging_config import get_logger
from gitlane.models.entities import Branch, Remote
from gitlane.models.enums import ItemOperation
from gitlane.popup.requests import (
    ConfirmRequest,
    DisabledReason,
    MenuItem,
    MenuRequest,
    PromptRequest,
)
from gitlane.popup.suggestions import SuggestionsHelper
from gitlane.refresh import RefreshMode, RefreshOptions, RefreshScope
from gitlane.services.command_runner import CommandRunner, git_args

logger = get_logger(__name__)

BRANCH_SCOPES = frozenset({
    RefreshScope.BRANCHES,
    RefreshScope.COMMITS,
    RefreshScope.REMOTES,
    RefreshScope.STATUS,
})
CHECKOUT_SCOPES = BRANCH_SCOPES | {RefreshScope.FILES, RefreshScope.REFLOG}

NOT_FULLY_MERGED = "not fully merged"


def validate_branch_name(name: str) -> Optional[str]:
    """Returns an error message for names git would reject, else None."""
    name = name.strip()
    if not name:
        return "Branch name cannot be empty"
    if any(c.isspace() for c in name):
        return "Branch name cannot contain spaces"
    if name.startswith("-") or name.endswith("/") or name.endswith(".lock"):
        return f"'{name}' is not a valid branch name"
    if ".." in name or any(c in name for c in "~^:?*[\\"):
        return f"'{name}' is not a valid branch name"
    return None


class BranchActionsHelper:
    """User-facing branch actions.

    Public methods run on the UI thread; the git work itself runs on a
    worker with an inline status on the affected item, and is followed by
    an asynchronous refresh of the scopes it changed.
    """

    def __init__(self, common: GuiCommon, runner: CommandRunner, suggestions: SuggestionsHelper):
        self.c = common
        self._runner = runner
        self._suggestions = suggestions

    # Disabled reasons

    def push_disabled_reason(self, branch: Branch) -> Optional[DisabledReason]:
        if not branch.is_tracking_remote and not self.c.model.remotes:
            return DisabledReason("No remotes configured")
        return None

    def pull_disabled_reason(self, branch: Branch) -> Optional[DisabledReason]:
        if not branch.is_tracking_remote:
            return DisabledReason(f"Branch '{branch.name}' has no upstream")
        return None

    def delete_disabled_reason(self, branch: Branch) -> Optional[DisabledReason]:
        if branch.head or branch.name == self.c.model.checked_out_branch:
            return DisabledReason("You cannot delete the checked out branch!")
        return None

    def _check(self, reason: Optional[DisabledReason]) -> None:
        if reason is not None:
            raise DisabledReasonError(reason)

    # Push

    def push(self, branch: Branch) -> None:
        self._check(self.push_disabled_reason(branch))
        if branch.is_tracking_remote:
            self._push(branch, [branch.upstream_remote, f"{branch.name}:{branch.upstream_branch}"])
            return

        default_remote = self.c.model.remotes[0].name
        self.c.popups.prompt(PromptRequest(
            title=f"Enter upstream as '<remote> <branchname>' for '{branch.name}'",
            initial_content=f"{default_remote} {branch.name}",
            find_suggestions=self._suggestions.remote_branch_suggestions(),
            validate=self._validate_upstream,
            on_confirm=lambda text: self._push(branch, ["--set-upstream", *self._parse_upstream(text)]),
        ))

    @staticmethod
    def _parse_upstream(text: str):
        """Both "origin feature" and "origin/feature" give [remote, branch]."""
        return text.replace("/", " ", 1).split()

    def _validate_upstream(self, text: str) -> Optional[str]:
        if len(self._parse_upstream(text)) != 2:
            return "Upstream must be '<remote> <branchname>'"
        return None

    def _push(self, branch: Branch, args) -> None:
        self.c.log_action(f"Push {branch.name}")

        def run(task: Task) -> None:
            self._runner.run(git_args("push", *args), task)
            self._refresh(BRANCH_SCOPES)

        self.c.inline_status.with_inline_status(
            branch, ItemOperation.PUSHING, ContextKey.LOCAL_BRANCHES, run
        )

    # Pull / fast-forward

    def pull(self, branch: Branch) -> None:
        """Pull into the checked out branch, or fast-forward any other branch."""
        self._check(self.pull_disabled_reason(branch))
        if branch.head:
            self.c.log_action(f"Pull {branch.name}")
            args = git_args("pull", "--no-edit", branch.upstream_remote, branch.upstream_branch)
            operation = ItemOperation.PULLING
            scopes = CHECKOUT_SCOPES
        else:
            self.c.log_action(f"Fast-forward {branch.name}")
            args = git_args(
                "fetch", branch.upstream_remote, f"{branch.upstream_branch}:{branch.name}"
            )
            operation = ItemOperation.FAST_FORWARDING
            scopes = BRANCH_SCOPES

        def run(task: Task) -> None:
            self._runner.run(args, task)
            self._refresh(scopes)

        self.c.inline_status.with_inline_status(branch, operation, ContextKey.LOCAL_BRANCHES, run)

    # Fetch

    def fetch_all(self) -> Task:
        self.c.log_action("Fetch")

        def run(task: Task) -> None:
            self._runner.run(git_args("fetch", "--all", "--prune"), task)
            self._refresh(BRANCH_SCOPES | {RefreshScope.TAGS})

        return self.c.popups.with_waiting_status("Fetching...", run)

    def fetch_remote(self, remote: Remote) -> Task:
        self.c.log_action(f"Fetch {remote.name}")

        def run(task: Task) -> None:
            self._runner.run(git_args("fetch", remote.name, "--prune"), task)
            self._refresh(BRANCH_SCOPES)

        return self.c.inline_status.with_inline_status(
            remote, ItemOperation.FETCHING, ContextKey.REMOTES, run
        )

    # Delete

    def delete(self, branch: Branch) -> None:
        self._check(self.delete_disabled_reason(branch))
        self.c.popups.confirm(ConfirmRequest(
            title="Delete branch",
            prompt=f"Are you sure you want to delete the branch '{branch.name}'?",
            on_confirm=lambda: self._delete(branch, force=False),
        ))

    def _delete(self, branch: Branch, force: bool) -> None:
        self.c.log_action(f"Delete branch {branch.name}")

        def run(task: Task) -> None:
            try:
                self._runner.run(git_args("branch", "-D" if force else "-d", branch.name), task)
            except GitCommandError as e:
                if force or NOT_FULLY_MERGED not in (e.stderr or ""):
                    raise
                self.c.concurrency.on_ui_thread(lambda: self._confirm_force_delete(branch))
                return
            self._refresh(BRANCH_SCOPES)

        self.c.inline_status.with_inline_status(
            branch, ItemOperation.DELETING, ContextKey.LOCAL_BRANCHES, run
        )

    def _confirm_force_delete(self, branch: Branch) -> None:
        self.c.popups.confirm(ConfirmRequest(
            title="Force delete branch",
            prompt=f"'{branch.name}' is not fully merged. Delete it anyway?",
            on_confirm=lambda: self._delete(branch, force=True),
        ))

    # Checkout

    def checkout(self, branch: Branch) -> None:
        """Check out ``branch``, asking first if the working tree has changes."""
        if branch.head:
            self.c.popups.toast(f"Already on '{branch.name}'")
            return
        has_changes = bool(self.c.model.files)
        self.c.popups.confirm_if(has_changes, ConfirmRequest(
            title="Checkout branch",
            prompt=(
                f"You have local changes. Check out '{branch.name}' anyway? "
                "Git will refuse if they conflict."
            ),
            on_confirm=lambda: self._checkout(branch),
        ))

    def _checkout(self, branch: Branch) -> None:
        self.c.log_action(f"Checkout {branch.name}")

        def run(task: Task) -> None:
            self._runner.run(git_args("checkout", branch.name), task)
            self._refresh(CHECKOUT_SCOPES)

        self.c.inline_status.with_inline_status(
            branch, ItemOperation.CHECKING_OUT, ContextKey.LOCAL_BRANCHES, run
        )

    # New branch

    def new_branch(self, base: Optional[Branch] = None) -> None:
        base_name = base.name if base is not None else self.c.model.checked_out_branch
        self.c.popups.prompt(PromptRequest(
            title=f"New branch name (branch is off of '{base_name}')",
            find_suggestions=self._suggestions.branch_name_suggestions(),
            validate=validate_branch_name,
            on_confirm=lambda name: self._new_branch(name.strip(), base_name),
        ))

    def _new_branch(self, name: str, base_name: str) -> None:
        if self.c.model.find_branch(name) is not None:
            raise UserInputError(f"A branch named '{name}' already exists")
        self.c.log_action(f"Create branch {name}")
        args = git_args("checkout", "-b", name)
        if base_name:
            args.append(base_name)

        def run(task: Task) -> None:
            self._runner.run(args, task)
            self._refresh(CHECKOUT_SCOPES)

        self.c.popups.with_waiting_status("Creating branch...", run)

    # Menu

    def options_menu(self, branch: Branch) -> None:
        self.c.popups.menu(MenuRequest(
            title=f"Branch '{branch.name}'",
            items=(
                MenuItem(label="Checkout", key="space", on_press=lambda: self.checkout(branch)),
                MenuItem(
                    label="Push",
                    key="P",
                    on_press=lambda: self.push(branch),
                    disabled_reason=self.push_disabled_reason(branch),
                ),
                MenuItem(
                    label="Pull" if branch.head else "Fast-forward",
                    key="p",
                    on_press=lambda: self.pull(branch),
                    disabled_reason=self.pull_disabled_reason(branch),
                ),
                MenuItem(
                    label="New branch",
                    key="n",
                    opens_menu=True,
                    on_press=lambda: self.new_branch(branch),
                ),
                MenuItem(
                    label="Delete",
                    key="d",
                    on_press=lambda: self.delete(branch),
                    disabled_reason=self.delete_disabled_reason(branch),
                ),
            ),
        ))

    def _refresh(self, scopes) -> None:
        self.c.refresher.refresh(RefreshOptions(scope=scopes, mode=RefreshMode.ASYNC))
