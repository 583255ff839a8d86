"""Shared application model"""
from threading import Lock
from typing import Any, Dict, List, Optional

from gitlane.models.entities import (
    Author,
    Branch,
    Commit,
    CommitFile,
    File,
    Remote,
    RemoteBranch,
    StashEntry,
    Submodule,
    Tag,
    Worktree,
)
from gitlane.models.enums import WorkingTreeState
from gitlane.utils.prefix_index import PrefixIndex
from gitlane.utils.string_pool import StringPool


class Model:
    """Mutable snapshot of repository state.

    Sequences are only ever replaced wholesale through ``replace`` (never
    mutated in place), so a reader holding a reference to a list sees a
    consistent, if possibly stale, view. Readers that need several fields
    from the same generation use ``snapshot``.
    """

    SEQUENCE_FIELDS = (
        "commit_files",
        "files",
        "submodules",
        "branches",
        "commits",
        "stash_entries",
        "sub_commits",
        "remotes",
        "worktrees",
        "filtered_reflog_commits",
        "reflog_commits",
        "remote_branches",
        "tags",
    )
    SCALAR_FIELDS = (
        "working_tree_state",
        "checked_out_branch",
        "main_branches",
        "authors",
    )

    def __init__(self):
        self._lock = Lock()

        self.commit_files: List[CommitFile] = []
        self.files: List[File] = []
        self.submodules: List[Submodule] = []
        self.branches: List[Branch] = []
        self.commits: List[Commit] = []
        self.stash_entries: List[StashEntry] = []
        self.sub_commits: List[Commit] = []
        self.remotes: List[Remote] = []
        self.worktrees: List[Worktree] = []

        # The reflog panel shows filtered_reflog_commits. In filtering mode it
        # only holds entries touching the filter path; otherwise it is the
        # very same list as reflog_commits.
        self.filtered_reflog_commits: List[Commit] = []
        # Used by the branches panel for recency and by undo
        self.reflog_commits: List[Commit] = []

        self.remote_branches: List[RemoteBranch] = []
        self.tags: List[Tag] = []

        self.working_tree_state: WorkingTreeState = WorkingTreeState.NONE
        # Set even on a detached head while rebasing or bisecting
        self.checked_out_branch: str = ""
        self.main_branches: List[str] = []
        self.authors: Dict[str, Author] = {}

        # For suggestions while typing a file name
        self.files_index: PrefixIndex = PrefixIndex()
        self.hash_pool: StringPool = StringPool()

    def replace(self, **fields: Any) -> None:
        """Swap one or more fields in a single critical section.

        Replacing ``files`` rebuilds the prefix index in the same step so the
        index can never lag behind the files it describes.
        """
        for name in fields:
            if name not in self.SEQUENCE_FIELDS and name not in self.SCALAR_FIELDS:
                raise AttributeError(f"Model has no replaceable field '{name}'")

        files_index = None
        if "files" in fields:
            files_index = PrefixIndex(f.path for f in fields["files"])

        with self._lock:
            for name, value in fields.items():
                if name in self.SEQUENCE_FIELDS:
                    value = list(value)
                setattr(self, name, value)
            if files_index is not None:
                self.files_index = files_index

    def replace_reflog(
        self, reflog_commits: List[Commit], filtered: Optional[List[Commit]] = None
    ) -> None:
        """Replace the reflog; without a filtered subset both fields share one list."""
        commits = list(reflog_commits)
        with self._lock:
            self.reflog_commits = commits
            self.filtered_reflog_commits = commits if filtered is None else list(filtered)

    def snapshot(self, *names: str) -> Dict[str, Any]:
        """Copy the named fields out together."""
        with self._lock:
            result = {}
            for name in names:
                value = getattr(self, name)
                if isinstance(value, list):
                    value = list(value)
                elif isinstance(value, dict):
                    value = dict(value)
                result[name] = value
            return result

    def intern_hash(self, value: str) -> str:
        return self.hash_pool.add(value)

    def find_branch(self, name: str) -> Optional[Branch]:
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None

    def find_file(self, path: str) -> Optional[File]:
        for file in self.files:
            if file.path == path:
                return file
        return None
