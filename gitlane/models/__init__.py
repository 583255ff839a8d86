"""Data model for gitlane."""

from .entities import (
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
from .enums import ItemOperation, MenuWidget, ScreenMode, StartupStage, ToastKind, WorkingTreeState
from .model import Model

__all__ = [
    "Author",
    "Branch",
    "Commit",
    "CommitFile",
    "File",
    "Remote",
    "RemoteBranch",
    "StashEntry",
    "Submodule",
    "Tag",
    "Worktree",
    "ItemOperation",
    "MenuWidget",
    "ScreenMode",
    "StartupStage",
    "ToastKind",
    "WorkingTreeState",
    "Model",
]
