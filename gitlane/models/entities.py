"""Repository entities held by the shared model.

Every entity has a stable ``urn()`` used as a key by the operation registry
and by views that need to find an item again after a refresh.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class File:
    """A file in the working tree with its status."""
    path: str
    short_status: str = "  "
    has_staged_changes: bool = False
    has_unstaged_changes: bool = False
    tracked: bool = True
    added: bool = False
    deleted: bool = False
    has_merge_conflicts: bool = False
    previous_path: Optional[str] = None

    def urn(self) -> str:
        return f"file:{self.path}"

    def id(self) -> str:
        return self.path


@dataclass(frozen=True)
class Branch:
    """A local branch."""
    name: str
    hash: str = ""
    head: bool = False
    upstream_remote: Optional[str] = None
    upstream_branch: Optional[str] = None
    ahead: Optional[int] = None
    behind: Optional[int] = None
    recency: str = ""
    subject: str = ""

    def urn(self) -> str:
        return f"branch:{self.name}"

    def id(self) -> str:
        return self.name

    @property
    def is_tracking_remote(self) -> bool:
        return self.upstream_remote is not None

    @property
    def full_upstream_ref(self) -> Optional[str]:
        if not self.is_tracking_remote:
            return None
        return f"{self.upstream_remote}/{self.upstream_branch}"


@dataclass(frozen=True)
class RemoteBranch:
    name: str
    remote_name: str

    def urn(self) -> str:
        return f"remote_branch:{self.remote_name}/{self.name}"

    def id(self) -> str:
        return f"{self.remote_name}/{self.name}"


@dataclass(frozen=True)
class Commit:
    """A commit. ``hash`` is interned through the model's string pool."""
    hash: str
    name: str = ""
    author_name: str = ""
    author_email: str = ""
    unix_timestamp: int = 0
    parents: tuple = ()
    tags: tuple = ()

    def urn(self) -> str:
        return f"commit:{self.hash}"

    def id(self) -> str:
        return self.hash

    def short_hash(self) -> str:
        return self.hash[:8]

    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass(frozen=True)
class CommitFile:
    path: str
    change_status: str = ""

    def urn(self) -> str:
        return f"commit_file:{self.path}"

    def id(self) -> str:
        return self.path


@dataclass(frozen=True)
class StashEntry:
    index: int
    name: str
    hash: str = ""

    def urn(self) -> str:
        return f"stash:{self.index}"

    def id(self) -> str:
        return f"stash@{{{self.index}}}"

    def ref_name(self) -> str:
        return self.id()


@dataclass(frozen=True)
class Tag:
    name: str
    message: str = ""

    def urn(self) -> str:
        return f"tag:{self.name}"

    def id(self) -> str:
        return self.name


@dataclass(frozen=True)
class Remote:
    name: str
    urls: tuple = ()
    branches: tuple = ()

    def urn(self) -> str:
        return f"remote:{self.name}"

    def id(self) -> str:
        return self.name


@dataclass(frozen=True)
class Worktree:
    path: str
    branch: Optional[str] = None
    head: str = ""
    is_main: bool = False
    is_current: bool = False
    is_path_missing: bool = False

    def urn(self) -> str:
        return f"worktree:{self.path}"

    def id(self) -> str:
        return self.path


@dataclass(frozen=True)
class Submodule:
    name: str
    path: str
    url: str = ""

    def urn(self) -> str:
        return f"submodule:{self.name}"

    def id(self) -> str:
        return self.name


@dataclass
class Author:
    name: str
    email: str
    commit_count: int = field(default=0, compare=False)

    def urn(self) -> str:
        return f"author:{self.email}"

    def id(self) -> str:
        return self.email

    def combined(self) -> str:
        return f"{self.name} <{self.email}>"
