"""Formatting utilities for list panels."""

from datetime import datetime

from gitlane.models.entities import (
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


def format_timestamp(unix_timestamp: int) -> str:
    """
    Format a unix timestamp as a short local date.

    Args:
        unix_timestamp: Seconds since the epoch

    Returns:
        Date string, or an empty string for a zero timestamp
    """
    if not unix_timestamp:
        return ""
    return datetime.fromtimestamp(unix_timestamp).strftime("%Y-%m-%d")


def format_track(branch: Branch) -> str:
    """
    Format ahead/behind counts against the upstream.

    Args:
        branch: Local branch

    Returns:
        "↑2↓1" style marker, "✓" when in sync, "?" for a gone upstream
        and an empty string for branches without one
    """
    if not branch.is_tracking_remote:
        return ""
    if branch.ahead is None or branch.behind is None:
        return "?"
    if branch.ahead == 0 and branch.behind == 0:
        return "✓"
    parts = []
    if branch.ahead:
        parts.append(f"↑{branch.ahead}")
    if branch.behind:
        parts.append(f"↓{branch.behind}")
    return "".join(parts)


def format_branch(branch: Branch) -> str:
    marker = "*" if branch.head else " "
    line = f"{marker} {branch.recency:<14} {branch.name}"
    track = format_track(branch)
    if track:
        line += f" {track}"
    return line


def format_file(file: File) -> str:
    if file.previous_path:
        return f"{file.short_status} {file.previous_path} → {file.path}"
    return f"{file.short_status} {file.path}"


def format_commit(commit: Commit) -> str:
    return f"{commit.short_hash()} {commit.author_name[:12]:<12} {commit.name}"


def format_commit_file(file: CommitFile) -> str:
    return f"{file.change_status:<2} {file.path}"


def format_stash(entry: StashEntry) -> str:
    return f"{entry.ref_name()} {entry.name}"


def format_tag(tag: Tag) -> str:
    return f"{tag.name} {tag.message}".rstrip()


def format_remote(remote: Remote) -> str:
    return f"{remote.name} ({len(remote.branches)} branches)"


def format_remote_branch(branch: RemoteBranch) -> str:
    return branch.id()


def format_worktree(worktree: Worktree) -> str:
    marker = "*" if worktree.is_current else " "
    name = "(main)" if worktree.is_main else worktree.path
    suffix = " (missing)" if worktree.is_path_missing else ""
    return f"{marker} {name} {worktree.branch or worktree.head[:8]}{suffix}"


def format_submodule(submodule: Submodule) -> str:
    return f"{submodule.name} {submodule.path}"


def format_reflog_entry(commit: Commit) -> str:
    return f"{commit.short_hash()} {format_timestamp(commit.unix_timestamp)} {commit.name}"
