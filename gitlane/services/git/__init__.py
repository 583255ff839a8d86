"""Git-backed collaborators for gitlane."""

from .loader import GitRepositoryLoader, parse_status_porcelain, parse_track, parse_worktrees

__all__ = [
    "GitRepositoryLoader",
    "parse_status_porcelain",
    "parse_track",
    "parse_worktrees",
]
