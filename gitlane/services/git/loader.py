"""Repository state loader backed by GitPython."""
import os
import re
from typing import Dict, List, Optional, Tuple

import git

from gitlane.exceptions import GitCommandError
from gitlane.logging_config import get_logger
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
from gitlane.models.enums import WorkingTreeState

logger = get_logger(__name__)

COMMIT_LIMIT = 300
REFLOG_LIMIT = 500
FIELD_SEP = "\x00"
TRACK_RE = re.compile(r"(ahead|behind) (\d+)")


def parse_status_porcelain(output: str) -> List[File]:
    """Parse ``git status --porcelain=v1 -z`` output."""
    files = []
    parts = output.split("\0")
    i = 0
    while i < len(parts):
        entry = parts[i]
        i += 1
        if len(entry) < 4:
            continue
        status, path = entry[:2], entry[3:]
        previous_path = None
        if "R" in status or "C" in status:
            # Renames carry the original path as the next field
            if i < len(parts):
                previous_path = parts[i]
                i += 1
        x, y = status[0], status[1]
        untracked = status == "??"
        files.append(File(
            path=path,
            short_status=status,
            has_staged_changes=x not in (" ", "?", "U") and not untracked,
            has_unstaged_changes=y != " " or untracked,
            tracked=not untracked,
            added=untracked or x == "A",
            deleted=x == "D" or y == "D",
            has_merge_conflicts="U" in status or status in ("AA", "DD"),
            previous_path=previous_path,
        ))
    return files


def parse_track(track: str) -> Tuple[Optional[int], Optional[int]]:
    """``[ahead 1, behind 2]`` -> (1, 2). ``[gone]`` or empty -> (None, None)."""
    if not track or "gone" in track:
        return None, None
    counts = {kind: int(n) for kind, n in TRACK_RE.findall(track)}
    return counts.get("ahead", 0), counts.get("behind", 0)


def parse_worktrees(output: str, current_path: str) -> List[Worktree]:
    """Parse ``git worktree list --porcelain``; the first entry is the main worktree."""
    worktrees = []
    current: Dict[str, str] = {}

    def flush() -> None:
        if "worktree" not in current:
            return
        path = current["worktree"]
        branch = current.get("branch")
        if branch and branch.startswith("refs/heads/"):
            branch = branch[len("refs/heads/"):]
        worktrees.append(Worktree(
            path=path,
            branch=branch,
            head=current.get("HEAD", ""),
            is_main=not worktrees,
            is_current=os.path.realpath(path) == os.path.realpath(current_path),
            is_path_missing=not os.path.isdir(path),
        ))

    for line in output.splitlines():
        if not line.strip():
            flush()
            current = {}
            continue
        key, _, value = line.partition(" ")
        current[key] = value
    flush()
    return worktrees


class GitRepositoryLoader:
    """Reads repository state for the refresh engine."""

    def __init__(self, repo_path: str):
        self.repo_path = repo_path

    def _get_repo(self) -> git.Repo:
        """A fresh repo instance per call; GitPython repos are not thread safe."""
        return git.Repo(self.repo_path)

    def _git(self, *args: str) -> str:
        try:
            return self._get_repo().git.execute(["git", *args], strip_newline_in_stdout=False)
        except git.exc.GitCommandError as e:
            raise GitCommandError(" ".join(["git", *args]), e.status, str(e.stderr)) from e

    def load_files(self) -> List[File]:
        output = self._git("status", "--porcelain=v1", "-z", "--untracked-files=all")
        return parse_status_porcelain(output)

    def load_submodules(self) -> List[Submodule]:
        try:
            return [
                Submodule(name=sm.name, path=sm.path, url=sm.url)
                for sm in self._get_repo().submodules
            ]
        except (ValueError, git.exc.InvalidGitRepositoryError) as e:
            logger.warning(f"Could not read submodules: {e}")
            return []

    def load_branches(self) -> List[Branch]:
        fmt = FIELD_SEP.join([
            "%(HEAD)",
            "%(refname:short)",
            "%(upstream:short)",
            "%(upstream:track)",
            "%(objectname)",
            "%(committerdate:relative)",
            "%(contents:subject)",
        ])
        output = self._git("for-each-ref", "--sort=-committerdate", f"--format={fmt}", "refs/heads")
        branches = []
        for line in output.splitlines():
            fields = line.split(FIELD_SEP)
            if len(fields) < 7:
                continue
            head, name, upstream, track, objectname, recency, subject = fields[:7]
            remote, upstream_branch = None, None
            if upstream:
                remote, _, upstream_branch = upstream.partition("/")
            ahead, behind = parse_track(track) if upstream else (None, None)
            branches.append(Branch(
                name=name,
                hash=objectname,
                head=head == "*",
                upstream_remote=remote,
                upstream_branch=upstream_branch,
                ahead=ahead,
                behind=behind,
                recency=recency,
                subject=subject,
            ))
        # The checked out branch is always listed first
        branches.sort(key=lambda b: not b.head)
        return branches

    def load_remotes(self) -> Tuple[List[Remote], List[RemoteBranch]]:
        remotes = []
        remote_branches = []
        for remote in self._get_repo().remotes:
            try:
                urls = tuple(remote.urls)
            except git.exc.GitCommandError:
                urls = ()
            names = []
            for ref in remote.refs:
                if ref.remote_head == "HEAD":
                    continue
                names.append(ref.remote_head)
                remote_branches.append(RemoteBranch(name=ref.remote_head, remote_name=remote.name))
            remotes.append(Remote(name=remote.name, urls=urls, branches=tuple(names)))
        return remotes, remote_branches

    def load_tags(self) -> List[Tag]:
        tags = []
        for ref in self._get_repo().tags:
            message = ref.tag.message.strip() if ref.tag is not None else ""
            tags.append(Tag(name=ref.name, message=message))
        tags.sort(key=lambda t: t.name, reverse=True)
        return tags

    def load_worktrees(self) -> List[Worktree]:
        output = self._git("worktree", "list", "--porcelain")
        return parse_worktrees(output, self.repo_path)

    def load_commits(self, ref: Optional[str] = None, path: Optional[str] = None) -> List[Commit]:
        repo = self._get_repo()
        try:
            iterator = repo.iter_commits(ref or "HEAD", paths=path or "", max_count=COMMIT_LIMIT)
            return [self._to_commit(c) for c in iterator]
        except (ValueError, git.exc.GitCommandError) as e:
            # Fresh repository without commits
            logger.debug(f"No commits for {ref or 'HEAD'}: {e}")
            return []

    def load_reflog(self, path: Optional[str] = None) -> List[Commit]:
        fmt = FIELD_SEP.join(["%H", "%ct", "%gs", "%an", "%ae", "%P"])
        args = ["log", "-g", f"--format={fmt}", f"--max-count={REFLOG_LIMIT}"]
        if path:
            args += ["--", path]
        try:
            output = self._git(*args)
        except GitCommandError as e:
            logger.debug(f"No reflog: {e}")
            return []
        commits = []
        for line in output.splitlines():
            fields = line.split(FIELD_SEP)
            if len(fields) < 6:
                continue
            sha, ts, subject, author, email, parents = fields[:6]
            commits.append(Commit(
                hash=sha,
                name=subject,
                author_name=author,
                author_email=email,
                unix_timestamp=int(ts or 0),
                parents=tuple(parents.split()),
            ))
        return commits

    def load_stash(self) -> List[StashEntry]:
        output = self._git("stash", "list", f"--format=%H{FIELD_SEP}%gs")
        entries = []
        for index, line in enumerate(output.splitlines()):
            sha, _, name = line.partition(FIELD_SEP)
            entries.append(StashEntry(index=index, name=name, hash=sha))
        return entries

    def load_commit_files(self, ref: str) -> List[CommitFile]:
        output = self._git("diff-tree", "--no-commit-id", "--name-status", "-r", "--root", ref)
        files = []
        for line in output.splitlines():
            status, _, path = line.partition("\t")
            if path:
                files.append(CommitFile(path=path.split("\t")[-1], change_status=status))
        return files

    def load_status(self) -> Tuple[str, WorkingTreeState]:
        repo = self._get_repo()
        git_dir = repo.git_dir
        state = WorkingTreeState.NONE
        checked_out = ""

        if os.path.isdir(os.path.join(git_dir, "rebase-merge")) or os.path.isdir(
            os.path.join(git_dir, "rebase-apply")
        ):
            state = WorkingTreeState.REBASING
            checked_out = self._rebase_head_name(git_dir)
        elif os.path.exists(os.path.join(git_dir, "MERGE_HEAD")):
            state = WorkingTreeState.MERGING
        elif os.path.exists(os.path.join(git_dir, "CHERRY_PICK_HEAD")):
            state = WorkingTreeState.CHERRY_PICKING
        elif os.path.exists(os.path.join(git_dir, "REVERT_HEAD")):
            state = WorkingTreeState.REVERTING
        elif os.path.exists(os.path.join(git_dir, "BISECT_LOG")):
            state = WorkingTreeState.BISECTING

        if not checked_out:
            try:
                checked_out = repo.active_branch.name
            except TypeError:
                # Detached HEAD
                try:
                    checked_out = repo.head.commit.hexsha[:8]
                except ValueError:
                    checked_out = ""
        return checked_out, state

    @staticmethod
    def _rebase_head_name(git_dir: str) -> str:
        for sub in ("rebase-merge", "rebase-apply"):
            head_name = os.path.join(git_dir, sub, "head-name")
            if os.path.exists(head_name):
                with open(head_name) as f:
                    name = f.read().strip()
                return name[len("refs/heads/"):] if name.startswith("refs/heads/") else name
        return ""

    @staticmethod
    def _to_commit(c: git.Commit) -> Commit:
        return Commit(
            hash=c.hexsha,
            name=c.summary if isinstance(c.summary, str) else c.summary.decode(errors="replace"),
            author_name=c.author.name or "",
            author_email=c.author.email or "",
            unix_timestamp=c.committed_date,
            parents=tuple(p.hexsha for p in c.parents),
        )
