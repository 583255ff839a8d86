"""Refresh engine: full model reloads and cheap view-local updates."""
import dataclasses
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol, Set, Tuple

from gitlane.concurrency.coordinator import Coordinator, Task
from gitlane.concurrency.mutexes import Domain, Mutexes
from gitlane.context import Context, ContextMgr
from gitlane.exceptions import LockOrderViolationError, OperationCancelledError
from gitlane.logging_config import get_logger
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
from gitlane.models.enums import StartupStage, WorkingTreeState
from gitlane.models.model import Model
from gitlane.state import Modes, StateAccessor

logger = get_logger(__name__)


class RefreshScope(str, Enum):
    FILES = "files"
    BRANCHES = "branches"
    COMMITS = "commits"
    REFLOG = "reflog"
    STASH = "stash"
    TAGS = "tags"
    REMOTES = "remotes"
    WORKTREES = "worktrees"
    SUBMODULES = "submodules"
    STATUS = "status"
    SUB_COMMITS = "sub_commits"
    COMMIT_FILES = "commit_files"
    AUTHORS = "authors"


class RefreshMode(Enum):
    # Runs on the calling thread; only for fast scopes when called from the UI thread
    SYNC = "sync"
    # Runs on a worker; the UI thread is told when it is done
    ASYNC = "async"
    # Runs on a worker while a waiting status is shown
    BLOCK_UI = "block_ui"


# Scopes that need a selected ref are only refreshed when asked for explicitly
DEFAULT_SCOPES: FrozenSet[RefreshScope] = frozenset(
    s for s in RefreshScope if s not in (RefreshScope.SUB_COMMITS, RefreshScope.COMMIT_FILES)
)

SCOPE_DOMAINS: Dict[RefreshScope, Domain] = {
    RefreshScope.FILES: Domain.FILES,
    RefreshScope.SUBMODULES: Domain.FILES,
    RefreshScope.BRANCHES: Domain.BRANCHES,
    RefreshScope.REFLOG: Domain.BRANCHES,
    RefreshScope.TAGS: Domain.BRANCHES,
    RefreshScope.REMOTES: Domain.BRANCHES,
    RefreshScope.WORKTREES: Domain.BRANCHES,
    RefreshScope.COMMITS: Domain.LOCAL_COMMITS,
    RefreshScope.STASH: Domain.LOCAL_COMMITS,
    RefreshScope.COMMIT_FILES: Domain.LOCAL_COMMITS,
    RefreshScope.STATUS: Domain.STATUS,
    RefreshScope.SUB_COMMITS: Domain.SUB_COMMITS,
    RefreshScope.AUTHORS: Domain.AUTHORS,
}


@dataclass(frozen=True)
class RefreshOptions:
    scope: FrozenSet[RefreshScope] = frozenset()
    mode: RefreshMode = RefreshMode.SYNC
    # Runs on the UI thread once every scope has been reloaded
    then: Optional[Callable[[], None]] = None

    def __post_init__(self):
        object.__setattr__(self, "scope", frozenset(RefreshScope(s) for s in self.scope))

    def scopes(self) -> FrozenSet[RefreshScope]:
        return self.scope or DEFAULT_SCOPES


class RepositoryLoader(Protocol):
    """Reads repository state. Implementations may be slow; they run off the UI thread."""

    def load_files(self) -> List[File]: ...

    def load_submodules(self) -> List[Submodule]: ...

    def load_branches(self) -> List[Branch]: ...

    def load_remotes(self) -> Tuple[List[Remote], List[RemoteBranch]]: ...

    def load_tags(self) -> List[Tag]: ...

    def load_worktrees(self) -> List[Worktree]: ...

    def load_commits(self, ref: Optional[str] = None, path: Optional[str] = None) -> List[Commit]: ...

    def load_reflog(self, path: Optional[str] = None) -> List[Commit]: ...

    def load_stash(self) -> List[StashEntry]: ...

    def load_commit_files(self, ref: str) -> List[CommitFile]: ...

    def load_status(self) -> Tuple[str, WorkingTreeState]: ...


class RefreshEngine:
    """Reloads model domains and re-renders the contexts showing them."""

    def __init__(
        self,
        model: Model,
        mutexes: Mutexes,
        coordinator: Coordinator,
        loader: RepositoryLoader,
        context_mgr: ContextMgr,
        state: StateAccessor,
        modes: Optional[Modes] = None,
        waiting_status: Optional[Callable[[str, Callable[[Task], None]], Task]] = None,
    ):
        self._model = model
        self._mutexes = mutexes
        self._coordinator = coordinator
        self._loader = loader
        self._context_mgr = context_mgr
        self._state = state
        self._modes = modes if modes is not None else Modes()
        self._waiting_status = waiting_status
        # Ref whose commits / files are shown in the sub-commits and commit-files views
        self.sub_commits_ref: Optional[str] = None
        self.commit_files_ref: Optional[str] = None

        self._scope_funcs: Dict[RefreshScope, Callable[[Optional[Task]], None]] = {
            RefreshScope.FILES: self._refresh_files,
            RefreshScope.SUBMODULES: self._refresh_submodules,
            RefreshScope.BRANCHES: self._refresh_branches,
            RefreshScope.REFLOG: self._refresh_reflog,
            RefreshScope.TAGS: self._refresh_tags,
            RefreshScope.REMOTES: self._refresh_remotes,
            RefreshScope.WORKTREES: self._refresh_worktrees,
            RefreshScope.COMMITS: self._refresh_commits,
            RefreshScope.STASH: self._refresh_stash,
            RefreshScope.COMMIT_FILES: self._refresh_commit_files,
            RefreshScope.STATUS: self._refresh_status,
            RefreshScope.SUB_COMMITS: self._refresh_sub_commits,
            RefreshScope.AUTHORS: self._refresh_authors,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def refresh(self, options: Optional[RefreshOptions] = None) -> Optional[Task]:
        """Re-derive the requested scopes from the repository.

        Returns the worker task for asynchronous modes, None for SYNC.
        """
        options = options or RefreshOptions()
        scopes = options.scopes()
        logger.debug(
            f"Refreshing {sorted(s.value for s in scopes)} ({options.mode.value})"
        )

        if options.mode is RefreshMode.SYNC:
            done, error = self._run_scopes(scopes, None, parallel=False)
            self._finish(done, options)
            if error is not None:
                raise error
            return None

        def run(task: Task) -> None:
            done, error = self._run_scopes(scopes, task, parallel=True)
            task.raise_if_cancelled()
            # Scopes that did load are shown even when another one failed
            self._coordinator.on_ui_thread(lambda: self._after_refresh(done, options))
            if error is not None:
                raise error

        if options.mode is RefreshMode.BLOCK_UI and self._waiting_status is not None:
            return self._waiting_status("Refreshing...", run)
        return self._coordinator.on_worker(run, name="refresh")

    def post_refresh_update(self, context: Context) -> None:
        """Re-render a context after a view-local change.

        Takes no domain mutex, so it is safe to call from code that already
        holds one, as long as that code runs on the UI thread.
        """
        self._coordinator.assert_ui_thread("post-refresh update")
        self._context_mgr.render_context(context)
        self._context_mgr.render()

    def initial_load(self) -> Task:
        """Load everything in the background and mark startup complete."""
        repo_state = self._state.get_repo_state()
        return self.refresh(RefreshOptions(
            mode=RefreshMode.ASYNC,
            then=lambda: repo_state.set_startup_stage(StartupStage.COMPLETE),
        ))

    def start_background_refresh(self, interval: float) -> Optional[Task]:
        """Periodically refresh files; skipped while a files refresh is running."""
        if interval <= 0:
            return None

        def loop(task: Task) -> None:
            # Waiting between rounds is not "busy"
            task.pause()
            while not task.sleep(interval):
                if self._state.get_is_refreshing_files():
                    continue
                self.refresh(RefreshOptions(
                    scope={RefreshScope.FILES, RefreshScope.SUBMODULES},
                    mode=RefreshMode.ASYNC,
                ))

        return self._coordinator.on_worker(loop, name="background-refresh")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_scopes(
        self, scopes: Iterable[RefreshScope], task: Optional[Task], parallel: bool
    ) -> Tuple[FrozenSet[RefreshScope], Optional[Exception]]:
        """Load every scope, returning the ones that succeeded and the first error.

        Authors are derived from commits, so when both are requested authors
        load in a second phase once commits are in the model.
        """
        ordered = sorted(scopes, key=lambda s: s.value)
        phases = [ordered]
        if RefreshScope.AUTHORS in ordered and RefreshScope.COMMITS in ordered:
            phases = [[s for s in ordered if s is not RefreshScope.AUTHORS], [RefreshScope.AUTHORS]]

        done: Set[RefreshScope] = set()
        errors: List[Exception] = []
        for phase in phases:
            if task is not None and task.is_cancelled:
                break
            if not parallel or len(phase) == 1:
                for scope in phase:
                    self._run_scope(scope, task, done, errors)
                continue

            with ThreadPoolExecutor(max_workers=len(phase), thread_name_prefix="refresh") as executor:
                future_to_scope = {
                    executor.submit(self._scope_funcs[scope], task): scope for scope in phase
                }
                for future in as_completed(future_to_scope):
                    scope = future_to_scope[future]
                    try:
                        future.result()
                    except Exception as e:
                        self._scope_failed(scope, e, errors)
                    else:
                        done.add(scope)

        return frozenset(done), self._first_error(errors)

    def _run_scope(self, scope: RefreshScope, task: Optional[Task], done: Set[RefreshScope],
                   errors: List[Exception]) -> None:
        try:
            self._check(task)
            self._scope_funcs[scope](task)
        except Exception as e:
            self._scope_failed(scope, e, errors)
        else:
            done.add(scope)

    @staticmethod
    def _scope_failed(scope: RefreshScope, error: Exception, errors: List[Exception]) -> None:
        if not isinstance(error, OperationCancelledError):
            logger.error(f"Error refreshing {scope.value}: {error}")
        errors.append(error)

    @staticmethod
    def _first_error(errors: List[Exception]) -> Optional[Exception]:
        # Lock-order violations are fatal and win over ordinary failures
        for error in errors:
            if isinstance(error, LockOrderViolationError):
                return error
        return errors[0] if errors else None

    def _finish(self, scopes: FrozenSet[RefreshScope], options: RefreshOptions) -> None:
        if self._coordinator.is_ui_thread():
            self._after_refresh(scopes, options)
        else:
            self._coordinator.on_ui_thread(lambda: self._after_refresh(scopes, options))

    def _after_refresh(self, scopes: FrozenSet[RefreshScope], options: RefreshOptions) -> None:
        for context in self._context_mgr.depending_on(s.value for s in scopes):
            self._context_mgr.render_context(context)
        self._context_mgr.render()
        if options.then is not None:
            options.then()

    def _intern_commits(self, commits: List[Commit]) -> List[Commit]:
        intern = self._model.intern_hash
        return [
            dataclasses.replace(
                c, hash=intern(c.hash), parents=tuple(intern(p) for p in c.parents)
            )
            for c in commits
        ]

    @staticmethod
    def _check(task: Optional[Task]) -> None:
        if task is not None:
            task.raise_if_cancelled()

    # Per-scope loaders. Each holds exactly one domain mutex while it loads
    # and swaps its fields, so scopes of different domains never wait on
    # each other and no thread ever holds two domain mutexes here.

    def _refresh_files(self, task: Optional[Task]) -> None:
        self._state.set_is_refreshing_files(True)
        try:
            with self._mutexes.acquire(Domain.FILES):
                files = self._loader.load_files()
                self._check(task)
                self._model.replace(files=files)
        finally:
            self._state.set_is_refreshing_files(False)

    def _refresh_submodules(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.FILES):
            submodules = self._loader.load_submodules()
            self._check(task)
            self._model.replace(submodules=submodules)

    def _refresh_branches(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.BRANCHES):
            branches = [
                dataclasses.replace(b, hash=self._model.intern_hash(b.hash))
                for b in self._loader.load_branches()
            ]
            self._check(task)
            self._model.replace(branches=branches)

    def _refresh_reflog(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.BRANCHES):
            reflog = self._intern_commits(self._loader.load_reflog())
            filtered = None
            filter_path = self._modes.filtering.path
            if filter_path:
                filtered = self._intern_commits(self._loader.load_reflog(path=filter_path))
            self._check(task)
            self._model.replace_reflog(reflog, filtered)

    def _refresh_tags(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.BRANCHES):
            tags = self._loader.load_tags()
            self._check(task)
            self._model.replace(tags=tags)

    def _refresh_remotes(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.BRANCHES):
            remotes, remote_branches = self._loader.load_remotes()
            self._check(task)
            self._model.replace(remotes=remotes, remote_branches=remote_branches)

    def _refresh_worktrees(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.BRANCHES):
            worktrees = self._loader.load_worktrees()
            self._check(task)
            self._model.replace(worktrees=worktrees)

    def _refresh_commits(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.LOCAL_COMMITS):
            path = self._modes.filtering.path or None
            commits = self._intern_commits(self._loader.load_commits(path=path))
            _, working_tree_state = self._loader.load_status()
            self._check(task)
            self._model.replace(commits=commits, working_tree_state=working_tree_state)

    def _refresh_stash(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.LOCAL_COMMITS):
            stash = self._loader.load_stash()
            self._check(task)
            self._model.replace(stash_entries=stash)

    def _refresh_commit_files(self, task: Optional[Task]) -> None:
        if not self.commit_files_ref:
            return
        with self._mutexes.acquire(Domain.LOCAL_COMMITS):
            files = self._loader.load_commit_files(self.commit_files_ref)
            self._check(task)
            self._model.replace(commit_files=files)

    def _refresh_status(self, task: Optional[Task]) -> None:
        with self._mutexes.acquire(Domain.STATUS):
            checked_out, _ = self._loader.load_status()
            self._check(task)
            self._model.replace(checked_out_branch=checked_out)

    def _refresh_sub_commits(self, task: Optional[Task]) -> None:
        if not self.sub_commits_ref:
            return
        with self._mutexes.acquire(Domain.SUB_COMMITS):
            commits = self._intern_commits(self._loader.load_commits(ref=self.sub_commits_ref))
            self._check(task)
            self._model.replace(sub_commits=commits)

    def _refresh_authors(self, task: Optional[Task]) -> None:
        # Derived from the commits the model holds; a full refresh loads them first
        commits = self._model.snapshot("commits")["commits"]
        with self._mutexes.acquire(Domain.AUTHORS):
            authors: Dict[str, Author] = {}
            for commit in commits:
                if not commit.author_email:
                    continue
                author = authors.get(commit.author_email)
                if author is None:
                    author = Author(name=commit.author_name, email=commit.author_email)
                    authors[commit.author_email] = author
                author.commit_count += 1
            self._check(task)
            self._model.replace(authors=authors)
