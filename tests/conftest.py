"""Pytest fixtures for gitlane tests"""
import tempfile
import threading
import time
from collections import Counter
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from gitlane.concurrency import Coordinator
from gitlane.config import Config
from gitlane.gui import Gui
from gitlane.models.enums import WorkingTreeState
from gitlane.services import CommandResult, CommandRunner, JsonAppStateStore


class FakeLoader:
    """In-memory repository loader with optional latency and failures."""

    def __init__(self):
        self.files = []
        self.submodules = []
        self.branches = []
        self.remotes = []
        self.remote_branches = []
        self.tags = []
        self.worktrees = []
        self.commits = []
        self.reflog = []
        self.reflog_by_path = {}
        self.stash = []
        self.commit_files = []
        self.checked_out = "main"
        self.working_tree_state = WorkingTreeState.NONE

        self.delay = 0.0
        self.fail = {}
        self.calls = Counter()
        self.active = Counter()
        self.max_active = 0
        self._lock = threading.Lock()

    def _load(self, name, value):
        with self._lock:
            self.calls[name] += 1
            self.active[name] += 1
            self.max_active = max(self.max_active, sum(self.active.values()))
        try:
            if self.delay:
                time.sleep(self.delay)
            if name in self.fail:
                raise self.fail[name]
            return list(value)
        finally:
            with self._lock:
                self.active[name] -= 1

    def load_files(self):
        return self._load("files", self.files)

    def load_submodules(self):
        return self._load("submodules", self.submodules)

    def load_branches(self):
        return self._load("branches", self.branches)

    def load_remotes(self):
        return self._load("remotes", self.remotes), list(self.remote_branches)

    def load_tags(self):
        return self._load("tags", self.tags)

    def load_worktrees(self):
        return self._load("worktrees", self.worktrees)

    def load_commits(self, ref=None, path=None):
        return self._load("commits", self.commits)

    def load_reflog(self, path=None):
        if path:
            return self._load("reflog", self.reflog_by_path.get(path, []))
        return self._load("reflog", self.reflog)

    def load_stash(self):
        return self._load("stash", self.stash)

    def load_commit_files(self, ref):
        return self._load("commit_files", self.commit_files)

    def load_status(self):
        self._load("status", [])
        return self.checked_out, self.working_tree_state


class UIThread:
    """Runs a coordinator's UI queue on a dedicated thread for tests."""

    def __init__(self, coordinator: Coordinator):
        self.coordinator = coordinator
        self._thread = threading.Thread(
            target=coordinator.run_forever,
            kwargs={"poll_interval": 0.01},
            name="ui",
            daemon=True,
        )

    def start(self):
        self._thread.start()
        # The thread binds itself before it drains anything
        self.call(lambda: None)

    def call(self, f, timeout=5.0):
        """Run ``f`` on the UI thread and return its result (or raise its error)."""
        done = threading.Event()
        result = {}

        def run():
            try:
                result["value"] = f()
            except Exception as e:
                result["error"] = e
            finally:
                done.set()

        self.coordinator.on_ui_thread(run)
        assert done.wait(timeout), "UI thread did not run the callback in time"
        if "error" in result:
            raise result["error"]
        return result.get("value")

    def settle(self, timeout=5.0):
        """Wait until no worker or UI callback is outstanding."""
        assert self.coordinator.busy.wait_idle(timeout), "App did not become idle"

    def stop(self):
        self.coordinator.stop()
        self._thread.join(timeout=2)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config(temp_dir):
    """Configuration for tests: no spinner ticker, no background refresh."""
    return Config(
        refresh_interval=0,
        state_file=str(temp_dir / "state.json"),
        integration_test=True,
        lock_order_checks=True,
    )


@pytest.fixture
def fake_loader():
    return FakeLoader()


@pytest.fixture
def mock_runner():
    """A command runner that succeeds without running anything."""
    runner = Mock(spec=CommandRunner)
    runner.run.side_effect = lambda args, task=None, check=True: CommandResult(tuple(args), 0, "")
    return runner


@pytest.fixture
def gui(mock_config, fake_loader, mock_runner, temp_dir):
    """A fully wired Gui over the fake loader, not yet started."""
    return Gui(
        mock_config,
        str(temp_dir),
        loader=fake_loader,
        runner=mock_runner,
        app_state_store=JsonAppStateStore(mock_config.state_file),
    )


@pytest.fixture
def ui(gui):
    """The gui's UI thread, running."""
    thread = UIThread(gui.coordinator)
    thread.start()
    yield thread
    thread.stop()


@pytest.fixture
def coordinator():
    return Coordinator()


@pytest.fixture
def ui_thread(coordinator):
    """A bare coordinator with its UI thread running."""
    thread = UIThread(coordinator)
    thread.start()
    yield thread
    thread.stop()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Create initial commit on main branch
    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    repo.git.branch('-M', 'main')

    repo.create_remote('origin', 'git@example.com:test/test-repo.git')

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def git_repo_with_branches(git_repo):
    """Create a Git repository with multiple test branches."""
    repo = git_repo
    repo_path = Path(repo.working_dir)

    # Create feature branch
    repo.git.checkout('-b', 'feature/test-feature')
    test_file = repo_path / "feature.txt"
    test_file.write_text("Feature content\n")
    repo.index.add(["feature.txt"])
    repo.index.commit("Add feature")

    # Create merged branch
    repo.git.checkout('main')
    repo.git.checkout('-b', 'feature/to-merge')
    merge_file = repo_path / "merge.txt"
    merge_file.write_text("Merge content\n")
    repo.index.add(["merge.txt"])
    repo.index.commit("Feature to merge")

    # Merge it back to main
    repo.git.checkout('main')
    repo.git.merge('feature/to-merge', '--no-ff', '-m', 'Merge feature/to-merge')

    repo.create_tag('v1.0', message='First release')

    yield repo
