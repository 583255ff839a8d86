"""Tests for command running, action log and persisted app state."""
import json
import threading
import time

import pytest

from gitlane.concurrency import Mutexes, Task
from gitlane.exceptions import AppStateSaveError, GitCommandError, OperationCancelledError
from gitlane.models.enums import ToastKind
from gitlane.services import (
    ActionLog,
    AppState,
    CommandRunner,
    JsonAppStateStore,
    SubprocessRunner,
    git_args,
)
from gitlane.services.app_state_service import MAX_RECENT_REPOS


class TestActionLog:
    def test_actions_and_commands_are_recorded_in_order(self):
        log = ActionLog()
        log.log_action("Push main")
        log.log_command("git push origin main", is_command_line=False)
        entries = log.entries()
        assert [e.text for e in entries] == ["Push main", "git push origin main"]
        assert entries[0].is_action
        assert not entries[1].is_action

    def test_limit_drops_oldest(self):
        log = ActionLog(limit=3)
        for i in range(5):
            log.log_action(f"a{i}")
        assert [e.text for e in log.entries()] == ["a2", "a3", "a4"]

    def test_listener_is_notified(self):
        log = ActionLog()
        seen = []
        log.set_listener(seen.append)
        log.log_command("ls", is_command_line=True)
        assert seen[0].is_command_line is True


class TestCommandRunner:
    def test_run_captures_output(self, git_repo):
        log = ActionLog()
        runner = CommandRunner(git_repo.working_dir, log)
        result = runner.run(git_args("rev-parse", "--abbrev-ref", "HEAD"))
        assert result.success
        assert result.output.strip() == "main"
        assert log.entries()[0].text == "git rev-parse --abbrev-ref HEAD"

    def test_failure_raises_git_command_error(self, git_repo):
        runner = CommandRunner(git_repo.working_dir)
        with pytest.raises(GitCommandError) as exc_info:
            runner.run(git_args("checkout", "does-not-exist"))
        assert exc_info.value.exit_code != 0
        assert "does-not-exist" in exc_info.value.stderr

    def test_failure_without_check_returns_result(self, git_repo):
        runner = CommandRunner(git_repo.working_dir)
        result = runner.run(git_args("checkout", "does-not-exist"), check=False)
        assert not result.success

    def test_cancel_terminates_process(self, temp_dir):
        runner = CommandRunner(str(temp_dir))
        task = Task(name="sleep")
        threading.Timer(0.1, task.cancel).start()
        start = time.monotonic()
        with pytest.raises(OperationCancelledError):
            runner.run(["sleep", "10"], task)
        assert time.monotonic() - start < 5

    def test_stream_hands_out_lines(self, git_repo):
        runner = CommandRunner(git_repo.working_dir)
        lines = []
        code = runner.stream(git_args("log", "--format=%s"), Task(), lines.append)
        assert code == 0
        assert lines == ["Initial commit\n"]

    def test_stream_appends_stderr(self, git_repo):
        runner = CommandRunner(git_repo.working_dir)
        lines = []
        code = runner.stream(git_args("log", "does-not-exist"), Task(), lines.append)
        assert code != 0
        assert any("does-not-exist" in line for line in lines)

    def test_missing_executable_raises_git_command_error(self, temp_dir):
        runner = CommandRunner(str(temp_dir))
        with pytest.raises(GitCommandError) as exc_info:
            runner.run(["gitlane-no-such-executable"])
        assert exc_info.value.exit_code == 127


class TestSubprocessRunner:
    def test_runs_with_terminal_suspended(self, temp_dir):
        log = ActionLog()
        suspended = []

        class Suspend:
            def __enter__(self):
                suspended.append("in")

            def __exit__(self, *exc):
                suspended.append("out")

        mutexes = Mutexes()
        runner = SubprocessRunner(str(temp_dir), mutexes, log, suspend=Suspend)
        assert runner.run_subprocess(["true"]) is True
        assert suspended == ["in", "out"]
        assert log.entries()[0].is_command_line is True
        assert not mutexes.subprocess.locked()
        assert not mutexes.pty.locked()

    def test_failing_command_returns_false(self, temp_dir):
        runner = SubprocessRunner(str(temp_dir), Mutexes(), ActionLog())
        assert runner.run_subprocess(["false"], interactive=False) is False

    def test_failed_shell_command_is_reported(self, gui, ui, fake_loader):
        """A non-zero exit reaches the user as an error toast and still reloads."""
        result = ui.call(lambda: gui.common.run_subprocess_and_refresh(["false"]))
        ui.settle()
        assert result is False
        errors = [m for m, kind in gui.popup.toasts if kind is ToastKind.ERROR]
        assert errors == ["Command 'false' failed"]
        assert fake_loader.calls["files"] == 1

    def test_successful_shell_command_is_quiet(self, gui, ui, fake_loader):
        assert ui.call(lambda: gui.common.run_subprocess_and_refresh(["true"])) is True
        ui.settle()
        assert not gui.popup.toasts
        assert fake_loader.calls["files"] == 1


class TestAppState:
    def test_recent_repos_most_recent_first(self):
        state = AppState()
        state.add_recent_repo("/a")
        state.add_recent_repo("/b")
        state.add_recent_repo("/a")
        assert state.recent_repos == ["/a", "/b"]

    def test_recent_repos_capped(self):
        state = AppState()
        for i in range(MAX_RECENT_REPOS + 5):
            state.add_recent_repo(f"/repo{i}")
        assert len(state.recent_repos) == MAX_RECENT_REPOS

    def test_unknown_keys_round_trip(self):
        state = AppState.from_dict({"recent_repos": ["/a"], "future_flag": True})
        assert state.extra == {"future_flag": True}
        assert state.to_dict()["future_flag"] is True


class TestJsonAppStateStore:
    def test_missing_file_gives_defaults(self, temp_dir):
        store = JsonAppStateStore(str(temp_dir / "missing.json"))
        assert store.get().recent_repos == []

    def test_save_and_reload(self, temp_dir):
        path = temp_dir / "nested" / "state.json"
        store = JsonAppStateStore(str(path))
        store.get().add_recent_repo("/work/project")
        store.save()
        assert json.loads(path.read_text())["recent_repos"] == ["/work/project"]
        assert JsonAppStateStore(str(path)).get().recent_repos == ["/work/project"]

    def test_invalid_json_is_ignored(self, temp_dir):
        path = temp_dir / "state.json"
        path.write_text("{not json")
        assert JsonAppStateStore(str(path)).load() == AppState()

    def test_non_object_is_ignored(self, temp_dir):
        path = temp_dir / "state.json"
        path.write_text("[1, 2]")
        assert JsonAppStateStore(str(path)).load() == AppState()

    def test_save_failure_raises(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("")
        store = JsonAppStateStore(str(blocker / "state.json"))
        with pytest.raises(AppStateSaveError):
            store.save(AppState())

    def test_save_failure_logged_and_toasted(self, gui, ui, temp_dir):
        """Saving through GuiCommon never raises; the user sees an error toast."""
        blocker = temp_dir / "file"
        blocker.write_text("")
        gui.app_state_store.path = blocker / "state.json"
        ui.call(gui.common.save_app_state_and_log_error)
        ui.settle()
        errors = [m for m, kind in gui.popup.toasts if kind is ToastKind.ERROR]
        assert len(errors) == 1
        assert "Failed to save app state" in errors[0]
