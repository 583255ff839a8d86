"""UI-thread / worker-thread coordination.

There is exactly one UI thread. Anything that touches view-facing state runs
there, scheduled through ``Coordinator.on_ui_thread``. Background work runs on
workers started with ``Coordinator.on_worker``; a worker never blocks the UI
thread and reports failure by raising, which is routed to the error handler
on the UI thread.
"""
import threading
from collections import deque
from typing import Callable, Deque, List, Optional

from gitlane.exceptions import (
    LockOrderViolationError,
    OperationCancelledError,
    WrongThreadError,
)
from gitlane.logging_config import get_logger

logger = get_logger(__name__)

UIFunc = Callable[[], None]


class BusyTracker:
    """Counts outstanding work so tests and demos can wait for the app to settle."""

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition()

    def inc(self) -> None:
        with self._cond:
            self._count += 1

    def dec(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count < 0:
                logger.error("Busy count went negative")
                self._count = 0
            if self._count == 0:
                self._cond.notify_all()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def is_idle(self) -> bool:
        return self.count == 0

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is outstanding. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


class Task:
    """Cooperative cancellation handle handed to every worker function.

    Cancellation is advisory: the worker polls ``is_cancelled`` or calls
    ``raise_if_cancelled`` at safe points. A worker waiting on something
    external (e.g. user input on the UI thread) should ``pause`` so it does
    not count as busy.
    """

    def __init__(self, busy: Optional[BusyTracker] = None, name: str = ""):
        self.name = name
        self._busy = busy
        self._cancelled = threading.Event()
        self._finished = threading.Event()
        self._paused = False
        self._state_lock = threading.Lock()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def is_finished(self) -> bool:
        return self._finished.is_set()

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            logger.debug(f"Cancelling task {self.name!r}")
        self._cancelled.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise OperationCancelledError(f"Task {self.name!r} cancelled")

    def sleep(self, seconds: float) -> bool:
        """Sleep unless cancelled first. Returns True if cancelled."""
        return self._cancelled.wait(seconds)

    def pause(self) -> None:
        with self._state_lock:
            if self._paused or self._finished.is_set():
                return
            self._paused = True
        if self._busy:
            self._busy.dec()

    def resume(self) -> None:
        with self._state_lock:
            if not self._paused or self._finished.is_set():
                return
            self._paused = False
        if self._busy:
            self._busy.inc()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the task to finish. Never call this from the UI thread."""
        return self._finished.wait(timeout)

    def _finish(self) -> None:
        with self._state_lock:
            was_paused = self._paused
            self._paused = False
            self._finished.set()
        if self._busy and not was_paused:
            self._busy.dec()


class Coordinator:
    """Owns the UI-thread queue and launches workers.

    ``on_ui_thread`` only enqueues; the bound UI thread runs the queue via
    ``drain`` (a host event loop calls it when woken) or ``run_forever``.
    Callbacks therefore run in the order they were scheduled, including
    callbacks scheduled from the UI thread itself.
    """

    def __init__(
        self,
        busy: Optional[BusyTracker] = None,
        error_handler: Optional[Callable[[BaseException], None]] = None,
        wake: Optional[Callable[[], None]] = None,
    ):
        self.busy = busy if busy is not None else BusyTracker()
        self._error_handler = error_handler
        self._wake = wake
        self._queue: Deque[UIFunc] = deque()
        self._cond = threading.Condition()
        self._after_layout: List[UIFunc] = []
        self._ui_thread_ident: Optional[int] = None
        self._stopped = False

    # ------------------------------------------------------------------
    # UI thread identity
    # ------------------------------------------------------------------

    def bind_ui_thread(self) -> None:
        """Declare the calling thread to be the UI thread."""
        self._ui_thread_ident = threading.get_ident()
        logger.debug(f"UI thread bound to {threading.current_thread().name}")

    def is_ui_thread(self) -> bool:
        return self._ui_thread_ident is not None and threading.get_ident() == self._ui_thread_ident

    def assert_ui_thread(self, what: str = "view state") -> None:
        if not self.is_ui_thread():
            raise WrongThreadError(what)

    def set_error_handler(self, handler: Callable[[BaseException], None]) -> None:
        self._error_handler = handler

    def set_wake(self, wake: Optional[Callable[[], None]]) -> None:
        self._wake = wake

    # ------------------------------------------------------------------
    # UI thread scheduling
    # ------------------------------------------------------------------

    def on_ui_thread(self, f: UIFunc) -> None:
        """Schedule ``f`` to run on the UI thread, after everything queued before it."""
        self.busy.inc()
        with self._cond:
            self._queue.append(f)
            self._cond.notify()
        if self._wake is not None:
            self._wake()

    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def drain(self, max_items: Optional[int] = None) -> int:
        """Run queued callbacks on the UI thread. Returns how many ran."""
        self.assert_ui_thread("the UI queue")
        ran = 0
        while max_items is None or ran < max_items:
            with self._cond:
                if not self._queue:
                    break
                f = self._queue.popleft()
            try:
                self._run_ui_func(f)
            finally:
                self.busy.dec()
            ran += 1
        return ran

    def run_forever(self, poll_interval: float = 0.05) -> None:
        """Bind the calling thread as UI thread and process the queue until ``stop``."""
        self.bind_ui_thread()
        self._stopped = False
        while True:
            with self._cond:
                if self._stopped:
                    break
                if not self._queue:
                    self._cond.wait(poll_interval)
                    continue
            self.drain()

    def stop(self) -> None:
        with self._cond:
            self._stopped = True
            self._cond.notify_all()

    def after_layout(self, f: UIFunc) -> None:
        """Run ``f`` after the next render pass (views then have their final size)."""
        with self._cond:
            self._after_layout.append(f)

    def run_after_layout(self) -> None:
        self.assert_ui_thread("after-layout callbacks")
        with self._cond:
            funcs, self._after_layout = self._after_layout, []
        for f in funcs:
            self._run_ui_func(f)

    def _run_ui_func(self, f: UIFunc) -> None:
        try:
            f()
        except LockOrderViolationError:
            raise
        except Exception as e:
            self.handle_error(e)

    def handle_error(self, err: BaseException) -> None:
        """Route an error to the error handler. Must run on the UI thread."""
        if isinstance(err, LockOrderViolationError):
            raise err
        if self._error_handler is None:
            logger.error(f"Unhandled error: {err}", exc_info=err)
            return
        self._error_handler(err)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def on_worker(self, f: Callable[[Task], None], name: str = "") -> Task:
        """Run ``f(task)`` on a new background thread and return the task."""
        task = Task(self.busy, name=name or getattr(f, "__name__", "worker"))
        self.busy.inc()

        def run():
            try:
                f(task)
            except OperationCancelledError:
                logger.debug(f"Worker {task.name!r} stopped after cancellation")
            except Exception as e:
                logger.debug(f"Worker {task.name!r} failed: {e}")
                self.on_ui_thread(lambda err=e: self.handle_error(err))
            finally:
                task._finish()

        thread = threading.Thread(target=run, name=f"worker-{task.name}", daemon=True)
        thread.start()
        return task
