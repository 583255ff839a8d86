"""Rendering long-running output into the main views.

Each main view slot runs at most one render task. Starting a new one cancels
the old task and bumps the slot's generation, so any output the old task
still had in flight is dropped instead of being appended to the new content.
Output produced on a worker is buffered and only written to the view from
the UI thread, at most once per flush interval.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Union

from gitlane.concurrency.coordinator import Coordinator, Task
from gitlane.logging_config import get_logger

logger = get_logger(__name__)

WriteFunc = Callable[[str], None]


class Renderer(Protocol):
    """The rendering layer. Only ever called from the UI thread."""

    def set_view_content(self, view_name: str, content: str) -> None: ...

    def reset_view_origin(self, view_name: str) -> None: ...

    def render(self) -> None: ...


@dataclass(frozen=True)
class RenderStringTask:
    content: str


@dataclass(frozen=True)
class StreamTask:
    """Produces output incrementally on a worker via ``run(task, write)``."""
    run: Callable[[Task, WriteFunc], None]
    name: str = "stream"


MainViewTask = Union[RenderStringTask, StreamTask]


@dataclass(frozen=True)
class MainViewPair:
    main: str
    secondary: Optional[str] = None


class MainViewPairs:
    """The pairs of main views that output can be rendered into."""
    NORMAL = MainViewPair("main", None)
    STAGING = MainViewPair("staging", "staging_secondary")
    PATCH_BUILDING = MainViewPair("patch_building", "patch_building_secondary")
    MERGING = MainViewPair("merge_conflicts", None)


@dataclass(frozen=True)
class ViewUpdate:
    task: MainViewTask
    title: str = ""


@dataclass(frozen=True)
class RefreshMainOpts:
    pair: MainViewPair
    main: Optional[ViewUpdate] = None
    secondary: Optional[ViewUpdate] = None


class OutputStreamer:
    """Buffers worker output and flushes it through the UI thread."""

    def __init__(self, coordinator: Coordinator, flush_ms: int, apply: WriteFunc):
        self._coordinator = coordinator
        self._interval = flush_ms / 1000.0
        self._apply = apply
        self._buffer = []
        self._lock = threading.Lock()
        self._pending = False
        self._last_flush = 0.0
        self._timer: Optional[threading.Timer] = None

    def write(self, chunk: str) -> None:
        """Called from the worker."""
        if not chunk:
            return
        with self._lock:
            self._buffer.append(chunk)
            if self._pending:
                return
            self._pending = True
            delay = self._interval - (time.monotonic() - self._last_flush)
        if delay <= 0:
            self._coordinator.on_ui_thread(self._flush)
        else:
            self._timer = threading.Timer(delay, self._coordinator.on_ui_thread, args=(self._flush,))
            self._timer.daemon = True
            self._timer.start()

    def close(self) -> None:
        """Flush whatever is left, regardless of the interval."""
        timer = self._timer
        if timer is not None:
            timer.cancel()
        with self._lock:
            self._pending = True
        self._coordinator.on_ui_thread(self._flush)

    def _flush(self) -> None:
        with self._lock:
            text = "".join(self._buffer)
            self._buffer = []
            self._pending = False
            self._last_flush = time.monotonic()
        if text:
            self._apply(text)


class MainViewSlot:
    """One main view and the render task currently feeding it."""

    def __init__(self, view_name: str, renderer: Renderer, coordinator: Coordinator, flush_ms: int):
        self.view_name = view_name
        self._renderer = renderer
        self._coordinator = coordinator
        self._flush_ms = flush_ms
        self._generation = 0
        self._task: Optional[Task] = None
        self.content = ""
        self.title = ""

    @property
    def generation(self) -> int:
        return self._generation

    def start(self, update: ViewUpdate) -> None:
        self._coordinator.assert_ui_thread("main views")
        self._generation += 1
        generation = self._generation
        if self._task is not None:
            self._task.cancel()
            self._task = None

        self.title = update.title
        self.content = ""
        self._renderer.reset_view_origin(self.view_name)

        task = update.task
        if isinstance(task, RenderStringTask):
            self.content = task.content
            self._renderer.set_view_content(self.view_name, self.content)
            return

        self._renderer.set_view_content(self.view_name, "")
        streamer = OutputStreamer(
            self._coordinator,
            self._flush_ms,
            lambda text: self._append(generation, text),
        )

        def run(worker_task: Task) -> None:
            try:
                task.run(worker_task, streamer.write)
            finally:
                streamer.close()

        self._task = self._coordinator.on_worker(run, name=f"{self.view_name}-{task.name}")

    def _append(self, generation: int, text: str) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping output for superseded render of {self.view_name}")
            return
        self.content += text
        self._renderer.set_view_content(self.view_name, self.content)


class MainViews:
    """Slots for every main view, keyed by view name."""

    def __init__(self, renderer: Renderer, coordinator: Coordinator, flush_ms: int):
        self._renderer = renderer
        self._coordinator = coordinator
        self._flush_ms = flush_ms
        self._slots: Dict[str, MainViewSlot] = {}

    def slot(self, view_name: str) -> MainViewSlot:
        slot = self._slots.get(view_name)
        if slot is None:
            slot = MainViewSlot(view_name, self._renderer, self._coordinator, self._flush_ms)
            self._slots[view_name] = slot
        return slot

    def render_to_main_views(self, opts: RefreshMainOpts) -> None:
        if opts.main is not None:
            self.slot(opts.pair.main).start(opts.main)
        if opts.secondary is not None and opts.pair.secondary is not None:
            self.slot(opts.pair.secondary).start(opts.secondary)
