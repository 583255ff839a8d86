"""Busy indicators drawn inline next to the item an operation works on."""
import threading
from typing import Callable, Dict

from gitlane.concurrency.coordinator import Coordinator, Task
from gitlane.config import Config
from gitlane.constants import DEMO_SPINNER_SLOWDOWN
from gitlane.context import ContextKey, ContextMgr
from gitlane.logging_config import get_logger
from gitlane.models.enums import ItemOperation
from gitlane.state import HasUrn, StateAccessor

logger = get_logger(__name__)


class InlineStatusHelper:
    """Runs a worker while an item shows an operation and a spinner.

    While at least one inline status is active for a context, a ticker
    re-renders that context periodically so the spinner animates. Several
    operations on items of the same context share one ticker.
    """

    def __init__(
        self,
        coordinator: Coordinator,
        state: StateAccessor,
        context_mgr: ContextMgr,
        config: Config,
    ):
        self._coordinator = coordinator
        self._state = state
        self._context_mgr = context_mgr
        self._config = config
        self._lock = threading.Lock()
        self._ref_counts: Dict[ContextKey, int] = {}
        self._tickers: Dict[ContextKey, threading.Event] = {}

    def with_inline_status(
        self,
        item: HasUrn,
        operation: ItemOperation,
        context_key: ContextKey,
        f: Callable[[Task], None],
    ) -> Task:
        """Run ``f`` on a worker with ``operation`` attached to ``item``.

        The operation is set before ``f`` starts and cleared once it ends,
        however it ends.
        """
        context_key = ContextKey(context_key)

        def run(task: Task) -> None:
            self._start(item, operation, context_key)
            try:
                f(task)
            finally:
                self._stop(item, context_key)

        return self._coordinator.on_worker(run, name=f"{operation.value} {item.urn()}")

    def active_contexts(self) -> Dict[ContextKey, int]:
        with self._lock:
            return dict(self._ref_counts)

    def _start(self, item: HasUrn, operation: ItemOperation, context_key: ContextKey) -> None:
        self._state.set_item_operation(item, operation)
        with self._lock:
            count = self._ref_counts.get(context_key, 0) + 1
            self._ref_counts[context_key] = count
            start_ticker = count == 1
            if start_ticker:
                stop = threading.Event()
                self._tickers[context_key] = stop
        if start_ticker and not self._config.integration_test:
            self._start_ticker(context_key, stop)
        self._render(context_key)

    def _stop(self, item: HasUrn, context_key: ContextKey) -> None:
        self._state.clear_item_operation(item)
        with self._lock:
            count = self._ref_counts.get(context_key, 0) - 1
            if count <= 0:
                self._ref_counts.pop(context_key, None)
                stop = self._tickers.pop(context_key, None)
                if stop is not None:
                    stop.set()
            else:
                self._ref_counts[context_key] = count
        self._render(context_key)

    def _start_ticker(self, context_key: ContextKey, stop: threading.Event) -> None:
        interval = self._config.spinner_rate_ms / 1000.0
        if self._config.demo:
            interval *= DEMO_SPINNER_SLOWDOWN

        def tick() -> None:
            while not stop.wait(interval):
                self._render(context_key)

        thread = threading.Thread(target=tick, name=f"spinner-{context_key.value}", daemon=True)
        thread.start()

    def _render(self, context_key: ContextKey) -> None:
        def render() -> None:
            try:
                context = self._context_mgr.by_key(context_key)
            except KeyError:
                return
            self._context_mgr.render_context(context)
            self._context_mgr.render()

        self._coordinator.on_ui_thread(render)
