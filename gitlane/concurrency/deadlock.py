"""Instrumented mutex that reports lock-order cycles instead of deadlocking."""
import threading
import traceback
from collections import defaultdict, deque
from typing import Dict, List, Optional, Set

from gitlane.exceptions import LockOrderViolationError
from gitlane.logging_config import get_logger

logger = get_logger(__name__)


class LockOrderGraph:
    """Records the order in which named locks have been acquired.

    Acquiring lock B while holding lock A adds the edge A -> B. If the graph
    already contains a path B -> ... -> A, the two call sites disagree about
    the order and could deadlock under the right interleaving; that is
    reported before the acquiring thread blocks.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._edges: Dict[str, Set[str]] = defaultdict(set)
        self._local = threading.local()

    def held(self) -> List[str]:
        """Names of locks held by the calling thread, oldest first."""
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = []
            self._local.stack = stack
        return stack

    def check_acquire(self, name: str) -> None:
        """Validate that ``name`` may be acquired by the calling thread."""
        held = self.held()
        if name in held:
            self._report(name, name, [name, name])

        with self._lock:
            for held_name in held:
                path = self._find_path(name, held_name)
                if path:
                    self._report(name, held_name, path)
            for held_name in held:
                self._edges[held_name].add(name)

    def push(self, name: str) -> None:
        self.held().append(name)

    def pop(self, name: str) -> None:
        stack = self.held()
        # Releases need not be LIFO
        for i in range(len(stack) - 1, -1, -1):
            if stack[i] == name:
                del stack[i]
                return

    def edges(self) -> Dict[str, Set[str]]:
        with self._lock:
            return {k: set(v) for k, v in self._edges.items()}

    def reset(self) -> None:
        with self._lock:
            self._edges.clear()

    def _find_path(self, start: str, goal: str) -> Optional[List[str]]:
        """Breadth-first search for start -> ... -> goal. Caller holds _lock."""
        if start not in self._edges:
            return None
        previous = {start: None}
        queue = deque([start])
        while queue:
            node = queue.popleft()
            if node == goal:
                path = []
                while node is not None:
                    path.append(node)
                    node = previous[node]
                return list(reversed(path))
            for nxt in self._edges.get(node, ()):
                if nxt not in previous:
                    previous[nxt] = node
                    queue.append(nxt)
        return None

    def _report(self, acquiring: str, held: str, path: List[str]) -> None:
        error = LockOrderViolationError(acquiring, held, path)
        logger.critical(
            "%s\nThread: %s\n%s",
            error,
            threading.current_thread().name,
            "".join(traceback.format_stack(limit=12)),
        )
        raise error


default_lock_graph = LockOrderGraph()


class DeadlockDetectingLock:
    """A named, non-reentrant mutex checked against a ``LockOrderGraph``.

    Usable as a context manager, so release happens on every exit path.
    """

    def __init__(self, name: str, graph: Optional[LockOrderGraph] = None, checks: bool = True):
        self.name = name
        self._graph = graph if graph is not None else default_lock_graph
        self._checks = checks
        self._lock = threading.Lock()

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        if self._checks:
            self._graph.check_acquire(self.name)
        acquired = self._lock.acquire(blocking, timeout)
        if acquired and self._checks:
            self._graph.push(self.name)
        return acquired

    def release(self) -> None:
        if self._checks:
            self._graph.pop(self.name)
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    def __enter__(self) -> "DeadlockDetectingLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "locked" if self.locked() else "unlocked"
        return f"<DeadlockDetectingLock {self.name} {state}>"
