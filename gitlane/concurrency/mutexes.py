"""Per-domain mutexes over the shared model"""
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Optional

from gitlane.concurrency.deadlock import DeadlockDetectingLock, LockOrderGraph
from gitlane.exceptions import LockOrderViolationError
from gitlane.logging_config import get_logger

logger = get_logger(__name__)


class Domain(str, Enum):
    """Logical partitions of shared state, each guarded by its own mutex."""
    AUTHORS = "authors"
    BRANCHES = "branches"
    FILES = "files"
    LOCAL_COMMITS = "local_commits"
    POPUP = "popup"
    PTY = "pty"
    STATUS = "status"
    SUB_COMMITS = "sub_commits"
    SUBPROCESS = "subprocess"


def lock_order(domains) -> List[Domain]:
    """Deduplicate and sort domains into the global acquisition order."""
    return sorted({Domain(d) for d in domains}, key=lambda d: d.value)


class Mutexes:
    """One instrumented mutex per domain.

    Multi-domain acquisition always goes through ``acquire`` which takes the
    locks in lexicographic order of domain name. Acquiring a domain that
    sorts before one the thread already holds is rejected outright; the lock
    order graph additionally catches cycles created by code that takes the
    locks one at a time.
    """

    def __init__(self, checks: bool = True, graph: Optional[LockOrderGraph] = None):
        self.checks = checks
        self.graph = graph if graph is not None else LockOrderGraph()
        self._locks: Dict[Domain, DeadlockDetectingLock] = {
            domain: DeadlockDetectingLock(domain.value, self.graph, checks=checks)
            for domain in Domain
        }

    def lock(self, domain) -> DeadlockDetectingLock:
        return self._locks[Domain(domain)]

    @property
    def refreshing_files(self) -> DeadlockDetectingLock:
        return self._locks[Domain.FILES]

    @property
    def refreshing_branches(self) -> DeadlockDetectingLock:
        return self._locks[Domain.BRANCHES]

    @property
    def refreshing_status(self) -> DeadlockDetectingLock:
        return self._locks[Domain.STATUS]

    @property
    def local_commits(self) -> DeadlockDetectingLock:
        return self._locks[Domain.LOCAL_COMMITS]

    @property
    def sub_commits(self) -> DeadlockDetectingLock:
        return self._locks[Domain.SUB_COMMITS]

    @property
    def authors(self) -> DeadlockDetectingLock:
        return self._locks[Domain.AUTHORS]

    @property
    def subprocess(self) -> DeadlockDetectingLock:
        return self._locks[Domain.SUBPROCESS]

    @property
    def popup(self) -> DeadlockDetectingLock:
        return self._locks[Domain.POPUP]

    @property
    def pty(self) -> DeadlockDetectingLock:
        return self._locks[Domain.PTY]

    def held(self) -> List[str]:
        """Domains held by the calling thread (only tracked with checks on)."""
        return list(self.graph.held())

    @contextmanager
    def acquire(self, *domains) -> Iterator[None]:
        """Hold every given domain for the duration of the block."""
        ordered = lock_order(domains)
        if self.checks and ordered:
            held = self.graph.held()
            if held:
                highest = max(held)
                first = ordered[0].value
                if first <= highest:
                    error = LockOrderViolationError(first, highest, list(held) + [first])
                    logger.critical(str(error))
                    raise error

        acquired: List[DeadlockDetectingLock] = []
        try:
            for domain in ordered:
                lock = self._locks[domain]
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
