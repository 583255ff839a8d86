"""Concurrency primitives: UI thread coordinator, workers and domain mutexes."""

from .coordinator import BusyTracker, Coordinator, Task
from .deadlock import DeadlockDetectingLock, LockOrderGraph
from .mutexes import Domain, Mutexes, lock_order

__all__ = [
    "BusyTracker",
    "Coordinator",
    "Task",
    "DeadlockDetectingLock",
    "LockOrderGraph",
    "Domain",
    "Mutexes",
    "lock_order",
]
