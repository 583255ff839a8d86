"""String interning pool"""
from threading import Lock
from typing import Dict


class StringPool:
    """Deduplicates repeated strings such as commit hashes.

    Many commits, branches and reflog entries refer to the same hash; storing
    one canonical instance keeps memory flat for large histories.
    """

    def __init__(self):
        self._pool: Dict[str, str] = {}
        self._lock = Lock()

    def add(self, value: str) -> str:
        """Return the canonical instance of ``value``."""
        with self._lock:
            existing = self._pool.get(value)
            if existing is not None:
                return existing
            self._pool[value] = value
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._pool)

    def __contains__(self, value: str) -> bool:
        with self._lock:
            return value in self._pool
