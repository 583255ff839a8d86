"""Prefix index over file paths for autocompletion."""
from bisect import bisect_left
from typing import Iterable, List, Optional, Tuple


class PrefixIndex:
    """Immutable index answering "which paths start with X" quickly.

    Keys are kept sorted next to their insertion position, so a lookup is a
    binary search for the first candidate followed by a linear scan over the
    matching run. Results come back in insertion order, which is the order
    the files are displayed in.
    """

    def __init__(self, keys: Iterable[str] = ()):
        positions = {}
        for key in keys:
            positions.setdefault(key, len(positions))
        self._order: List[str] = list(positions)
        self._sorted: List[Tuple[str, int]] = sorted(positions.items())
        self._sorted_keys: List[str] = [key for key, _ in self._sorted]

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: str) -> bool:
        i = bisect_left(self._sorted_keys, key)
        return i < len(self._sorted_keys) and self._sorted_keys[i] == key

    def keys(self) -> List[str]:
        return list(self._order)

    def find_prefix(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        """Return keys starting with ``prefix`` in insertion order."""
        if not prefix:
            matches = list(self._order)
            return matches if limit is None else matches[:limit]

        start = bisect_left(self._sorted_keys, prefix)
        hits = []
        for key, position in self._sorted[start:]:
            if not key.startswith(prefix):
                break
            hits.append((position, key))

        hits.sort()
        matches = [key for _, key in hits]
        return matches if limit is None else matches[:limit]
