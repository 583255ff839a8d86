"""Utility modules for gitlane.

- prefix_index: sorted prefix index used for path autocompletion
- string_pool: string interning for commit hashes
"""

from .prefix_index import PrefixIndex
from .string_pool import StringPool

__all__ = [
    "PrefixIndex",
    "StringPool",
]
