"""Suggestion callbacks for prompts.

These run on every keystroke, inline with input handling, so they only read
the model's current sequence references (which are swapped wholesale by
refreshes) and never take a domain mutex.
"""
from typing import Callable, Iterable, List, Optional

from gitlane.models.model import Model
from gitlane.popup.requests import FindSuggestionsFunc, Suggestion

DEFAULT_LIMIT = 30


def match_names(names: Iterable[str], text: str, limit: Optional[int] = DEFAULT_LIMIT) -> List[str]:
    """Case-insensitive substring match; prefix hits first, order otherwise kept."""
    if not text:
        result = list(names)
        return result if limit is None else result[:limit]

    needle = text.lower()
    prefix_hits = []
    other_hits = []
    for name in names:
        lowered = name.lower()
        if lowered.startswith(needle):
            prefix_hits.append(name)
        elif needle in lowered:
            other_hits.append(name)
    result = prefix_hits + other_hits
    return result if limit is None else result[:limit]


def _to_suggestions(values: Iterable[str]) -> List[Suggestion]:
    return [Suggestion(value=v) for v in values]


class SuggestionsHelper:
    """Builds ``FindSuggestionsFunc`` callbacks over the shared model."""

    def __init__(self, model: Model, limit: int = DEFAULT_LIMIT):
        self._model = model
        self._limit = limit

    def file_path_suggestions(self) -> FindSuggestionsFunc:
        """Paths from the prefix index, in display order."""
        def find(text: str) -> List[Suggestion]:
            index = self._model.files_index
            return _to_suggestions(index.find_prefix(text, self._limit))
        return find

    def branch_name_suggestions(self) -> FindSuggestionsFunc:
        return self._names_func(lambda: [b.name for b in self._model.branches])

    def remote_suggestions(self) -> FindSuggestionsFunc:
        return self._names_func(lambda: [r.name for r in self._model.remotes])

    def remote_branch_suggestions(self) -> FindSuggestionsFunc:
        return self._names_func(lambda: [rb.id() for rb in self._model.remote_branches])

    def tag_suggestions(self) -> FindSuggestionsFunc:
        return self._names_func(lambda: [t.name for t in self._model.tags])

    def author_suggestions(self) -> FindSuggestionsFunc:
        return self._names_func(lambda: [a.combined() for a in self._model.authors.values()])

    def ref_suggestions(self) -> FindSuggestionsFunc:
        """Branches, remote branches and tags together."""
        def names() -> List[str]:
            model = self._model
            return (
                [b.name for b in model.branches]
                + [rb.id() for rb in model.remote_branches]
                + [t.name for t in model.tags]
            )
        return self._names_func(names)

    def _names_func(self, names: Callable[[], List[str]]) -> FindSuggestionsFunc:
        def find(text: str) -> List[Suggestion]:
            return _to_suggestions(match_names(names(), text, self._limit))
        return find
