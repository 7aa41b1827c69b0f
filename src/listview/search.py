from __future__ import annotations
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence

from . import config as CFG
from .normalize import FieldSpec, FieldAccessor, normalize_query, read_field, resolve_fields

log = logging.getLogger(__name__)


def _matches(item: Any, needle: str, accessors: List[FieldAccessor]) -> bool:
    # first matching field wins; remaining fields are not read
    for acc in accessors:
        if needle in read_field(item, acc):
            return True
    return False


def filter_items(candidates: Sequence[Any], needle: str, accessors: List[FieldAccessor]) -> Sequence[Any]:
    """
    Core pass over already-normalized input.
    An empty needle returns `candidates` itself (same object, same order).
    """
    if not needle:
        return candidates
    return tuple(item for item in candidates if _matches(item, needle, accessors))


def search(candidates: Sequence[Any], query: Any, fields: Iterable[FieldSpec]) -> Sequence[Any]:
    """
    Case-insensitive substring search over the declared fields.

    An item matches when ANY field's lowercased text contains the lowercased,
    trimmed query. The result is the stable subsequence of `candidates` in
    their original order. Empty or whitespace-only queries return `candidates`
    unchanged (the very same object). Missing fields read as "".
    """
    if candidates is None:
        return ()
    return filter_items(candidates, normalize_query(query), resolve_fields(fields))


class Searcher:
    """
    Search bound to a fixed field set, resolved once at construction.

    Remembers the last (candidates, query) pair: running again with the same
    candidate object and an equivalent query returns the identical result
    object, so hosts can skip re-rendering on `is` comparison.

    `order_by` is an explicit opt-in sort key applied after filtering (stable).
    Without it, result order is always the candidate order.
    """

    def __init__(self,
                 fields: Iterable[FieldSpec] = CFG.SEARCH_FIELDS,
                 *,
                 order_by: Optional[Callable[[Any], Any]] = None) -> None:
        self.accessors: List[FieldAccessor] = resolve_fields(fields)
        self.order_by = order_by
        self._last_candidates: Optional[Sequence[Any]] = None
        self._last_needle: Optional[str] = None
        self._last_result: Sequence[Any] = ()

    def run(self, candidates: Sequence[Any], query: Any) -> Sequence[Any]:
        if candidates is None:
            candidates = ()
        needle = normalize_query(query)
        if candidates is self._last_candidates and needle == self._last_needle:
            return self._last_result

        result = filter_items(candidates, needle, self.accessors)
        if self.order_by is not None:
            result = tuple(sorted(result, key=self.order_by))

        self._last_candidates = candidates
        self._last_needle = needle
        self._last_result = result
        log.debug("search %r: %d of %d candidates", needle, len(result), len(candidates))
        return result

    def reset(self) -> None:
        """Forget the memoized result (e.g. after the field set changed)."""
        self._last_candidates = None
        self._last_needle = None
        self._last_result = ()
