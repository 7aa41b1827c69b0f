# src/listview/window.py
"""
Windowed virtualization: which rows of a long list must exist right now.

Given the row count, per-row sizes, a viewport height and a scroll offset,
the Virtualizer computes the contiguous index range intersecting the viewport,
widens it by `overscan` rows on each side, and reports each row's absolute
offset so the host can position it over a spacer of `total_size` pixels.

Row offsets are a prefix sum over the sizes. The sum is cached and extended
only as far as the row count grows; a count that shrinks truncates it. With a
constant integer estimate and no measurements the offsets are `i * size` and
no array is kept at all.
"""
from __future__ import annotations

import bisect
import logging
import math
from typing import Callable, Dict, Hashable, List, Optional, Tuple, Union

from . import config as CFG
from .models import VirtualItem, Window

log = logging.getLogger(__name__)

SizeOf = Callable[[int], int]
KeyOf = Callable[[int], Hashable]
Estimate = Union[int, float, SizeOf]

ALIGNS = ("start", "center", "end", "auto")


def _finite(value: Optional[float]) -> float:
    # None, NaN and infinities from untrusted input count as 0 (unmeasured)
    if value is None or not math.isfinite(value):
        return 0
    return value


class Virtualizer:
    """
    Stateful window manager for one scroll container.

    Lifecycle (what triggers recomputation):
      * set_count(n)       -> after a search/filter or re-fetch
      * set_viewport(h)    -> container resized
      * scroll_to(offset)  -> scroll event
      * measure(i, size)   -> a rendered row reported its real height
    get_window() is cheap to call repeatedly; it is recomputed only when one
    of the inputs above changed.
    """

    def __init__(self,
                 count: int = 0,
                 estimate_size: Estimate = CFG.ITEM_HEIGHT,
                 overscan: int = CFG.OVERSCAN,
                 *,
                 get_item_key: Optional[KeyOf] = None,
                 viewport_height: float = 0,
                 scroll_offset: float = 0) -> None:
        self.count = max(0, int(count))
        self.overscan = max(0, int(overscan))
        self.get_item_key = get_item_key
        self.viewport_height = _finite(viewport_height)
        self.scroll_offset = max(0, _finite(scroll_offset))

        self._measured: Dict[int, int] = {}
        self._starts: List[int] = [0]   # starts[i] = top of row i, valid for i <= _valid
        self._valid = 0                 # rows whose size is folded into _starts
        self._fixed: Optional[int] = None
        self._estimate: SizeOf = lambda i: CFG.ITEM_HEIGHT
        self._cached: Optional[Tuple[tuple, Window]] = None
        self._version = 0
        self.set_estimate(estimate_size)

    # ------------- inputs -------------

    def set_estimate(self, estimate_size: Estimate) -> None:
        """Replace the size estimator. Drops cached offsets (not measurements)."""
        if callable(estimate_size):
            self._fixed = None
            self._estimate = estimate_size
        else:
            size = estimate_size
            assert size >= 0, f"item size must be >= 0, got {size!r}"
            self._fixed = size
            self._estimate = lambda i: size
        self._truncate(0)

    def set_count(self, count: int) -> None:
        count = max(0, int(count))
        if count == self.count:
            return
        if count < self._valid:
            self._truncate(count)
        if count < self.count:
            self._measured = {i: s for i, s in self._measured.items() if i < count}
        self.count = count
        self._touch()

    def set_viewport(self, height: float) -> None:
        height = _finite(height)
        if height != self.viewport_height:
            self.viewport_height = height
            self._touch()

    def scroll_to(self, offset: float) -> None:
        offset = max(0, _finite(offset))
        if offset != self.scroll_offset:
            self.scroll_offset = offset
            self._touch()

    def invalidate(self) -> None:
        """Rows changed identity without changing count; recompute keys on next read."""
        self._touch()

    def measure(self, index: int, size: int) -> None:
        """Record a measured row size; offsets after `index` are recomputed lazily."""
        assert size >= 0, f"item size must be >= 0, got {size!r}"
        if not 0 <= index < self.count:
            return
        if self._size(index) == size:
            return
        self._measured[index] = size
        self._truncate(index)
        self._touch()

    # ------------- geometry -------------

    @property
    def total_size(self) -> float:
        return self.offset_of(self.count)

    def offset_of(self, index: int) -> float:
        """Top offset of row `index` (0 <= index <= count; count -> total size)."""
        index = min(max(0, index), self.count)
        if self._uniform():
            return index * self._fixed
        self._build(index)
        return self._starts[index]

    def size_of(self, index: int) -> float:
        if self._uniform():
            return self._fixed
        self._build(index + 1)
        return self._starts[index + 1] - self._starts[index]

    def index_at(self, offset: float) -> int:
        """Index of the row covering `offset` (last row whose top <= offset)."""
        if self.count == 0:
            return -1
        offset = max(0, offset)
        if self._uniform():
            if self._fixed == 0:
                return self.count - 1
            return min(self.count - 1, int(offset // self._fixed))
        self._build(self.count)
        i = bisect.bisect_right(self._starts, offset, 0, self.count) - 1
        return min(max(0, i), self.count - 1)

    def _last_before(self, bottom: float) -> int:
        """Index of the last row whose top is strictly above `bottom`."""
        if self._uniform():
            if self._fixed == 0:
                return self.count - 1
            return min(self.count - 1, math.ceil(bottom / self._fixed) - 1)
        self._build(self.count)
        return min(self.count - 1, bisect.bisect_left(self._starts, bottom, 0, self.count) - 1)

    # ------------- window -------------

    def get_window(self) -> Window:
        state = (self.count, self.scroll_offset, self.viewport_height, self.overscan, self._version)
        if self._cached is not None and self._cached[0] == state:
            return self._cached[1]
        window = self._compute()
        self._cached = (state, window)
        return window

    def _compute(self) -> Window:
        n = self.count
        if n == 0:
            return Window(visible_range=None, virtual_items=[], total_size=0)
        total = self.total_size
        height = self.viewport_height
        if height is None or height <= 0:
            # not measured yet
            return Window(visible_range=None, virtual_items=[], total_size=total)

        top = self.scroll_offset
        if top >= total:
            # scrolled past the end (e.g. the list shrank): show the last page
            top = max(0, total - height)
        first = self.index_at(top)
        last = max(first, self._last_before(top + height))

        lo = max(0, first - self.overscan)
        hi = min(n - 1, last + self.overscan)
        items = [
            VirtualItem(index=i, start=self.offset_of(i), size=self.size_of(i), key=self._key(i))
            for i in range(lo, hi + 1)
        ]
        log.debug("window: visible=%d..%d rendered=%d..%d of %d", first, last, lo, hi, n)
        return Window(visible_range=(first, last), virtual_items=items, total_size=total)

    def scroll_to_index(self, index: int, align: str = "auto") -> float:
        """
        Scroll so that row `index` is shown; returns the new scroll offset.
        align: "start" | "center" | "end" | "auto" (only scroll if not fully visible).
        """
        if align not in ALIGNS:
            raise ValueError(f"align must be one of {ALIGNS}, got {align!r}")
        if self.count == 0:
            return self.scroll_offset
        index = min(max(0, index), self.count - 1)
        start = self.offset_of(index)
        size = self.size_of(index)
        height = max(0, self.viewport_height or 0)

        if align == "auto":
            if start >= self.scroll_offset and start + size <= self.scroll_offset + height:
                return self.scroll_offset
            align = "start" if start < self.scroll_offset else "end"

        if align == "start":
            target = start
        elif align == "end":
            target = start + size - height
        else:
            target = start + size / 2 - height / 2

        target = min(max(0, target), max(0, self.total_size - height))
        self.scroll_to(target)
        return self.scroll_offset

    # ------------- internals -------------

    def _uniform(self) -> bool:
        return self._fixed is not None and not self._measured

    def _size(self, index: int) -> int:
        size = self._measured.get(index)
        if size is None:
            size = self._estimate(index)
        assert size >= 0, f"item size must be >= 0, got {size!r} at index {index}"
        return size

    def _build(self, upto: int) -> None:
        # extend the prefix sum so that _starts[upto] is known
        upto = min(upto, self.count)
        starts = self._starts
        while self._valid < upto:
            starts.append(starts[self._valid] + self._size(self._valid))
            self._valid += 1

    def _truncate(self, index: int) -> None:
        # keep _starts[0..index]; everything after is recomputed on demand
        index = max(0, index)
        if index < self._valid:
            del self._starts[index + 1:]
            self._valid = index
        self._touch()

    def _key(self, index: int) -> Hashable:
        if self.get_item_key is None:
            return index
        return self.get_item_key(index)

    def _touch(self) -> None:
        self._version += 1


def compute_window(total_count: int,
                   scroll_offset: float,
                   viewport_height: float,
                   size_of: Estimate,
                   overscan: int = CFG.OVERSCAN,
                   key_of: Optional[KeyOf] = None) -> Window:
    """One-shot window computation (see Virtualizer for the stateful form)."""
    v = Virtualizer(total_count, size_of, overscan,
                    get_item_key=key_of,
                    viewport_height=viewport_height,
                    scroll_offset=scroll_offset)
    return v.get_window()
