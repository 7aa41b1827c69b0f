# listview/engine.py
from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from . import config as CFG
from .cache import Items, QueryCache
from .debounce import Debouncer, Scheduler
from .DB.api import WRITABLE, DataSource, MutationSink
from .loader import group_transactions, row_size
from .models import Customer, Transaction, VirtualItem, Window
from .mutations import MakeItem, MutationCoordinator, Notify, default_key, make_mapping
from .normalize import FieldSpec
from .search import Searcher
from .window import Virtualizer

log = logging.getLogger(__name__)

RenderCallback = Callable[[List[VirtualItem]], None]
ItemSize = Union[int, float, Callable[[Any], int]]
Present = Callable[[Sequence[Any]], Sequence[Any]]


class ListView:
    """
    One mounted list: search box + virtualized rows over a cached resource.

    Wires the three layers together:
      set_query(raw) -> Debouncer -> Searcher (result set) -> Virtualizer
      (row count) -> window -> on_render(virtual_items)

    Public API (used by the Flask layer, the CLI and the desktop viewer):
      * set_query(raw), flush_query()
      * set_viewport(height), scroll_to(offset), scroll_to_item(id)
      * await refresh(filter_hints)           -> re-fetch candidates
      * await create / update / delete        -> optimistic mutations
      * rows(), window, result_set, is_empty, is_searching
      * close()

    The candidate collection is whatever the shared QueryCache holds for
    `resource`; any change there (a fetch, a sibling view's mutation)
    recomputes the result set in one step and re-renders. When the candidates
    change under an unchanged query, the first visible row is kept in place
    by id.
    """

    # ------------- lifecycle -------------

    def __init__(self,
                 cache: QueryCache,
                 resource: Hashable,
                 source: Optional[DataSource] = None,
                 sink: Optional[MutationSink] = None,
                 *,
                 fields: Iterable[FieldSpec] = CFG.SEARCH_FIELDS,
                 scheduler: Optional[Scheduler] = None,
                 debounce_ms: float = CFG.DEBOUNCE_MS,
                 item_size: ItemSize = CFG.ITEM_HEIGHT,
                 overscan: int = CFG.OVERSCAN,
                 key_of: Callable[[Any], Hashable] = default_key,
                 order_by: Optional[Callable[[Any], Any]] = None,
                 present: Optional[Present] = None,
                 make_item: MakeItem = make_mapping,
                 on_render: Optional[RenderCallback] = None,
                 notify: Optional[Notify] = None,
                 noun: str = "Item") -> None:
        self.cache = cache
        self.resource = resource
        self.source = source
        self.key_of = key_of
        self.on_render = on_render
        self._present = present
        self._closed = False

        self.searcher = Searcher(fields, order_by=order_by)
        self.debouncer = Debouncer(debounce_ms, scheduler, on_settle=self._on_query_settled)
        self.mutations: Optional[MutationCoordinator] = None
        if sink is not None:
            self.mutations = MutationCoordinator(cache, resource, sink, notify,
                                                 key_of=key_of, make_item=make_item, noun=noun)

        self._per_item_size = callable(item_size)
        self._item_size = item_size
        self.virtualizer = Virtualizer(0, self._estimate(), overscan, get_item_key=self._key_at)

        self._candidates: Items = cache.get(resource)
        self._matched: Sequence[Any] = ()
        self._results: Sequence[Any] = ()
        self._last_window: Optional[Window] = None
        self._apply_results(self.searcher.run(self._candidates, self.debouncer.value))
        self._unsubscribe = cache.subscribe(resource, self._on_candidates)

    def close(self) -> None:
        if self._closed:
            return
        self.debouncer.close()
        self._unsubscribe()
        self._closed = True
        log.info("ListView %r closed", self.resource)

    def __enter__(self) -> "ListView":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------- query -------------

    def set_query(self, raw: str) -> None:
        self._check_open()
        self.debouncer.observe(raw)

    def flush_query(self) -> None:
        """Apply the typed query immediately (Enter key)."""
        self._check_open()
        self.debouncer.flush()

    @property
    def query(self) -> str:
        return self.debouncer.raw

    @property
    def debounced_query(self) -> str:
        return self.debouncer.value

    @property
    def is_searching(self) -> bool:
        """True while typed input has not settled yet (hosts show a spinner)."""
        return self.debouncer.raw != self.debouncer.value

    # ------------- viewport -------------

    def set_viewport(self, height: float) -> None:
        self._check_open()
        self.virtualizer.set_viewport(height)
        self._render()

    def scroll_to(self, offset: float) -> None:
        self._check_open()
        self.virtualizer.scroll_to(offset)
        self._render()

    def scroll_to_item(self, item_id: Hashable, align: str = "auto") -> Optional[float]:
        """Scroll to the row with `item_id`; None if it is not in the result set."""
        self._check_open()
        for i, item in enumerate(self._results):
            if self._row_key(item) == item_id:
                offset = self.virtualizer.scroll_to_index(i, align)
                self._render()
                return offset
        return None

    @property
    def window(self) -> Window:
        return self.virtualizer.get_window()

    @property
    def scroll_offset(self) -> float:
        return self.virtualizer.scroll_offset

    def rows(self) -> List[Tuple[VirtualItem, Any]]:
        """(VirtualItem, item) pairs for every row that must be materialized."""
        results = self._results
        return [(vi, results[vi.index]) for vi in self.window.virtual_items]

    # ------------- data -------------

    @property
    def candidates(self) -> Items:
        return self._candidates

    @property
    def result_set(self) -> Sequence[Any]:
        return self._results

    @property
    def is_empty(self) -> bool:
        return len(self._results) == 0

    @property
    def is_loaded(self) -> bool:
        return self.cache.is_loaded(self.resource)

    async def refresh(self, filter_hints: Optional[Mapping[str, Any]] = None) -> Items:
        self._check_open()
        if self.source is None:
            raise RuntimeError(f"ListView {self.resource!r} has no data source")
        source = self.source
        return await self.cache.fetch(self.resource, lambda: source.fetch_candidates(filter_hints))

    async def create(self, fields: Mapping[str, Any]) -> Any:
        return await self._coordinator().create(fields)

    async def update(self, item_id: Hashable, patch: Mapping[str, Any]) -> Any:
        return await self._coordinator().update(item_id, patch)

    async def delete(self, item_id: Hashable) -> Any:
        return await self._coordinator().delete(item_id)

    # ------------- internals -------------

    def _on_query_settled(self, query: str) -> None:
        self._recompute(anchor=False)

    def _on_candidates(self, items: Items) -> None:
        self._candidates = items
        self._recompute(anchor=True)

    def _recompute(self, *, anchor: bool) -> None:
        matched = self.searcher.run(self._candidates, self.debouncer.value)
        if matched is self._matched:
            return
        keep = self._anchor() if anchor else None
        self._apply_results(matched)
        if keep is not None:
            self._restore_anchor(*keep)
        self._clamp_scroll()
        self._render()

    def _apply_results(self, matched: Sequence[Any]) -> None:
        self._matched = matched
        self._results = self._present(matched) if self._present else matched
        if self._per_item_size:
            self.virtualizer.set_estimate(self._estimate())
        self.virtualizer.set_count(len(self._results))
        self.virtualizer.invalidate()

    def _anchor(self) -> Optional[Tuple[Hashable, float]]:
        visible = self.virtualizer.get_window().visible_range
        if visible is None:
            return None
        first = visible[0]
        delta = self.virtualizer.scroll_offset - self.virtualizer.offset_of(first)
        return self._row_key(self._results[first]), delta

    def _restore_anchor(self, key: Hashable, delta: float) -> None:
        for i, item in enumerate(self._results):
            if self._row_key(item) == key:
                self.virtualizer.scroll_to(self.virtualizer.offset_of(i) + delta)
                return

    def _clamp_scroll(self) -> None:
        v = self.virtualizer
        limit = max(0, v.total_size - max(0, v.viewport_height or 0))
        if v.scroll_offset > limit:
            v.scroll_to(limit)

    def _render(self) -> None:
        window = self.virtualizer.get_window()
        if window is self._last_window:
            return
        self._last_window = window
        if self.on_render is not None:
            self.on_render(window.virtual_items)

    def _estimate(self):
        if not self._per_item_size:
            return self._item_size
        size_of_item = self._item_size
        return lambda i: size_of_item(self._results[i])

    def _row_key(self, item: Any) -> Hashable:
        return self.key_of(item)

    def _key_at(self, index: int) -> Hashable:
        return self._row_key(self._results[index])

    def _coordinator(self) -> MutationCoordinator:
        self._check_open()
        if self.mutations is None:
            raise RuntimeError(f"ListView {self.resource!r} is read-only (no mutation sink)")
        return self.mutations

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"ListView {self.resource!r} is closed")


# /* ~~~ ready-made views for the CRM lists ~~~ */

def optimistic_customer(temp_id: Hashable, fields: Mapping[str, Any]) -> Customer:
    """Placeholder row shown until the store returns the real customer (no code yet)."""
    return Customer(id=temp_id, **{k: str(fields.get(k) or "").strip() for k in WRITABLE})


def customer_list(cache: QueryCache, store: Any, **kwargs: Any) -> ListView:
    """Customer (record) list: searches name/email/code, 72px rows."""
    kwargs.setdefault("make_item", optimistic_customer)
    kwargs.setdefault("noun", "Customer")
    return ListView(cache, "customers", store, store, **kwargs)


def transaction_list(cache: QueryCache, invoice_id: Hashable,
                     transactions: Optional[Iterable[Transaction]] = None,
                     **kwargs: Any) -> ListView:
    """
    Transaction list of one invoice: searches descriptions, shows date headers
    (40px) above transaction rows (88px). Seeds the cache when `transactions`
    is given.
    """
    resource = ("transactions", invoice_id)
    if transactions is not None:
        cache.set(resource, transactions)
    kwargs.setdefault("fields", ("description",))
    kwargs.setdefault("item_size", row_size)
    kwargs.setdefault("present", group_transactions)
    kwargs.setdefault("noun", "Transaction")
    return ListView(cache, resource, **kwargs)
