"""Public API for the customer list service (store setup + window payloads)."""
from __future__ import annotations
import asyncio
import logging
from dataclasses import asdict
from typing import Any, Optional, Sequence

from listview import config as CFG
from listview.DB.api import CustomerStore, make_store
from listview.loader import load_customers
from listview.models import Customer
from listview.search import search
from listview.window import compute_window

log = logging.getLogger(__name__)

_store: CustomerStore | None = None


def initialize(db: Optional[str] = None,
               seed: Optional[Sequence[str]] = None,
               verbose: bool = False) -> CustomerStore:
    """
    Open the store named by `db` (DSN, default memory://) and, when the store
    is empty, seed it from the given JSON/CSV files or folders.
    """
    global _store
    if verbose:
        logging.basicConfig(level=logging.INFO)

    store = make_store(db or CFG.DEFAULT_DSN)
    if seed and store.count() == 0:
        rows = load_customers(list(seed))
        n = store.bulk_create(rows)
        log.info("Seeded %d customers from %s", n, list(seed))
    _store = store
    return store


def get_store() -> CustomerStore:
    if _store is None:
        raise RuntimeError("Store not initialized. Call initialize(...) first.")
    return _store


def shutdown() -> None:
    global _store
    try:
        if _store is not None:
            _store.close()
    finally:
        _store = None


def customer_json(c: Customer) -> dict[str, Any]:
    return asdict(c)


def window_payload(customers: Sequence[Customer],
                   q: str = "",
                   scroll: float = 0,
                   height: float = 600,
                   overscan: int = CFG.OVERSCAN) -> dict[str, Any]:
    """Search `customers` for `q` and describe the rows a client must draw."""
    results = search(customers, q, CFG.SEARCH_FIELDS)
    win = compute_window(len(results), scroll, height, CFG.ITEM_HEIGHT, overscan,
                         key_of=lambda i: results[i].id)
    return {
        "query": q,
        "total": len(results),
        "total_size": win.total_size,
        "item_size": CFG.ITEM_HEIGHT,
        "visible_range": list(win.visible_range) if win.visible_range else None,
        "items": [
            {"index": vi.index, "start": vi.start, "size": vi.size, "key": vi.key,
             "customer": customer_json(results[vi.index])}
            for vi in win.virtual_items
        ],
    }


def list_window(q: str = "", scroll: float = 0, height: float = 600,
                overscan: int = CFG.OVERSCAN) -> dict[str, Any]:
    """Fetch all customers from the store and window them."""
    customers = asyncio.run(get_store().fetch_candidates())
    return window_payload(customers, q, scroll, height, overscan)
