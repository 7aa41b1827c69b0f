"""
CRM list engine

Client-side engine behind the customer, record and transaction list views:
debounced search over an in-memory candidate collection, windowed
virtualization of the result rows, and optimistic mutations reconciled
through a shared query cache.

The package is split by concern:
- debounce:  Debouncer (settles rapid input after a quiet period)
- search:    search() / Searcher (stable case-insensitive substring filter)
- window:    compute_window() / Virtualizer (visible slice + offsets)
- cache:     QueryCache / PendingMutations (shared, injectable)
- mutations: MutationCoordinator (optimistic create/update/delete)
- DB:        data source / mutation sink implementations (memory, SQLite)
- engine:    ListView (wires the layers together)

Example Usage:
    import asyncio
    from listview import QueryCache, customer_list, make_store

    async def main():
        store = make_store("memory://")
        store.bulk_create([{"name": "Alice", "email": "alice@example.com"}])
        view = customer_list(QueryCache(), store)
        await view.refresh()
        view.set_viewport(600)
        view.set_query("ali")
        await asyncio.sleep(0.2)
        for vi, customer in view.rows():
            print(vi.start, customer.name)
        view.close()

    asyncio.run(main())
"""

# src/listview/__init__.py
from .cache import PendingMutations, QueryCache
from .debounce import Debouncer
from .DB.api import ConflictError, NotFoundError, StoreError, ValidationError, make_store
from .engine import ListView, customer_list, transaction_list
from .models import Customer, Transaction, TransactionRow, VirtualItem, Window
from .mutations import MutationCoordinator, MutationFailed
from .search import Searcher, search
from .window import Virtualizer, compute_window

__version__ = "1.0.0"
__all__ = [
    "ConflictError", "Customer", "Debouncer", "ListView", "MutationCoordinator",
    "MutationFailed", "NotFoundError", "PendingMutations", "QueryCache", "Searcher",
    "StoreError", "Transaction", "TransactionRow", "ValidationError", "VirtualItem",
    "Virtualizer", "Window", "compute_window", "customer_list", "make_store",
    "search", "transaction_list",
]
