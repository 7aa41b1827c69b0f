# src/listview/models.py
"""
Data models for the list engine.

This module defines the small, focused containers passed between layers:

- Customer / Transaction: record shapes served by the stores.
- VirtualItem / Window: what the window manager asks the host to materialize.
- TransactionRow: one row of the grouped transaction list (date header or entry).

These classes do not contain business logic; they only structure the data so
that searching, windowing and reconciliation remain simple and predictable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Customer:
    """
    One customer as returned by a store.

    Attributes
    ----------
    id : int | str
        Stable identifier. Server ids are ints; optimistic placeholders use
        ``"tmp-<n>"`` strings until the server confirms the entity.
    code : str
        Sequential, server-generated code (``C-0001``). Empty while optimistic.
    name, email, phone : str
        Searchable contact fields. ``phone`` may be empty.
    created_at : str
        ISO-8601 timestamp assigned by the store.
    """
    id: Any
    code: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    created_at: str = ""


@dataclass(frozen=True, slots=True)
class Transaction:
    """One invoice line/transaction. ``date`` is an ISO date (YYYY-MM-DD)."""
    id: Any
    invoice_id: Any
    description: str
    amount: float
    date: str


@dataclass(frozen=True, slots=True)
class TransactionRow:
    """
    A row of the grouped transaction list.

    Exactly one of ``date`` (header row) or ``transaction`` (entry row) is set.
    """
    kind: str                                  # "date" | "transaction"
    date: str = ""
    transaction: Optional[Transaction] = None

    @property
    def id(self) -> Hashable:
        if self.transaction is not None:
            return ("transaction", self.transaction.id)
        return ("date", self.date)


@dataclass(frozen=True, slots=True)
class VirtualItem:
    """
    One materialized index of a virtualized list.

    Attributes
    ----------
    index : int
        Position in the current result set.
    start : int
        Absolute pixel offset of the row's top edge.
    size : int
        Row height in pixels.
    key : Hashable
        Item identity (its ``id``) so hosts can reuse row widgets across
        re-fetches and filters; falls back to ``index`` when no key is known.
    """
    index: int
    start: int
    size: int
    key: Hashable = None

    @property
    def end(self) -> int:
        return self.start + self.size


@dataclass(frozen=True, slots=True)
class Window:
    """
    Result of a window computation.

    ``visible_range`` is the inclusive ``(first, last)`` pair of indices whose
    pixel span intersects the viewport, or None when nothing is visible.
    ``virtual_items`` adds the overscan on both sides. ``total_size`` is the full
    list height used to size the scroll spacer.
    """
    visible_range: Optional[Tuple[int, int]]
    virtual_items: List[VirtualItem]
    total_size: int

    @property
    def rendered_range(self) -> Optional[Tuple[int, int]]:
        if not self.virtual_items:
            return None
        return self.virtual_items[0].index, self.virtual_items[-1].index
