# listview/DB/memory_store.py
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Sequence

from .. import config as CFG
from ..models import Customer
from ..search import search
from .api import (ConflictError, CustomerStore, NotFoundError, clean_fields,
                  format_code, utc_now)

log = logging.getLogger(__name__)


class MemoryStore(CustomerStore):
    """Simple in-memory CRUD (useful for tests or ephemeral runs)."""
    def __init__(self) -> None:
        self._rows: Dict[int, Customer] = {}
        self._seq = 0

    # C
    async def create(self, fields: Mapping[str, Any]) -> Customer:
        return self._insert(clean_fields(fields))

    def bulk_create(self, rows: Sequence[Mapping[str, Any]]) -> int:
        # validate the whole batch first: a bad row inserts nothing
        batch = [clean_fields(row) for row in rows]
        seen: set[str] = set()
        for fields in batch:
            self._check_email(fields["email"])
            email = fields["email"].lower()
            if email and email in seen:
                raise ConflictError(f"Customer with this email already exists: {fields['email']}")
            seen.add(email)
        for fields in batch:
            self._insert(fields)
        return len(batch)

    # R
    async def fetch_candidates(self, filter_hints: Optional[Mapping[str, Any]] = None) -> list[Customer]:
        hints = filter_hints or {}
        rows = list(self._rows.values())
        q = hints.get("q")
        if q:
            rows = list(search(rows, q, CFG.SEARCH_FIELDS))
        limit = hints.get("limit", CFG.FETCH_LIMIT)
        if limit is not None:
            rows = rows[:int(limit)]
        return rows

    def read(self, cid: Any) -> Customer:
        try:
            return self._rows[int(cid)]
        except (KeyError, TypeError, ValueError):
            raise NotFoundError(cid) from None

    def count(self) -> int:
        return len(self._rows)

    # U
    async def update(self, cid: Any, patch: Mapping[str, Any]) -> Customer:
        current = self.read(cid)
        changes = clean_fields(patch, partial=True)
        if "email" in changes:
            self._check_email(changes["email"], exclude=current.id)
        updated = replace(current, **changes)
        self._rows[current.id] = updated
        return updated

    # D
    async def delete(self, cid: Any) -> Customer:
        current = self.read(cid)
        del self._rows[current.id]
        return current

    def close(self) -> None:
        self._rows.clear()

    # internals
    def _insert(self, fields: dict[str, str]) -> Customer:
        self._check_email(fields["email"])
        self._seq += 1
        row = Customer(id=self._seq, code=format_code(self._seq), created_at=utc_now(), **fields)
        self._rows[row.id] = row
        return row

    def _check_email(self, email: str, exclude: Optional[int] = None) -> None:
        if not email:
            return
        needle = email.lower()
        for row in self._rows.values():
            if row.id != exclude and row.email.lower() == needle:
                raise ConflictError(f"Customer with this email already exists: {email}")
