# listview/DB/sqlite_store.py
from __future__ import annotations
import logging
import os
import sqlite3
import threading
from typing import Any, Mapping, Optional, Sequence

from .. import config as CFG
from ..models import Customer
from ..normalize import field_text, normalize_query
from .api import (ConflictError, CustomerStore, NotFoundError, clean_fields,
                  format_code, utc_now)

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  code TEXT NOT NULL DEFAULT '',
  name TEXT NOT NULL,
  email TEXT NOT NULL DEFAULT '',
  phone TEXT NOT NULL DEFAULT '',
  created_at TEXT NOT NULL
);
"""

_COLUMNS = "id, code, name, email, phone, created_at"


def _row(r: sqlite3.Row) -> Customer:
    return Customer(id=r["id"], code=r["code"], name=r["name"], email=r["email"],
                    phone=r["phone"], created_at=r["created_at"])


class SQLiteStore(CustomerStore):
    """CRUD over a single SQLite file; safe to share between Flask worker threads."""
    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self.path = db_path
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        # SQLite lower() folds ASCII only; match with the same folding as the client search
        self.conn.create_function("py_lower", 1, field_text, deterministic=True)
        self.conn.executescript(_SCHEMA)
        log.info("Opened SQLite store %s (%d customers)", db_path, self.count())

    # ---- Create ----
    async def create(self, fields: Mapping[str, Any]) -> Customer:
        fields = clean_fields(fields)
        with self._lock:
            try:
                row = self._insert(fields)
            except Exception:
                self.conn.rollback()
                raise
            self.conn.commit()
        return row

    def bulk_create(self, rows: Sequence[Mapping[str, Any]]) -> int:
        n = 0
        with self._lock:
            try:
                for r in rows:
                    self._insert(clean_fields(r)); n += 1
            except Exception:
                self.conn.rollback()
                raise
            self.conn.commit()
        return n

    # ---- Read ----
    async def fetch_candidates(self, filter_hints: Optional[Mapping[str, Any]] = None) -> list[Customer]:
        hints = filter_hints or {}
        sql = f"SELECT {_COLUMNS} FROM customers"
        vals: list[Any] = []
        q = normalize_query(hints.get("q"))
        if q:
            sql += " WHERE " + " OR ".join(f"instr(py_lower({f}), ?) > 0" for f in CFG.SEARCH_FIELDS)
            vals += [q] * len(CFG.SEARCH_FIELDS)
        sql += " ORDER BY id"
        limit = hints.get("limit", CFG.FETCH_LIMIT)
        if limit is not None:
            sql += " LIMIT ?"
            vals.append(int(limit))
        with self._lock:
            return [_row(r) for r in self.conn.execute(sql, vals)]

    def read(self, cid: Any) -> Customer:
        with self._lock:
            return self._read(cid)

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM customers").fetchone()[0]

    # ---- Update ----
    async def update(self, cid: Any, patch: Mapping[str, Any]) -> Customer:
        changes = clean_fields(patch, partial=True)
        with self._lock:
            current = self._read(cid)
            if "email" in changes:
                self._check_email(changes["email"], exclude=current.id)
            if changes:
                sets = ", ".join(f"{k}=?" for k in changes)
                self.conn.execute(f"UPDATE customers SET {sets} WHERE id=?",
                                  [*changes.values(), current.id])
                self.conn.commit()
            return self._read(current.id)

    # ---- Delete ----
    async def delete(self, cid: Any) -> Customer:
        with self._lock:
            current = self._read(cid)
            self.conn.execute("DELETE FROM customers WHERE id=?", (current.id,))
            self.conn.commit()
        return current

    # ---- lifecycle ----
    def close(self) -> None:
        self.conn.close()

    # ---- internals (caller holds the lock) ----
    def _read(self, cid: Any) -> Customer:
        try:
            key = int(cid)
        except (TypeError, ValueError):
            raise NotFoundError(cid) from None
        r = self.conn.execute(f"SELECT {_COLUMNS} FROM customers WHERE id=?", (key,)).fetchone()
        if r is None:
            raise NotFoundError(cid)
        return _row(r)

    def _insert(self, fields: dict[str, str]) -> Customer:
        self._check_email(fields["email"])
        cur = self.conn.execute(
            "INSERT INTO customers(name, email, phone, created_at) VALUES (?,?,?,?)",
            (fields["name"], fields["email"], fields["phone"], utc_now()),
        )
        cid = cur.lastrowid
        self.conn.execute("UPDATE customers SET code=? WHERE id=?", (format_code(cid), cid))
        return self._read(cid)

    def _check_email(self, email: str, exclude: Optional[int] = None) -> None:
        if not email:
            return
        hit = self.conn.execute(
            "SELECT id FROM customers WHERE py_lower(email)=? AND id IS NOT ?",
            (field_text(email), exclude),
        ).fetchone()
        if hit is not None:
            raise ConflictError(f"Customer with this email already exists: {email}")
