# listview/DB/api.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol, Sequence

from .. import config as CFG
from ..models import Customer


class StoreError(Exception):
    """Base class for errors raised by a data source / mutation sink."""


class NotFoundError(StoreError, KeyError):
    def __str__(self) -> str:
        return f"customer not found: {self.args[0]!r}" if self.args else "customer not found"


class ConflictError(StoreError):
    """Unique constraint violated (duplicate email)."""


class ValidationError(StoreError, ValueError):
    """Payload rejected before touching storage."""


class DataSource(Protocol):
    async def fetch_candidates(self, filter_hints: Optional[Mapping[str, Any]] = None) -> Sequence[Customer]: ...


class MutationSink(Protocol):
    # each returns the authoritative post-mutation entity
    async def create(self, fields: Mapping[str, Any]) -> Customer: ...
    async def update(self, cid: Any, patch: Mapping[str, Any]) -> Customer: ...
    async def delete(self, cid: Any) -> Customer: ...


class CustomerStore(DataSource, MutationSink, Protocol):
    # sync helpers used for seeding and by the web layer
    def bulk_create(self, rows: Sequence[Mapping[str, Any]]) -> int: ...
    def read(self, cid: Any) -> Customer: ...
    def count(self) -> int: ...
    def close(self) -> None: ...


# client-writable customer fields; id/code/created_at are server-owned
WRITABLE = ("name", "email", "phone")


def clean_fields(fields: Mapping[str, Any], *, partial: bool = False) -> dict[str, str]:
    """
    Keep writable fields only, stringify and trim them.
    A full payload (partial=False) must carry a non-empty name.
    """
    if not isinstance(fields, Mapping):
        raise ValidationError(f"expected a mapping of fields, got {type(fields).__name__}")
    out: dict[str, str] = {}
    for name in WRITABLE:
        if name in fields:
            value = fields[name]
            out[name] = "" if value is None else str(value).strip()
    if "name" in out and not out["name"]:
        raise ValidationError("name must not be empty")
    if not partial:
        if "name" not in out:
            raise ValidationError("name is required")
        for name in WRITABLE:
            out.setdefault(name, "")
    return out


def format_code(seq: int) -> str:
    return f"{CFG.CODE_PREFIX}{seq:0{CFG.CODE_WIDTH}d}"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def make_store(dsn: str) -> CustomerStore:
    """
    Factory:
      - sqlite:///path -> SQLiteStore (schema created on first open)
      - memory://      -> MemoryStore
    """
    if dsn.startswith("sqlite:///"):
        from .sqlite_store import SQLiteStore
        return SQLiteStore(dsn.removeprefix("sqlite:///"))

    if dsn.startswith("memory://"):
        from .memory_store import MemoryStore
        return MemoryStore()

    raise ValueError(f"Unsupported store DSN: {dsn}")
