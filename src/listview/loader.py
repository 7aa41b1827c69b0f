from __future__ import annotations
import csv
import json
import logging
import os
from itertools import groupby
from typing import Any, Iterable, List

from . import config as CFG
from .models import Transaction, TransactionRow

log = logging.getLogger(__name__)

PROGRESS_EVERY_FILES = 500


def _iter_seed_files(paths: Iterable[str]) -> Iterable[str]:
    """Yield seed files (*.json, *.csv); folders are walked recursively."""
    for p in paths:
        if os.path.isfile(p):
            yield p
            continue
        for dirpath, _, filenames in os.walk(os.path.abspath(p)):
            for fn in sorted(filenames):
                if fn.lower().endswith(CFG.SEED_EXTS):
                    yield os.path.join(dirpath, fn)


def _read_json(path: str) -> List[dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        # {"customers": [...]} export shape
        data = data.get("customers", [])
    if not isinstance(data, list):
        raise ValueError(f"expected a list of objects, got {type(data).__name__}")
    return [row for row in data if isinstance(row, dict)]


def _read_csv(path: str) -> List[dict[str, Any]]:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return [dict(row) for row in csv.DictReader(f)]


def load_customers(paths: List[str]) -> List[dict[str, Any]]:
    """
    Read customer seed rows from JSON (list of objects) and CSV (header row)
    files. Unreadable or malformed files are skipped with a warning.
    Rows are returned as plain field dicts, ready for a store's bulk_create().
    """
    rows: List[dict[str, Any]] = []
    file_count = 0
    for path in _iter_seed_files(paths):
        try:
            if path.lower().endswith(".csv"):
                got = _read_csv(path)
            else:
                got = _read_json(path)
        except (OSError, ValueError, csv.Error) as exc:
            log.warning("skipping seed file %s: %s", path, exc)
            continue
        rows.extend(got)
        file_count += 1
        if file_count % PROGRESS_EVERY_FILES == 0:
            log.info("[scanned] files=%d rows=%d", file_count, len(rows))
    log.info("[done] files=%d rows=%d", file_count, len(rows))
    return rows


# /* ~~~ transaction list: date headers + entries, newest date first ~~~ */

def group_transactions(transactions: Iterable[Transaction]) -> List[TransactionRow]:
    """
    Flatten transactions into display rows: one header row per date (newest
    first) followed by that date's transactions in their original order.
    """
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)  # stable within a date
    rows: List[TransactionRow] = []
    for date, group in groupby(ordered, key=lambda t: t.date):
        rows.append(TransactionRow(kind="date", date=date))
        rows.extend(TransactionRow(kind="transaction", date=date, transaction=t) for t in group)
    return rows


def row_size(row: TransactionRow) -> int:
    return CFG.DATE_HEADER_HEIGHT if row.kind == "date" else CFG.TRANSACTION_HEIGHT
