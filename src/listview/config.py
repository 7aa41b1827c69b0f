# listview/config.py
from __future__ import annotations
import os

# debounce quiet period for search input (ms)
DEBOUNCE_MS: int = 150

# row size estimates (px); fixed per row kind, no remeasurement by default
ITEM_HEIGHT: int = 72
TRANSACTION_HEIGHT: int = 88
DATE_HEADER_HEIGHT: int = 40

# extra rows rendered above/below the viewport
OVERSCAN: int = 10

# fields searched in the customer/record lists
SEARCH_FIELDS: tuple[str, ...] = ("name", "email", "code")

# /* ~~~ server-generated sequential codes: C-0001, C-0002, ... ~~~ */
CODE_PREFIX: str = "C-"
CODE_WIDTH: int = 4

# storage
DEFAULT_DSN: str = "memory://"
SEED_EXTS: tuple[str, ...] = (".json", ".csv")

# cap on rows returned by a single fetch_candidates() call (None = unlimited)
FETCH_LIMIT: int | None = None

# Progress logging (set LISTVIEW_VERBOSE=1 to enable)
VERBOSE: bool = os.environ.get("LISTVIEW_VERBOSE") == "1"
