# app.py
# CustomTkinter desktop viewer for the customer list (dark theme).
# - Load customers from JSON/CSV seed files or an existing SQLite store.
# - Background loading thread (keeps UI responsive).
# - Debounced live search; only visible rows are drawn on the canvas.
# - Add/delete go through the optimistic mutation boundary; event log pane.

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional

import tkinter.filedialog as fd
import tkinter.messagebox as mb
import customtkinter as ctk

from listview import config as CFG
from listview.cache import QueryCache
from listview.DB.api import CustomerStore, make_store
from listview.engine import ListView, customer_list
from listview.loader import load_customers
from listview.models import VirtualItem
from listview.mutations import MutationFailed

log = logging.getLogger(__name__)

PUMP_MS = 15          # how often the asyncio loop gets a turn
WHEEL_ROWS = 3        # rows per mouse-wheel notch


# -------------------- small helpers --------------------

def shorten_path(p: str, max_chars: int = 60) -> str:
    """Shorten long paths neatly for labels."""
    if len(p) <= max_chars:
        return p
    keep = max_chars // 2 - 3
    return p[:keep] + "..." + p[-keep:]


class _AfterHandle:
    def __init__(self, widget: Any, after_id: str) -> None:
        self.widget = widget
        self.after_id = after_id

    def cancel(self) -> None:
        self.widget.after_cancel(self.after_id)


class TkScheduler:
    """Debouncer scheduler backed by Tk's after()/after_cancel()."""
    def __init__(self, widget: Any) -> None:
        self.widget = widget

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _AfterHandle:
        return _AfterHandle(self.widget, self.widget.after(int(delay * 1000), callback, *args))


# -------------------- main app --------------------

class CustomerApp(ctk.CTk):
    """Dark-themed viewer over a virtualized, searchable customer list."""

    def __init__(self) -> None:
        super().__init__()

        # Theme
        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")

        # Window
        self.title("Customers")
        self.geometry("900x700")
        self.minsize(720, 560)

        # State
        self._loop = asyncio.new_event_loop()
        self._cache = QueryCache()
        self._store: Optional[CustomerStore] = None
        self._view: Optional[ListView] = None
        self._loading_thread: Optional[threading.Thread] = None
        self._selected: Any = None
        self._pump_id: Optional[str] = None

        # Fonts
        self.font_title = ctk.CTkFont(size=18, weight="bold")
        self.font_label = ctk.CTkFont(size=13)
        self.font_name = ctk.CTkFont(size=14, weight="bold")
        self.font_small = ctk.CTkFont(size=12)

        # Layout grid
        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(3, weight=1)  # list
        self.grid_rowconfigure(5, weight=0)  # log

        # Build UI
        self._build_header()
        self._build_source_bar()
        self._build_search()
        self._build_list()
        self._build_actions()
        self._build_log()

        self._set_status("Ready")
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self._pump_id = self.after(PUMP_MS, self._pump)

    # --------- UI sections ---------

    def _build_header(self) -> None:
        header = ctk.CTkFrame(self, corner_radius=10)
        header.grid(row=0, column=0, sticky="ew", padx=12, pady=(12, 6))
        header.grid_columnconfigure(0, weight=1)

        title = ctk.CTkLabel(header, text="Customers", font=self.font_title)
        title.grid(row=0, column=0, sticky="w", padx=12, pady=10)

    def _build_source_bar(self) -> None:
        bar = ctk.CTkFrame(self, corner_radius=10)
        bar.grid(row=1, column=0, sticky="ew", padx=12, pady=6)
        bar.grid_columnconfigure(2, weight=1)

        btn_seed = ctk.CTkButton(bar, text="Load Seed File", command=self._choose_seed)
        btn_seed.grid(row=0, column=0, padx=(12, 6), pady=10)

        btn_db = ctk.CTkButton(bar, text="Open SQLite", command=self._choose_db)
        btn_db.grid(row=0, column=1, padx=(0, 6), pady=10, sticky="w")

        self.lbl_source = ctk.CTkLabel(bar, text="No source selected", anchor="w", font=self.font_label)
        self.lbl_source.grid(row=0, column=2, sticky="ew", padx=(6, 6), pady=10)

        self.progress = ctk.CTkProgressBar(bar, mode="indeterminate", determinate_speed=1.2)
        self.progress.grid(row=0, column=3, sticky="e", padx=(0, 6), pady=10)

        self.lbl_status = ctk.CTkLabel(bar, text="Status: —", anchor="e")
        self.lbl_status.grid(row=0, column=4, sticky="e", padx=12, pady=10)

    def _build_search(self) -> None:
        box = ctk.CTkFrame(self, corner_radius=10)
        box.grid(row=2, column=0, sticky="ew", padx=12, pady=(6, 6))
        box.grid_columnconfigure(1, weight=1)

        ctk.CTkLabel(box, text="Search:", font=self.font_label).grid(
            row=0, column=0, sticky="w", padx=12, pady=10
        )

        self.entry_query = ctk.CTkEntry(box, placeholder_text="Name, email or code…")
        self.entry_query.grid(row=0, column=1, sticky="ew", padx=(6, 12), pady=10)
        self.entry_query.bind("<KeyRelease>", self._on_query_changed)
        self.entry_query.bind("<Return>", lambda _ev: self._view and self._view.flush_query())

    def _build_list(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=3, column=0, sticky="nsew", padx=12, pady=(6, 6))
        frame.grid_columnconfigure(0, weight=1)
        frame.grid_rowconfigure(0, weight=1)

        self.canvas = ctk.CTkCanvas(frame, highlightthickness=0, bg="#1d1e1e")
        self.canvas.grid(row=0, column=0, sticky="nsew", padx=(12, 0), pady=12)
        self.scrollbar = ctk.CTkScrollbar(frame, command=self._on_scrollbar)
        self.scrollbar.grid(row=0, column=1, sticky="ns", padx=(0, 12), pady=12)

        self.canvas.bind("<Configure>", self._on_canvas_resize)
        self.canvas.bind("<MouseWheel>", self._on_wheel)
        self.canvas.bind("<Button-4>", lambda _ev: self._scroll_by(-WHEEL_ROWS * CFG.ITEM_HEIGHT))
        self.canvas.bind("<Button-5>", lambda _ev: self._scroll_by(WHEEL_ROWS * CFG.ITEM_HEIGHT))
        self.canvas.bind("<Button-1>", self._on_click)

    def _build_actions(self) -> None:
        bar = ctk.CTkFrame(self, corner_radius=10)
        bar.grid(row=4, column=0, sticky="ew", padx=12, pady=6)

        ctk.CTkButton(bar, text="Add Customer", command=self._add_customer).grid(
            row=0, column=0, padx=(12, 6), pady=10
        )
        ctk.CTkButton(bar, text="Delete Selected", command=self._delete_selected).grid(
            row=0, column=1, padx=(0, 6), pady=10
        )
        ctk.CTkButton(bar, text="Refresh", command=self._refresh).grid(
            row=0, column=2, padx=(0, 6), pady=10
        )

    def _build_log(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=5, column=0, sticky="nsew", padx=12, pady=(6, 12))
        frame.grid_columnconfigure(0, weight=1)
        frame.grid_rowconfigure(1, weight=1)

        ctk.CTkLabel(frame, text="Event log", font=self.font_label).grid(
            row=0, column=0, sticky="w", padx=12, pady=(10, 2)
        )

        self.txt_log = ctk.CTkTextbox(frame, height=90, wrap="word", font=self.font_small)
        self.txt_log.grid(row=1, column=0, sticky="nsew", padx=12, pady=(0, 12))
        self._log("Ready. Load a seed file or open a SQLite store to begin.")

    # --------- source selection ---------

    def _choose_seed(self) -> None:
        path = fd.askopenfilename(
            title="Choose customer seed file",
            filetypes=[("Customer data", "*.json *.csv"), ("All files", "*.*")]
        )
        if not path:
            return
        self._start_loading(dsn="memory://", seed=path)

    def _choose_db(self) -> None:
        path = fd.askopenfilename(
            title="Choose SQLite store",
            filetypes=[("SQLite", "*.sqlite *.db"), ("All files", "*.*")]
        )
        if not path:
            return
        self._start_loading(dsn=f"sqlite:///{path}", seed=None)

    # --------- loading pipeline (threaded) ---------

    def _start_loading(self, dsn: str, seed: Optional[str]) -> None:
        # prevent re-entrancy
        if self._loading_thread and self._loading_thread.is_alive():
            mb.showinfo("Loading", "Customers are already loading. Please wait.")
            return

        label = f"Seed: {shorten_path(seed)}" if seed else f"DB: {shorten_path(dsn)}"
        self.lbl_source.configure(text=label)
        self._set_status("Loading…")
        self.progress.start()

        self._loading_thread = threading.Thread(
            target=self._load_worker, args=(dsn, seed), daemon=True
        )
        self._loading_thread.start()

    def _load_worker(self, dsn: str, seed: Optional[str]) -> None:
        try:
            store = make_store(dsn)
            if seed:
                store.bulk_create(load_customers([seed]))
        except Exception as exc:
            self.after(0, self._on_load_error, exc)
            return
        self.after(0, self._on_load_ok, store)

    def _on_load_ok(self, store: CustomerStore) -> None:
        self.progress.stop()
        self._close_view()
        self._store = store
        self._cache = QueryCache()
        self._view = customer_list(
            self._cache, store,
            scheduler=TkScheduler(self),
            on_render=self._draw,
            notify=self._on_notify,
        )
        self._view.set_viewport(self.canvas.winfo_height())
        self._log(f"Store ready ({store.count()} customers).")
        self._refresh()
        self.entry_query.focus_set()

    def _on_load_error(self, exc: Exception) -> None:
        self.progress.stop()
        self._set_status("Error while loading customers.")
        self._log(f"ERROR: {exc!r}")
        mb.showerror("Load error", "Failed to load customers.\nSee event log for details.")

    # --------- async bridge ---------

    def _pump(self) -> None:
        # give the asyncio loop one turn, then come back
        self._loop.call_soon(self._loop.stop)
        self._loop.run_forever()
        self._pump_id = self.after(PUMP_MS, self._pump)

    def _spawn(self, coro: Any, what: str) -> None:
        task = self._loop.create_task(coro)
        task.add_done_callback(lambda t: self._on_task_done(t, what))

    def _on_task_done(self, task: asyncio.Task, what: str) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, MutationFailed):
            return  # already reported through notify
        if exc is not None:
            self._log(f"ERROR in {what}: {exc!r}")
            self._set_status(f"{what} failed")
        elif what == "refresh":
            self._set_status(f"Loaded {len(self._cache.get('customers')):,} customers.")

    # --------- search / scroll ---------

    def _on_query_changed(self, _ev=None) -> None:
        if self._view is None:
            return
        self._view.set_query(self.entry_query.get())
        if self._view.is_searching:
            self._set_status("Searching…")

    def _on_canvas_resize(self, ev) -> None:
        if self._view is not None:
            self._view.set_viewport(ev.height)

    def _on_wheel(self, ev) -> None:
        self._scroll_by(-ev.delta / 120 * WHEEL_ROWS * CFG.ITEM_HEIGHT)

    def _on_scrollbar(self, *args) -> None:
        if self._view is None:
            return
        total = self._view.window.total_size
        height = self.canvas.winfo_height()
        if args[0] == "moveto":
            self._scroll_abs(float(args[1]) * total)
        elif args[0] == "scroll":
            step = height if args[2] == "pages" else CFG.ITEM_HEIGHT
            self._scroll_by(int(args[1]) * step)

    def _scroll_by(self, delta: float) -> None:
        if self._view is not None:
            self._scroll_abs(self._view.scroll_offset + delta)

    def _scroll_abs(self, offset: float) -> None:
        total = self._view.window.total_size
        limit = max(0, total - self.canvas.winfo_height())
        self._view.scroll_to(min(max(0, offset), limit))

    def _on_click(self, ev) -> None:
        if self._view is None or self._view.is_empty:
            return
        offset = self._view.scroll_offset + ev.y
        if offset >= self._view.window.total_size:
            return
        index = self._view.virtualizer.index_at(offset)
        self._selected = self._view.key_of(self._view.result_set[index])
        self._draw(self._view.window.virtual_items)

    # --------- drawing ---------

    def _draw(self, _items: List[VirtualItem]) -> None:
        view = self._view
        c = self.canvas
        c.delete("row")
        width = c.winfo_width()
        height = c.winfo_height()
        if view is None:
            return

        if view.is_empty:
            if view.candidates:
                text = f'No customers found matching "{view.debounced_query}".'
            else:
                text = "No customers yet."
            c.create_text(width // 2, height // 2, text=text, fill="#8a94a6", tags="row")
            self.scrollbar.set(0, 1)
            if not view.is_searching:
                self._set_status(f"{len(view.result_set)} shown")
            return

        top = view.scroll_offset
        for vi, cust in view.rows():
            y = vi.start - top
            fill = "#24415a" if cust.id == self._selected else ("#232526" if vi.index % 2 else "#1d1e1e")
            c.create_rectangle(0, y, width, y + vi.size, fill=fill, outline="#2b2d2e", tags="row")
            c.create_text(16, y + 22, anchor="w", text=cust.name, fill="#e6edf3", font=self.font_name, tags="row")
            c.create_text(16, y + 46, anchor="w", text=cust.email, fill="#8a94a6", font=self.font_small, tags="row")
            code = cust.code or "saving…"
            c.create_text(width - 16, y + 22, anchor="e", text=code, fill="#6ee7ff", font=self.font_small, tags="row")
            c.create_text(width - 16, y + 46, anchor="e", text=cust.created_at[:10], fill="#8a94a6",
                          font=self.font_small, tags="row")

        total = view.window.total_size or 1
        self.scrollbar.set(top / total, min(1.0, (top + height) / total))
        if not view.is_searching:
            self._set_status(f"{len(view.result_set):,} of {len(view.candidates):,} customers")

    # --------- actions ---------

    def _refresh(self) -> None:
        if self._view is not None:
            self._spawn(self._view.refresh(), "refresh")

    def _add_customer(self) -> None:
        if self._view is None:
            return
        name = ctk.CTkInputDialog(text="Customer name:", title="Add Customer").get_input()
        if not name:
            return
        email = ctk.CTkInputDialog(text="Email (optional):", title="Add Customer").get_input() or ""
        self._spawn(self._view.create({"name": name, "email": email}), "create")

    def _delete_selected(self) -> None:
        if self._view is None or self._selected is None:
            return
        if not mb.askyesno("Delete", "Delete the selected customer?"):
            return
        target, self._selected = self._selected, None
        self._spawn(self._view.delete(target), "delete")

    def _on_notify(self, kind: str, message: str) -> None:
        self._log(f"{kind.upper()}: {message}")
        self._set_status(message)

    # --------- misc UI helpers ---------

    def _set_status(self, text: str) -> None:
        self.lbl_status.configure(text=f"Status: {text}")

    def _log(self, msg: str) -> None:
        self.txt_log.insert("end", msg + "\n")
        self.txt_log.see("end")

    # --------- lifecycle ---------

    def _close_view(self) -> None:
        if self._view is not None:
            self._view.close()
            self._view = None
        if self._store is not None:
            self._store.close()
            self._store = None

    def _on_close(self) -> None:
        if self._pump_id is not None:
            self.after_cancel(self._pump_id)
        self._close_view()
        for task in asyncio.all_tasks(self._loop):
            task.cancel()
        self._loop.call_soon(self._loop.stop)
        self._loop.run_forever()
        self._loop.close()
        self.destroy()


if __name__ == "__main__":
    if CFG.VERBOSE:
        logging.basicConfig(level=logging.INFO)
    app = CustomerApp()
    app.mainloop()
