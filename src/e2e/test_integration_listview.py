import asyncio
import pytest
from listview import config as CFG
from listview.cache import QueryCache
from listview.DB.api import make_store
from listview.engine import ListView, customer_list, transaction_list
from listview.models import Transaction
from listview.mutations import MutationFailed

class _Timer:
    def __init__(self, cb, args):
        self.cb, self.args, self.cancelled = cb, args, False
    def cancel(self):
        self.cancelled = True

class ManualScheduler:
    def __init__(self):
        self.timers: list[_Timer] = []
    def call_later(self, delay, cb, *args):
        t = _Timer(cb, args); self.timers.append(t); return t
    def fire(self):
        live = [t for t in self.timers if not t.cancelled]
        self.timers = []
        for t in live:
            t.cb(*t.args)

def _store(n: int = 3):
    s = make_store("memory://")
    names = ["Alice Cohen", "Bob Levi", "Alina Katz"] + [f"Customer {i}" for i in range(4, n + 1)]
    s.bulk_create([{"name": name, "email": f"user{i}@x.io"} for i, name in enumerate(names[:n], 1)])
    return s

@pytest.mark.e2e
def test_refresh_search_and_window():
    store = _store()
    rendered = []
    view = customer_list(QueryCache(), store, debounce_ms=0, on_render=rendered.append)
    try:
        asyncio.run(view.refresh())
        view.set_viewport(600)
        assert view.is_loaded and len(view.candidates) == 3
        assert [vi.start for vi, _ in view.rows()] == [0, CFG.ITEM_HEIGHT, 2 * CFG.ITEM_HEIGHT]
        view.set_query("  ALI ")
        assert [c.name for c in view.result_set] == ["Alice Cohen", "Alina Katz"]
        assert [vi.key for vi in view.window.virtual_items] == [1, 3]
        assert rendered and [vi.key for vi in rendered[-1]] == [1, 3]
        view.set_query("zzz")
        assert view.is_empty and view.window.total_size == 0
    finally:
        view.close()

@pytest.mark.e2e
def test_typing_only_filters_after_quiet_period():
    store = _store()
    clock = ManualScheduler()
    view = customer_list(QueryCache(), store, scheduler=clock)
    asyncio.run(view.refresh())
    for text in ("b", "bo", "bob"):
        view.set_query(text)
    assert view.is_searching and len(view.result_set) == 3
    clock.fire()
    assert not view.is_searching
    assert view.debounced_query == "bob" and [c.name for c in view.result_set] == ["Bob Levi"]
    view.close()
    with pytest.raises(RuntimeError):
        view.set_query("x")

@pytest.mark.e2e
def test_first_visible_row_stays_anchored_when_candidates_change():
    cache = QueryCache()
    cache.set("records", [{"id": i, "name": f"row {i}"} for i in range(1, 101)])
    with ListView(cache, "records", fields=("name",), debounce_ms=0) as view:
        view.set_viewport(600)
        view.scroll_to(50 * 72)
        assert view.window.visible_range[0] == 50
        cache.update("records", lambda items: ({"id": 0, "name": "new"},) + items)
        assert view.scroll_offset == 51 * 72
        assert view.rows()[0][1]["id"] == 41 and view.window.visible_range[0] == 51

@pytest.mark.e2e
def test_scroll_clamped_when_result_set_shrinks():
    cache = QueryCache()
    cache.set("records", [{"id": i, "name": f"row {i}"} for i in range(100)])
    view = ListView(cache, "records", fields=("name",), debounce_ms=0)
    view.set_viewport(600)
    view.scroll_to(6000)
    view.set_query("row 1")            # row 1, row 10..19 -> 11 rows
    assert len(view.result_set) == 11
    assert view.scroll_offset == 11 * 72 - 600
    assert view.scroll_to_item(99) is None
    assert view.scroll_to_item(1, align="start") == 0
    view.close()

@pytest.mark.e2e
def test_optimistic_create_and_failed_create_through_view():
    store = _store()
    notes = []
    cache = QueryCache()
    view = customer_list(cache, store, debounce_ms=0, notify=lambda k, m: notes.append((k, m)))
    sibling = customer_list(cache, store, debounce_ms=0)
    async def main():
        await view.refresh()
        created = await view.create({"name": "Dana", "email": "dana@x.io"})
        with pytest.raises(MutationFailed):
            await view.create({"name": "Dup", "email": "DANA@x.io"})
        return created
    created = asyncio.run(main())
    assert created.code == "C-0004"
    assert [c.name for c in view.result_set][-1] == "Dana"
    assert [c.id for c in sibling.result_set] == [c.id for c in view.result_set]
    assert notes[0] == ("success", "Customer created") and notes[1][0] == "error"
    assert len(view.candidates) == 4
    view.close(); sibling.close()

@pytest.mark.e2e
def test_update_and_delete_through_view():
    store = _store()
    view = customer_list(QueryCache(), store, debounce_ms=0)
    asyncio.run(view.refresh())
    view.set_query("katz")
    asyncio.run(view.update(3, {"name": "Alina Levi"}))
    assert view.is_empty                # no longer matches the active query
    view.set_query("")
    asyncio.run(view.delete(1))
    assert [c.id for c in view.result_set] == [2, 3]
    assert store.count() == 2
    view.close()

@pytest.mark.e2e
def test_read_only_and_sourceless_views():
    view = ListView(QueryCache(), "records")
    with pytest.raises(RuntimeError):
        asyncio.run(view.refresh())
    with pytest.raises(RuntimeError):
        asyncio.run(view.create({"name": "x"}))
    view.close()

@pytest.mark.e2e
def test_transaction_list_groups_by_date_with_mixed_row_sizes():
    txs = [
        Transaction(1, "inv-1", "Coffee", 12.5, "2024-03-01"),
        Transaction(2, "inv-1", "Hosting", 40.0, "2024-03-05"),
        Transaction(3, "inv-1", "Coffee beans", 30.0, "2024-03-01"),
    ]
    view = transaction_list(QueryCache(), "inv-1", txs, debounce_ms=0)
    view.set_viewport(1000)
    h, t = CFG.DATE_HEADER_HEIGHT, CFG.TRANSACTION_HEIGHT
    assert view.window.total_size == 2 * h + 3 * t
    assert [vi.start for vi in view.window.virtual_items] == [0, h, h + t, 2 * h + t, 2 * h + 2 * t]
    view.set_query("coffee")
    assert [r.kind for r in view.result_set] == ["date", "transaction", "transaction"]
    assert view.window.total_size == h + 2 * t
    assert view.window.virtual_items[1].key == ("transaction", 1)
    view.close()
