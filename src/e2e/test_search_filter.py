import pytest
from listview.models import Customer
from listview.search import Searcher, search

FIELDS = ("name", "email", "code")

def _customers() -> list[Customer]:
    return [
        Customer(id=1, code="C-0001", name="Alice Cohen", email="alice@acme.io"),
        Customer(id=2, code="C-0002", name="Bob Levi", email="bob@example.com"),
        Customer(id=3, code="C-0003", name="Carol", email="carol@ALIbaba.com"),
        Customer(id=4, code="C-0004", name="Dan", email=""),
    ]

@pytest.mark.e2e
def test_search_is_case_insensitive_any_field_and_stable():
    items = _customers()
    out = search(items, "  ALI ", FIELDS)
    assert [c.id for c in out] == [1, 3]          # name hit, then email hit; candidate order kept
    assert all(c in items for c in out)

@pytest.mark.e2e
def test_search_by_code_prefix():
    out = search(_customers(), "c-000", FIELDS)
    assert len(out) == 4
    assert [c.id for c in search(_customers(), "c-0002", FIELDS)] == [2]

@pytest.mark.e2e
@pytest.mark.parametrize("q", ["", "   ", None])
def test_empty_query_returns_candidates_unchanged(q):
    items = _customers()
    assert search(items, q, FIELDS) is items

@pytest.mark.e2e
def test_no_match_is_empty_not_error():
    assert len(search(_customers(), "zzz", FIELDS)) == 0
    assert len(search([], "a", FIELDS)) == 0

@pytest.mark.e2e
def test_missing_and_malformed_fields_read_as_empty():
    items = [
        {"id": 1, "name": "Eve"},                 # no email key
        {"id": 2, "name": None, "email": "eve@x.io"},
        {"id": 3, "name": 12345},                 # non-string field
        object(),                                 # no attributes at all
    ]
    assert [r["id"] for r in search(items, "eve", FIELDS)] == [1, 2]
    assert [r["id"] for r in search(items, 234, FIELDS)] == [3]   # non-string query coerced

@pytest.mark.e2e
def test_callable_field_accessors():
    items = _customers()
    out = search(items, "acme", [lambda c: c.email.split("@")[-1]])
    assert [c.id for c in out] == [1]

@pytest.mark.e2e
def test_searcher_memoizes_on_same_candidates_and_query():
    s = Searcher(FIELDS)
    items = tuple(_customers())
    first = s.run(items, "ali")
    assert s.run(items, " ALI") is first          # equivalent query, same object
    assert s.run(list(items), "ali") is not first   # new candidate object recomputes
    s.reset()
    assert s.run(items, "ali") == first

@pytest.mark.e2e
def test_searcher_order_by_is_opt_in():
    items = tuple(_customers())
    s = Searcher(FIELDS, order_by=lambda c: -c.id)
    out = s.run(items, "o")
    assert [c.id for c in out] == [3, 2, 1]
    assert [c.id for c in Searcher(FIELDS).run(items, "o")] == [1, 2, 3]

@pytest.mark.e2e
def test_search_2000_customers_within_a_frame():
    import time
    items = [Customer(id=i, code=f"C-{i:04d}", name=f"Customer {i}", email=f"user{i}@example.com")
             for i in range(1, 2001)]
    best = float("inf")
    for _ in range(5):
        t0 = time.perf_counter()
        out = search(items, "user19", FIELDS)
        best = min(best, time.perf_counter() - t0)
    assert len(out) == 111                      # user19, user190-199, user1900-1999
    assert best < 0.016

@pytest.mark.e2e
@pytest.mark.parametrize("fields", [5, None, 3.5, object()])
def test_malformed_field_config_means_no_fields(fields):
    from listview.normalize import resolve_fields
    assert resolve_fields(fields) == []
    assert len(search(_customers(), "ali", fields)) == 0
    items = _customers()
    assert search(items, "", fields) is items

@pytest.mark.e2e
def test_single_field_name_or_accessor():
    assert [c.id for c in search(_customers(), "levi", "name")] == [2]
    assert [c.id for c in search(_customers(), "acme", lambda c: c.email)] == [1]
