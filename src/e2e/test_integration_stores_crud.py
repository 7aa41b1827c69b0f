import asyncio
from pathlib import Path
import pytest
from listview.DB.api import ConflictError, NotFoundError, ValidationError, make_store

@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path):
    dsn = "memory://" if request.param == "memory" else f"sqlite:///{tmp_path / 'crm.sqlite'}"
    s = make_store(dsn)
    yield s
    s.close()

@pytest.mark.e2e
def test_create_assigns_id_code_and_timestamp(store):
    a = asyncio.run(store.create({"name": " Alice ", "email": "alice@acme.io", "role": "ignored"}))
    b = asyncio.run(store.create({"name": "Bob"}))
    assert a.name == "Alice" and a.code == "C-0001" and a.created_at
    assert b.code == "C-0002" and b.email == "" and b.phone == ""
    assert store.count() == 2 and store.read(a.id) == a

@pytest.mark.e2e
def test_duplicate_email_conflicts_case_insensitively(store):
    asyncio.run(store.create({"name": "Alice", "email": "alice@acme.io"}))
    with pytest.raises(ConflictError):
        asyncio.run(store.create({"name": "Other", "email": "ALICE@acme.io"}))
    assert store.count() == 1

@pytest.mark.e2e
def test_validation_and_not_found(store):
    with pytest.raises(ValidationError):
        asyncio.run(store.create({"email": "x@y.z"}))
    with pytest.raises(ValidationError):
        asyncio.run(store.create({"name": "   "}))
    with pytest.raises(NotFoundError):
        store.read(999)
    with pytest.raises(NotFoundError):
        asyncio.run(store.delete("nope"))

@pytest.mark.e2e
def test_update_and_delete(store):
    a = asyncio.run(store.create({"name": "Alice", "email": "a@x.io"}))
    b = asyncio.run(store.create({"name": "Bob", "email": "b@x.io"}))
    upd = asyncio.run(store.update(a.id, {"phone": "050-1234567", "code": "HACK"}))
    assert upd.phone == "050-1234567" and upd.code == "C-0001" and upd.name == "Alice"
    with pytest.raises(ConflictError):
        asyncio.run(store.update(b.id, {"email": "A@X.IO"}))
    asyncio.run(store.update(a.id, {"email": "a@x.io"}))        # own email is not a conflict
    gone = asyncio.run(store.delete(a.id))
    assert gone.id == a.id and store.count() == 1

@pytest.mark.e2e
def test_fetch_candidates_hints(store):
    store.bulk_create([{"name": f"Customer {i}", "email": f"c{i}@x.io"} for i in range(1, 31)])
    allrows = asyncio.run(store.fetch_candidates())
    assert [c.code for c in allrows[:2]] == ["C-0001", "C-0002"] and len(allrows) == 30
    hits = asyncio.run(store.fetch_candidates({"q": "customer 2"}))
    assert [c.name for c in hits] == ["Customer 2"] + [f"Customer {i}" for i in range(20, 30)]
    assert len(asyncio.run(store.fetch_candidates({"limit": 5}))) == 5

@pytest.mark.e2e
def test_fetch_candidates_folds_non_ascii_case(store):
    store.bulk_create([{"name": "ÉMILE Zola", "email": "emile@x.io"}, {"name": "Örjan Berg"}])
    assert [c.name for c in asyncio.run(store.fetch_candidates({"q": "émile"}))] == ["ÉMILE Zola"]
    assert [c.name for c in asyncio.run(store.fetch_candidates({"q": " ÖRJAN "}))] == ["Örjan Berg"]
    with pytest.raises(ConflictError):
        asyncio.run(store.create({"name": "Other", "email": "EMILE@X.IO"}))

@pytest.mark.e2e
def test_sqlite_persists_across_reopen(tmp_path: Path):
    dsn = f"sqlite:///{tmp_path / 'db' / 'crm.sqlite'}"
    s = make_store(dsn)
    s.bulk_create([{"name": "Alice"}, {"name": "Bob"}])
    s.close()
    s2 = make_store(dsn)
    try:
        assert s2.count() == 2
        c = asyncio.run(s2.create({"name": "Carol"}))
        assert c.code == "C-0003"
    finally:
        s2.close()

@pytest.mark.e2e
def test_bulk_create_is_all_or_nothing(store):
    with pytest.raises(ValidationError):
        store.bulk_create([{"name": "Ok"}, {"name": ""}])
    with pytest.raises(ConflictError):
        store.bulk_create([{"name": "A", "email": "same@x.io"}, {"name": "B", "email": "SAME@x.io"}])
    assert store.count() == 0
    assert store.bulk_create([{"name": "Ok"}]) == 1

@pytest.mark.e2e
def test_unsupported_dsn():
    with pytest.raises(ValueError):
        make_store("postgres://nowhere")
