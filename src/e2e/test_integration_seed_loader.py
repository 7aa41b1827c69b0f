import json
from pathlib import Path
import pytest
from listview import config as CFG
from listview.loader import group_transactions, load_customers, row_size
from listview.models import Transaction

def _seed(tmp: Path) -> Path:
    root = tmp / "Seed"; (root / "nested").mkdir(parents=True)
    (root / "a.json").write_text(json.dumps([{"name": "Alice", "email": "alice@acme.io"}, "junk"]), encoding="utf-8")
    (root / "nested" / "b.json").write_text(json.dumps({"customers": [{"name": "Bob"}]}), encoding="utf-8")
    (root / "c.csv").write_text("name,email,phone\nCarol,carol@x.io,050\n", encoding="utf-8")
    (root / "broken.json").write_text("{not json", encoding="utf-8")
    (root / "scalar.json").write_text("42", encoding="utf-8")
    (root / "notes.txt").write_text("ignored", encoding="utf-8")
    return root

@pytest.mark.e2e
def test_load_customers_walks_folders_and_skips_bad_files(tmp_path: Path):
    root = _seed(tmp_path)
    rows = load_customers([str(root)])
    assert sorted(r["name"] for r in rows) == ["Alice", "Bob", "Carol"]
    carol = next(r for r in rows if r["name"] == "Carol")
    assert carol == {"name": "Carol", "email": "carol@x.io", "phone": "050"}

@pytest.mark.e2e
def test_load_single_file(tmp_path: Path):
    root = _seed(tmp_path)
    rows = load_customers([str(root / "a.json")])
    assert rows == [{"name": "Alice", "email": "alice@acme.io"}]

@pytest.mark.e2e
def test_group_transactions_newest_date_first():
    txs = [
        Transaction(1, "inv", "Coffee", 12.5, "2024-03-01"),
        Transaction(2, "inv", "Hosting", 40.0, "2024-03-05"),
        Transaction(3, "inv", "Coffee beans", 30.0, "2024-03-01"),
    ]
    rows = group_transactions(txs)
    assert [(r.kind, r.date) for r in rows] == [
        ("date", "2024-03-05"), ("transaction", "2024-03-05"),
        ("date", "2024-03-01"), ("transaction", "2024-03-01"), ("transaction", "2024-03-01"),
    ]
    assert [r.transaction.id for r in rows if r.transaction] == [2, 1, 3]
    assert rows[0].id == ("date", "2024-03-05") and rows[1].id == ("transaction", 2)
    assert [row_size(r) for r in rows[:2]] == [CFG.DATE_HEADER_HEIGHT, CFG.TRANSACTION_HEIGHT]
    assert group_transactions([]) == []
