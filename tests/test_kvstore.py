"""Tests for the local key-value stores."""

import threading

from cart import CartLedger
from kvstore import CART_KEY, JsonFileStore, MemoryStore, ScopedStore


def test_json_file_store_round_trip(tmp_path):
    store = JsonFileStore(tmp_path / "state")

    assert store.get("missing", []) == []
    store.set("k", {"a": [1, 2]})
    assert JsonFileStore(tmp_path / "state").get("k") == {"a": [1, 2]}

    store.delete("k")
    store.delete("k")
    assert store.get("k") is None


def test_unreadable_file_falls_back_to_default(tmp_path):
    (tmp_path / f"{CART_KEY}.json").write_text("{not json", encoding="utf-8")

    assert JsonFileStore(tmp_path).get(CART_KEY, []) == []


def test_cart_survives_restart(tmp_path, product, variant):
    CartLedger(JsonFileStore(tmp_path)).add(product, variant, 2)

    assert CartLedger(JsonFileStore(tmp_path)).count() == 2


def test_concurrent_writes_leave_valid_json(tmp_path):
    store = JsonFileStore(tmp_path)
    errors = []

    def write(n):
        try:
            for i in range(25):
                store.set("shared", {"writer": n, "i": i})
        except OSError as e:
            errors.append(e)

    threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert store.get("shared")["i"] == 24
    assert list(tmp_path.glob("*.tmp")) == []


def test_scoped_stores_do_not_share_keys():
    base = MemoryStore()
    a, b = ScopedStore(base, "a"), ScopedStore(base, "b")

    a.set(CART_KEY, [1])
    b.set(CART_KEY, [2])
    b.delete(CART_KEY)

    assert a.get(CART_KEY) == [1]
    assert b.get(CART_KEY, []) == []
    assert base.get(f"a.{CART_KEY}") == [1]
