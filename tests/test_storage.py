"""
Test: ledger conditional deduction, insert-if-absent, admin overwrite and the
processed-order record, against a real SQLite file.
"""

import random
import threading

import pytest

from common.storage import (
    OUTCOME_DUPLICATE,
    OUTCOME_FAILED,
    OUTCOME_SUCCEEDED,
    InsufficientInventoryError,
    InventoryNotFoundError,
    StorageUnavailableError,
)


def test_upsert_if_absent_creates_once(store):
    assert store.upsert_if_absent("album-1", 5) is True
    assert store.upsert_if_absent("album-1", 99) is False
    assert store.get_inventory("album-1").quantity_available == 5


def test_upsert_rejects_negative(store):
    with pytest.raises(ValueError):
        store.upsert_if_absent("album-1", -1)


def test_try_decrement_applies_only_with_enough_stock(store):
    store.upsert_if_absent("album-1", 3)
    assert store.try_decrement("album-1", 2) is True
    assert store.try_decrement("album-1", 2) is False
    assert store.try_decrement("album-1", 1) is True
    assert store.get_inventory("album-1").quantity_available == 0


def test_try_decrement_unknown_item_creates_nothing(store):
    assert store.try_decrement("ghost", 1) is False
    assert store.get_inventory("ghost") is None


@pytest.mark.parametrize("quantity", [0, -2])
def test_try_decrement_rejects_non_positive(store, quantity):
    store.upsert_if_absent("album-1", 3)
    with pytest.raises(ValueError):
        store.try_decrement("album-1", quantity)
    assert store.get_inventory("album-1").quantity_available == 3


def test_random_decrements_never_go_negative(store):
    rng = random.Random(273)
    store.upsert_if_absent("album-1", 25)
    expected = 25
    for _ in range(200):
        qty = rng.randint(1, 6)
        applied = store.try_decrement("album-1", qty)
        assert applied == (qty <= expected)
        if applied:
            expected -= qty
        assert store.get_inventory("album-1").quantity_available == expected >= 0


def test_concurrent_decrements_conserve_stock(store):
    store.upsert_if_absent("album-1", 10)
    results = []
    barrier = threading.Barrier(8)

    def worker(qty):
        barrier.wait()
        results.append((qty, store.try_decrement("album-1", qty)))

    threads = [threading.Thread(target=worker, args=(q,)) for q in (3, 3, 3, 3, 2, 2, 1, 1)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    deducted = sum(q for q, ok in results if ok)
    assert deducted <= 10
    assert store.get_inventory("album-1").quantity_available == 10 - deducted


def test_reserve_inventory_returns_remaining(store):
    store.upsert_if_absent("album-1", 4)
    assert store.reserve_inventory("album-1", 3) == 1


def test_reserve_inventory_errors(store):
    store.upsert_if_absent("album-1", 1)
    with pytest.raises(InventoryNotFoundError):
        store.reserve_inventory("ghost", 1)
    with pytest.raises(InsufficientInventoryError) as exc_info:
        store.reserve_inventory("album-1", 2)
    assert exc_info.value.available == 1
    assert store.get_inventory("album-1").quantity_available == 1


def test_set_quantity_overwrites_and_creates(store):
    store.upsert_if_absent("album-1", 4)
    assert store.set_quantity("album-1", 0).quantity_available == 0
    assert store.set_quantity("album-2", 7).quantity_available == 7
    assert [i.album_id for i in store.list_inventory()] == ["album-1", "album-2"]
    with pytest.raises(ValueError):
        store.set_quantity("album-1", -5)


def test_processed_record(store):
    assert store.is_processed("o-1") is False
    assert store.mark_processed("o-1", OUTCOME_SUCCEEDED) is True
    assert store.mark_processed("o-1", OUTCOME_FAILED) is False
    assert store.is_processed("o-1") is True
    assert store.processed_outcome("o-1") == OUTCOME_SUCCEEDED


def test_resolve_order_success_then_duplicate(store):
    store.upsert_if_absent("album-1", 2)
    first = store.resolve_order("o-1", "album-1", 2)
    assert first.status == OUTCOME_SUCCEEDED
    assert first.available == 0

    store.set_quantity("album-1", 5)
    again = store.resolve_order("o-1", "album-1", 2)
    assert again.status == OUTCOME_DUPLICATE
    assert again.previous_outcome == OUTCOME_SUCCEEDED
    assert store.get_inventory("album-1").quantity_available == 5


def test_resolve_order_failure_is_recorded(store):
    store.upsert_if_absent("album-1", 1)
    result = store.resolve_order("o-1", "album-1", 2)
    assert result.status == OUTCOME_FAILED
    assert result.item_exists is True
    assert result.available == 1
    assert store.processed_outcome("o-1") == OUTCOME_FAILED


def test_resolve_order_unknown_item(store):
    result = store.resolve_order("o-1", "ghost", 1)
    assert result.status == OUTCOME_FAILED
    assert result.item_exists is False
    assert store.get_inventory("ghost") is None


def test_unavailable_storage_raises(unavailable_store):
    with pytest.raises(StorageUnavailableError):
        unavailable_store.resolve_order("o-1", "album-1", 1)
    with pytest.raises(StorageUnavailableError):
        unavailable_store.upsert_if_absent("album-1", 1)
    with pytest.raises(StorageUnavailableError):
        unavailable_store.get_inventory("album-1")


def test_uninitialized_database_is_unavailable(tmp_path):
    from common.storage import InventoryStore

    store = InventoryStore(str(tmp_path / "empty.db"))
    with pytest.raises(StorageUnavailableError):
        store.try_decrement("album-1", 1)


def test_corrupt_database_is_unavailable(tmp_path):
    from common.storage import InventoryStore

    path = tmp_path / "inventory.db"
    path.write_bytes(b"this is not a sqlite database" * 100)
    store = InventoryStore(str(path), timeout=0.1)
    with pytest.raises(StorageUnavailableError):
        store.resolve_order("o-1", "album-1", 1)
