from __future__ import annotations

import pytest

from collection_filter.config import recovery_registry
from collection_filter.recovery.base import DEFAULT_SLOT, RecoveryStore
from collection_filter.recovery.memory import InMemoryRecoveryStore
from collection_filter.recovery.sql import SqlRecoveryStore
from collection_filter.recovery.storage import StorageRecoveryStore

ENTRIES = [("b", {"v": 2}), ("a", {"v": 1, "nested": {"x": [1, 2]}})]


@pytest.fixture(params=["memory", "storage", "sql"])
async def recovery_store(request, storage, sqlite_url):
    store: RecoveryStore
    if request.param == "memory":
        store = InMemoryRecoveryStore()
    elif request.param == "storage":
        store = StorageRecoveryStore(storage)
    else:
        store = SqlRecoveryStore.from_config({"url": sqlite_url})
    yield store
    await store.close()


async def test_empty_slot_reads_as_empty(recovery_store):
    assert await recovery_store.read(DEFAULT_SLOT) == []


async def test_write_then_read_keeps_order(recovery_store):
    await recovery_store.write(DEFAULT_SLOT, ENTRIES)
    assert await recovery_store.read(DEFAULT_SLOT) == ENTRIES


async def test_write_replaces_slot(recovery_store):
    await recovery_store.write(DEFAULT_SLOT, ENTRIES)
    await recovery_store.write(DEFAULT_SLOT, [])
    assert await recovery_store.read(DEFAULT_SLOT) == []


async def test_slots_are_independent(recovery_store):
    await recovery_store.write("one", ENTRIES[:1])
    await recovery_store.write("two", ENTRIES[1:])
    assert await recovery_store.read("one") == ENTRIES[:1]
    assert await recovery_store.read("two") == ENTRIES[1:]


async def test_memory_store_copies_values():
    store = InMemoryRecoveryStore()
    value = {"v": 1}
    await store.write(DEFAULT_SLOT, [("a", value)])
    value["v"] = 99
    assert await store.read(DEFAULT_SLOT) == [("a", {"v": 1})]


def test_storage_store_layout(storage):
    store = recovery_registry.build("disk", {"base_path": str(storage.base_path)})
    assert isinstance(store, StorageRecoveryStore)


async def test_storage_store_file_under_prefix(storage):
    store = StorageRecoveryStore(storage, prefix="state/")
    await store.write(DEFAULT_SLOT, ENTRIES)
    assert storage.exists(f"state/{DEFAULT_SLOT}.json")
