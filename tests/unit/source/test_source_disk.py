from __future__ import annotations

import json

import pytest

from collection_filter.config import source_registry
from collection_filter.source.disk import DiskCollectionStore


@pytest.fixture()
def disk_store(storage) -> DiskCollectionStore:
    records = [{"id": i, "name": f"n{i}", "score": i / 2} for i in range(12)]
    storage.write(
        "lines.jsonl",
        ("\n".join(json.dumps(r) for r in records) + "\n\n").encode(),
    )
    storage.write("array.json", json.dumps(records).encode())
    return DiskCollectionStore(storage)


@pytest.mark.parametrize("collection_id", ["lines", "array", "array.json"])
async def test_get_size(disk_store, collection_id):
    assert await disk_store.get_size(collection_id) == 12


@pytest.mark.parametrize("collection_id", ["lines", "array"])
async def test_get_page(disk_store, collection_id):
    page = await disk_store.get_page(collection_id, 5, 3)
    assert [r["id"] for r in page] == [5, 6, 7]
    assert page[0]["score"] == 2.5


async def test_get_page_past_end(disk_store):
    assert [r["id"] for r in await disk_store.get_page("lines", 10, 5)] == [10, 11]
    assert await disk_store.get_page("lines", 50, 5) == []


async def test_field_projection(disk_store):
    page = await disk_store.get_page("array", 0, 2, fields=["name"])
    assert page == [{"name": "n0"}, {"name": "n1"}]


async def test_unknown_collection(disk_store):
    with pytest.raises(KeyError):
        await disk_store.get_size("missing")


def test_registry_builds_disk_store(tmp_path):
    store = source_registry.build("disk", {"base_path": str(tmp_path)})
    assert isinstance(store, DiskCollectionStore)
