"""Collections stored as files inside a :class:`StorageBackend`.

Two layouts are understood:

- ``<id>.jsonl`` -- one JSON object per line (blank lines ignored);
- ``<id>.json``  -- a single JSON array, streamed with ``ijson`` so large
  exports never have to be loaded whole.

A collection id may name the key directly (``exports/items.json``) or
omit the extension.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator, Sequence
from contextlib import closing
from itertools import islice
from typing import Any

import ijson

from collection_filter.source.base import CollectionStore, project
from collection_filter.storage.base import StorageBackend
from collection_filter.types import Record

logger = logging.getLogger(__name__)

_EXTENSIONS = (".jsonl", ".json")


class DiskCollectionStore(CollectionStore):
    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage
        self._sizes: dict[str, int] = {}

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DiskCollectionStore:
        from collection_filter.storage.disk import DiskStorage

        return cls(DiskStorage(config.get("base_path", "./data")))

    def _key(self, collection_id: str) -> str:
        if collection_id.endswith(_EXTENSIONS) and self._storage.exists(collection_id):
            return collection_id
        for ext in _EXTENSIONS:
            candidate = f"{collection_id}{ext}"
            if self._storage.exists(candidate):
                return candidate
        raise KeyError(f"Unknown collection: {collection_id}")

    def _iter_items(self, key: str) -> Iterator[Record]:
        with self._storage.open_stream(key) as stream:
            if key.endswith(".jsonl"):
                for line in stream:
                    if line.strip():
                        yield json.loads(line)
            else:
                yield from ijson.items(stream, "item", use_float=True)

    def _count(self, collection_id: str) -> int:
        key = self._key(collection_id)
        count = sum(1 for _ in self._iter_items(key))
        logger.debug("Counted %d items in %s", count, key)
        return count

    def _slice(
        self,
        collection_id: str,
        offset: int,
        limit: int,
        fields: Sequence[str] | None,
    ) -> list[Record]:
        key = self._key(collection_id)
        with closing(self._iter_items(key)) as items:
            return [
                project(item, fields)
                for item in islice(items, offset, offset + limit)
            ]

    async def get_size(self, collection_id: str) -> int:
        if collection_id not in self._sizes:
            self._sizes[collection_id] = await asyncio.to_thread(
                self._count, collection_id
            )
        return self._sizes[collection_id]

    async def get_page(
        self,
        collection_id: str,
        offset: int,
        limit: int,
        fields: Sequence[str] | None = None,
    ) -> list[Record]:
        return await asyncio.to_thread(
            self._slice, collection_id, offset, limit, fields
        )
