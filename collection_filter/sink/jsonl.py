from __future__ import annotations

import asyncio
import json
from typing import Any

from collection_filter.sink.base import Sink
from collection_filter.storage.base import StorageBackend
from collection_filter.types import Record


class JsonlSink(Sink):
    """Appends records as JSON lines to one key of a storage backend."""

    def __init__(
        self, storage: StorageBackend, key: str = "output/items.jsonl"
    ) -> None:
        self._storage = storage
        self._key = key

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> JsonlSink:
        from collection_filter.storage.disk import DiskStorage

        storage = DiskStorage(config.get("base_path", "./data"))
        return cls(storage, key=config.get("key", "output/items.jsonl"))

    @property
    def key(self) -> str:
        return self._key

    async def append(self, records: list[Record]) -> None:
        if not records:
            return
        data = "".join(
            json.dumps(record, ensure_ascii=False, default=str) + "\n"
            for record in records
        )
        await asyncio.to_thread(
            self._storage.append, self._key, data.encode("utf-8")
        )
