from __future__ import annotations

import asyncio
import json
from typing import Any

from collection_filter.recovery.base import PendingEntries, RecoveryStore
from collection_filter.storage.base import StorageBackend


class StorageRecoveryStore(RecoveryStore):
    """One JSON document per slot: ``[[key, value], ...]``."""

    def __init__(self, storage: StorageBackend, prefix: str = "recovery") -> None:
        self._storage = storage
        self._prefix = prefix.rstrip("/")

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> StorageRecoveryStore:
        from collection_filter.storage.disk import DiskStorage

        storage = DiskStorage(config.get("base_path", "./data"))
        return cls(storage, prefix=config.get("prefix", "recovery"))

    def _key(self, slot: str) -> str:
        return f"{self._prefix}/{slot}.json"

    def _read(self, slot: str) -> PendingEntries:
        key = self._key(slot)
        if not self._storage.exists(key):
            return []
        raw = json.loads(self._storage.read(key) or b"[]")
        return [(str(k), v) for k, v in raw]

    def _write(self, slot: str, entries: PendingEntries) -> None:
        data = json.dumps([[k, v] for k, v in entries], default=str)
        self._storage.write(self._key(slot), data.encode("utf-8"))

    async def read(self, slot: str) -> PendingEntries:
        return await asyncio.to_thread(self._read, slot)

    async def write(self, slot: str, entries: PendingEntries) -> None:
        await asyncio.to_thread(self._write, slot, entries)
