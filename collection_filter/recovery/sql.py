from __future__ import annotations

from typing import Any

from sqlalchemy import select

from collection_filter.db.base import SqlBackend
from collection_filter.db.models import RecoverySlot
from collection_filter.recovery.base import PendingEntries, RecoveryStore


class SqlRecoveryStore(RecoveryStore):
    """Slots stored as JSON rows in the ``recovery_slots`` table."""

    def __init__(self, backend: SqlBackend) -> None:
        self._backend = backend

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SqlRecoveryStore:
        return cls(SqlBackend(config["url"]))

    async def read(self, slot: str) -> PendingEntries:
        async with self._backend.session_scope() as session:
            row = (
                await session.execute(
                    select(RecoverySlot).where(RecoverySlot.slot == slot)
                )
            ).scalar_one_or_none()
            if row is None:
                return []
            return [(str(k), v) for k, v in row.entries]

    async def write(self, slot: str, entries: PendingEntries) -> None:
        payload = [[k, v] for k, v in entries]
        async with self._backend.session_scope() as session:
            row = await session.get(RecoverySlot, slot)
            if row is None:
                session.add(RecoverySlot(slot=slot, entries=payload))
            else:
                row.entries = payload

    async def close(self) -> None:
        await self._backend.close()
