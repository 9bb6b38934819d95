from __future__ import annotations

from collection_filter.recovery.base import PendingEntries, RecoveryStore


class InMemoryRecoveryStore(RecoveryStore):
    """Slots kept in a dict.  Survives writer restarts within one process."""

    def __init__(self) -> None:
        self._slots: dict[str, PendingEntries] = {}

    async def read(self, slot: str) -> PendingEntries:
        return [(key, dict(value)) for key, value in self._slots.get(slot, [])]

    async def write(self, slot: str, entries: PendingEntries) -> None:
        self._slots[slot] = [(key, dict(value)) for key, value in entries]
