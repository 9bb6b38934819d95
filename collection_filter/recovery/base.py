from __future__ import annotations

from abc import ABC, abstractmethod

from collection_filter.types import Pending

PendingEntries = list[tuple[str, Pending]]

DEFAULT_SLOT = "PENDING_PUSH"


class RecoveryStore(ABC):
    """Durable key/value slot holding the writer's pending buffer across
    an interruption / restart boundary."""

    @abstractmethod
    async def read(self, slot: str) -> PendingEntries:
        """Return the entries stored in *slot*, or ``[]`` if none."""
        ...

    @abstractmethod
    async def write(self, slot: str, entries: PendingEntries) -> None:
        """Replace the contents of *slot* with *entries*."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
