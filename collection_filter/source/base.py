from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from types import TracebackType

from collection_filter.types import Record


def project(record: Record, fields: Sequence[str] | None) -> Record:
    """Keep only *fields* of *record* (all fields when ``None``)."""
    if not fields:
        return record
    return {name: record[name] for name in fields if name in record}


class CollectionStore(ABC):
    """Read access to remote, paginated, ordered record collections."""

    @abstractmethod
    async def get_size(self, collection_id: str) -> int:
        """Return the number of items in the collection."""
        ...

    @abstractmethod
    async def get_page(
        self,
        collection_id: str,
        offset: int,
        limit: int,
        fields: Sequence[str] | None = None,
    ) -> list[Record]:
        """Return up to *limit* items starting at *offset*, in order."""
        ...

    async def close(self) -> None:
        """Release any held resources (connections, file handles)."""

    async def __aenter__(self) -> CollectionStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
