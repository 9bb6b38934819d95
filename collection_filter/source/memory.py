from __future__ import annotations

from collections.abc import Sequence

from collection_filter.source.base import CollectionStore, project
from collection_filter.types import Record


class InMemoryCollectionStore(CollectionStore):
    """Collections held in plain Python lists.

    Tracks every page request in :attr:`page_calls` so callers can see
    how much of a collection was actually fetched.
    """

    def __init__(self, collections: dict[str, list[Record]] | None = None) -> None:
        self._collections: dict[str, list[Record]] = dict(collections or {})
        self.page_calls: list[tuple[str, int, int]] = []

    def add(self, collection_id: str, records: list[Record]) -> None:
        self._collections[collection_id] = list(records)

    def _get(self, collection_id: str) -> list[Record]:
        try:
            return self._collections[collection_id]
        except KeyError:
            raise KeyError(f"Unknown collection: {collection_id}") from None

    async def get_size(self, collection_id: str) -> int:
        return len(self._get(collection_id))

    async def get_page(
        self,
        collection_id: str,
        offset: int,
        limit: int,
        fields: Sequence[str] | None = None,
    ) -> list[Record]:
        self.page_calls.append((collection_id, offset, limit))
        items = self._get(collection_id)[offset : offset + limit]
        return [project(dict(item), fields) for item in items]
