from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

Record = dict[str, Any]

# A buffered output value: one record, or every record a single transform
# call produced under one dedup key.
Pending = Record | list[Record]


@dataclass(frozen=True)
class CollectionRef:
    """A remote collection and its item count, read once per run."""

    id: str
    item_count: int


@dataclass(frozen=True)
class BatchWindow:
    """Fixed slice ``[local_start, local_start + batch_size)`` of a collection."""

    local_start: int
    batch_size: int

    @property
    def local_end(self) -> int:
        return self.local_start + self.batch_size


@dataclass(frozen=True)
class LocalWindow:
    """Part of the global output window that falls inside one batch."""

    offset: int
    limit: int


@dataclass(frozen=True)
class FetchRequest:
    """Fully resolved arguments for one page fetch.

    ``collection_order`` is the position of the collection among the
    requested ids; ``batch_order`` is the index of the batch window inside
    that collection.
    """

    collection_id: str
    collection_order: int
    batch_order: int
    offset: int
    limit: int


@dataclass
class LoadPlan:
    """Ordered fetch requests for a set of collections."""

    collections: list[CollectionRef]
    requests: list[FetchRequest] = field(default_factory=list)

    def __iter__(self) -> Iterator[FetchRequest]:
        return iter(self.requests)

    def __len__(self) -> int:
        return len(self.requests)

    def requests_for(self, collection_order: int) -> list[FetchRequest]:
        return [r for r in self.requests if r.collection_order == collection_order]

    @property
    def total_items(self) -> int:
        """Number of items the plan will fetch (upper bound)."""
        return sum(r.limit for r in self.requests)


class LoadedBatches:
    """Two-level container of fetched pages, sized up front from a plan.

    Slot ``[collection][batch]`` is ``None`` until its page has been
    fetched; a fetched page with no items is ``[]``.  Concurrent workers
    only ever write disjoint slots.
    """

    def __init__(self, plan: LoadPlan) -> None:
        self._slots: list[list[list[Record] | None]] = [
            [None] * len(plan.requests_for(i)) for i in range(len(plan.collections))
        ]
        self._positions: dict[tuple[int, int], int] = {}
        for i in range(len(plan.collections)):
            for pos, request in enumerate(plan.requests_for(i)):
                self._positions[(i, request.batch_order)] = pos

    def set(self, request: FetchRequest, records: list[Record]) -> None:
        pos = self._positions[(request.collection_order, request.batch_order)]
        self._slots[request.collection_order][pos] = records

    def get(self, request: FetchRequest) -> list[Record] | None:
        pos = self._positions[(request.collection_order, request.batch_order)]
        return self._slots[request.collection_order][pos]

    @property
    def is_complete(self) -> bool:
        return all(page is not None for pages in self._slots for page in pages)

    def batches(self) -> list[list[list[Record]]]:
        """Return ``[collection][batch][item]`` with unfetched slots as ``[]``."""
        return [[page or [] for page in pages] for pages in self._slots]

    def per_collection(self) -> list[list[Record]]:
        """Concatenate the batches of each collection in batch order."""
        return [
            [item for page in pages for item in page] for pages in self.batches()
        ]

    def flatten(self) -> list[Record]:
        """All items of all collections, in collection then batch order."""
        return [item for items in self.per_collection() for item in items]


@dataclass
class RunResult:
    """Summary returned from a filter run."""

    collection_ids: list[str]
    planned_requests: int = 0
    matched_count: int = 0
    output_count: int = 0
    unique_count: int = 0
    transform_errors: int = 0
    pushed_count: int = 0
    stopped_early: bool = False
    interrupted: bool = False
    elapsed_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)
