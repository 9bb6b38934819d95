from __future__ import annotations

from collection_filter.sink.base import Sink
from collection_filter.types import Record


class InMemorySink(Sink):
    """Collects appended records in a list.  Useful for tests and the
    buffering-mode facade helpers."""

    def __init__(self) -> None:
        self.records: list[Record] = []
        self.append_calls = 0

    async def append(self, records: list[Record]) -> None:
        self.append_calls += 1
        self.records.extend(records)
