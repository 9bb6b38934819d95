"""Main facade for the collection_filter library."""

from __future__ import annotations

from collections.abc import Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Any

from collection_filter.config import parse_config
from collection_filter.interrupt import InterruptSignal
from collection_filter.loader import ParallelLoader
from collection_filter.options import RunOptions
from collection_filter.runner import run_filter
from collection_filter.types import RunResult

if TYPE_CHECKING:
    from collection_filter.pipeline import Predicate, Transform
    from collection_filter.recovery.base import RecoveryStore
    from collection_filter.sink.base import Sink
    from collection_filter.source.base import CollectionStore


class CollectionFilter:
    """Main entry point for the collection_filter library.

    Usage::

        from collection_filter.recovery.memory import InMemoryRecoveryStore
        from collection_filter.sink.jsonl import JsonlSink
        from collection_filter.source.http import HttpCollectionStore
        from collection_filter.storage.disk import DiskStorage

        cf = CollectionFilter(
            source=HttpCollectionStore("https://api.example.com/v2"),
            sink=JsonlSink(DiskStorage("./data")),
            recovery=InMemoryRecoveryStore(),
        )
        result = await cf.run(
            {"collectionIds": ["abc", "def"], "dedupKey": "url"},
            transform=lambda record, index, raw_index: {"url": record["url"]},
        )
    """

    def __init__(
        self,
        source: CollectionStore,
        sink: Sink,
        recovery: RecoveryStore,
    ) -> None:
        self._source = source
        self._sink = sink
        self._recovery = recovery

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> CollectionFilter:
        """Construct an instance from a backend configuration dict."""
        source, sink, recovery = parse_config(config)
        return cls(source=source, sink=sink, recovery=recovery)

    @property
    def sink(self) -> Sink:
        return self._sink

    async def run(
        self,
        options: RunOptions | dict[str, Any],
        *,
        predicate: Predicate | None = None,
        transform: Transform | None = None,
        interrupt: InterruptSignal | None = None,
    ) -> RunResult:
        """Filter and transform the configured collections into the sink.

        *options* may be a validated :class:`RunOptions` or a raw dict
        (validated here, raising :class:`ConfigurationError`).
        """
        if not isinstance(options, RunOptions):
            options = RunOptions.parse(options)
        return await run_filter(
            options,
            self._source,
            self._sink,
            self._recovery,
            predicate=predicate,
            transform=transform,
            interrupt=interrupt,
        )

    async def load(
        self,
        collection_ids: Sequence[str],
        *,
        parallel_loads: int = 20,
        batch_size: int = 50_000,
        offset: int = 0,
        limit: int | None = None,
        fields: Sequence[str] | None = None,
        concat_items: bool = True,
        concat_datasets: bool = True,
    ) -> list[Any]:
        """Load items from one or many collections in parallel, in order.

        No filtering, no sink: everything is returned in memory.  See
        :meth:`ParallelLoader.load` for the shape controlled by
        *concat_items* / *concat_datasets*.
        """
        loader = ParallelLoader(
            self._source,
            concurrency=parallel_loads,
            batch_size=batch_size,
            fields=fields,
        )
        return await loader.load(
            collection_ids,
            offset=offset,
            limit=limit,
            concat_items=concat_items,
            concat_datasets=concat_datasets,
        )

    async def close(self) -> None:
        await self._source.close()
        await self._sink.close()
        await self._recovery.close()

    async def __aenter__(self) -> CollectionFilter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

