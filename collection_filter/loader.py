"""Parallel, batched loading of one or many collections.

Each collection is split into batches of ``batch_size`` items and every
batch overlapping the requested ``(offset, limit)`` window becomes a
:class:`FetchRequest`. A fixed pool of ``concurrency`` workers then fetches
the requests in plan order.

Two delivery modes:

- **streaming** -- pages are handed to ``sink.process(records, request)``
  one at a time. With ``ordered=True`` (default) pages are re-sequenced
  into plan order before delivery, and workers never run more than
  ``concurrency`` pages ahead of the delivery cursor, so memory stays
  bounded by roughly ``2 * concurrency`` pages.
- **buffering** -- pages are stored in a :class:`LoadedBatches` slot and
  returned once everything has been fetched.

A failing fetch raises :class:`FetchError` and cancels the remaining
workers. A :class:`CancellationToken` stops the run cooperatively: no new
fetch is started and no further page is delivered.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Iterator, Sequence
from typing import Any, Protocol

from collection_filter.cancellation import CancellationToken
from collection_filter.errors import FetchError
from collection_filter.planner import batch_windows, calculate_local_window
from collection_filter.source.base import CollectionStore
from collection_filter.types import (
    CollectionRef,
    FetchRequest,
    LoadedBatches,
    LoadPlan,
    Record,
)

logger = logging.getLogger(__name__)


class PageSink(Protocol):
    async def process(self, records: list[Record], request: FetchRequest) -> None:
        ...


class ParallelLoader:
    def __init__(
        self,
        store: CollectionStore,
        *,
        concurrency: int = 20,
        batch_size: int = 50_000,
        fields: Sequence[str] | None = None,
        ordered: bool = True,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._store = store
        self._concurrency = concurrency
        self._batch_size = batch_size
        self._fields = list(fields) if fields else None
        self._ordered = ordered

    # ── Planning ─────────────────────────────────────────────────────

    async def plan(
        self,
        collection_ids: Sequence[str],
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> LoadPlan:
        """Read each collection's size and build the ordered fetch requests.

        The same ``(offset, limit)`` window applies to every collection;
        ``limit=None`` reads to the end of each one.
        """
        collections: list[CollectionRef] = []
        requests: list[FetchRequest] = []

        for collection_order, collection_id in enumerate(collection_ids):
            try:
                item_count = await self._store.get_size(collection_id)
            except Exception as exc:
                raise FetchError(collection_id, exc) from exc
            logger.info("Collection %s has %d items", collection_id, item_count)
            collections.append(CollectionRef(id=collection_id, item_count=item_count))

            window_limit = item_count if limit is None else limit
            for batch_order, window in enumerate(
                batch_windows(item_count, self._batch_size)
            ):
                local = calculate_local_window(
                    offset=offset,
                    limit=window_limit,
                    local_start=window.local_start,
                    batch_size=window.batch_size,
                )
                # An empty window would reach the store as ``limit=0``,
                # which some APIs read as "no limit".
                if local is None or local.limit == 0:
                    continue
                requests.append(
                    FetchRequest(
                        collection_id=collection_id,
                        collection_order=collection_order,
                        batch_order=batch_order,
                        offset=local.offset,
                        limit=local.limit,
                    )
                )

        logger.info("Number of requests to do: %d", len(requests))
        return LoadPlan(collections=collections, requests=requests)

    # ── Execution ────────────────────────────────────────────────────

    async def execute(
        self,
        plan: LoadPlan,
        *,
        sink: PageSink | None = None,
        token: CancellationToken | None = None,
    ) -> LoadedBatches | None:
        """Fetch every request of *plan*.

        Returns the filled :class:`LoadedBatches` in buffering mode
        (no *sink*), ``None`` in streaming mode.
        """
        run = await self._run(plan, sink, token or CancellationToken())
        return run.results if sink is None else None

    async def load(
        self,
        collection_ids: Sequence[str],
        *,
        offset: int = 0,
        limit: int | None = None,
        concat_items: bool = True,
        concat_datasets: bool = True,
    ) -> list[Any]:
        """Plan and fetch in buffering mode, then concatenate.

        - both flags: one flat list of items in collection/batch order;
        - ``concat_items`` only: one list of items per collection;
        - ``concat_datasets`` only: one list of batches across collections;
        - neither: ``[collection][batch][item]``.
        """
        plan = await self.plan(collection_ids, offset=offset, limit=limit)
        results = (await self._run(plan, None, CancellationToken())).results

        if concat_items and concat_datasets:
            return results.flatten()
        if concat_items:
            return results.per_collection()
        if concat_datasets:
            return [page for pages in results.batches() for page in pages]
        return results.batches()

    async def _run(
        self,
        plan: LoadPlan,
        sink: PageSink | None,
        token: CancellationToken,
    ) -> _Execution:
        run = _Execution(self, plan, sink, token)
        started = time.monotonic()
        await run.run()
        logger.info("Loading took %.1f seconds", time.monotonic() - started)
        return run

    async def _fetch(self, request: FetchRequest) -> list[Record]:
        try:
            return await self._store.get_page(
                request.collection_id,
                request.offset,
                request.limit,
                self._fields,
            )
        except Exception as exc:
            raise FetchError(
                request.collection_id, exc, request=request
            ) from exc


class _Execution:
    """State of one :meth:`ParallelLoader.execute` call."""

    def __init__(
        self,
        loader: ParallelLoader,
        plan: LoadPlan,
        sink: PageSink | None,
        token: CancellationToken,
    ) -> None:
        self._loader = loader
        self._sink = sink
        self._token = token
        self._pending: Iterator[tuple[int, FetchRequest]] = enumerate(plan.requests)
        self.results = LoadedBatches(plan)

        # Re-sequencing state (ordered streaming mode)
        self._ready: dict[int, tuple[FetchRequest, list[Record]]] = {}
        self._next_to_deliver = 0
        self._window = asyncio.Condition()
        self._deliver_lock = asyncio.Lock()

        self._total_loaded = 0
        self._loaded_per_collection: dict[str, int] = defaultdict(int)

    async def run(self) -> None:
        workers = [
            asyncio.create_task(self._worker(), name=f"loader-worker-{i}")
            for i in range(self._loader._concurrency)
        ]
        watcher = asyncio.create_task(self._wake_on_cancel())
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise
        finally:
            watcher.cancel()

    async def _worker(self) -> None:
        while not self._token.cancelled:
            try:
                seq, request = next(self._pending)
            except StopIteration:
                return

            if self._sink is not None and self._loader._ordered:
                async with self._window:
                    await self._window.wait_for(
                        lambda: self._token.cancelled
                        or seq < self._next_to_deliver + self._loader._concurrency
                    )
                if self._token.cancelled:
                    return

            records = await self._loader._fetch(request)
            self._log_loaded(request, records)

            if self._sink is None:
                self.results.set(request, records)
            elif self._loader._ordered:
                await self._deliver_in_order(seq, request, records)
            else:
                async with self._deliver_lock:
                    if not self._token.cancelled:
                        await self._sink.process(records, request)

    async def _deliver_in_order(
        self, seq: int, request: FetchRequest, records: list[Record]
    ) -> None:
        assert self._sink is not None
        self._ready[seq] = (request, records)
        if self._deliver_lock.locked():
            # The delivering worker re-checks _ready before releasing the lock.
            return
        async with self._deliver_lock:
            while self._next_to_deliver in self._ready:
                if self._token.cancelled:
                    self._ready.clear()
                    return
                ready_request, ready_records = self._ready.pop(self._next_to_deliver)
                await self._sink.process(ready_records, ready_request)
                self._next_to_deliver += 1
                async with self._window:
                    self._window.notify_all()

    async def _wake_on_cancel(self) -> None:
        await self._token.wait()
        async with self._window:
            self._window.notify_all()

    def _log_loaded(self, request: FetchRequest, records: list[Record]) -> None:
        self._loaded_per_collection[request.collection_id] += len(records)
        self._total_loaded += len(records)
        logger.debug(
            "Items loaded from collection %s: %d, offset: %d, "
            "total loaded from collection: %d, total loaded: %d",
            request.collection_id,
            len(records),
            request.offset,
            self._loaded_per_collection[request.collection_id],
            self._total_loaded,
        )
