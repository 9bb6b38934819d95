"""Buffered, deduplicating writer in front of a durable sink.

Transformed values are kept in a pending buffer keyed by their output
key; a later value with the same key replaces the earlier one. A
background task pushes the whole buffer to the sink whenever it holds at
least ``threshold`` entries, checked every ``interval`` seconds.

Lifecycle::

    writer = await ResilientWriter.open(sink, recovery)   # reloads slot
    writer.put("a", {...})
    ...
    await writer.on_interrupt()   # host is suspending: persist, no sink I/O
    await writer.flush()          # end of run: drain everything to the sink

The buffer is only mutated in synchronous sections of the event loop
(``put``, the swap in the periodic push, the chunk pops in ``flush``), so
no insert can be lost between a read-and-clear and its completion. Sink
writes are serialised with a lock. Stopping the timer waits for a push
that is already writing instead of cancelling it: an append handed to a
worker thread or a database keeps going after its task is cancelled, and
its entries must not also end up in the recovery slot.

A buffered value is either one record or the list of records a transform
returned for one dedup key; lists are expanded when written to the sink.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable, Mapping
from itertools import islice
from types import MappingProxyType

from collection_filter.errors import SinkError
from collection_filter.recovery.base import DEFAULT_SLOT, RecoveryStore
from collection_filter.sink.base import Sink
from collection_filter.types import Pending, Record

logger = logging.getLogger(__name__)


class ResilientWriter:
    def __init__(
        self,
        sink: Sink,
        recovery: RecoveryStore,
        *,
        threshold: int = 50_000,
        interval: float = 10.0,
        pause: float = 1.0,
        slot: str = DEFAULT_SLOT,
    ) -> None:
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self._sink = sink
        self._recovery = recovery
        self._threshold = threshold
        self._interval = interval
        self._pause = pause
        self._slot = slot

        self._buffer: dict[str, Pending] = {}
        self._sink_lock = asyncio.Lock()
        self._timer: asyncio.Task[None] | None = None
        self._should_push = True
        self._interrupted = False
        self.pushed_count = 0
        self.periodic_error: BaseException | None = None

    @classmethod
    async def open(
        cls,
        sink: Sink,
        recovery: RecoveryStore,
        **kwargs: object,
    ) -> ResilientWriter:
        """Build a writer, reload the recovery slot and start the timer."""
        writer = cls(sink, recovery, **kwargs)  # type: ignore[arg-type]
        await writer.start()
        return writer

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        entries = await self._recovery.read(self._slot)
        if entries:
            logger.info(
                "Recovered %d pending items from slot %s", len(entries), self._slot
            )
            self._buffer = {**dict(entries), **self._buffer}
        await self._recovery.write(self._slot, [])
        self._timer = asyncio.create_task(self._run_timer())

    async def on_interrupt(self) -> None:
        """Stop periodic pushes and persist the buffer to the recovery slot.

        Never writes to the sink.  Safe to call more than once; each call
        persists the buffer as it is at that moment.
        """
        self._interrupted = True
        await self._stop_timer()
        await self.persist()
        logger.info(
            "Persisted %d pending items to slot %s", len(self._buffer), self._slot
        )

    async def persist(self) -> None:
        await self._recovery.write(self._slot, list(self._buffer.items()))

    async def flush(self) -> None:
        """Drain the whole buffer to the sink in ``threshold``-sized chunks.

        On a sink failure the undelivered entries stay buffered, are
        persisted to the recovery slot, and :class:`SinkError` is raised.
        """
        await self._stop_timer()
        if self.periodic_error is not None:
            logger.warning(
                "Periodic push failed earlier (%s); retrying at flush",
                self.periodic_error,
            )

        async with self._sink_lock:
            while self._buffer:
                keys = list(islice(self._buffer, self._threshold))
                chunk = [(key, self._buffer.pop(key)) for key in keys]
                records = _expand(value for _, value in chunk)
                try:
                    await self._sink.append(records)
                except Exception as exc:
                    self._restore(chunk)
                    await self.persist()
                    raise SinkError(str(exc)) from exc
                self.pushed_count += len(records)
                logger.debug("Flushed %d items", len(records))
                if self._buffer and self._pause > 0:
                    await asyncio.sleep(self._pause)

        if self._interrupted:
            await self._recovery.write(self._slot, [])

    # ── Buffer ───────────────────────────────────────────────────────

    def put(self, key: str, value: Pending) -> bool:
        """Insert or replace *key*.  Returns ``True`` if the key was new."""
        is_new = key not in self._buffer
        self._buffer[key] = value
        return is_new

    @property
    def pending(self) -> Mapping[str, Pending]:
        return MappingProxyType(self._buffer)

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    def __len__(self) -> int:
        return len(self._buffer)

    # ── Internals ────────────────────────────────────────────────────

    def _restore(self, entries: list[tuple[str, Pending]]) -> None:
        # Values put while the chunk was in flight are newer and win.
        self._buffer = {**dict(entries), **self._buffer}

    async def _push_if_full(self) -> None:
        if not self._should_push or len(self._buffer) < self._threshold:
            return
        async with self._sink_lock:
            if not self._should_push:
                return
            taken, self._buffer = self._buffer, {}
            records = _expand(taken.values())
            try:
                await self._sink.append(records)
            except Exception:
                self._restore(list(taken.items()))
                raise
            self.pushed_count += len(records)
            logger.info("Pushed %d items", len(records))

    async def _run_timer(self) -> None:
        while self._should_push:
            try:
                await self._push_if_full()
            except Exception as exc:
                logger.exception("Periodic push failed; timer stopped")
                self.periodic_error = exc
                return
            await asyncio.sleep(self._interval)

    async def _stop_timer(self) -> None:
        self._should_push = False
        timer, self._timer = self._timer, None
        if timer is None or timer.done():
            return
        # With the lock held no append is in flight: the timer is either
        # sleeping or waiting for the lock, and both are safe to cancel.
        async with self._sink_lock:
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer


def _expand(values: Iterable[Pending]) -> list[Record]:
    records: list[Record] = []
    for value in values:
        if isinstance(value, list):
            records.extend(value)
        else:
            records.append(value)
    return records
