from __future__ import annotations

import asyncio
import json
import threading
import time

import pytest

from collection_filter.errors import SinkError
from collection_filter.recovery.base import DEFAULT_SLOT
from collection_filter.recovery.memory import InMemoryRecoveryStore
from collection_filter.sink.jsonl import JsonlSink
from collection_filter.sink.memory import InMemorySink
from collection_filter.storage.disk import DiskStorage
from collection_filter.writer import ResilientWriter


class FlakySink(InMemorySink):
    """Fails the first *failures* appends."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    async def append(self, records):
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("sink down")
        await super().append(records)


class SlowDiskStorage(DiskStorage):
    """Blocks its worker thread for *delay* seconds on every append."""

    def __init__(self, base_path: str, delay: float) -> None:
        super().__init__(base_path)
        self.delay = delay
        self.started = threading.Event()

    def append(self, key: str, data: bytes) -> None:
        self.started.set()
        time.sleep(self.delay)
        super().append(key, data)


async def _open(sink, recovery, **kwargs) -> ResilientWriter:
    kwargs.setdefault("interval", 3600)
    kwargs.setdefault("pause", 0)
    return await ResilientWriter.open(sink, recovery, **kwargs)


# ── Buffer ──────────────────────────────────────────────────────────


async def test_put_reports_new_keys(sink, recovery):
    writer = await _open(sink, recovery)

    assert writer.put("a", {"v": 1}) is True
    assert writer.put("b", {"v": 2}) is True
    assert writer.put("a", {"v": 3}) is False

    assert dict(writer.pending) == {"a": {"v": 3}, "b": {"v": 2}}
    assert len(writer) == 2
    await writer.flush()


def test_invalid_threshold(sink, recovery):
    with pytest.raises(ValueError):
        ResilientWriter(sink, recovery, threshold=0)


# ── Flush ───────────────────────────────────────────────────────────


async def test_flush_drains_in_threshold_chunks(sink, recovery):
    writer = await _open(sink, recovery, threshold=3)
    for i in range(7):
        writer.put(str(i), {"n": i})

    await writer.flush()

    assert sink.append_calls == 3
    assert [r["n"] for r in sink.records] == list(range(7))
    assert writer.pushed_count == 7
    assert len(writer) == 0


async def test_list_values_are_expanded_in_the_sink(sink, recovery):
    writer = await _open(sink, recovery)
    writer.put("a", [{"n": 1}, {"n": 2}])
    writer.put("b", {"n": 3})
    writer.put("a", [{"n": 4}, {"n": 5}])

    await writer.flush()

    assert sink.records == [{"n": 4}, {"n": 5}, {"n": 3}]
    assert writer.pushed_count == 3


async def test_flush_of_empty_buffer_does_not_touch_sink(sink, recovery):
    writer = await _open(sink, recovery)
    await writer.flush()
    assert sink.append_calls == 0


async def test_flush_failure_persists_and_raises(recovery):
    sink = FlakySink(failures=1)
    writer = await _open(sink, recovery, threshold=10)
    writer.put("a", {"v": 1})
    writer.put("b", {"v": 2})

    with pytest.raises(SinkError):
        await writer.flush()

    assert dict(writer.pending) == {"a": {"v": 1}, "b": {"v": 2}}
    assert await recovery.read(DEFAULT_SLOT) == [("a", {"v": 1}), ("b", {"v": 2})]


async def test_periodic_push_when_threshold_reached(sink, recovery):
    writer = await _open(sink, recovery, threshold=3, interval=0.01)
    for i in range(4):
        writer.put(str(i), {"n": i})

    for _ in range(100):
        if sink.append_calls:
            break
        await asyncio.sleep(0.01)

    assert sink.append_calls == 1
    assert len(sink.records) == 4
    assert len(writer) == 0
    await writer.flush()


async def test_periodic_push_waits_for_threshold(sink, recovery):
    writer = await _open(sink, recovery, threshold=10, interval=0.01)
    writer.put("a", {"v": 1})

    await asyncio.sleep(0.05)

    assert sink.append_calls == 0
    await writer.flush()
    assert sink.records == [{"v": 1}]


async def test_periodic_failure_keeps_entries_for_flush(recovery):
    sink = FlakySink(failures=1)
    writer = await _open(sink, recovery, threshold=2, interval=0.01)
    writer.put("a", {"v": 1})
    writer.put("b", {"v": 2})

    for _ in range(100):
        if writer.periodic_error is not None:
            break
        await asyncio.sleep(0.01)

    assert isinstance(writer.periodic_error, ConnectionError)
    assert len(writer) == 2

    await writer.flush()
    assert sink.records == [{"v": 1}, {"v": 2}]


# ── Interruption / recovery ─────────────────────────────────────────


async def test_interrupt_then_restart_reloads_pending(sink):
    recovery = InMemoryRecoveryStore()
    writer = await _open(sink, recovery)
    for i in range(5):
        writer.put(f"k{i}", {"n": i})

    await writer.on_interrupt()

    assert writer.interrupted
    assert sink.append_calls == 0
    assert len(await recovery.read(DEFAULT_SLOT)) == 5

    restarted = await _open(sink, recovery)
    assert len(restarted) == 5
    # The slot is cleared once its content has been taken over.
    assert await recovery.read(DEFAULT_SLOT) == []

    restarted.put("k0", {"n": 100})
    await restarted.flush()
    assert len(sink.records) == 5
    assert {"n": 100} in sink.records


async def test_put_after_interrupt_is_kept_by_persist(sink, recovery):
    writer = await _open(sink, recovery)
    writer.put("a", {"v": 1})
    await writer.on_interrupt()

    writer.put("b", {"v": 2})
    await writer.persist()

    assert await recovery.read(DEFAULT_SLOT) == [("a", {"v": 1}), ("b", {"v": 2})]


async def test_flush_after_interrupt_clears_slot(sink, recovery):
    writer = await _open(sink, recovery)
    writer.put("a", {"v": 1})
    await writer.on_interrupt()

    await writer.flush()

    assert sink.records == [{"v": 1}]
    assert await recovery.read(DEFAULT_SLOT) == []


async def test_interrupt_waits_for_running_push(tmp_path, recovery):
    storage = SlowDiskStorage(str(tmp_path), delay=0.3)
    sink = JsonlSink(storage)
    writer = await _open(sink, recovery, threshold=3, interval=0.01)
    for i in range(3):
        writer.put(str(i), {"n": i})

    for _ in range(100):
        if storage.started.is_set():
            break
        await asyncio.sleep(0.01)
    assert storage.started.is_set()

    await writer.on_interrupt()

    lines = storage.read(sink.key).decode("utf-8").splitlines()
    assert [json.loads(line) for line in lines] == [{"n": 0}, {"n": 1}, {"n": 2}]
    assert writer.pushed_count == 3
    assert len(writer) == 0
    assert await recovery.read(DEFAULT_SLOT) == []


async def test_interrupt_stops_periodic_push(sink, recovery):
    writer = await _open(sink, recovery, threshold=1, interval=0.01)
    await writer.on_interrupt()

    writer.put("a", {"v": 1})
    await asyncio.sleep(0.05)

    assert sink.append_calls == 0


async def test_recovered_entries_yield_to_new_values(sink):
    recovery = InMemoryRecoveryStore()
    await recovery.write(DEFAULT_SLOT, [("a", {"v": "old"}), ("b", {"v": "old"})])

    writer = await _open(sink, recovery)
    writer.put("a", {"v": "new"})
    await writer.flush()

    assert sink.records == [{"v": "new"}, {"v": "old"}]
