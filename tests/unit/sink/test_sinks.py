from __future__ import annotations

import json

from sqlalchemy import select

from collection_filter.config import sink_registry
from collection_filter.db.base import SqlBackend
from collection_filter.db.models import OutputRecord
from collection_filter.sink.jsonl import JsonlSink
from collection_filter.sink.memory import InMemorySink
from collection_filter.sink.sql import SqlSink

# ── In-memory ───────────────────────────────────────────────────────


async def test_inmemory_sink_counts_appends():
    sink = InMemorySink()
    await sink.append([{"a": 1}])
    await sink.append([{"a": 2}, {"a": 3}])
    assert sink.records == [{"a": 1}, {"a": 2}, {"a": 3}]
    assert sink.append_calls == 2


# ── JSON lines ──────────────────────────────────────────────────────


async def test_jsonl_sink_appends_lines(storage):
    sink = JsonlSink(storage)
    await sink.append([{"a": 1}, {"text": "héllo"}])
    await sink.append([])
    await sink.append([{"a": 2}])

    lines = storage.read(sink.key).decode("utf-8").splitlines()
    assert [json.loads(line) for line in lines] == [
        {"a": 1},
        {"text": "héllo"},
        {"a": 2},
    ]


async def test_jsonl_sink_custom_key(tmp_path):
    sink = sink_registry.build(
        "jsonl", {"base_path": str(tmp_path), "key": "runs/one.jsonl"}
    )
    await sink.append([{"a": 1}])
    assert (tmp_path / "runs" / "one.jsonl").read_text() == '{"a": 1}\n'


# ── SQL ─────────────────────────────────────────────────────────────


async def test_sql_sink_inserts_rows(sqlite_url):
    sink = SqlSink.from_config({"url": sqlite_url})
    await sink.append([{"n": i} for i in range(1_200)])
    await sink.append([{"n": "last"}])
    await sink.close()

    backend = SqlBackend(sqlite_url)
    try:
        async with backend.session_scope() as session:
            rows = (
                await session.execute(select(OutputRecord).order_by(OutputRecord.id))
            ).scalars().all()
    finally:
        await backend.close()

    assert len(rows) == 1_201
    assert rows[0].payload == {"n": 0}
    assert rows[-1].payload == {"n": "last"}
    assert rows[0].created_at is not None
