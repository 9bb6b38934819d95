from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import insert

from collection_filter.db.base import SqlBackend
from collection_filter.db.models import OutputRecord
from collection_filter.sink.base import Sink
from collection_filter.types import Record

logger = logging.getLogger(__name__)

BULK_INSERT_BATCH_SIZE = 500


class SqlSink(Sink):
    """Appends records to the ``output_records`` table."""

    def __init__(self, backend: SqlBackend) -> None:
        self._backend = backend

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SqlSink:
        return cls(SqlBackend(config["url"]))

    async def append(self, records: list[Record]) -> None:
        if not records:
            return
        async with self._backend.session_scope() as session:
            for start in range(0, len(records), BULK_INSERT_BATCH_SIZE):
                chunk = records[start : start + BULK_INSERT_BATCH_SIZE]
                await session.execute(
                    insert(OutputRecord), [{"payload": r} for r in chunk]
                )
        logger.debug("Inserted %d output records", len(records))

    async def close(self) -> None:
        await self._backend.close()
