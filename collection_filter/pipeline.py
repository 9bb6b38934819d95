"""Ordered filter → offset → transform → dedup → cap stage.

Records are processed strictly one at a time, in the order the loader
delivers them.  Counters live in :class:`PipelineState`, one instance per
run:

- ``matched_count`` -- records that passed the predicate; the output
  offset is applied to matched records, not raw ones;
- ``output_count`` -- values handed to the writer; the output limit is
  applied to it;
- ``incrementing_key`` -- fallback output key when no dedup key is
  available.

Reaching the output limit cancels the shared :class:`CancellationToken`.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from collection_filter.cancellation import CancellationToken
from collection_filter.errors import TransformError
from collection_filter.types import FetchRequest, Pending, Record

logger = logging.getLogger(__name__)

Predicate = Callable[[Record], bool]
Transform = Callable[[Record, int, int], Any]

OUTPUT_LIMIT_REACHED = "output limit reached"


def match_all(record: Record) -> bool:
    return True


def identity(record: Record, index: int, raw_index: int) -> Record:
    return record


def _is_async_callable(obj: Any) -> bool:
    while isinstance(obj, functools.partial):
        obj = obj.func
    return inspect.iscoroutinefunction(obj) or inspect.iscoroutinefunction(
        getattr(obj, "__call__", None)  # noqa: B004
    )


class KeyedBuffer(Protocol):
    def put(self, key: str, value: Pending) -> bool: ...


@dataclass
class PipelineState:
    processed_count: int = 0
    matched_count: int = 0
    output_count: int = 0
    incrementing_key: int = 0
    unique_count: int = 0
    transform_errors: int = 0


class FilterMapPipeline:
    def __init__(
        self,
        writer: KeyedBuffer,
        *,
        predicate: Predicate | None = None,
        transform: Transform | None = None,
        dedup_key: str | None = None,
        output_offset: int = 0,
        output_limit: int | None = None,
        include_collection_id: bool = False,
        transform_timeout: float | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self._writer = writer
        self._predicate = predicate or match_all
        self._transform = transform or identity
        self._dedup_key = dedup_key
        self._output_offset = output_offset
        self._output_limit = output_limit
        self._include_collection_id = include_collection_id
        self._transform_timeout = transform_timeout
        self.token = token or CancellationToken()
        self.state = PipelineState()

    @property
    def limit_reached(self) -> bool:
        return (
            self._output_limit is not None
            and self.state.output_count >= self._output_limit
        )

    async def process(self, records: list[Record], request: FetchRequest) -> None:
        """Run one delivered page through the pipeline."""
        raw_index = request.offset - 1
        for record in records:
            if self.token.cancelled:
                return
            raw_index += 1
            self.state.processed_count += 1

            if not self._predicate(record):
                continue

            self.state.matched_count += 1
            index = self.state.matched_count - 1
            if index < self._output_offset:
                continue

            try:
                result = await self._apply_transform(record, index, raw_index)
            except TransformError as exc:
                self.state.transform_errors += 1
                logger.error(
                    "Transform failed at index %d (raw index %d): %r",
                    index,
                    raw_index,
                    exc.cause,
                )
                continue

            if result is None:
                continue

            for key, value in self._outputs(record, result, index, raw_index):
                if isinstance(value, list):
                    if self._output_limit is not None:
                        remaining = self._output_limit - self.state.output_count
                        value = value[:remaining]
                    if self._include_collection_id:
                        value = [
                            {**v, "collectionId": request.collection_id}
                            for v in value
                        ]
                    produced = len(value)
                else:
                    if self._include_collection_id:
                        value = {**value, "collectionId": request.collection_id}
                    produced = 1
                if self._writer.put(key, value):
                    self.state.unique_count += 1
                self.state.output_count += produced

                if self.limit_reached:
                    logger.info(
                        "Output limit of %d reached, stopping", self._output_limit
                    )
                    self.token.cancel(OUTPUT_LIMIT_REACHED)
                    return

    async def _apply_transform(
        self, record: Record, index: int, raw_index: int
    ) -> Any:
        try:
            if self._transform_timeout is None:
                result = self._transform(record, index, raw_index)
                if inspect.isawaitable(result):
                    result = await result
                return result

            return await asyncio.wait_for(
                self._call_in_thread_if_sync(record, index, raw_index),
                self._transform_timeout,
            )
        except Exception as exc:
            raise TransformError(index, raw_index, exc) from exc

    async def _call_in_thread_if_sync(
        self, record: Record, index: int, raw_index: int
    ) -> Any:
        if _is_async_callable(self._transform):
            return await self._transform(record, index, raw_index)
        # Sync transforms run in a worker thread so the timeout can fire;
        # the thread itself is not interrupted.
        result = await asyncio.to_thread(self._transform, record, index, raw_index)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _outputs(
        self,
        record: Record,
        result: Any,
        index: int,
        raw_index: int,
    ) -> list[tuple[str, Pending]]:
        if isinstance(result, dict):
            key = self._dedup_value(record, index, raw_index)
            return [(key if key is not None else self._next_key(), result)]

        if isinstance(result, list):
            values: list[Record] = []
            for value in result:
                if not isinstance(value, dict):
                    logger.warning(
                        "Dropping non-object element of type %s from transform "
                        "result at index %d (raw index %d)",
                        type(value).__name__,
                        index,
                        raw_index,
                    )
                    continue
                values.append(value)
            if not values:
                return []
            # Under a dedup key the whole list is one entry, so a later
            # record with the same key replaces all of it.
            key = self._dedup_value(record, index, raw_index)
            if key is not None:
                return [(key, values)]
            return [(self._next_key(), value) for value in values]

        logger.warning(
            'Return value of transform is not an "object" or "array", got "%s" '
            "at index %d (raw index %d)",
            type(result).__name__,
            index,
            raw_index,
        )
        return []

    def _dedup_value(
        self, record: Record, index: int, raw_index: int
    ) -> str | None:
        if self._dedup_key is None:
            return None
        if self._dedup_key in record:
            return str(record[self._dedup_key])
        logger.warning(
            "Dedup key %r not found in record at index %d (raw index %d)",
            self._dedup_key,
            index,
            raw_index,
        )
        return None

    def _next_key(self) -> str:
        key = str(self.state.incrementing_key)
        self.state.incrementing_key += 1
        return key
