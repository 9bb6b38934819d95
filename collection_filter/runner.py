from __future__ import annotations

import logging
import resource
import sys
import time

from collection_filter.cancellation import CancellationToken
from collection_filter.interrupt import InterruptSignal
from collection_filter.loader import ParallelLoader
from collection_filter.options import RunOptions
from collection_filter.pipeline import (
    OUTPUT_LIMIT_REACHED,
    FilterMapPipeline,
    Predicate,
    Transform,
)
from collection_filter.plugins import compile_predicate, compile_transform
from collection_filter.recovery.base import RecoveryStore
from collection_filter.sink.base import Sink
from collection_filter.source.base import CollectionStore
from collection_filter.types import RunResult
from collection_filter.writer import ResilientWriter

logger = logging.getLogger(__name__)

INTERRUPTED = "interrupted"


def _peak_memory_mb() -> float:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    return peak / (1024 * 1024) if sys.platform == "darwin" else peak / 1024


async def run_filter(
    options: RunOptions,
    store: CollectionStore,
    sink: Sink,
    recovery: RecoveryStore,
    *,
    predicate: Predicate | None = None,
    transform: Transform | None = None,
    interrupt: InterruptSignal | None = None,
) -> RunResult:
    """Load, filter, transform and write every requested collection.

    Predicate and transform are resolved (from *predicate* / *transform*
    or the references in *options*) before anything is fetched, so a bad
    reference fails fast with :class:`CompileError`.

    The writer is always finalised: flushed to *sink* on a normal or
    failed run, persisted to *recovery* when *interrupt* fired.

    Returns:
        A :class:`RunResult` with the run counters.

    Raises:
        CompileError: predicate or transform could not be loaded.
        FetchError: the collection store failed.
        SinkError: the final flush to *sink* failed.
    """
    started = time.monotonic()
    predicate_fn = compile_predicate(predicate or options.predicate)
    transform_fn = compile_transform(transform or options.transform)

    loader = ParallelLoader(
        store,
        concurrency=options.parallel_loads,
        batch_size=options.load_batch_size,
        fields=options.load_fields,
        ordered=options.ordered,
    )
    token = CancellationToken()
    writer = await ResilientWriter.open(
        sink,
        recovery,
        threshold=options.buffer_limit,
        interval=options.flush_interval,
        pause=options.flush_pause,
    )
    pipeline = FilterMapPipeline(
        writer,
        predicate=predicate_fn,
        transform=transform_fn,
        dedup_key=options.dedup_key,
        output_offset=options.output_offset,
        output_limit=options.output_limit,
        include_collection_id=options.include_collection_id,
        transform_timeout=options.transform_timeout,
        token=token,
    )
    result = RunResult(collection_ids=list(options.collection_ids))

    async def _on_interrupt() -> None:
        token.cancel(INTERRUPTED)
        await writer.on_interrupt()

    if interrupt is not None:
        interrupt.subscribe(_on_interrupt)

    try:
        plan = await loader.plan(
            options.collection_ids,
            offset=options.load_offset,
            limit=options.load_limit,
        )
        result.planned_requests = len(plan)
        await loader.execute(plan, sink=pipeline, token=token)
    except Exception as exc:
        logger.error("Run failed: %s", exc)
        result.errors.append(str(exc))
        raise
    finally:
        if interrupt is not None:
            interrupt.unsubscribe(_on_interrupt)
            try:
                await interrupt.wait_handled()
            except Exception:
                logger.exception("Interrupt handler failed; persisting again")
        if writer.interrupted:
            # Catches values put between the interrupt and the loader stopping.
            await writer.persist()
        else:
            await writer.flush()

        state = pipeline.state
        result.matched_count = state.matched_count
        result.output_count = state.output_count
        result.unique_count = state.unique_count
        result.transform_errors = state.transform_errors
        result.pushed_count = writer.pushed_count
        result.stopped_early = token.reason == OUTPUT_LIMIT_REACHED
        result.interrupted = writer.interrupted
        result.elapsed_seconds = time.monotonic() - started

    logger.info("Process took %.1f seconds", result.elapsed_seconds)
    logger.info(
        "Generated %d items using %.2fMB", result.output_count, _peak_memory_mb()
    )
    return result
