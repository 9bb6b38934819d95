from collection_filter.cancellation import CancellationToken
from collection_filter.errors import (
    CollectionFilterError,
    CompileError,
    ConfigurationError,
    FetchError,
    SinkError,
    TransformError,
)
from collection_filter.facade import CollectionFilter
from collection_filter.interrupt import InterruptSignal
from collection_filter.loader import ParallelLoader
from collection_filter.options import RunOptions
from collection_filter.pipeline import FilterMapPipeline
from collection_filter.planner import calculate_local_window
from collection_filter.types import (
    BatchWindow,
    CollectionRef,
    FetchRequest,
    LoadedBatches,
    LoadPlan,
    LocalWindow,
    RunResult,
)
from collection_filter.writer import ResilientWriter

__all__ = [
    "BatchWindow",
    "CancellationToken",
    "CollectionFilter",
    "CollectionFilterError",
    "CollectionRef",
    "CompileError",
    "ConfigurationError",
    "FetchError",
    "FetchRequest",
    "FilterMapPipeline",
    "InterruptSignal",
    "LoadPlan",
    "LoadedBatches",
    "LocalWindow",
    "ParallelLoader",
    "ResilientWriter",
    "RunOptions",
    "RunResult",
    "SinkError",
    "TransformError",
    "calculate_local_window",
]
