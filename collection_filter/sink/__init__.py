from collection_filter.sink.base import Sink
from collection_filter.sink.jsonl import JsonlSink
from collection_filter.sink.memory import InMemorySink

__all__ = [
    "InMemorySink",
    "JsonlSink",
    "Sink",
]
