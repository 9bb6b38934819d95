from collection_filter.source.base import CollectionStore
from collection_filter.source.disk import DiskCollectionStore
from collection_filter.source.memory import InMemoryCollectionStore

__all__ = [
    "CollectionStore",
    "DiskCollectionStore",
    "InMemoryCollectionStore",
]
