from collection_filter.storage.base import StorageBackend
from collection_filter.storage.disk import DiskStorage

__all__ = ["StorageBackend", "DiskStorage"]
