from collection_filter.recovery.base import (
    DEFAULT_SLOT,
    PendingEntries,
    RecoveryStore,
)
from collection_filter.recovery.memory import InMemoryRecoveryStore
from collection_filter.recovery.storage import StorageRecoveryStore

__all__ = [
    "DEFAULT_SLOT",
    "InMemoryRecoveryStore",
    "PendingEntries",
    "RecoveryStore",
    "StorageRecoveryStore",
]
