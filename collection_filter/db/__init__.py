from collection_filter.db.base import SqlBackend
from collection_filter.db.models import Base, OutputRecord, RecoverySlot

__all__ = [
    "Base",
    "OutputRecord",
    "RecoverySlot",
    "SqlBackend",
]
