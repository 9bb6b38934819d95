from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO


class StorageBackend(ABC):
    """Byte-level key/value storage shared by disk collections, JSONL
    sinks and the file-based recovery store."""

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """Replace the contents stored under *key*."""
        ...

    @abstractmethod
    def append(self, key: str, data: bytes) -> None:
        """Append *data* to *key*, creating it if missing."""
        ...

    @abstractmethod
    def read(self, key: str) -> bytes:
        """Read data from the given key."""
        ...

    @abstractmethod
    def open_stream(self, key: str) -> BinaryIO:
        """Open a binary stream for the given key (for large collections)."""
        ...

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """List all keys with the given prefix."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...
