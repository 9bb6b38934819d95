from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from collection_filter.types import Record


class Sink(ABC):
    """Durable, append-only destination for transformed output values."""

    @abstractmethod
    async def append(self, records: list[Record]) -> None:
        """Append *records* in order.  Must raise on failure."""
        ...

    async def close(self) -> None:
        """Release any held resources."""

    async def __aenter__(self) -> Sink:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
