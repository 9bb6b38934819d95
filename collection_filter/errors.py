"""Error kinds raised by the loading / filtering pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collection_filter.types import FetchRequest


class CollectionFilterError(Exception):
    """Base class for every error raised by collection_filter."""

    pass


class ConfigurationError(CollectionFilterError, ValueError):
    """Invalid run options.  Raised before any fetching starts."""

    def __init__(self, message: str | None = None):
        self.message = (
            f"Invalid configuration: {message}" if message else "Invalid configuration"
        )
        super().__init__(self.message)


class CompileError(CollectionFilterError):
    """A predicate or transform reference could not be resolved."""

    def __init__(self, reference: str, message: str | None = None):
        self.reference = reference
        self.message = (
            f"Cannot load {reference!r}: {message}"
            if message
            else f"Cannot load {reference!r}"
        )
        super().__init__(self.message)


class FetchError(CollectionFilterError):
    """A page fetch against the collection store failed.  Fatal for the run."""

    def __init__(
        self,
        collection_id: str,
        cause: BaseException | None = None,
        *,
        request: FetchRequest | None = None,
    ):
        self.collection_id = collection_id
        self.request = request
        self.cause = cause
        self.message = f"Fetch failed for collection {collection_id}"
        if request is not None:
            self.message += f" (offset={request.offset}, limit={request.limit})"
        if cause is not None:
            self.message += f": {cause}"
        super().__init__(self.message)


class TransformError(CollectionFilterError):
    """The user transform raised for one record.  Recovered by the pipeline."""

    def __init__(
        self,
        matched_index: int,
        raw_index: int,
        cause: BaseException | None = None,
    ):
        self.matched_index = matched_index
        self.raw_index = raw_index
        self.cause = cause
        self.message = (
            f"Transform failed at index {matched_index} (raw index {raw_index})"
        )
        if cause is not None:
            self.message += f": {cause!r}"
        super().__init__(self.message)


class SinkError(CollectionFilterError):
    """Appending to the durable sink failed."""

    def __init__(self, message: str | None = None):
        self.message = f"Sink write failed: {message}" if message else "Sink write failed"
        super().__init__(self.message)
