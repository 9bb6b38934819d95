"""Batch arithmetic for slicing a global ``[offset, offset + limit)`` window.

A collection of ``T`` items is split into fixed windows of ``batch_size``
items starting at 0.  For each window, :func:`calculate_local_window`
returns the part of the global window that falls inside it, or ``None``
when the two do not overlap::

    T = 25, batch_size = 10, offset = 5, limit = 12

    window [0, 10)   -> offset=5,  limit=5
    window [10, 20)  -> offset=10, limit=7
    window [20, 25)  -> None

Concatenating the non-empty results rebuilds ``[5, 17)`` exactly.
"""

from __future__ import annotations

import math

from collection_filter.types import BatchWindow, LocalWindow


def calculate_local_window(
    *,
    offset: int,
    limit: int,
    local_start: int,
    batch_size: int,
) -> LocalWindow | None:
    """Intersect the global window with one batch window.

    Returns:
        The local ``(offset, limit)`` to fetch, or ``None`` if the global
        window starts after the batch ends or ends before it starts.
    """
    if offset < 0 or limit < 0 or local_start < 0:
        raise ValueError("offset, limit and local_start must be non-negative")
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    local_end = local_start + batch_size
    input_end = offset + limit

    if offset >= local_end:
        return None
    if input_end <= local_start:
        return None

    local_offset = max(local_start, offset)
    return LocalWindow(
        offset=local_offset,
        limit=min(input_end, local_end) - local_offset,
    )


def batch_windows(item_count: int, batch_size: int) -> list[BatchWindow]:
    """Partition ``[0, item_count)`` into contiguous windows of ``batch_size``."""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    count = math.ceil(item_count / batch_size) if item_count > 0 else 0
    return [
        BatchWindow(local_start=i * batch_size, batch_size=batch_size)
        for i in range(count)
    ]
