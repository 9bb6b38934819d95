from __future__ import annotations

from pathlib import Path

import pytest

from collection_filter.recovery.memory import InMemoryRecoveryStore
from collection_filter.sink.memory import InMemorySink
from collection_filter.source.memory import InMemoryCollectionStore
from collection_filter.storage.disk import DiskStorage
from collection_filter.types import Record


def make_records(n: int, *, start: int = 0, prefix: str = "item") -> list[Record]:
    """``n`` records ``{"id": ..., "n": ...}`` numbered from *start*."""
    return [{"id": f"{prefix}-{i}", "n": i} for i in range(start, start + n)]


@pytest.fixture()
def store() -> InMemoryCollectionStore:
    return InMemoryCollectionStore(
        {
            "alpha": make_records(25, prefix="a"),
            "beta": make_records(7, prefix="b"),
        }
    )


@pytest.fixture()
def sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture()
def recovery() -> InMemoryRecoveryStore:
    return InMemoryRecoveryStore()


@pytest.fixture()
def storage(tmp_path: Path) -> DiskStorage:
    return DiskStorage(str(tmp_path / "storage"))


@pytest.fixture()
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
