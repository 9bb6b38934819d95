from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from collection_filter.storage.base import StorageBackend


class DiskStorage(StorageBackend):
    """Local filesystem storage rooted at *base_path*."""

    def __init__(self, base_path: str) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def _resolve(self, key: str) -> Path:
        path = (self._base / key).resolve()
        if not path.is_relative_to(self._base.resolve()):
            raise ValueError(f"Key escapes storage root: {key!r}")
        return path

    # ---- interface ----

    def write(self, key: str, data: bytes) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def append(self, key: str, data: bytes) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "ab") as f:
            f.write(data)

    def read(self, key: str) -> bytes:
        return self._resolve(key).read_bytes()

    def open_stream(self, key: str) -> BinaryIO:
        return open(self._resolve(key), "rb")  # noqa: SIM115

    def list_keys(self, prefix: str) -> list[str]:
        prefix_path = self._resolve(prefix)
        if not prefix_path.exists():
            return []
        if prefix_path.is_file():
            return [prefix]
        root = self._base.resolve()
        return sorted(
            str(p.relative_to(root)) for p in prefix_path.rglob("*") if p.is_file()
        )

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.is_file():
            path.unlink()
