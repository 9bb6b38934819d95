from __future__ import annotations

from typing import Any, Generic, TypeVar

from collection_filter.recovery.base import RecoveryStore
from collection_filter.sink.base import Sink
from collection_filter.source.base import CollectionStore


T = TypeVar("T")


class _Registry(Generic[T]):
    """Lazily-populated factory registry.

    Each backend module registers itself via :meth:`register`.
    :meth:`build` resolves a provider name to a factory, calling
    ``factory.from_config(config)`` if available, otherwise
    ``factory(**config)``.
    """

    def __init__(self, label: str) -> None:
        self._label = label
        self._factories: dict[str, type[T]] = {}
        self._defaults_loaded = False

    def register(self, name: str, cls: type[T]) -> None:
        self._factories[name] = cls

    def available(self) -> list[str]:
        self._ensure_defaults()
        return sorted(self._factories)

    def build(self, provider: str, config: dict[str, Any]) -> T:
        self._ensure_defaults()
        factory = self._factories.get(provider)
        if factory is None:
            raise ValueError(
                f"Unknown {self._label} provider '{provider}'. "
                f"Available: {list(self._factories)}"
            )
        if hasattr(factory, "from_config"):
            return factory.from_config(config)  # type: ignore[return-value]
        return factory(**config)  # type: ignore[return-value]

    def _ensure_defaults(self) -> None:
        if not self._defaults_loaded:
            self._load_defaults()
            self._defaults_loaded = True

    def _load_defaults(self) -> None:
        """Override point: subclasses populate built-in factories here."""


class _SourceRegistry(_Registry[CollectionStore]):
    def _load_defaults(self) -> None:
        from collection_filter.source.disk import DiskCollectionStore
        from collection_filter.source.http import HttpCollectionStore
        from collection_filter.source.memory import InMemoryCollectionStore

        self.register("memory", InMemoryCollectionStore)
        self.register("disk", DiskCollectionStore)
        self.register("http", HttpCollectionStore)


class _SinkRegistry(_Registry[Sink]):
    def _load_defaults(self) -> None:
        from collection_filter.sink.jsonl import JsonlSink
        from collection_filter.sink.memory import InMemorySink
        from collection_filter.sink.sql import SqlSink

        self.register("memory", InMemorySink)
        self.register("jsonl", JsonlSink)
        self.register("sql", SqlSink)


class _RecoveryRegistry(_Registry[RecoveryStore]):
    def _load_defaults(self) -> None:
        from collection_filter.recovery.memory import InMemoryRecoveryStore
        from collection_filter.recovery.sql import SqlRecoveryStore
        from collection_filter.recovery.storage import StorageRecoveryStore

        self.register("memory", InMemoryRecoveryStore)
        self.register("disk", StorageRecoveryStore)
        self.register("sql", SqlRecoveryStore)


# Singleton instances
source_registry = _SourceRegistry("source")
sink_registry = _SinkRegistry("sink")
recovery_registry = _RecoveryRegistry("recovery")


def parse_config(
    config: dict[str, Any],
) -> tuple[CollectionStore, Sink, RecoveryStore]:
    """Parse a backend config dict and return (source, sink, recovery).

    Expected shape::

        {
            "source": {"provider": "http", "config": {"base_url": "https://..."}},
            "sink": {"provider": "jsonl", "config": {"base_path": "./data"}},
            "recovery": {"provider": "disk", "config": {"base_path": "./data"}},
        }

    ``source`` is required.  ``sink`` defaults to JSON lines under
    ``./data`` and ``recovery`` to a JSON document next to it.
    """
    source_cfg = config.get("source")
    if not source_cfg:
        raise ValueError(
            "Missing 'source' config section. "
            'Provide at least {"source": {"provider": "disk", "config": {...}}}.'
        )
    sink_cfg = config.get("sink", {})
    recovery_cfg = config.get("recovery", {})

    source = source_registry.build(
        source_cfg.get("provider", "disk"),
        source_cfg.get("config", {}),
    )
    sink = sink_registry.build(
        sink_cfg.get("provider", "jsonl"),
        sink_cfg.get("config", {}),
    )
    recovery = recovery_registry.build(
        recovery_cfg.get("provider", "disk"),
        recovery_cfg.get("config", {}),
    )
    return source, sink, recovery
