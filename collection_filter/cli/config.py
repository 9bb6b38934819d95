"""Configuration management for the collection-filter CLI.

Reads/writes a TOML config file and provides a typed Config dataclass.
Default location: ``~/.config/collection-filter/config.toml``.
Override with the ``COLLECTION_FILTER_CONFIG`` environment variable.

Data directory layout::

    data/
      collections/  <- collections read by the "disk" source
      output/       <- filtered items land here (items.jsonl)
      recovery/     <- buffered items persisted on interruption
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_DEFAULT_CONFIG_DIR = Path("~/.config/collection-filter").expanduser()
_DEFAULT_DATA_DIR = Path("./data")


def _config_path() -> Path:
    env = os.environ.get("COLLECTION_FILTER_CONFIG")
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CONFIG_DIR / "config.toml"


@dataclass
class Config:
    # Source backend: "disk" (default, reads data/collections) or "http"
    source_provider: str = "disk"

    # HTTP settings (only used when source_provider == "http")
    api_url: str = ""
    api_token: str = ""

    # Sink / recovery backend: "jsonl" + "disk" (default) or "sql"
    output_provider: str = "jsonl"
    db_url: str = ""

    data_dir: str = str(_DEFAULT_DATA_DIR)

    @property
    def collections_dir(self) -> Path:
        return Path(self.data_dir) / "collections"

    @property
    def output_dir(self) -> Path:
        return Path(self.data_dir) / "output"

    @property
    def uses_http(self) -> bool:
        return self.source_provider == "http"

    @property
    def uses_sql(self) -> bool:
        return self.output_provider == "sql"

    def ensure_dirs(self) -> None:
        """Create the data directory structure if it doesn't exist."""
        self.collections_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def to_backend_config(self) -> dict[str, Any]:
        """Convert into the backend config dict understood by ``parse_config``."""
        if self.uses_http:
            source: dict[str, Any] = {
                "provider": "http",
                "config": {"base_url": self.api_url, "token": self.api_token or None},
            }
        else:
            source = {
                "provider": "disk",
                "config": {"base_path": str(self.collections_dir)},
            }

        if self.uses_sql:
            db_url = self.db_url or f"sqlite+aiosqlite:///{self.output_dir}/items.db"
            sink = {"provider": "sql", "config": {"url": db_url}}
            recovery = {"provider": "sql", "config": {"url": db_url}}
        else:
            sink = {"provider": "jsonl", "config": {"base_path": self.data_dir}}
            recovery = {"provider": "disk", "config": {"base_path": self.data_dir}}

        return {"source": source, "sink": sink, "recovery": recovery}


def load_config() -> Config:
    """Load config from disk, falling back to defaults + env overrides."""
    path = _config_path()
    cfg = Config()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        source_section = data.get("source", {})
        output_section = data.get("output", {})
        data_section = data.get("data", {})

        cfg.source_provider = source_section.get("provider", cfg.source_provider)
        cfg.api_url = source_section.get("api_url", cfg.api_url)
        cfg.api_token = source_section.get("api_token", cfg.api_token)

        cfg.output_provider = output_section.get("provider", cfg.output_provider)
        cfg.db_url = output_section.get("db_url", cfg.db_url)

        cfg.data_dir = data_section.get("dir", cfg.data_dir)

    # Environment variables always take precedence
    cfg.source_provider = os.environ.get(
        "COLLECTION_FILTER_SOURCE", cfg.source_provider
    )
    cfg.api_url = os.environ.get("COLLECTION_FILTER_API_URL", cfg.api_url)
    cfg.api_token = os.environ.get("COLLECTION_FILTER_API_TOKEN", cfg.api_token)
    cfg.data_dir = os.environ.get("COLLECTION_FILTER_DATA_DIR", cfg.data_dir)

    return cfg


def save_config(cfg: Config) -> Path:
    """Write config to the TOML file. Returns the path written."""
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "[source]",
        f'provider = "{cfg.source_provider}"',
    ]
    if cfg.uses_http:
        lines.append(f'api_url = "{cfg.api_url}"')
        if cfg.api_token:
            lines.append(f'api_token = "{cfg.api_token}"')
    lines.extend(["", "[output]", f'provider = "{cfg.output_provider}"'])
    if cfg.db_url:
        lines.append(f'db_url = "{cfg.db_url}"')
    lines.extend(
        [
            "",
            "[data]",
            f'dir = "{cfg.data_dir}"',
            "",
        ]
    )

    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def config_exists() -> bool:
    return _config_path().exists()


def config_path_display() -> str:
    return str(_config_path())
