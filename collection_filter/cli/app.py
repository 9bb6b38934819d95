from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from collection_filter.cli import output as out
from collection_filter.cli.config import (
    Config,
    config_exists,
    config_path_display,
    load_config,
)
from collection_filter.errors import CollectionFilterError, ConfigurationError
from collection_filter.types import RunResult

DESCRIPTION = """\
collection-filter: load, filter and deduplicate large item collections

Pages through one or many collections in parallel, keeps the items that
match a predicate, reshapes them with a transform, de-duplicates them on
a key and writes the result to a durable sink. Buffered output survives
SIGTERM: it is persisted and picked up again by the next run."""

_INTERRUPT_SIGNALS = (signal.SIGTERM, signal.SIGINT)


# ── Infrastructure helpers ──────────────────────────────────────────


def _build_filter(cfg: Config):
    from collection_filter import CollectionFilter

    if cfg.uses_http and not cfg.api_url:
        raise ConfigurationError(
            "HTTP source selected but no API URL configured "
            "(set COLLECTION_FILTER_API_URL)"
        )
    if not cfg.uses_http:
        cfg.ensure_dirs()
    try:
        return CollectionFilter.from_config(cfg.to_backend_config())
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _read_input(path: str | None) -> dict[str, Any]:
    if not path:
        return {}
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read input file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"input file {path} must contain a JSON object")
    return data


def _set_option(options: dict[str, Any], name: str, value: Any) -> None:
    """Set *name*, dropping any alias of it that came from the input file."""
    from collection_filter.options import RunOptions

    alias = RunOptions.model_fields[name].validation_alias
    for choice in getattr(alias, "choices", []):
        if isinstance(choice, str):
            options.pop(choice, None)
    options[name] = value


def _options_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Merge the ``--input`` file with explicit flags (flags win)."""
    options = _read_input(args.input)

    if args.collection:
        _set_option(options, "collection_ids", list(args.collection))

    flags = {
        "predicate": args.predicate,
        "transform": args.transform,
        "dedup_key": args.dedup_key,
        "output_limit": args.output_limit,
        "output_offset": args.output_offset,
        "parallel_loads": args.parallel_loads,
        "load_batch_size": args.batch_size,
        "load_offset": args.load_offset,
        "load_limit": args.load_limit,
        "transform_timeout": args.transform_timeout,
    }
    for name, value in flags.items():
        if value is not None:
            _set_option(options, name, value)
    if args.fields:
        fields = [f.strip() for f in args.fields.split(",") if f.strip()]
        _set_option(options, "load_fields", fields)
    if args.include_collection_id:
        _set_option(options, "include_collection_id", True)
    return options


def _print_summary(result: RunResult) -> None:
    out.header("Run summary")
    out.kv("Collections", ", ".join(result.collection_ids))
    out.kv("Fetch requests", out.count(result.planned_requests))
    out.kv("Matched", out.count(result.matched_count))
    out.kv("Output", out.count(result.output_count))
    out.kv("Unique", out.count(result.unique_count))
    out.kv("Pushed", out.count(result.pushed_count))
    if result.transform_errors:
        out.kv("Transform errors", out.yellow(out.count(result.transform_errors)))
    out.kv("Elapsed", f"{result.elapsed_seconds:.1f}s")
    print()
    if result.interrupted:
        out.warn("Interrupted: buffered items were persisted for the next run")
    elif result.stopped_early:
        out.success("Output limit reached")
    else:
        out.success("Done")


# ── run ─────────────────────────────────────────────────────────────


async def cmd_run(args: argparse.Namespace) -> None:
    """Filter the requested collections into the configured sink."""
    from collection_filter import InterruptSignal, RunOptions

    cfg = load_config()
    options = RunOptions.parse(_options_from_args(args))

    interrupt = InterruptSignal()
    loop = asyncio.get_running_loop()
    interrupt.install(loop, signals=_INTERRUPT_SIGNALS)

    try:
        async with _build_filter(cfg) as cf:
            result = await cf.run(options, interrupt=interrupt)
    finally:
        interrupt.uninstall(loop, signals=_INTERRUPT_SIGNALS)

    _print_summary(result)


# ── config ──────────────────────────────────────────────────────────


async def cmd_config_show(args: argparse.Namespace) -> None:
    """Display current configuration."""
    cfg = load_config()

    source = "from file" if config_exists() else "defaults"
    out.header(f"Configuration ({config_path_display()}, {source})")
    print()

    if cfg.uses_http:
        out.kv("Source", f"http ({cfg.api_url or out.dim('no URL')})")
        out.kv("API token", "set" if cfg.api_token else out.dim("not set"))
    else:
        out.kv("Source", f"disk ({cfg.collections_dir})")

    if cfg.uses_sql:
        out.kv("Output", f"sql ({cfg.db_url or out.dim('sqlite in data dir')})")
    else:
        out.kv("Output", f"jsonl ({cfg.output_dir / 'items.jsonl'})")

    out.kv("Data directory", cfg.data_dir)


async def cmd_config_path(args: argparse.Namespace) -> None:
    """Print the config file path."""
    print(config_path_display())


# ── Parser ──────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collection-filter",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress (-vv for debug output)",
    )
    sub = parser.add_subparsers(dest="command", title="commands")

    # run
    p_run = sub.add_parser("run", help="Filter collections into the output sink")
    p_run.add_argument(
        "--input", metavar="PATH", help="JSON file with run options (camelCase ok)"
    )
    p_run.add_argument(
        "--collection",
        action="append",
        metavar="ID",
        help="Collection to read (repeatable)",
    )
    p_run.add_argument(
        "--predicate", metavar="REF", help="Predicate as module:attr or file.py:attr"
    )
    p_run.add_argument(
        "--transform", metavar="REF", help="Transform as module:attr or file.py:attr"
    )
    p_run.add_argument("--dedup-key", metavar="FIELD", help="De-duplicate on FIELD")
    p_run.add_argument("--output-limit", type=int, help="Stop after N outputs")
    p_run.add_argument(
        "--output-offset", type=int, help="Skip the first N matched items"
    )
    p_run.add_argument("--parallel-loads", type=int, help="Concurrent page fetches")
    p_run.add_argument("--batch-size", type=int, help="Items per page fetch")
    p_run.add_argument("--load-offset", type=int, help="Per-collection start offset")
    p_run.add_argument("--load-limit", type=int, help="Per-collection item limit")
    p_run.add_argument(
        "--fields", metavar="A,B", help="Comma-separated fields to load"
    )
    p_run.add_argument(
        "--transform-timeout", type=float, help="Seconds allowed per transform call"
    )
    p_run.add_argument(
        "--include-collection-id",
        action="store_true",
        help="Add collectionId to every output item",
    )

    # config
    p_cfg = sub.add_parser("config", help="View settings")
    cfg_sub = p_cfg.add_subparsers(dest="config_command", title="config commands")
    cfg_sub.add_parser("show", help="Show current settings")
    cfg_sub.add_parser("path", help="Print config file location")

    return parser


# ── Dispatch ────────────────────────────────────────────────────────

_CommandHandler = Callable[[argparse.Namespace], Coroutine[Any, Any, None]]

_COMMAND_MAP: dict[str, _CommandHandler] = {
    "run": cmd_run,
}

_CONFIG_MAP: dict[str, _CommandHandler] = {
    "show": cmd_config_show,
    "path": cmd_config_path,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="  %(name)s: %(message)s",
        )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "config":
        if not args.config_command:
            parser.parse_args(["config", "--help"])
            return 0
        handler = _CONFIG_MAP.get(args.config_command)
    else:
        handler = _COMMAND_MAP.get(args.command)

    if handler is None:
        parser.print_help()
        return 0

    try:
        asyncio.run(handler(args))
    except CollectionFilterError as exc:
        out.error(str(exc))
        return 1
    except KeyboardInterrupt:
        print()
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
