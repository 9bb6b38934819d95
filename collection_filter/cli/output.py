"""Terminal output for the collection-filter CLI.

Styling is applied per stream: a stream gets ANSI codes only when it is
a TTY and ``NO_COLOR`` is unset, so piping the run summary to a file
keeps it plain while errors on a terminal stderr stay coloured.
"""

from __future__ import annotations

import os
import sys
from typing import TextIO

_CODES = {"bold": "1", "dim": "2", "green": "32", "yellow": "33", "red": "31"}


def _styled(style: str, text: str, stream: TextIO | None = None) -> str:
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR") or not getattr(stream, "isatty", bool)():
        return text
    return f"\033[{_CODES[style]}m{text}\033[0m"


def dim(text: str) -> str:
    return _styled("dim", text)


def yellow(text: str) -> str:
    return _styled("yellow", text)


def header(title: str) -> None:
    print()
    print(_styled("bold", title))


def kv(key: str, value: object) -> None:
    print(f"  {dim(f'{key}:')}  {value}")


def success(msg: str) -> None:
    print(f"  {_styled('green', '✓')} {msg}")


def warn(msg: str) -> None:
    print(f"  {yellow('!')} {msg}")


def error(msg: str) -> None:
    print(f"  {_styled('red', '✗', sys.stderr)} {msg}", file=sys.stderr)


def count(n: int) -> str:
    """``12345`` -> ``"12,345"``."""
    return f"{n:,}"
