"""Resolve user predicates and transforms from import references.

A reference is ``"package.module:attribute"`` or
``"path/to/file.py:attribute"``.  The attribute must be a callable with the
expected arity:

- predicate: ``(record) -> bool``
- transform: ``(record, index, raw_index) -> dict | list[dict] | None``,
  sync or async.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from collection_filter.errors import CompileError
from collection_filter.pipeline import Predicate, Transform, identity, match_all

logger = logging.getLogger(__name__)


def _import_module(module_ref: str, reference: str) -> Any:
    if module_ref.endswith(".py"):
        path = Path(module_ref).expanduser()
        if not path.is_file():
            raise CompileError(reference, f"file not found: {path}")
        spec = importlib.util.spec_from_file_location(
            f"collection_filter_plugin_{path.stem}", path
        )
        if spec is None or spec.loader is None:
            raise CompileError(reference, "cannot create module spec")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            raise CompileError(reference, repr(exc)) from exc
        return module

    try:
        return importlib.import_module(module_ref)
    except Exception as exc:
        raise CompileError(reference, repr(exc)) from exc


def load_callable(reference: str) -> Callable[..., Any]:
    """Import ``module:attribute`` and return the attribute."""
    module_ref, sep, attr_path = reference.rpartition(":")
    if not sep or not module_ref or not attr_path:
        raise CompileError(reference, "expected 'module:attribute'")

    target: Any = _import_module(module_ref, reference)
    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise CompileError(reference, f"no attribute {part!r}") from None

    if not callable(target):
        raise CompileError(reference, "not callable")
    return target


def _check_arity(func: Callable[..., Any], reference: str, *args: Any) -> None:
    try:
        inspect.signature(func).bind(*args)
    except (TypeError, ValueError) as exc:
        raise CompileError(reference, f"bad signature: {exc}") from exc


def compile_predicate(reference: str | Predicate | None) -> Predicate:
    if reference is None:
        return match_all
    if callable(reference):
        return reference
    predicate = load_callable(reference)
    _check_arity(predicate, reference, {})
    logger.info("Using predicate %s", reference)
    return predicate


def compile_transform(reference: str | Transform | None) -> Transform:
    if reference is None:
        return identity
    if callable(reference):
        return reference
    transform = load_callable(reference)
    _check_arity(transform, reference, {}, 0, 0)
    logger.info("Using transform %s", reference)
    return transform
