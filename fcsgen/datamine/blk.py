"""Typed access to blkx trees.

A blkx file is the JSON rendering of the game's nested key/value format. The
rendering is loosely typed: numbers arrive as strings (sometimes with a comma
decimal separator), a key that repeats becomes a list while a key that appears
once stays a scalar or object. All of that tolerance is handled here so the
rest of the pipeline can ask for a typed value and get one.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeVar

from ..errors import ParseError, SchemaError

T = TypeVar("T")

_MISSING = object()

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off", ""}


def read(path: Path) -> dict[str, Any]:
    """Load a blkx file. Malformed syntax raises ParseError."""
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"Not UTF-8: {path}", detail=str(path)) from e
    try:
        tree = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed blkx at line {e.lineno} col {e.colno}: {path}", detail=str(path)) from e
    if not isinstance(tree, dict):
        raise ParseError(f"Top level of {path} is not an object", detail=str(path))
    return tree


def to_float(value: Any, *, where: str = "") -> float:
    if isinstance(value, bool):
        raise ParseError(f"Expected a number at {where!r}, got a boolean", detail=where)
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        try:
            result = float(text)
        except ValueError as e:
            raise ParseError(f"Expected a number at {where!r}, got {value!r}", detail=where) from e
    else:
        raise ParseError(f"Expected a number at {where!r}, got {type(value).__name__}", detail=where)
    if not math.isfinite(result):
        raise ParseError(f"Non-finite number at {where!r}", detail=where)
    return result


def to_int(value: Any, *, where: str = "") -> int:
    f = to_float(value, where=where)
    if not f.is_integer():
        raise ParseError(f"Expected an integer at {where!r}, got {value!r}", detail=where)
    return int(f)


def to_bool(value: Any, *, where: str = "") -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise ParseError(f"Expected a boolean at {where!r}, got {value!r}", detail=where)


def to_str(value: Any, *, where: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ParseError(f"Expected a string at {where!r}, got {type(value).__name__}", detail=where)


_COERCERS = {float: to_float, int: to_int, bool: to_bool, str: to_str}


def _walk(tree: Mapping[str, Any], path: str) -> Any:
    node: Any = tree
    for key in path.split("/"):
        if not isinstance(node, Mapping) or key not in node:
            return _MISSING
        node = node[key]
    return node


def lookup(
    tree: Mapping[str, Any],
    path: str,
    expected: type[T],
    default: T | None = None,
    *,
    required: bool = False,
) -> T | None:
    """Return the value at ``path`` coerced to ``expected``.

    Absent or null values give ``default`` unless ``required``, in which case
    SchemaError names the missing field.
    """
    value = _walk(tree, path)
    if value is _MISSING or value is None:
        if required:
            raise SchemaError(f"Missing required field {path!r}", detail=path)
        return default
    coerce = _COERCERS.get(expected)
    if coerce is None:
        if not isinstance(value, expected):
            raise ParseError(f"Expected {expected.__name__} at {path!r}", detail=path)
        return value
    return coerce(value, where=path)


def subtree(tree: Mapping[str, Any], path: str) -> dict[str, Any]:
    """Object at ``path``, or an empty dict when absent."""
    value = _walk(tree, path)
    if value is _MISSING or value is None:
        return {}
    if isinstance(value, list):
        # A repeated block; the first declaration wins.
        value = next((v for v in value if isinstance(v, Mapping)), {})
    if not isinstance(value, Mapping):
        raise ParseError(f"Expected an object at {path!r}", detail=path)
    return dict(value)


def list_arrays(tree: Mapping[str, Any], key: str) -> list[Any]:
    """Entries of a possibly-repeated key, in source order."""
    value = _walk(tree, key)
    if value is _MISSING or value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def pairs(value: Any, *, first: str, second: str, where: str = "") -> list[tuple[float, float]]:
    """Read ``[[a, b], ...]`` or ``[{first: a, second: b}, ...]`` as float pairs."""
    out: list[tuple[float, float]] = []
    for i, item in enumerate(list_arrays({"v": value}, "v")):
        at = f"{where}[{i}]"
        if isinstance(item, Mapping):
            a = lookup(item, first, float, required=True)
            b = lookup(item, second, float, required=True)
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            a = to_float(item[0], where=at)
            b = to_float(item[1], where=at)
        else:
            raise ParseError(f"Expected a pair at {at!r}", detail=at)
        out.append((a, b))
    return out
