"""Safe navigation helpers for loosely-typed resource configuration trees.

ARM property payloads are arbitrary JSON. Checkers read them through
``get_path`` instead of indexing and casting by hand, so a missing or
differently-shaped branch yields a default rather than an exception.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MISSING = object()


def _step(node: Any, key: str) -> Any:
    if isinstance(node, Mapping):
        if key in node:
            return node[key]
        lowered = key.lower()
        for candidate, value in node.items():
            if isinstance(candidate, str) and candidate.lower() == lowered:
                return value
        return _MISSING
    if isinstance(node, (list, tuple)) and key.lstrip("-").isdigit():
        index = int(key)
        if -len(node) <= index < len(node):
            return node[index]
    return _MISSING


def get_path(value: Any, path: str, default: Any = None) -> Any:
    """Return the value at a dotted path, or ``default`` when any segment is absent.

    Mapping keys match exactly first and then case-insensitively; numeric
    segments index into lists.

    >>> get_path({"a": {"b": [{"c": 1}]}}, "a.b.0.c")
    1
    """
    node = value
    for key in path.split("."):
        if not key:
            continue
        node = _step(node, key)
        if node is _MISSING or node is None:
            return default
    return node


def as_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "enabled", "yes", "1"}:
            return True
        if lowered in {"false", "disabled", "no", "0"}:
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def tls_version(value: Any) -> tuple[int, ...] | None:
    """Parse TLS version strings such as ``"1.2"``, ``"TLS1_2"`` or ``"Tls12"``."""
    if value is None:
        return None
    text = str(value).strip().upper().replace("TLS", "").replace("_", ".").lstrip(".")
    if text.isdigit() and len(text) == 2:
        text = f"{text[0]}.{text[1]}"
    parts = text.split(".")
    if not all(p.isdigit() for p in parts if p) or not any(parts):
        return None
    return tuple(int(p) for p in parts if p)


def tls_at_least(value: Any, minimum: str = "1.2") -> bool:
    parsed = tls_version(value)
    required = tls_version(minimum)
    if parsed is None or required is None:
        return False
    return parsed >= required
