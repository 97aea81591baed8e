"""Dot-path lookup over nested runtime data (``"student.full_name"``)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union


@dataclass(frozen=True)
class Found:
    """The path resolved; ``value`` may legitimately be None."""

    value: Any


@dataclass(frozen=True)
class Missing:
    """The path did not resolve; ``segment`` is the first key that failed."""

    path: str
    segment: str


Resolution = Union[Found, Missing]


def _is_sequence(node: object) -> bool:
    return isinstance(node, Sequence) and not isinstance(node, (str, bytes, bytearray))


def _step(node: object, key: str) -> Resolution:
    if isinstance(node, Mapping):
        if key in node:
            return Found(node[key])
        return Missing(path=key, segment=key)
    if _is_sequence(node) and key.isdigit():
        index = int(key)
        if index < len(node):  # type: ignore[arg-type]
            return Found(node[index])  # type: ignore[index]
    # scalars (and None) cannot be traversed
    return Missing(path=key, segment=key)


def resolve_path(data: object, path: str) -> Resolution:
    """Resolve ``path`` against ``data`` without raising.

    Mappings are traversed by key and lists/tuples by decimal index; any other
    node is a scalar and stops traversal.
    """

    if not isinstance(path, str) or not path.strip():
        return Missing(path=str(path), segment="")
    node: object = data
    for key in path.strip().split("."):
        result = _step(node, key)
        if isinstance(result, Missing):
            return Missing(path=path, segment=key)
        node = result.value
    return Found(node)


def get_value(data: object, path: str, default: Any = None) -> Any:
    result = resolve_path(data, path)
    return result.value if isinstance(result, Found) else default


__all__ = ["Found", "Missing", "Resolution", "resolve_path", "get_value"]
