"""Typed configuration values and key path helpers.

Configuration values form a tagged union of string, number, boolean and nested
mapping. Snapshots store only leaf values under dotted keys (``server.port``,
list items as ``hosts[0]``); mappings are rebuilt from a key prefix on demand.
Coercion to the type a consumer asks for happens at the ``get`` boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Union

from configwatch.domain.errors import TypeMismatchError

Scalar = Union[str, int, float, bool]

_SEGMENT_RE = re.compile(r"([^.\[\]]+)|\[(\d+)\]")

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


class ValueType(str, Enum):
    """Basic type of a configuration value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MAPPING = "mapping"

    @classmethod
    def of(cls, value: object) -> "ValueType":
        """Return the tag for a Python value."""
        # bool is a subclass of int and must be checked first
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, Mapping):
            return cls.MAPPING
        raise TypeError(f"Unsupported configuration value type: {type(value).__name__}")


@dataclass(frozen=True)
class ConfigValue:
    """A leaf configuration value with its type tag."""

    type: ValueType
    raw: Scalar

    @classmethod
    def of(cls, raw: Scalar) -> "ConfigValue":
        return cls(ValueType.of(raw), raw)

    def render(self) -> str:
        """Return the value as configuration text (booleans lower-case)."""
        if self.type is ValueType.BOOLEAN:
            return "true" if self.raw else "false"
        return str(self.raw)


# ---------------------------------------------------------------------------
# Key paths
# ---------------------------------------------------------------------------


def split_key(key: str) -> list[str | int]:
    """Split ``a.b[0].c`` into ``["a", "b", 0, "c"]``."""
    segments: list[str | int] = []
    for name, index in _SEGMENT_RE.findall(key):
        segments.append(int(index) if index else name)
    return segments


def join_key(prefix: str, segment: str | int) -> str:
    """Append a mapping key or list index to ``prefix``."""
    if isinstance(segment, int):
        return f"{prefix}[{segment}]"
    return f"{prefix}.{segment}" if prefix else str(segment)


def ancestors(key: str) -> list[str]:
    """Return the proper ancestor paths of ``key``, shortest first."""
    paths: list[str] = []
    current = ""
    for segment in split_key(key)[:-1]:
        current = join_key(current, segment)
        paths.append(current)
    return paths


def is_under(key: str, prefix: str) -> bool:
    """Return True when ``key`` is strictly nested below ``prefix``."""
    if not prefix:
        return True
    return key.startswith(prefix + ".") or key.startswith(prefix + "[")


class _EmptyList:
    """Leaf marker for a list written out as ``[]``."""

    def __repr__(self) -> str:
        return "EMPTY_LIST"


EMPTY_LIST = _EmptyList()


def flatten(
    data: Mapping[str, Any], prefix: str = "", *, empty_lists: bool = False
) -> Iterable[tuple[str, Any]]:
    """Yield ``(dotted_key, leaf)`` pairs for a nested mapping.

    Lists are flattened to indexed keys. ``None`` leaves are skipped so that
    an explicit null behaves as an absent key. With ``empty_lists`` an empty
    list yields :data:`EMPTY_LIST` under its own key instead of nothing.
    """
    for raw_key, value in data.items():
        key = join_key(prefix, str(raw_key))
        yield from _flatten_value(key, value, empty_lists)


def _flatten_value(key: str, value: Any, empty_lists: bool) -> Iterable[tuple[str, Any]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        yield from flatten(value, key, empty_lists=empty_lists)
    elif isinstance(value, (list, tuple)):
        if not value and empty_lists:
            yield key, EMPTY_LIST
        for index, item in enumerate(value):
            yield from _flatten_value(join_key(key, index), item, empty_lists)
    else:
        yield key, value


def unflatten(items: Iterable[tuple[list[str | int], Any]]) -> Any:
    """Rebuild nested dicts/lists from ``(segments, value)`` pairs."""
    root: dict[Any, Any] = {}
    for segments, value in items:
        if not segments:
            continue
        node = root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value
    return _listify(root)


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {key: _listify(value) for key, value in node.items()}
    if converted and all(isinstance(key, int) for key in converted):
        return [converted[index] for index in sorted(converted)]
    return converted


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

_TYPE_NAMES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "float",
    bool: "boolean",
    dict: "mapping",
    list: "list",
}


def requested_name(requested: Any) -> str:
    """Return a readable name for a requested type."""
    if isinstance(requested, ValueType):
        return requested.value
    return _TYPE_NAMES.get(requested, getattr(requested, "__name__", str(requested)))


def coerce(key: str, value: ConfigValue, requested: Any) -> Any:
    """Coerce a leaf value to ``requested``.

    ``requested`` is one of ``str``, ``int``, ``float``, ``bool`` or a
    :class:`ValueType`. Raises :class:`TypeMismatchError` when the value
    cannot be represented as the requested type.
    """
    if requested is None:
        return value.raw
    if requested is str or requested is ValueType.STRING:
        return value.render()
    if requested is bool or requested is ValueType.BOOLEAN:
        return _to_bool(key, value)
    if requested is int:
        return _to_int(key, value)
    if requested is float:
        return float(_to_number(key, value, requested))
    if requested is ValueType.NUMBER:
        return _to_number(key, value, requested)
    raise TypeMismatchError(key, requested_name(requested), value.type.value)


def _to_bool(key: str, value: ConfigValue) -> bool:
    if value.type is ValueType.BOOLEAN:
        return bool(value.raw)
    if value.type is ValueType.STRING:
        text = str(value.raw).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise TypeMismatchError(key, "boolean", value.type.value)


def _to_number(key: str, value: ConfigValue, requested: Any) -> int | float:
    if value.type is ValueType.NUMBER:
        return value.raw  # type: ignore[return-value]
    if value.type is ValueType.STRING:
        text = str(value.raw).strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            pass
    raise TypeMismatchError(key, requested_name(requested), value.type.value)


def _to_int(key: str, value: ConfigValue) -> int:
    number = _to_number(key, value, int)
    if isinstance(number, float):
        if not number.is_integer():
            raise TypeMismatchError(key, "integer", "non-integral number")
        return int(number)
    return number


__all__ = [
    "EMPTY_LIST",
    "ConfigValue",
    "Scalar",
    "ValueType",
    "ancestors",
    "coerce",
    "flatten",
    "is_under",
    "join_key",
    "requested_name",
    "split_key",
    "unflatten",
]
