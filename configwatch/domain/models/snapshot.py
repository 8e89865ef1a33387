"""Immutable, versioned configuration snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from configwatch.domain.errors import TypeMismatchError

from .document import DEFAULT_PROFILE
from .values import (
    ConfigValue,
    ValueType,
    coerce,
    flatten,
    is_under,
    requested_name,
    split_key,
    unflatten,
)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConfigSnapshot:
    """A fully merged configuration state.

    Values are stored flat under dotted keys. A snapshot is never mutated once
    built; the store swaps whole snapshots, so a reader holding a reference
    keeps seeing consistent data.
    """

    values: Mapping[str, ConfigValue] = field(default_factory=lambda: _EMPTY)
    version: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    profiles: tuple[str, ...] = (DEFAULT_PROFILE,)
    origins: Mapping[str, str] = field(default_factory=lambda: _EMPTY)

    def __post_init__(self) -> None:
        if self.version < 0:
            raise ValueError("Snapshot version must not be negative")
        # Freeze caller supplied dicts so the snapshot cannot change underneath readers
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        if not isinstance(self.origins, MappingProxyType):
            object.__setattr__(self, "origins", MappingProxyType(dict(self.origins)))

    @classmethod
    def empty(cls) -> "ConfigSnapshot":
        """Return the version 0 snapshot served before the first install."""
        return cls()

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], *, version: int = 1, **kwargs: Any
    ) -> "ConfigSnapshot":
        """Build a snapshot from a nested mapping of plain Python values."""
        values = {key: ConfigValue.of(raw) for key, raw in flatten(data)}
        return cls(values=values, version=version, **kwargs)

    # -------------------- lookups --------------------
    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return key in self.values or any(is_under(k, key) for k in self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def keys(self) -> list[str]:
        return list(self.values)

    def value(self, key: str) -> ConfigValue | None:
        """Return the tagged leaf value for ``key`` or None."""
        return self.values.get(key)

    def origin(self, key: str) -> str | None:
        """Return the document that supplied the final value for ``key``."""
        return self.origins.get(key)

    def get(self, key: str, expected_type: Any = None, default: Any = None) -> Any:
        """Return the value for ``key`` coerced to ``expected_type``.

        Missing keys return ``default``. A key that names a subtree returns a
        nested dict (or list for indexed keys) when no scalar type is
        requested. Raises :class:`TypeMismatchError` when the value cannot be
        coerced.
        """
        leaf = self.values.get(key)
        if leaf is not None:
            if expected_type in (dict, list, ValueType.MAPPING):
                raise TypeMismatchError(key, requested_name(expected_type), leaf.type.value)
            return coerce(key, leaf, expected_type)

        nested = self._subtree(key)
        if nested is None:
            return default
        if expected_type is None:
            return nested
        if expected_type in (dict, ValueType.MAPPING):
            if not isinstance(nested, dict):
                raise TypeMismatchError(key, requested_name(expected_type), "list")
            return nested
        if expected_type is list:
            if not isinstance(nested, list):
                raise TypeMismatchError(key, "list", ValueType.MAPPING.value)
            return nested
        raise TypeMismatchError(key, requested_name(expected_type), ValueType.MAPPING.value)

    def as_dict(self) -> dict[str, Any]:
        """Return the whole snapshot as nested plain Python structures."""
        nested = self._subtree("")
        return nested if isinstance(nested, dict) else {}

    def as_flat(self) -> dict[str, Any]:
        """Return ``{dotted_key: raw_value}`` for every leaf."""
        return {key: value.raw for key, value in self.values.items()}

    def _subtree(self, prefix: str) -> Any:
        depth = len(split_key(prefix)) if prefix else 0
        items = [
            (split_key(key)[depth:], value.raw)
            for key, value in self.values.items()
            if is_under(key, prefix)
        ]
        if not items:
            return None
        return unflatten(items)


__all__ = ["ConfigSnapshot"]
