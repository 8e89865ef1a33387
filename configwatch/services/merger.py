"""Parse raw documents and merge them into a snapshot by profile precedence.

Documents are applied profile by profile in :class:`MergePlan` order. Within
a profile they are applied in the order given (the refresh controller passes
them source by source, each source's documents sorted by name). A key set by a
later document replaces the earlier value; keys it does not mention keep theirs.
Lists are replaced as a whole: a document that defines ``hosts[0]`` drops every
earlier ``hosts[i]``, and one that writes ``hosts: []`` clears the list.

A profile other than ``default`` may not change the basic type of a key the
default profile defines, including turning a scalar into a mapping or back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from configwatch.domain.errors import ConflictError
from configwatch.domain.models import (
    DEFAULT_PROFILE,
    ConfigSnapshot,
    ConfigValue,
    MergePlan,
    RawDocument,
    ValueType,
)
from configwatch.domain.models.values import EMPTY_LIST, ancestors, is_under, join_key, split_key
from configwatch.infrastructure.observability import get_logger
from configwatch.infrastructure.parsers import parse_document

logger = get_logger(__name__)


def _list_roots(keys: Iterable[str]) -> set[str]:
    """Return the paths that hold list items among ``keys``."""
    roots: set[str] = set()
    for key in keys:
        current = ""
        for segment in split_key(key):
            if isinstance(segment, int) and current:
                roots.add(current)
            current = join_key(current, segment)
    return roots


class _DefaultShape:
    """Types and structure the default profile established."""

    def __init__(self) -> None:
        self.types: dict[str, ValueType] = {}
        self.branches: set[str] = set()

    def record(self, key: str, value: ConfigValue) -> None:
        self.types[key] = value.type
        self.branches.update(ancestors(key))

    def check(self, key: str, value: ConfigValue, profile: str) -> None:
        expected = self.types.get(key)
        if expected is not None and expected is not value.type:
            raise ConflictError(key, expected.value, value.type.value, profile)
        if expected is None and key in self.branches:
            raise ConflictError(key, ValueType.MAPPING.value, value.type.value, profile)
        self._check_ancestors(key, profile)

    def check_cleared(self, key: str, profile: str) -> None:
        expected = self.types.get(key)
        if expected is not None:
            raise ConflictError(key, expected.value, "list", profile)
        self._check_ancestors(key, profile)

    def _check_ancestors(self, key: str, profile: str) -> None:
        for ancestor in ancestors(key):
            ancestor_type = self.types.get(ancestor)
            if ancestor_type is not None:
                raise ConflictError(ancestor, ancestor_type.value, ValueType.MAPPING.value, profile)


def _order_documents(documents: Iterable[RawDocument], plan: MergePlan) -> list[RawDocument]:
    if isinstance(documents, (set, frozenset)):
        documents = sorted(documents, key=lambda doc: doc.name)
    ranked: list[tuple[int, int, RawDocument]] = []
    for position, document in enumerate(documents):
        rank = plan.rank(document.profile)
        if rank is None:
            logger.debug(
                "Ignoring %s: profile '%s' is not active", document.label, document.profile
            )
            continue
        ranked.append((rank, position, document))
    ranked.sort(key=lambda item: (item[0], item[1]))
    return [document for _, _, document in ranked]


def merge(
    documents: Iterable[RawDocument],
    plan: MergePlan,
    version: int = 1,
    *,
    created_at: datetime | None = None,
) -> ConfigSnapshot:
    """Merge ``documents`` into a snapshot with the given version.

    Raises:
        ParseError: If any document is malformed.
        ConflictError: If a profile changes the type of a default key.
    """
    values: dict[str, ConfigValue] = {}
    origins: dict[str, str] = {}
    shape = _DefaultShape()

    for document in _order_documents(documents, plan):
        parsed = parse_document(document)
        cleared = {key for key, raw in parsed.items() if raw is EMPTY_LIST}
        tagged = {
            key: ConfigValue.of(raw) for key, raw in parsed.items() if raw is not EMPTY_LIST
        }
        is_default = document.profile == DEFAULT_PROFILE

        if not is_default:
            for key in cleared:
                shape.check_cleared(key, document.profile)
            for key, value in tagged.items():
                shape.check(key, value, document.profile)

        for root in _list_roots(tagged) | cleared:
            for existing in [k for k in values if k.startswith(root + "[")]:
                del values[existing]
                origins.pop(existing, None)

        for key in [*cleared, *tagged]:
            # Keep the flat view consistent when a key switches between leaf and branch
            for existing in [k for k in values if k == key or is_under(k, key)]:
                del values[existing]
                origins.pop(existing, None)
            for ancestor in ancestors(key):
                if values.pop(ancestor, None) is not None:
                    origins.pop(ancestor, None)

        for key, value in tagged.items():
            values[key] = value
            origins[key] = document.label
            if is_default:
                shape.record(key, value)

    kwargs = {"created_at": created_at} if created_at is not None else {}
    snapshot = ConfigSnapshot(
        values=values,
        version=version,
        profiles=plan.profiles,
        origins=origins,
        **kwargs,
    )
    logger.debug(
        "Merged %d keys for profiles %s into version %d",
        len(snapshot),
        ",".join(plan.profiles),
        version,
    )
    return snapshot


__all__ = ["merge"]
