"""Source adapter contract and the adapter registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from configwatch.domain.errors import FetchError
from configwatch.domain.models import ConfigSource, MergePlan, RawDocument, SourceKind


class SourceAdapter(ABC):
    """Fetches raw documents from one kind of backend.

    Implementations must bound every fetch by ``source.timeout_seconds`` and
    raise :class:`FetchError` (or :class:`AuthError`) on failure. A missing
    profile is an empty result, not an error.
    """

    kind: SourceKind

    @abstractmethod
    def fetch(
        self, source: ConfigSource, plan: MergePlan | None = None
    ) -> frozenset[RawDocument]:
        """Return the documents currently published by ``source``.

        When ``plan`` is given, adapters may skip documents for profiles that
        are not part of it.
        """

    @staticmethod
    def wanted(profile: str, plan: MergePlan | None) -> bool:
        return plan is None or profile in plan


class AdapterRegistry:
    """Maps each :class:`SourceKind` to the adapter that serves it."""

    def __init__(self, adapters: Iterable[SourceAdapter] = ()) -> None:
        self._adapters: dict[SourceKind, SourceAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: SourceAdapter) -> None:
        self._adapters[adapter.kind] = adapter

    def get(self, kind: SourceKind) -> SourceAdapter:
        try:
            return self._adapters[kind]
        except KeyError:
            raise FetchError(f"No adapter registered for source kind '{kind.value}'") from None

    def fetch(
        self, source: ConfigSource, plan: MergePlan | None = None
    ) -> frozenset[RawDocument]:
        """Dispatch ``source`` to its adapter."""
        return self.get(source.kind).fetch(source, plan)


__all__ = ["AdapterRegistry", "SourceAdapter"]
