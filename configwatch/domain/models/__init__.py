"""Domain models package.

This package contains the value objects shared by every layer of Configwatch.
"""

from .document import DEFAULT_PROFILE, DocumentFormat, RawDocument, classify_document
from .merge_plan import MergePlan
from .snapshot import ConfigSnapshot
from .source import ConfigSource, SourceKind
from .values import ConfigValue, ValueType

__all__ = [
    "ConfigSnapshot",
    "ConfigSource",
    "ConfigValue",
    "DEFAULT_PROFILE",
    "DocumentFormat",
    "MergePlan",
    "RawDocument",
    "SourceKind",
    "ValueType",
    "classify_document",
]
