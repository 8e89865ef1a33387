"""Parsers for configuration documents.

:func:`parse_document` turns a :class:`RawDocument` of any supported format
into a flat ``{dotted_key: scalar}`` mapping ready to be merged.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from configwatch.domain.errors import ParseError
from configwatch.domain.models.document import DocumentFormat, RawDocument
from configwatch.domain.models.values import EMPTY_LIST, Scalar, ancestors, flatten

from .properties import infer_scalar, parse_properties
from .structured import parse_json, parse_yaml


def _normalize_leaf(value: Any) -> Any:
    if value is EMPTY_LIST or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _reject_leaf_branches(flat: dict[str, Any], label: str) -> None:
    for key in flat:
        for ancestor in ancestors(key):
            if ancestor in flat:
                raise ParseError(
                    f"'{ancestor}' is set as a value and also has the child key '{key}'",
                    document=label,
                )


def parse_document(document: RawDocument) -> dict[str, Scalar]:
    """Parse ``document`` into flat key/value pairs.

    A list written as ``[]`` comes back as :data:`EMPTY_LIST` under its key,
    so merging can clear a list defined by an earlier profile.

    Raises:
        ParseError: When the content is not valid UTF-8, not valid for its
            format, or sets a key both to a value and to a nested mapping.
    """
    try:
        text = document.text()
    except UnicodeDecodeError as exc:
        raise ParseError(f"not valid UTF-8 ({exc.reason})", document=document.label) from exc

    if document.format is DocumentFormat.PROPERTIES:
        flat = parse_properties(text, document=document.label)
    else:
        if document.format is DocumentFormat.YAML:
            nested = parse_yaml(text, document=document.label)
        elif document.format is DocumentFormat.JSON:
            nested = parse_json(text, document=document.label)
        else:  # pragma: no cover - enum is exhaustive
            raise ParseError(f"unsupported format {document.format}", document=document.label)
        flat = {
            key: _normalize_leaf(value) for key, value in flatten(nested, empty_lists=True)
        }
    _reject_leaf_branches(flat, document.label)
    return flat


__all__ = [
    "infer_scalar",
    "parse_document",
    "parse_json",
    "parse_properties",
    "parse_yaml",
]
