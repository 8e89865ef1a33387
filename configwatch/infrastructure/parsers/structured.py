"""Parsers for structured (YAML and JSON) documents."""

from __future__ import annotations

import json
from typing import Any

import yaml

from configwatch.domain.errors import ParseError


def _require_mapping(data: Any, document: str | None) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(
            f"top-level value must be a mapping, got {type(data).__name__}",
            document=document,
        )
    return data


def parse_yaml(text: str, *, document: str | None = None) -> dict[str, Any]:
    """Parse a single YAML document with ``yaml.safe_load``.

    An empty document is an empty mapping.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f"line {mark.line + 1}: " if mark is not None else ""
        problem = getattr(exc, "problem", None) or str(exc)
        raise ParseError(f"{where}{problem}", document=document) from exc
    return _require_mapping(data, document)


def parse_json(text: str, *, document: str | None = None) -> dict[str, Any]:
    """Parse a JSON object; blank input is an empty mapping."""
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"line {exc.lineno}: {exc.msg}", document=document) from exc
    return _require_mapping(data, document)


__all__ = ["parse_json", "parse_yaml"]
