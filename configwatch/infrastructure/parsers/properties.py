"""Parser for ``.properties`` key-value documents.

Supports ``key=value``, ``key: value`` and ``key value`` separators, ``#`` and
``!`` comment lines, backslash line continuation and the usual escapes
(``\\t``, ``\\n``, ``\\uXXXX``...). Values are plain text in this format, so
literals are inferred: ``true``/``false`` become booleans and numeric literals
become numbers; everything else stays a string.
"""

from __future__ import annotations

import re
from typing import Iterator

from configwatch.domain.errors import ParseError
from configwatch.domain.models.values import Scalar

_INT_RE = re.compile(r"^[+-]?(0|[1-9]\d*)$")
_FLOAT_RE = re.compile(r"^[+-]?(0|[1-9]\d*)?(\.\d+)([eE][+-]?\d+)?$|^[+-]?(0|[1-9]\d*)[eE][+-]?\d+$")

_SEPARATORS = "=:"
_WHITESPACE = " \t\f"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def infer_scalar(text: str) -> Scalar:
    """Return the typed value for a properties literal.

    Numbers with leading zeros (``007``) stay strings so identifiers such as
    postal codes keep their text form.
    """
    stripped = text.strip()
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_RE.match(stripped):
        return int(stripped)
    if _FLOAT_RE.match(stripped):
        return float(stripped)
    return text


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, logical_line)`` with continuations joined."""
    buffer: list[str] = []
    start = 0
    for number, line in enumerate(text.splitlines(), start=1):
        if buffer:
            line = line.lstrip(_WHITESPACE)
        elif not line.strip() or line.lstrip(_WHITESPACE)[:1] in ("#", "!"):
            continue
        else:
            start = number

        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            buffer.append(line[:-1])
            continue
        buffer.append(line)
        yield start, "".join(buffer)
        buffer = []
    if buffer:
        yield start, "".join(buffer)


def _unescape(raw: str, line: int, document: str | None) -> str:
    out: list[str] = []
    i = 0
    while i < len(raw):
        char = raw[i]
        if char != "\\":
            out.append(char)
            i += 1
            continue
        i += 1
        if i >= len(raw):
            break
        char = raw[i]
        if char == "u":
            digits = raw[i + 1:i + 5]
            if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise ParseError(f"line {line}: malformed \\u escape", document=document)
            out.append(chr(int(digits, 16)))
            i += 5
            continue
        out.append(_ESCAPES.get(char, char))
        i += 1
    return "".join(out)


def _split_entry(line: str) -> tuple[str, str]:
    """Split a logical line into raw (still escaped) key and value."""
    line = line.lstrip(_WHITESPACE)
    length = len(line)
    i = 0
    while i < length:
        char = line[i]
        if char == "\\":
            i += 2
            continue
        if char in _SEPARATORS or char in _WHITESPACE:
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip(_WHITESPACE)
    if rest[:1] in (":", "="):
        rest = rest[1:].lstrip(_WHITESPACE)
    return key, rest


def parse_properties(text: str, *, document: str | None = None) -> dict[str, Scalar]:
    """Parse properties text into a flat ``{key: value}`` mapping.

    Raises:
        ParseError: On malformed escapes or entries without a key.
    """
    values: dict[str, Scalar] = {}
    for number, line in _logical_lines(text):
        raw_key, raw_value = _split_entry(line)
        key = _unescape(raw_key, number, document).strip()
        if not key:
            raise ParseError(f"line {number}: entry has no key", document=document)
        values[key] = infer_scalar(_unescape(raw_value, number, document))
    return values


__all__ = ["infer_scalar", "parse_properties"]
