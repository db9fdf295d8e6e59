"""
Extended JSON - permissive filter and update expression parsing.

Operators type filters the way the mongo shell accepts them: unquoted keys,
single-quoted strings, trailing commas and constructors such as
``ISODate(...)`` or ``ObjectId(...)``. This module rewrites that text into
strict Extended JSON and decodes it with ``bson.json_util``.

Example:
    >>> shell_to_extjson("{a: 1, b: 'x',}")
    '{"a": 1,"b": "x"}'
    >>> shell_to_extjson('{ts: ISODate("2024-01-01T00:00:00Z")}')
    '{"ts": {"$date":"2024-01-01T00:00:00Z"}}'
"""

from __future__ import annotations

import bisect
import enum
import re
from typing import Any

from bson import json_util
from bson.errors import BSONError

from .types import ExpressionSyntaxError, MutableDocument

__all__ = ["shell_to_extjson", "parse_document"]


# Constructor name must sit outside any string literal for a match to count.
_CONSTRUCTORS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r'ISODate\(\s*"([^"]+)"\s*\)'), r'{"$date":"\1"}'),
    (re.compile(r'new\s+Date\(\s*"([^"]+)"\s*\)'), r'{"$date":"\1"}'),
    (re.compile(r'ObjectId\(\s*"([^"]+)"\s*\)'), r'{"$oid":"\1"}'),
    (re.compile(r'NumberLong\(\s*"?(-?\d+)"?\s*\)'), r'{"$numberLong":"\1"}'),
    (re.compile(r'NumberInt\(\s*"?(-?\d+)"?\s*\)'), r'{"$numberInt":"\1"}'),
    (re.compile(r'NumberDecimal\(\s*"([^"]+)"\s*\)'), r'{"$numberDecimal":"\1"}'),
    (
        re.compile(r"Timestamp\(\s*(\d+)\s*,\s*(\d+)\s*\)"),
        r'{"$timestamp":{"t":\1,"i":\2}}',
    ),
]

_UNQUOTED_KEY = re.compile(r"([{,])\s*(\$?[A-Za-z0-9_][\w.]*)\s*:")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class _ScanState(enum.Enum):
    OUTSIDE = "outside"
    IN_STRING = "in_string"
    ESCAPE = "escape"


def _single_to_double_quotes(text: str) -> str:
    """Rewrite single-quoted literals as double-quoted ones.

    Double-quoted runs are copied verbatim. Inside a single-quoted literal,
    ``\\'`` becomes ``'`` and a bare ``"`` becomes ``\\"``.
    """
    out: list[str] = []
    state = _ScanState.OUTSIDE
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if state is _ScanState.ESCAPE:
            out.append(ch)
            state = _ScanState.IN_STRING
        elif state is _ScanState.IN_STRING:
            out.append(ch)
            if ch == "\\":
                state = _ScanState.ESCAPE
            elif ch == '"':
                state = _ScanState.OUTSIDE
        elif ch == '"':
            out.append(ch)
            state = _ScanState.IN_STRING
        elif ch == "'":
            out.append('"')
            i += 1
            while i < n:
                c = text[i]
                if c == "\\" and i + 1 < n and text[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                if c == "\\" and i + 1 < n:
                    out.append(text[i : i + 2])
                    i += 2
                    continue
                if c == '"':
                    out.append('\\"')
                elif c == "'":
                    out.append('"')
                    break
                else:
                    out.append(c)
                i += 1
        else:
            out.append(ch)
        i += 1

    return "".join(out)


def _split_segments(text: str) -> list[tuple[str, bool]]:
    """Split text into ``(content, is_string)`` spans.

    String spans include their surrounding double quotes; an escaped quote
    never ends a span. An unterminated string runs to the end of the input.
    """
    segments: list[tuple[str, bool]] = []
    buf: list[str] = []
    state = _ScanState.OUTSIDE

    for ch in text:
        if state is _ScanState.OUTSIDE:
            if ch == '"':
                if buf:
                    segments.append(("".join(buf), False))
                    buf = []
                state = _ScanState.IN_STRING
            buf.append(ch)
        elif state is _ScanState.ESCAPE:
            buf.append(ch)
            state = _ScanState.IN_STRING
        else:
            buf.append(ch)
            if ch == "\\":
                state = _ScanState.ESCAPE
            elif ch == '"':
                segments.append(("".join(buf), True))
                buf = []
                state = _ScanState.OUTSIDE

    if buf:
        segments.append(("".join(buf), state is not _ScanState.OUTSIDE))
    return segments


def _string_spans(text: str) -> tuple[list[int], list[int]]:
    """Return parallel start/end offsets of every string span in ``text``."""
    starts: list[int] = []
    ends: list[int] = []
    pos = 0
    for content, is_string in _split_segments(text):
        if is_string:
            starts.append(pos)
            ends.append(pos + len(content))
        pos += len(content)
    return starts, ends


def _replace_constructors(text: str) -> str:
    for pattern, replacement in _CONSTRUCTORS:
        starts, ends = _string_spans(text)

        def substitute(match: re.Match[str], starts=starts, ends=ends) -> str:
            idx = bisect.bisect_right(starts, match.start()) - 1
            if idx >= 0 and match.start() < ends[idx]:
                return match.group(0)
            return match.expand(replacement)

        text = pattern.sub(substitute, text)
    return text


def _quote_keys_and_cleanup(segment: str) -> str:
    segment = _UNQUOTED_KEY.sub(r'\1"\2":', segment)
    return _TRAILING_COMMA.sub(r"\1", segment)


def shell_to_extjson(text: str) -> str:
    """
    Convert mongo shell style expression text into strict Extended JSON.

    Args:
        text: JSON, Extended JSON or shell syntax, e.g.
              ``{age: {$gt: NumberInt(30)}, name: 'bob',}``.

    Returns:
        The Extended JSON text. Input that is already strict JSON comes back
        unchanged, as do ``""`` and ``"{}"``.

    Note:
        Nothing inside a properly quoted string value is rewritten.
        Unbalanced braces are left for the parser to report.
    """
    text = text.strip()
    if text in ("", "{}"):
        return text

    text = _single_to_double_quotes(text)
    text = _replace_constructors(text)

    return "".join(
        content if is_string else _quote_keys_and_cleanup(content)
        for content, is_string in _split_segments(text)
    )


def parse_document(text: str) -> MutableDocument:
    """
    Parse a filter or update expression into a document.

    Args:
        text: JSON, Extended JSON or shell syntax.

    Returns:
        The decoded document with key order preserved. Empty input and
        ``{}`` give an empty document, which matches everything.

    Raises:
        ExpressionSyntaxError: If the text is not a valid document.
    """
    if text.strip() in ("", "{}"):
        return {}

    converted = shell_to_extjson(text)
    try:
        document: Any = json_util.loads(converted)
    except (ValueError, TypeError, BSONError) as e:
        raise _syntax_error(str(e), text, converted) from e

    if not isinstance(document, dict):
        raise _syntax_error(
            f"expected a document, got {type(document).__name__}", text, converted
        )
    return document


def _syntax_error(reason: str, original: str, converted: str) -> ExpressionSyntaxError:
    suggestion = None
    opened, closed = converted.count("{"), converted.count("}")
    if opened != closed:
        suggestion = (
            f"mismatched braces ('{{' x{opened} vs '}}' x{closed}), "
            "please check your input"
        )

    message = (
        f"invalid JSON/ExtJSON/Shell syntax: {reason}\n"
        f"  original:  {original}\n"
        f"  converted: {converted}"
    )
    if suggestion:
        message += f"\n  hint: {suggestion}"
    return ExpressionSyntaxError(message, original, converted, suggestion)
