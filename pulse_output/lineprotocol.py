"""Reader for InfluxDB line protocol, the agent's plain-text metric format."""

from __future__ import annotations

import math
import re
import time
from typing import Dict, Iterable, List, Optional, Tuple

from .records import FieldValue, Record

_ESCAPED = re.compile(r"\\([\\, =])")
_ESCAPED_STRING = re.compile(r'\\([\\"])')

_TRUE = {"t", "T", "true", "True", "TRUE"}
_FALSE = {"f", "F", "false", "False", "FALSE"}


class LineProtocolError(ValueError):
    """Raised for lines that are not valid line protocol."""


def parse_lines(lines: Iterable[str], default_time_ns: Optional[int] = None) -> List[Record]:
    """Parse every non-blank, non-comment line into a :class:`Record`."""

    now = default_time_ns if default_time_ns is not None else time.time_ns()
    records: List[Record] = []
    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            records.append(parse_line(line, default_time_ns=now))
        except LineProtocolError as exc:
            raise LineProtocolError(f"line {number}: {exc}") from exc
    return records


def parse_line(line: str, default_time_ns: Optional[int] = None) -> Record:
    # quotes only delimit strings in the field set
    key, rest = _partition(line.strip(), " ")
    sections = [section for section in _split(rest, " ", quotes=True) if section]
    if not sections:
        raise LineProtocolError("expected a measurement and at least one field")
    if len(sections) > 2:
        raise LineProtocolError("unexpected text after timestamp")

    name, tags = _parse_key(key)
    fields = _parse_fields(sections[0])
    if len(sections) == 2:
        try:
            timestamp = int(sections[1])
        except ValueError as exc:
            raise LineProtocolError(f"invalid timestamp {sections[1]!r}") from exc
    else:
        timestamp = default_time_ns if default_time_ns is not None else time.time_ns()
    return Record(name=name, tags=tags, fields=fields, timestamp=timestamp)


def _parse_key(text: str) -> Tuple[str, Dict[str, str]]:
    parts = _split(text, ",", quotes=False)
    name = _unescape(parts[0])
    if not name:
        raise LineProtocolError("missing measurement name")
    tags: Dict[str, str] = {}
    for pair in parts[1:]:
        key, value = _partition(pair)
        if not key or not value:
            raise LineProtocolError(f"invalid tag {pair!r}")
        tags[_unescape(key)] = _unescape(value)
    return name, tags


def _parse_fields(text: str) -> Dict[str, FieldValue]:
    fields: Dict[str, FieldValue] = {}
    for pair in _split(text, ",", quotes=True):
        key, value = _partition(pair)
        if not key or not value:
            raise LineProtocolError(f"invalid field {pair!r}")
        fields[_unescape(key)] = _parse_value(value)
    return fields


def _parse_value(text: str) -> FieldValue:
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return _ESCAPED_STRING.sub(r"\1", text[1:-1])
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    try:
        if text[-1] in "iu":
            return int(text[:-1])
        number = float(text)
    except ValueError as exc:
        raise LineProtocolError(f"invalid field value {text!r}") from exc
    if not math.isfinite(number):
        raise LineProtocolError(f"non-finite field value {text!r}")
    return number


def _split(text: str, sep: str, quotes: bool) -> List[str]:
    """Split on ``sep`` outside escapes and, when ``quotes``, outside string literals."""

    parts: List[str] = []
    buf: List[str] = []
    in_quotes = False
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            buf.append(text[i : i + 2])
            i += 2
            continue
        if quotes and char == '"':
            in_quotes = not in_quotes
        elif char == sep and not in_quotes:
            parts.append("".join(buf))
            buf = []
            i += 1
            continue
        buf.append(char)
        i += 1
    if in_quotes:
        raise LineProtocolError("unterminated string literal")
    parts.append("".join(buf))
    return parts


def _partition(pair: str, sep: str = "=") -> Tuple[str, str]:
    i = 0
    while i < len(pair):
        if pair[i] == "\\":
            i += 2
            continue
        if pair[i] == sep:
            return pair[:i], pair[i + 1 :]
        i += 1
    return pair, ""


def _unescape(value: str) -> str:
    return _ESCAPED.sub(r"\1", value)
