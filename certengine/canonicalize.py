"""
Canonical JSON encodings.

Two encoders share one string serializer:

  canonicalize(obj)          RFC 8785 (JCS), keys sorted by code point,
                             no whitespace. Used for signed announcements.
  canonicalize_ordered(pairs) Fixed-order compact object. Used for the
                             certificate payload, whose key order is part
                             of the signed contract and must never change.

Both produce UTF-8 bytes so two equal inputs always hash identically.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable


def _serialize_string(s: str) -> str:
    """Serialize a string per ES2015 JSON.stringify rules.

    Mandatory escapes: \\, ", and control chars U+0000..U+001F.
    """
    buf: list[str] = ['"']
    for ch in s:
        cp = ord(ch)
        if ch == '\\':
            buf.append('\\\\')
        elif ch == '"':
            buf.append('\\"')
        elif ch == '\b':
            buf.append('\\b')
        elif ch == '\f':
            buf.append('\\f')
        elif ch == '\n':
            buf.append('\\n')
        elif ch == '\r':
            buf.append('\\r')
        elif ch == '\t':
            buf.append('\\t')
        elif cp < 0x20:
            buf.append(f'\\u{cp:04x}')
        else:
            buf.append(ch)
    buf.append('"')
    return ''.join(buf)


def _serialize(obj: Any) -> str:
    if obj is None:
        return 'null'
    if isinstance(obj, bool):
        return 'true' if obj else 'false'
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, float):
        # Payloads carry counts and timestamps as strings; a float here
        # would make the encoding depend on repr() details.
        raise TypeError("floats are not allowed in canonical payloads")
    if isinstance(obj, Enum):
        return _serialize(obj.value)
    if isinstance(obj, str):
        return _serialize_string(obj)
    if isinstance(obj, (datetime, date)):
        return _serialize_string(obj.isoformat())
    if isinstance(obj, (list, tuple)):
        return '[' + ','.join(_serialize(item) for item in obj) + ']'
    if isinstance(obj, dict):
        pairs = [
            f'{_serialize_string(k)}:{_serialize(obj[k])}'
            for k in sorted(obj.keys())
        ]
        return '{' + ','.join(pairs) + '}'
    if hasattr(obj, 'model_dump'):
        return _serialize(obj.model_dump(mode='json', by_alias=True))
    raise TypeError(f"Cannot canonicalize type {type(obj)}")


def canonicalize(obj: Any) -> bytes:
    """Return the JCS (RFC 8785) canonical bytes of a JSON-compatible object."""
    return _serialize(obj).encode('utf-8')


def canonicalize_json(obj: Any) -> str:
    """Return the JCS canonical string."""
    return _serialize(obj)


def canonicalize_ordered(pairs: Iterable[tuple[str, Any]]) -> bytes:
    """Encode ``pairs`` as a compact JSON object, keeping the given key order.

    Keys must be unique. Values go through the same serializer as
    :func:`canonicalize`, so nested objects are still key-sorted.
    """
    seen: set[str] = set()
    parts: list[str] = []
    for key, value in pairs:
        if key in seen:
            raise ValueError(f"duplicate key in ordered payload: {key!r}")
        seen.add(key)
        parts.append(f'{_serialize_string(key)}:{_serialize(value)}')
    return ('{' + ','.join(parts) + '}').encode('utf-8')
