"""Conversion between plain Python values and Firestore REST typed values.

The Firestore REST API wraps every field value in a single-key object whose key
names the value type::

    None            {"nullValue": None}
    bool            {"booleanValue": True}
    int             {"integerValue": "42"}        (decimal string, signed 64-bit)
    float           {"doubleValue": 4.2}          ("NaN", "Infinity", "-Infinity" as strings)
    str             {"stringValue": "abc"}
    datetime        {"timestampValue": "2025-01-10T14:30:00.000000Z"}
    list / tuple    {"arrayValue": {"values": [...]}}
    dict            {"mapValue": {"fields": {...}}}

Integers and floats are never interchangeable: ``5`` encodes as an
``integerValue`` and ``5.0`` as a ``doubleValue``.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from staccato.persistence.errors import FormatError

logger = logging.getLogger(__name__)

# Values a generic document may hold.
FirestoreValue = Union[
    None, bool, int, float, str, datetime, list["FirestoreValue"], dict[str, "FirestoreValue"]
]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_TIMESTAMP_RE = re.compile(
    r"^(?P<main>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})$"
)


# ------------------------------------------------------------------
# Python -> wire
# ------------------------------------------------------------------


def to_firestore_value(value: Any) -> dict[str, Any]:
    """Wrap a Python value in its Firestore typed-value object."""
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return {"nullValue": None}
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"Integer {value} does not fit in a signed 64-bit integerValue")
        return {"integerValue": str(value)}
    if isinstance(value, float):
        if not math.isfinite(value):
            # JSON has no NaN or Infinity literals
            if math.isnan(value):
                return {"doubleValue": "NaN"}
            return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": format_timestamp(value)}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [to_firestore_value(v) for v in value]}}
    if isinstance(value, Mapping):
        return {
            "mapValue": {
                "fields": {str(k): to_firestore_value(v) for k, v in value.items()}
            }
        }

    logger.warning(
        "Unsupported Firestore value type %s, storing its string form",
        type(value).__name__,
    )
    return {"stringValue": str(value)}


def to_firestore_document(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a generic document into the REST ``{"fields": ...}`` body."""
    return {"fields": {key: to_firestore_value(value) for key, value in data.items()}}


def format_timestamp(value: datetime) -> str:
    """RFC 3339 UTC timestamp. Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


# ------------------------------------------------------------------
# Wire -> Python
# ------------------------------------------------------------------


def from_firestore_value(wrapped: Any) -> Any:
    """Unwrap a Firestore typed-value object.

    Wrappers with an unrecognised key are returned unchanged.
    """
    if not isinstance(wrapped, Mapping):
        raise FormatError(f"Firestore value must be an object, got {type(wrapped).__name__}")

    if "nullValue" in wrapped:
        return None
    if "booleanValue" in wrapped:
        return bool(wrapped["booleanValue"])
    if "integerValue" in wrapped:
        try:
            return int(wrapped["integerValue"])
        except (TypeError, ValueError) as exc:
            raise FormatError(f"Invalid integerValue: {wrapped['integerValue']!r}") from exc
    if "doubleValue" in wrapped:
        try:
            return float(wrapped["doubleValue"])
        except (TypeError, ValueError) as exc:
            raise FormatError(f"Invalid doubleValue: {wrapped['doubleValue']!r}") from exc
    if "stringValue" in wrapped:
        return wrapped["stringValue"]
    if "timestampValue" in wrapped:
        return parse_timestamp(wrapped["timestampValue"])
    if "arrayValue" in wrapped:
        values = (wrapped["arrayValue"] or {}).get("values") or []
        return [from_firestore_value(v) for v in values]
    if "mapValue" in wrapped:
        fields = (wrapped["mapValue"] or {}).get("fields") or {}
        return {key: from_firestore_value(v) for key, v in fields.items()}

    return wrapped


def from_firestore_document(wire_doc: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a REST document into a generic document.

    The trailing segment of ``name`` becomes the ``id`` key.
    """
    if not isinstance(wire_doc, Mapping):
        raise FormatError(f"Firestore document must be an object, got {type(wire_doc).__name__}")

    result: dict[str, Any] = {}

    name = wire_doc.get("name")
    if name:
        result["id"] = str(name).rsplit("/", 1)[-1]

    fields = wire_doc.get("fields") or {}
    if not isinstance(fields, Mapping):
        raise FormatError("Firestore document 'fields' must be an object")
    for key, value in fields.items():
        result[key] = from_firestore_value(value)

    return result


def parse_timestamp(raw: Any) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Fractional seconds beyond microsecond precision are truncated.
    """
    match = _TIMESTAMP_RE.match(raw) if isinstance(raw, str) else None
    if match is None:
        raise FormatError(f"Invalid timestampValue: {raw!r}")

    frac = (match.group("frac") or "")[:6].ljust(6, "0")
    tz = match.group("tz")
    if tz == "Z":
        tz = "+00:00"
    return datetime.fromisoformat(f"{match.group('main')}.{frac}{tz}")
