"""
Firestore REST value codec.

The REST API wraps every value in a typed object (``{"stringValue": "x"}``,
``{"integerValue": "3"}``, ``{"mapValue": {"fields": {...}}}`` ...). This
module converts between those and plain Python values:

    None      <-> nullValue
    bool      <-> booleanValue
    int       <-> integerValue (transmitted as a decimal string)
    float     <-> doubleValue
    str       <-> stringValue
    datetime  <-> timestampValue (RFC 3339, UTC)
    bytes     <-> bytesValue (base64)
    list      <-> arrayValue
    dict      <-> mapValue
"""

import base64
import math
import re
from datetime import datetime, timezone
from typing import Any

from .enums import StoreErrorCode
from .exceptions import RemoteUnavailableError, ValidationError


_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})$"
)


def encode_value(value: Any) -> dict:
    """
    Encode a Python value as a Firestore typed value.

    Raises:
        ValidationError: If the value has no Firestore representation
    """
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is a subclass of int
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        if math.isnan(value):
            return {"doubleValue": "NaN"}
        if math.isinf(value):
            return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": format_timestamp(value)}
    if isinstance(value, (bytes, bytearray)):
        return {"bytesValue": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}

    raise ValidationError(
        code=StoreErrorCode.INVALID_ARGUMENT.value,
        message=f"Cannot store value of type {type(value).__name__}",
        details={"type": type(value).__name__},
    )


def encode_fields(data: dict) -> dict:
    """Encode a mapping as a Firestore ``fields`` object."""
    return {str(key): encode_value(value) for key, value in data.items()}


def decode_value(value: dict) -> Any:
    """
    Decode a Firestore typed value into a Python value.

    Raises:
        RemoteUnavailableError: If the value object is not understood
    """
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "referenceValue" in value:
        return value["referenceValue"]
    if "geoPointValue" in value:
        point = value["geoPointValue"]
        return {
            "latitude": point.get("latitude", 0.0),
            "longitude": point.get("longitude", 0.0),
        }
    if "arrayValue" in value:
        return [decode_value(item) for item in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))

    raise RemoteUnavailableError(
        code=StoreErrorCode.PARSE_ERROR.value,
        message="Unknown Firestore value type",
        details={"keys": sorted(value.keys())},
    )


def decode_fields(fields: dict) -> dict:
    """Decode a Firestore ``fields`` object into a plain mapping."""
    return {key: decode_value(value) for key, value in fields.items()}


def document_id(name: str) -> str:
    """Last path segment of a full document resource name."""
    return name.rsplit("/", 1)[-1]


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 UTC; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """
    Parse an RFC 3339 timestamp as returned by Firestore.

    Firestore reports up to nanosecond precision; digits beyond
    microseconds are dropped.
    """
    match = _TIMESTAMP_PATTERN.match(text)
    if not match:
        raise RemoteUnavailableError(
            code=StoreErrorCode.PARSE_ERROR.value,
            message=f"Invalid timestamp: {text}",
            details={"timestamp": text},
        )

    fraction = (match.group("fraction") or "0")[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset == "Z":
        offset = "+00:00"

    return datetime.fromisoformat(f"{match.group('base')}.{fraction}{offset}")
