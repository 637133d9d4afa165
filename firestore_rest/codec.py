"""Encode/decode Python values to/from the Firestore REST tagged value format."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from firestore_rest.errors import UnsupportedValueType
from firestore_rest.types import FieldSentinel, GeoPoint, ResourceReference, Timestamp

# Integers outside this range lose precision in JSON clients and go out as doubles
MAX_SAFE_INTEGER = 9007199254740991
MIN_SAFE_INTEGER = -MAX_SAFE_INTEGER

# doubleValue accepts these strings for the values JSON numbers can't carry
_NON_FINITE = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}

ReferenceFactory = Callable[[str], Any]


def _encode_double(v: float) -> dict:
    if math.isnan(v):
        return {"doubleValue": "NaN"}
    if math.isinf(v):
        return {"doubleValue": "Infinity" if v > 0 else "-Infinity"}
    return {"doubleValue": v}


def _encode_int(v: int) -> dict:
    if MIN_SAFE_INTEGER <= v <= MAX_SAFE_INTEGER:
        return {"integerValue": str(v)}
    try:
        return _encode_double(float(v))
    except OverflowError as e:
        raise UnsupportedValueType(f"Integer too large to encode: {v}") from e


def encode_value(v: Any) -> dict:
    """Convert one Python value to its tagged wire form."""
    if v is None:
        return {"nullValue": None}
    if isinstance(v, FieldSentinel):
        raise UnsupportedValueType(
            f"{type(v).__name__} is only allowed as a top-level field value in set(), update() or create()"
        )
    if isinstance(v, Timestamp):
        return {"timestampValue": v.to_rfc3339()}
    if isinstance(v, datetime):
        return {"timestampValue": Timestamp.from_datetime(v).to_rfc3339()}
    if isinstance(v, GeoPoint):
        return {"geoPointValue": {"latitude": v.latitude, "longitude": v.longitude}}
    if isinstance(v, ResourceReference):
        return {"referenceValue": v.resource_name}
    if isinstance(v, str):
        return {"stringValue": v}
    # bool before int: bool is an int subclass
    if isinstance(v, bool):
        return {"booleanValue": v}
    if isinstance(v, int):
        return _encode_int(v)
    if isinstance(v, float):
        return _encode_double(v)
    if isinstance(v, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(x) for x in v]}}
    if isinstance(v, Mapping):
        return {"mapValue": {"fields": encode_fields(v)}}
    raise UnsupportedValueType(f"Unsupported value type: {type(v).__name__}")


def encode_fields(data: Mapping[str, Any]) -> dict[str, dict]:
    """Encode every entry of a mapping, keeping key order."""
    fields: dict[str, dict] = {}
    for key, value in data.items():
        if not isinstance(key, str):
            raise UnsupportedValueType(f"Map keys must be strings, got {type(key).__name__}")
        fields[key] = encode_value(value)
    return fields


def decode_value(obj: Mapping[str, Any] | None, reference_factory: ReferenceFactory | None = None) -> Any:
    """
    Convert one tagged wire value back to Python.

    referenceValue decodes through reference_factory when given (the client
    passes one that builds DocumentReference objects), otherwise to the raw
    resource name. Unknown tags come back unchanged.
    """
    if not obj:
        return None
    if "nullValue" in obj:
        return None
    if "booleanValue" in obj:
        return obj["booleanValue"]
    if "integerValue" in obj:
        return int(obj["integerValue"])
    if "doubleValue" in obj:
        raw = obj["doubleValue"]
        if isinstance(raw, str):
            return _NON_FINITE[raw] if raw in _NON_FINITE else float(raw)
        return float(raw)
    if "stringValue" in obj:
        return obj["stringValue"]
    if "timestampValue" in obj:
        return Timestamp.from_rfc3339(obj["timestampValue"])
    if "arrayValue" in obj:
        values = (obj["arrayValue"] or {}).get("values") or []
        return [decode_value(x, reference_factory) for x in values]
    if "mapValue" in obj:
        return decode_fields((obj["mapValue"] or {}).get("fields"), reference_factory)
    if "geoPointValue" in obj:
        point = obj["geoPointValue"] or {}
        # Zero coordinates are omitted from the JSON
        return GeoPoint(point.get("latitude", 0.0), point.get("longitude", 0.0))
    if "referenceValue" in obj:
        name = obj["referenceValue"]
        return reference_factory(name) if reference_factory else name
    return obj


def decode_fields(
    fields: Mapping[str, Any] | None, reference_factory: ReferenceFactory | None = None
) -> dict[str, Any]:
    """Decode a document's (or map's) fields mapping."""
    if not fields:
        return {}
    return {k: decode_value(v, reference_factory) for k, v in fields.items()}
