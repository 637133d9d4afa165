"""
firestore_rest: Shared Types

Value objects that callers put into documents (Timestamp, GeoPoint), address
fields with (FieldPath), or use to request server-side transforms
(FieldValue sentinels). These only validate and convert; the codec and the
write assembler give them meaning on the wire.
"""

from __future__ import annotations

import calendar
import math
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from firestore_rest.errors import ValidationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# 2024-01-31T12:00:00.123456789Z or with a numeric offset
_RFC3339_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9})\d*)?"
    r"([Zz]|[+-]\d{2}:\d{2})$"
)

_SIMPLE_FIELD_SEGMENT = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*$")


# ---------------------------------------------------------------------------
# Timestamp
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class Timestamp:
    """A point in time with nanosecond precision, seconds since the epoch."""

    seconds: int
    nanoseconds: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.nanoseconds < NANOS_PER_SECOND:
            raise ValidationError(f"Timestamp nanoseconds out of range: {self.nanoseconds}")

    @classmethod
    def now(cls) -> Timestamp:
        return cls.from_nanos(time.time_ns())

    @classmethod
    def from_nanos(cls, nanos: int) -> Timestamp:
        seconds, remainder = divmod(nanos, NANOS_PER_SECOND)
        return cls(seconds, remainder)

    @classmethod
    def from_millis(cls, milliseconds: int | float) -> Timestamp:
        seconds = math.floor(milliseconds / 1000)
        nanos = round((milliseconds - seconds * 1000) * NANOS_PER_MILLI)
        if nanos >= NANOS_PER_SECOND:
            seconds, nanos = seconds + 1, nanos - NANOS_PER_SECOND
        return cls(int(seconds), int(nanos))

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        """Naive datetimes are taken to be UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        seconds = calendar.timegm(value.utctimetuple())
        return cls(seconds, value.microsecond * 1000)

    @classmethod
    def from_rfc3339(cls, text: str) -> Timestamp:
        """
        Parse the wire form of a timestamp.

        Fractional seconds keep up to nine digits; anything beyond is dropped.
        """
        match = _RFC3339_PATTERN.match(text)
        if not match:
            raise ValidationError(f"Invalid timestamp: {text!r}")
        year, month, day, hour, minute, second, fraction, offset = match.groups()
        seconds = calendar.timegm(
            (int(year), int(month), int(day), int(hour), int(minute), int(second), 0, 0, 0)
        )
        if offset not in ("Z", "z"):
            sign = 1 if offset[0] == "+" else -1
            seconds -= sign * (int(offset[1:3]) * 3600 + int(offset[4:6]) * 60)
        nanos = int(fraction.ljust(9, "0")) if fraction else 0
        return cls(seconds, nanos)

    def to_datetime(self) -> datetime:
        """Aware UTC datetime; sub-microsecond precision is truncated."""
        return _EPOCH + timedelta(seconds=self.seconds, microseconds=self.nanoseconds // 1000)

    def to_millis(self) -> int:
        return self.seconds * 1000 + self.nanoseconds // NANOS_PER_MILLI

    def to_rfc3339(self) -> str:
        base = (_EPOCH + timedelta(seconds=self.seconds)).strftime("%Y-%m-%dT%H:%M:%S")
        return f"{base}.{self.nanoseconds:09d}Z"

    def is_equal(self, other: Timestamp) -> bool:
        return self == other

    def __repr__(self) -> str:
        return f"Timestamp(seconds={self.seconds}, nanoseconds={self.nanoseconds})"


# ---------------------------------------------------------------------------
# GeoPoint
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeoPoint:
    """Latitude/longitude pair, range-checked at construction."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name, value in (("Latitude", self.latitude), ("Longitude", self.longitude)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
        if not -90 <= self.latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90")
        if not -180 <= self.longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180")

    def is_equal(self, other: GeoPoint) -> bool:
        return self == other


# ---------------------------------------------------------------------------
# FieldPath
# ---------------------------------------------------------------------------


class FieldPath:
    """
    A field address made of explicit segments.

    Unlike a plain string (which is sent verbatim, so "a.b" addresses the
    nested field b inside a), each segment here is one literal field name and
    is back-quoted on the wire when it is not a simple identifier.
    """

    DOCUMENT_ID = "__name__"

    def __init__(self, *segments: str):
        if not segments:
            raise ValidationError("FieldPath needs at least one segment")
        for segment in segments:
            if not isinstance(segment, str) or not segment:
                raise ValidationError(f"Invalid FieldPath segment: {segment!r}")
        self.segments: tuple[str, ...] = tuple(segments)

    @classmethod
    def document_id(cls) -> FieldPath:
        return cls(cls.DOCUMENT_ID)

    def to_api_repr(self) -> str:
        parts = []
        for segment in self.segments:
            if segment == self.DOCUMENT_ID or _SIMPLE_FIELD_SEGMENT.match(segment):
                parts.append(segment)
            else:
                escaped = segment.replace("\\", "\\\\").replace("`", "\\`")
                parts.append(f"`{escaped}`")
        return ".".join(parts)

    def is_equal(self, other: FieldPath) -> bool:
        return self == other

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FieldPath) and self.segments == other.segments

    def __hash__(self) -> int:
        return hash(self.segments)

    def __repr__(self) -> str:
        return f"FieldPath{self.segments!r}"


def field_path_string(field_path: str | FieldPath) -> str:
    """Wire form of a field address given as a string or a FieldPath."""
    if isinstance(field_path, FieldPath):
        return field_path.to_api_repr()
    if not isinstance(field_path, str) or not field_path:
        raise ValidationError(f"Invalid field path: {field_path!r}")
    return field_path


# ---------------------------------------------------------------------------
# Field sentinels
# ---------------------------------------------------------------------------


class FieldSentinel:
    """
    Base class for write-time markers.

    Only the write assembler understands these. The codec rejects them, so a
    sentinel that ends up anywhere other than a top-level write field fails
    loudly instead of being stored as data.
    """

    __slots__ = ()


@dataclass(frozen=True)
class ServerTimestamp(FieldSentinel):
    """Set the field to the commit time on the server."""


@dataclass(frozen=True)
class DeleteField(FieldSentinel):
    """Remove the field (update and merge writes)."""


@dataclass(frozen=True)
class Increment(FieldSentinel):
    """Add operand to the field's current numeric value."""

    operand: int | float

    def __post_init__(self) -> None:
        if isinstance(self.operand, bool) or not isinstance(self.operand, (int, float)):
            raise ValidationError(f"increment() needs a number, got {type(self.operand).__name__}")


@dataclass(frozen=True)
class ArrayUnion(FieldSentinel):
    """Append each element not already present in the array field."""

    elements: tuple[Any, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ArrayRemove(FieldSentinel):
    """Remove every occurrence of each element from the array field."""

    elements: tuple[Any, ...] = field(default_factory=tuple)


SERVER_TIMESTAMP = ServerTimestamp()
DELETE_FIELD = DeleteField()


class FieldValue:
    """Factories for the write-time sentinels."""

    @staticmethod
    def server_timestamp() -> ServerTimestamp:
        return SERVER_TIMESTAMP

    @staticmethod
    def delete() -> DeleteField:
        return DELETE_FIELD

    @staticmethod
    def increment(operand: int | float) -> Increment:
        return Increment(operand)

    @staticmethod
    def array_union(*elements: Any) -> ArrayUnion:
        return ArrayUnion(tuple(elements))

    @staticmethod
    def array_remove(*elements: Any) -> ArrayRemove:
        return ArrayRemove(tuple(elements))


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------

AggregateType = Literal["count", "sum", "avg"]


@dataclass(frozen=True)
class AggregateField:
    """One aggregation requested from an aggregate query."""

    aggregate_type: AggregateType
    field_path: str | None = None

    @classmethod
    def count(cls) -> AggregateField:
        return cls("count")

    @classmethod
    def sum(cls, field_path: str | FieldPath) -> AggregateField:
        return cls("sum", field_path_string(field_path))

    @classmethod
    def average(cls, field_path: str | FieldPath) -> AggregateField:
        return cls("avg", field_path_string(field_path))


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class ResourceReference(ABC):
    """Anything that is stored as a referenceValue (document references)."""

    @property
    @abstractmethod
    def resource_name(self) -> str:
        """Fully qualified resource name: projects/{p}/databases/{d}/documents/..."""
