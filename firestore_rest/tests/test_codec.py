"""Tests for the value codec."""

from __future__ import annotations

import math
from datetime import UTC, datetime

import pytest

from firestore_rest.codec import (
    MAX_SAFE_INTEGER,
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
)
from firestore_rest.errors import UnsupportedValueType
from firestore_rest.types import DELETE_FIELD, SERVER_TIMESTAMP, FieldValue, GeoPoint, Timestamp


class TestEncodeScalars:
    def test_none(self):
        assert encode_value(None) == {"nullValue": None}

    def test_bool_is_not_an_integer(self):
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(False) == {"booleanValue": False}

    def test_string(self):
        assert encode_value("hello") == {"stringValue": "hello"}
        assert encode_value("") == {"stringValue": ""}

    def test_integer_is_sent_as_string(self):
        assert encode_value(42) == {"integerValue": "42"}
        assert encode_value(-7) == {"integerValue": "-7"}

    def test_safe_integer_boundaries(self):
        assert encode_value(MAX_SAFE_INTEGER) == {"integerValue": "9007199254740991"}
        assert encode_value(-MAX_SAFE_INTEGER) == {"integerValue": "-9007199254740991"}

    def test_integer_beyond_safe_range_is_double(self):
        assert encode_value(9007199254740992) == {"doubleValue": 9007199254740992.0}
        assert encode_value(-9007199254740992) == {"doubleValue": -9007199254740992.0}

    def test_huge_integer_is_rejected(self):
        with pytest.raises(UnsupportedValueType):
            encode_value(10**400)

    def test_float_is_always_double(self):
        assert encode_value(1.5) == {"doubleValue": 1.5}
        assert encode_value(3.0) == {"doubleValue": 3.0}

    def test_non_finite_doubles(self):
        assert encode_value(math.nan) == {"doubleValue": "NaN"}
        assert encode_value(math.inf) == {"doubleValue": "Infinity"}
        assert encode_value(-math.inf) == {"doubleValue": "-Infinity"}

    def test_timestamp(self):
        ts = Timestamp(1714557600, 123456789)
        assert encode_value(ts) == {"timestampValue": "2024-05-01T10:00:00.123456789Z"}

    def test_datetime(self):
        dt = datetime(2024, 5, 1, 10, 0, 0, 250000, tzinfo=UTC)
        assert encode_value(dt) == {"timestampValue": "2024-05-01T10:00:00.250000000Z"}

    def test_geo_point(self):
        assert encode_value(GeoPoint(51.5, -0.12)) == {
            "geoPointValue": {"latitude": 51.5, "longitude": -0.12}
        }


class TestEncodeComposites:
    def test_array_keeps_order_and_duplicates(self):
        assert encode_value([1, "a", 1]) == {
            "arrayValue": {
                "values": [{"integerValue": "1"}, {"stringValue": "a"}, {"integerValue": "1"}]
            }
        }

    def test_tuple_encodes_as_array(self):
        assert encode_value((True,)) == {"arrayValue": {"values": [{"booleanValue": True}]}}

    def test_empty_array_and_map(self):
        assert encode_value([]) == {"arrayValue": {"values": []}}
        assert encode_value({}) == {"mapValue": {"fields": {}}}

    def test_nested_map(self):
        assert encode_value({"a": {"b": None}}) == {
            "mapValue": {"fields": {"a": {"mapValue": {"fields": {"b": {"nullValue": None}}}}}}
        }

    def test_map_keys_keep_insertion_order(self):
        encoded = encode_fields({"z": 1, "a": 2, "m": 3})
        assert list(encoded) == ["z", "a", "m"]

    def test_non_string_map_key_is_rejected(self):
        with pytest.raises(UnsupportedValueType):
            encode_value({1: "x"})


class TestEncodeRejects:
    @pytest.mark.parametrize(
        "sentinel",
        [SERVER_TIMESTAMP, DELETE_FIELD, FieldValue.increment(1), FieldValue.array_union(1)],
    )
    def test_sentinels_are_not_values(self, sentinel):
        with pytest.raises(UnsupportedValueType):
            encode_value(sentinel)

    def test_sentinel_nested_in_map(self):
        with pytest.raises(UnsupportedValueType):
            encode_value({"a": SERVER_TIMESTAMP})

    def test_unknown_type(self):
        with pytest.raises(UnsupportedValueType):
            encode_value(object())

    def test_set_is_not_an_array(self):
        with pytest.raises(UnsupportedValueType):
            encode_value({1, 2})

    def test_unsupported_value_type_is_a_type_error(self):
        with pytest.raises(TypeError):
            encode_value(b"bytes")


class TestDecode:
    def test_falsy_decodes_to_none(self):
        assert decode_value(None) is None
        assert decode_value({}) is None

    def test_null(self):
        assert decode_value({"nullValue": None}) is None

    def test_integer_from_string(self):
        value = decode_value({"integerValue": "42"})
        assert value == 42
        assert isinstance(value, int)

    def test_double_from_number_and_string(self):
        assert decode_value({"doubleValue": 2.5}) == 2.5
        assert decode_value({"doubleValue": "2.5"}) == 2.5
        assert isinstance(decode_value({"doubleValue": 3}), float)

    def test_non_finite_doubles(self):
        assert math.isnan(decode_value({"doubleValue": "NaN"}))
        assert decode_value({"doubleValue": "Infinity"}) == math.inf
        assert decode_value({"doubleValue": "-Infinity"}) == -math.inf

    def test_timestamp(self):
        value = decode_value({"timestampValue": "2024-05-01T10:00:00.5Z"})
        assert value == Timestamp(1714557600, 500_000_000)

    def test_geo_point_with_omitted_zero(self):
        assert decode_value({"geoPointValue": {"latitude": 10.0}}) == GeoPoint(10.0, 0.0)

    def test_empty_array_and_map(self):
        assert decode_value({"arrayValue": {}}) == []
        assert decode_value({"mapValue": {}}) == {}

    def test_reference_without_factory_is_the_name(self):
        name = "projects/p/databases/(default)/documents/users/alice"
        assert decode_value({"referenceValue": name}) == name

    def test_reference_with_factory(self):
        decoded = decode_value({"referenceValue": "n"}, reference_factory=lambda name: ("ref", name))
        assert decoded == ("ref", "n")

    def test_reference_factory_reaches_nested_values(self):
        wire = {"arrayValue": {"values": [{"mapValue": {"fields": {"r": {"referenceValue": "n"}}}}]}}
        assert decode_value(wire, reference_factory=str.upper) == [{"r": "N"}]

    def test_unknown_tag_is_returned_unchanged(self):
        assert decode_value({"bytesValue": "AAE="}) == {"bytesValue": "AAE="}

    def test_decode_fields_of_missing_mapping(self):
        assert decode_fields(None) == {}


class TestRoundTrip:
    @pytest.mark.parametrize(
        "value",
        [
            None,
            True,
            0,
            -15,
            MAX_SAFE_INTEGER,
            0.25,
            "text",
            [1, [2, "x"], {"k": False}],
            {"name": "Ada", "tags": ["a", "b"], "meta": {"age": 36, "score": 9.5}},
        ],
    )
    def test_decode_inverts_encode(self, value):
        assert decode_value(encode_value(value)) == value

    def test_integer_and_double_stay_distinct(self):
        assert isinstance(decode_value(encode_value(2)), int)
        assert isinstance(decode_value(encode_value(2.0)), float)

    def test_timestamp_round_trip_at_millisecond_granularity(self):
        now = Timestamp.now()
        assert decode_value(encode_value(now)).to_millis() == now.to_millis()

    def test_datetime_round_trips_to_timestamp(self):
        dt = datetime(2023, 12, 31, 23, 59, 59, 999000, tzinfo=UTC)
        decoded = decode_value(encode_value(dt))
        assert decoded.to_datetime() == dt

    def test_geo_point_round_trip(self):
        point = GeoPoint(-33.86, 151.21)
        assert decode_value(encode_value(point)) == point
