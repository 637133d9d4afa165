"""Tests for the value types: Timestamp, GeoPoint, FieldPath, sentinels, aggregations."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from firestore_rest.errors import ValidationError
from firestore_rest.types import (
    AggregateField,
    ArrayRemove,
    ArrayUnion,
    DeleteField,
    FieldPath,
    FieldValue,
    GeoPoint,
    Increment,
    ResourceReference,
    ServerTimestamp,
    Timestamp,
    field_path_string,
)


class TestTimestamp:
    def test_nanoseconds_must_be_in_range(self):
        with pytest.raises(ValidationError):
            Timestamp(0, 1_000_000_000)
        with pytest.raises(ValidationError):
            Timestamp(0, -1)

    def test_from_millis(self):
        assert Timestamp.from_millis(1500) == Timestamp(1, 500_000_000)

    def test_from_negative_millis(self):
        assert Timestamp.from_millis(-1) == Timestamp(-1, 999_000_000)

    def test_to_millis(self):
        assert Timestamp(2, 345_678_901).to_millis() == 2345

    def test_naive_datetime_is_utc(self):
        naive = datetime(2024, 1, 1, 0, 0, 0)
        aware = datetime(2024, 1, 1, 0, 0, 0, tzinfo=UTC)
        assert Timestamp.from_datetime(naive) == Timestamp.from_datetime(aware)

    def test_datetime_with_offset(self):
        plus_two = datetime(2024, 1, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert Timestamp.from_datetime(plus_two) == Timestamp(1704067200, 0)

    def test_to_datetime_is_aware_utc(self):
        dt = Timestamp(1704067200, 123_456_789).to_datetime()
        assert dt == datetime(2024, 1, 1, 0, 0, 0, 123456, tzinfo=UTC)

    def test_rfc3339_output_has_nine_fraction_digits(self):
        assert Timestamp(1704067200, 5).to_rfc3339() == "2024-01-01T00:00:00.000000005Z"

    def test_parse_rfc3339_without_fraction(self):
        assert Timestamp.from_rfc3339("2024-01-01T00:00:00Z") == Timestamp(1704067200, 0)

    def test_parse_rfc3339_with_offset(self):
        assert Timestamp.from_rfc3339("2024-01-01T01:30:00+01:30") == Timestamp(1704067200, 0)

    def test_parse_rfc3339_drops_digits_beyond_nanoseconds(self):
        assert Timestamp.from_rfc3339("2024-01-01T00:00:00.1234567891Z").nanoseconds == 123_456_789

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValidationError):
            Timestamp.from_rfc3339("yesterday")

    def test_ordering(self):
        assert Timestamp(1, 0) < Timestamp(1, 1) < Timestamp(2, 0)

    def test_is_equal(self):
        assert Timestamp(5, 6).is_equal(Timestamp(5, 6))
        assert not Timestamp(5, 6).is_equal(Timestamp(5, 7))


class TestGeoPoint:
    def test_valid_bounds(self):
        GeoPoint(90, 180)
        GeoPoint(-90, -180)

    def test_latitude_out_of_range(self):
        with pytest.raises(ValidationError, match="Latitude must be between -90 and 90"):
            GeoPoint(90.5, 0)

    def test_longitude_out_of_range(self):
        with pytest.raises(ValidationError, match="Longitude must be between -180 and 180"):
            GeoPoint(0, -181)

    def test_non_numeric(self):
        with pytest.raises(ValidationError):
            GeoPoint("1", 2)

    def test_is_equal(self):
        assert GeoPoint(1.5, 2.5).is_equal(GeoPoint(1.5, 2.5))
        assert not GeoPoint(1.5, 2.5).is_equal(GeoPoint(2.5, 1.5))


class TestFieldPath:
    def test_simple_segments_are_dotted(self):
        assert FieldPath("address", "city").to_api_repr() == "address.city"

    def test_special_segments_are_quoted(self):
        assert FieldPath("a.b", "c").to_api_repr() == "`a.b`.c"
        assert FieldPath("it's").to_api_repr() == "`it's`"
        assert FieldPath("back`tick").to_api_repr() == "`back\\`tick`"

    def test_document_id(self):
        assert FieldPath.document_id().to_api_repr() == "__name__"

    def test_empty_segments_rejected(self):
        with pytest.raises(ValidationError):
            FieldPath()
        with pytest.raises(ValidationError):
            FieldPath("a", "")

    def test_equality_and_hash(self):
        assert FieldPath("a", "b") == FieldPath("a", "b")
        assert len({FieldPath("a"), FieldPath("a")}) == 1

    def test_plain_strings_pass_through(self):
        assert field_path_string("a.b") == "a.b"
        assert field_path_string(FieldPath("a.b")) == "`a.b`"

    def test_empty_string_rejected(self):
        with pytest.raises(ValidationError):
            field_path_string("")


class TestFieldValue:
    def test_factories(self):
        assert isinstance(FieldValue.server_timestamp(), ServerTimestamp)
        assert isinstance(FieldValue.delete(), DeleteField)
        assert FieldValue.increment(3) == Increment(3)
        assert FieldValue.array_union(1, 2) == ArrayUnion((1, 2))
        assert FieldValue.array_remove("x") == ArrayRemove(("x",))

    def test_increment_needs_a_number(self):
        with pytest.raises(ValidationError):
            FieldValue.increment("1")
        with pytest.raises(ValidationError):
            FieldValue.increment(True)


class TestAggregateField:
    def test_count(self):
        assert AggregateField.count() == AggregateField("count", None)

    def test_sum_and_average(self):
        assert AggregateField.sum("price") == AggregateField("sum", "price")
        assert AggregateField.average(FieldPath("a b")) == AggregateField("avg", "`a b`")


class TestResourceReference:
    def test_is_abstract(self):
        with pytest.raises(TypeError):
            ResourceReference()

    def test_document_references_are_resource_references(self):
        from firestore_rest.client import Firestore
        from firestore_rest.services.auth import StaticTokenProvider
        from firestore_rest.tests.conftest import BASE_URL, ROOT, FakeTransport

        db = Firestore("demo-project", token_provider=StaticTokenProvider(), transport=FakeTransport(), base_url=BASE_URL)
        ref = db.doc("users/alice")
        assert isinstance(ref, ResourceReference)
        assert ref.resource_name == f"{ROOT}/users/alice"
