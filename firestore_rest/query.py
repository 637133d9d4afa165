"""
Query Builder

Immutable, chainable queries over one collection (or every collection sharing
an id) and the aggregation queries layered on top of them. Every builder call
returns a new Query; the receiver is never changed, so a base query can be
branched into several variants.

Filter values and cursor values are encoded when the builder method is
called, so bad values fail before any request is made.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from firestore_rest.codec import decode_value, encode_value
from firestore_rest.errors import ValidationError
from firestore_rest.snapshots import AggregateQuerySnapshot, QuerySnapshot, parse_time
from firestore_rest.types import AggregateField, FieldPath, field_path_string

if TYPE_CHECKING:
    from firestore_rest.client import Firestore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Operator vocabulary
# ---------------------------------------------------------------------------

OPERATORS: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "array-contains": "ARRAY_CONTAINS",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
    "in": "IN",
    "not-in": "NOT_IN",
}

# Operators whose value must be a list
LIST_OPERATORS: set[str] = {"in", "not-in", "array-contains-any"}

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"

_DIRECTIONS: dict[str, str] = {
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
}


def _normalize_direction(direction: str) -> str:
    normalized = _DIRECTIONS.get(str(direction).lower())
    if normalized is None:
        raise ValidationError(f"Invalid order direction: {direction!r} (use 'asc' or 'desc')")
    return normalized


def _check_count(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


# ---------------------------------------------------------------------------
# Clauses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldFilter:
    field_path: str
    op: str
    value: dict[str, Any]  # wire form

    def to_wire(self) -> dict[str, Any]:
        return {
            "fieldFilter": {
                "field": {"fieldPath": self.field_path},
                "op": OPERATORS[self.op],
                "value": self.value,
            }
        }


@dataclass(frozen=True)
class UnaryFilter:
    """x == None / x == NaN and their negations, which the protocol expresses as unary filters."""

    field_path: str
    op: str  # IS_NULL | IS_NOT_NULL | IS_NAN | IS_NOT_NAN

    def to_wire(self) -> dict[str, Any]:
        return {"unaryFilter": {"op": self.op, "field": {"fieldPath": self.field_path}}}


@dataclass(frozen=True)
class Order:
    field_path: str
    direction: str

    def to_wire(self) -> dict[str, Any]:
        return {"field": {"fieldPath": self.field_path}, "direction": self.direction}


@dataclass(frozen=True)
class Cursor:
    """
    A position relative to the order-by keys.

    before=True means just before the values: startAt and endBefore.
    before=False means just after them: startAfter and endAt.
    """

    values: tuple[dict[str, Any], ...]
    before: bool

    def to_wire(self) -> dict[str, Any]:
        return {"values": list(self.values), "before": self.before}


def _make_filter(field_path: str, op: str, value: Any) -> FieldFilter | UnaryFilter:
    if op not in OPERATORS:
        raise ValidationError(f"Invalid operator: {op!r}")
    if op in ("==", "!="):
        if value is None:
            return UnaryFilter(field_path, "IS_NULL" if op == "==" else "IS_NOT_NULL")
        if isinstance(value, float) and math.isnan(value):
            return UnaryFilter(field_path, "IS_NAN" if op == "==" else "IS_NOT_NAN")
    if op in LIST_OPERATORS and not isinstance(value, (list, tuple)):
        raise ValidationError(f"Operator {op!r} needs a list value, got {type(value).__name__}")
    return FieldFilter(field_path, op, encode_value(value))


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class Query:
    """
    A structured query scoped to one collection id under a parent path.

    parent_path is the document the collection hangs off ("" for root
    collections). all_descendants=True matches every collection with this id
    anywhere below the parent (collection group).
    """

    ASCENDING = ASCENDING
    DESCENDING = DESCENDING

    def __init__(
        self,
        client: Firestore,
        parent_path: str,
        collection_id: str,
        *,
        all_descendants: bool = False,
        filters: tuple[FieldFilter | UnaryFilter, ...] = (),
        orders: tuple[Order, ...] = (),
        limit: int | None = None,
        limit_to_last: bool = False,
        offset: int | None = None,
        start_at: Cursor | None = None,
        end_at: Cursor | None = None,
        projection: tuple[str, ...] | None = None,
    ) -> None:
        self._client = client
        self._parent_path = parent_path
        self._collection_id = collection_id
        self._all_descendants = all_descendants
        self._filters = filters
        self._orders = orders
        self._limit = limit
        self._limit_to_last = limit_to_last
        self._offset = offset
        self._start_at = start_at
        self._end_at = end_at
        self._projection = projection

    def _copy(self, **changes: Any) -> Query:
        state: dict[str, Any] = {
            "all_descendants": self._all_descendants,
            "filters": self._filters,
            "orders": self._orders,
            "limit": self._limit,
            "limit_to_last": self._limit_to_last,
            "offset": self._offset,
            "start_at": self._start_at,
            "end_at": self._end_at,
            "projection": self._projection,
        }
        state.update(changes)
        return Query(self._client, self._parent_path, self._collection_id, **state)

    @property
    def firestore(self) -> Firestore:
        return self._client

    # -----------------------------------------------------------------------
    # Builder
    # -----------------------------------------------------------------------

    def where(self, field_path: str | FieldPath, op: str, value: Any) -> Query:
        """Add a filter; several filters are ANDed together."""
        new_filter = _make_filter(field_path_string(field_path), op, value)
        return self._copy(filters=self._filters + (new_filter,))

    def order_by(self, field_path: str | FieldPath, direction: str = ASCENDING) -> Query:
        order = Order(field_path_string(field_path), _normalize_direction(direction))
        return self._copy(orders=self._orders + (order,))

    def limit(self, count: int) -> Query:
        return self._copy(limit=_check_count("limit", count), limit_to_last=False)

    def limit_to_last(self, count: int) -> Query:
        """
        Same request as limit(count); the returned documents are reversed.

        The order-by clauses are sent unchanged, so this yields the first
        `count` matches in reverse order.
        """
        return self._copy(limit=_check_count("limit", count), limit_to_last=True)

    def offset(self, count: int) -> Query:
        return self._copy(offset=_check_count("offset", count))

    def start_at(self, *values: Any) -> Query:
        return self._copy(start_at=self._cursor(values, before=True))

    def start_after(self, *values: Any) -> Query:
        return self._copy(start_at=self._cursor(values, before=False))

    def end_at(self, *values: Any) -> Query:
        return self._copy(end_at=self._cursor(values, before=False))

    def end_before(self, *values: Any) -> Query:
        return self._copy(end_at=self._cursor(values, before=True))

    def select(self, *field_paths: str | FieldPath) -> Query:
        return self._copy(projection=tuple(field_path_string(f) for f in field_paths))

    @staticmethod
    def _cursor(values: Sequence[Any], before: bool) -> Cursor:
        # Sent as given: the service checks them against the order-by keys
        if not values:
            raise ValidationError("A cursor needs at least one value")
        return Cursor(tuple(encode_value(v) for v in values), before)

    # -----------------------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------------------

    def _where_clause(self) -> dict[str, Any] | None:
        if not self._filters:
            return None
        if len(self._filters) == 1:
            return self._filters[0].to_wire()
        return {"compositeFilter": {"op": "AND", "filters": [f.to_wire() for f in self._filters]}}

    def _order_by_clause(self) -> list[dict[str, Any]] | None:
        if not self._orders:
            return None
        return [o.to_wire() for o in self._orders]

    def to_structured_query(self, include_projection: bool = True) -> dict[str, Any]:
        """
        The structuredQuery body.

        Keys appear in a fixed order: from, where, orderBy, limit, offset,
        startAt, endAt, select.
        """
        query: dict[str, Any] = {
            "from": [{"collectionId": self._collection_id, "allDescendants": self._all_descendants}],
        }
        where = self._where_clause()
        if where is not None:
            query["where"] = where
        order_by = self._order_by_clause()
        if order_by is not None:
            query["orderBy"] = order_by
        if self._limit is not None:
            query["limit"] = self._limit
        if self._offset is not None:
            query["offset"] = self._offset
        if self._start_at is not None:
            query["startAt"] = self._start_at.to_wire()
        if self._end_at is not None:
            query["endAt"] = self._end_at.to_wire()
        if include_projection and self._projection is not None:
            query["select"] = {"fields": [{"fieldPath": f} for f in self._projection]}
        return query

    def is_equal(self, other: Query) -> bool:
        """
        Same filters, same ordering and same limit.

        Offset, cursors, projection and scope are not compared.
        """
        return (
            self._where_clause() == other._where_clause()
            and self._order_by_clause() == other._order_by_clause()
            and self._limit == other._limit
        )

    # -----------------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------------

    async def _run(self, transaction: str | None = None) -> QuerySnapshot:
        items = await self._client._api.run_query(
            self._parent_path, self.to_structured_query(), transaction=transaction
        )
        docs = [
            self._client._snapshot_from_document(item.document, item.read_time)
            for item in items
            if item.document is not None
        ]
        if self._limit_to_last:
            docs.reverse()
        read_time = next((item.read_time for item in items if item.read_time), None)
        return QuerySnapshot(self, docs, parse_time(read_time))

    async def get(self) -> QuerySnapshot:
        """Run the query."""
        return await self._run()

    async def stream(self):
        """Async iterator over the query's documents."""
        snapshot = await self._run()
        for doc in snapshot.docs:
            yield doc

    def aggregate(self, aggregations: Mapping[str, AggregateField]) -> AggregateQuery:
        return AggregateQuery(self, aggregations)

    async def count(self) -> int:
        """Number of matching documents, counted by the server."""
        snapshot = await self.aggregate({"count": AggregateField.count()}).get()
        return int(snapshot.get("count"))


class CollectionGroup(Query):
    """Every collection with this id, at any depth."""

    def __init__(self, client: Firestore, collection_id: str) -> None:
        if not collection_id or "/" in collection_id:
            raise ValidationError(f"Invalid collection id: {collection_id!r}")
        super().__init__(client, "", collection_id, all_descendants=True)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


def _aggregation_entry(alias: str, aggregation: AggregateField) -> dict[str, Any]:
    if aggregation.aggregate_type == "count":
        return {"alias": alias, "count": {}}
    if not aggregation.field_path:
        raise ValidationError(f"Aggregation {alias!r} needs a field path")
    return {"alias": alias, aggregation.aggregate_type: {"field": {"fieldPath": aggregation.field_path}}}


def _decode_aggregate(value: Any) -> int | float:
    if isinstance(value, Mapping) and ("integerValue" in value or "doubleValue" in value):
        return decode_value(value)
    return 0


class AggregateQuery:
    """count / sum / average over the documents a query matches."""

    def __init__(self, query: Query, aggregations: Mapping[str, AggregateField]) -> None:
        if not aggregations:
            raise ValidationError("An aggregate query needs at least one aggregation")
        for alias, aggregation in aggregations.items():
            if not isinstance(alias, str) or not alias:
                raise ValidationError(f"Invalid aggregation alias: {alias!r}")
            if not isinstance(aggregation, AggregateField):
                raise ValidationError(f"Aggregation {alias!r} must be an AggregateField")
        self.query = query
        self.aggregations = dict(aggregations)

    def to_structured_aggregation_query(self) -> dict[str, Any]:
        return {
            "structuredQuery": self.query.to_structured_query(include_projection=False),
            "aggregations": [_aggregation_entry(alias, agg) for alias, agg in self.aggregations.items()],
        }

    async def get(self) -> AggregateQuerySnapshot:
        items = await self.query._client._api.run_aggregation_query(
            self.query._parent_path, self.to_structured_aggregation_query()
        )
        first = next((item for item in items if item.result is not None), None)
        returned = first.result.aggregate_fields if first is not None else {}
        data = {alias: _decode_aggregate(returned.get(alias)) for alias in self.aggregations}
        read_time = first.read_time if first is not None else next((i.read_time for i in items if i.read_time), None)
        logger.debug("aggregate: %s -> %s", list(self.aggregations), data)
        return AggregateQuerySnapshot(self, data, parse_time(read_time))
