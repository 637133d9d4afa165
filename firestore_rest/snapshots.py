"""Read results: document, query and aggregate snapshots, and write results."""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from firestore_rest.codec import ReferenceFactory, decode_fields
from firestore_rest.models.wire import CommitResponse, Document
from firestore_rest.types import Timestamp

if TYPE_CHECKING:
    from firestore_rest.query import AggregateQuery, Query
    from firestore_rest.references import DocumentReference


def parse_time(value: str | None) -> Timestamp | None:
    return Timestamp.from_rfc3339(value) if value else None


@dataclass
class DocumentSnapshot:
    """
    A document as read at one point in time.

    A snapshot of a missing document has exists == False and no data.
    """

    ref: DocumentReference
    _data: dict[str, Any] | None
    create_time: Timestamp | None = None
    update_time: Timestamp | None = None
    read_time: Timestamp | None = None

    @property
    def id(self) -> str:
        return self.ref.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        """A copy of the document's fields, or None when it does not exist."""
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        """
        Read one field; dots walk into nested maps.

        Returns None when the document or any step of the path is missing.
        """
        current: Any = self._data
        for segment in field_path.split("."):
            if not isinstance(current, dict) or segment not in current:
                return None
            current = current[segment]
        return current


@dataclass
class QuerySnapshot:
    """The documents a query returned, in result order."""

    query: Query
    docs: list[DocumentSnapshot] = field(default_factory=list)
    read_time: Timestamp | None = None

    @property
    def size(self) -> int:
        return len(self.docs)

    @property
    def empty(self) -> bool:
        return not self.docs

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.docs)

    def __len__(self) -> int:
        return len(self.docs)


@dataclass
class AggregateQuerySnapshot:
    """alias -> number, as returned by an aggregation query."""

    query: AggregateQuery
    data: dict[str, int | float] = field(default_factory=dict)
    read_time: Timestamp | None = None

    def get(self, alias: str) -> int | float:
        return self.data[alias]

    def to_dict(self) -> dict[str, int | float]:
        return dict(self.data)


@dataclass
class WriteResult:
    write_time: Timestamp


def document_snapshot(
    ref: DocumentReference,
    doc: Document | None,
    read_time: str | None = None,
    reference_factory: ReferenceFactory | None = None,
) -> DocumentSnapshot:
    """Decode a wire document (or its absence) into a snapshot for ref."""
    if doc is None:
        return DocumentSnapshot(ref, None, read_time=parse_time(read_time))
    return DocumentSnapshot(
        ref,
        decode_fields(doc.fields, reference_factory),
        create_time=parse_time(doc.create_time),
        update_time=parse_time(doc.update_time),
        read_time=parse_time(read_time),
    )


def write_results(response: CommitResponse) -> list[WriteResult]:
    """One WriteResult per write; falls back to the commit time when a write has no update time."""
    commit_time = parse_time(response.commit_time) or Timestamp.now()
    return [WriteResult(parse_time(r.update_time) or commit_time) for r in response.write_results]
