"""
Document and collection references.

References are immutable paths. They hold no document data; every data
operation goes to the server. A document path alternates collection id and
document id ("users/alice/posts/p1"), a collection path has an odd number of
segments ("users" or "users/alice/posts").
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from firestore_rest.errors import AlreadyExists, MissingDocumentId, ValidationError
from firestore_rest.query import Query
from firestore_rest.snapshots import DocumentSnapshot, WriteResult, document_snapshot, parse_time, write_results
from firestore_rest.types import FieldPath, ResourceReference, Timestamp, field_path_string
from firestore_rest.writes import Write, assemble

if TYPE_CHECKING:
    from firestore_rest.client import Firestore

logger = logging.getLogger(__name__)

AUTO_ID_ALPHABET = string.ascii_letters + string.digits
AUTO_ID_LENGTH = 20


def auto_id() -> str:
    """Random 20-character document id over [A-Za-z0-9]."""
    return "".join(secrets.choice(AUTO_ID_ALPHABET) for _ in range(AUTO_ID_LENGTH))


def split_path(path: str) -> list[str]:
    """Split a slash-separated path, rejecting empty segments."""
    if not isinstance(path, str) or not path.strip("/"):
        raise ValidationError(f"Invalid path: {path!r}")
    segments = path.strip("/").split("/")
    if any(not s for s in segments):
        raise ValidationError(f"Path {path!r} contains an empty segment")
    return segments


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class CollectionReference(Query):
    """A collection, and the query over all of its documents."""

    def __init__(self, client: Firestore, path: str) -> None:
        segments = split_path(path)
        if len(segments) % 2 == 0:
            raise ValidationError(f"Collection path must have an odd number of segments: {path!r}")
        super().__init__(client, "/".join(segments[:-1]), segments[-1])
        self._path = "/".join(segments)

    @property
    def id(self) -> str:
        return self._collection_id

    @property
    def path(self) -> str:
        return self._path

    @property
    def parent(self) -> DocumentReference | None:
        """The document this collection hangs off, None for a root collection."""
        if not self._parent_path:
            return None
        return self._client.doc(self._parent_path)

    def doc(self, document_id: str | None = None) -> DocumentReference:
        """Reference to a document in this collection; a random id when none is given."""
        return DocumentReference(self._client, self._path, document_id or auto_id())

    async def add(self, data: Mapping[str, Any]) -> tuple[WriteResult, DocumentReference]:
        """Create a document with a generated id."""
        ref = self.doc()
        result = await ref.create(data, check_exists=False)
        return result, ref

    async def list_documents(self, page_size: int = 1000) -> list[DocumentReference]:
        """References to every document in the collection, following page tokens."""
        refs: list[DocumentReference] = []
        page_token: str | None = None
        while True:
            page = await self._client._api.list_documents(self._path, page_size=page_size, page_token=page_token)
            refs.extend(self._client.document_from_name(doc.name) for doc in page.documents)
            page_token = page.next_page_token
            if not page_token:
                return refs

    def __repr__(self) -> str:
        return f"CollectionReference({self._path!r})"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentReference(ResourceReference):
    """
    A document address.

    A reference may be built without a document id; every data operation on
    such a reference raises MissingDocumentId.
    """

    def __init__(self, client: Firestore, collection_path: str, document_id: str | None) -> None:
        if document_id is not None and (not document_id or "/" in document_id):
            raise ValidationError(f"Invalid document id: {document_id!r}")
        self._client = client
        self._collection_path = collection_path
        self._id = document_id

    @property
    def firestore(self) -> Firestore:
        return self._client

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def path(self) -> str:
        return f"{self._collection_path}/{self._require_id()}"

    @property
    def parent(self) -> CollectionReference:
        return CollectionReference(self._client, self._collection_path)

    @property
    def resource_name(self) -> str:
        return self._client._api.resource_name(self.path)

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self._client, f"{self.path}/{collection_id}")

    def _require_id(self) -> str:
        if not self._id:
            raise MissingDocumentId(f"Document reference in {self._collection_path!r} has no document id")
        return self._id

    def is_equal(self, other: DocumentReference) -> bool:
        return self == other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentReference):
            return NotImplemented
        return (
            self._client is other._client
            and self._collection_path == other._collection_path
            and self._id == other._id
        )

    def __hash__(self) -> int:
        return hash((self._collection_path, self._id))

    def __repr__(self) -> str:
        return f"DocumentReference({self._collection_path!r}, {self._id!r})"

    # -----------------------------------------------------------------------
    # Data operations
    # -----------------------------------------------------------------------

    async def get(self, field_mask: Iterable[str | FieldPath] | None = None) -> DocumentSnapshot:
        """Read the document. A missing document gives a snapshot with exists == False."""
        mask = [field_path_string(f) for f in field_mask] if field_mask is not None else None
        doc = await self._client._api.get_document(self.path, mask)
        return document_snapshot(self, doc, reference_factory=self._client._decode_reference)

    async def set(
        self,
        data: Mapping[str, Any],
        merge: bool = False,
        merge_fields: Iterable[str | FieldPath] | None = None,
    ) -> WriteResult:
        """
        Write the document.

        With merge (or merge_fields) only the given fields are touched. Without
        it the document is overwritten in three separate requests: read, delete
        if present, create. That sequence is not atomic; if the create fails
        after the delete, the document stays deleted. Use WriteBatch.set for an
        atomic overwrite.
        """
        path = self.path
        if merge or merge_fields is not None:
            return await self._apply(assemble(self.resource_name, data, "merge", merge_fields))

        write = assemble(self.resource_name, data, "insert")
        existing = await self._client._api.get_document(path)
        if existing is not None:
            logger.warning("set: overwriting %s with a non-atomic delete and create", path)
            await self._client._api.delete_document(path)
        return await self._apply(write)

    async def update(self, data: Mapping[str, Any]) -> WriteResult:
        """
        Change the given fields of an existing document.

        Raises:
            NotFound: The document does not exist
        """
        if not data:
            raise ValidationError("update() needs at least one field")
        return await self._apply(assemble(self.resource_name, data, "update"))

    async def delete(self) -> WriteResult:
        """Delete the document. Deleting a missing document succeeds."""
        await self._client._api.delete_document(self.path)
        return WriteResult(Timestamp.now())

    async def create(self, data: Mapping[str, Any], check_exists: bool = True) -> WriteResult:
        """
        Create the document.

        Reads first and raises AlreadyExists without writing when the document
        is present. The read and the write are separate requests; the write
        still carries a must-not-exist precondition.
        """
        path = self.path
        write = assemble(self.resource_name, data, "insert")
        if check_exists and await self._client._api.get_document(path) is not None:
            raise AlreadyExists(f"Document already exists: {path}")
        return await self._apply(write)

    async def _apply(self, write: Write) -> WriteResult:
        """
        Send one write through the cheapest endpoint that can express it.

        Transforms and full replaces need the commit endpoint; plain creates
        and masked updates use POST and PATCH.
        """
        api = self._client._api
        if not write.has_transforms:
            if write.exists is False:
                doc = await api.create_document(self._collection_path, write.fields, self._require_id())
                return WriteResult(parse_time(doc.update_time) or Timestamp.now())
            if write.update_mask:
                doc = await api.patch_document(self.path, write.fields, write.update_mask, write.exists)
                return WriteResult(parse_time(doc.update_time) or Timestamp.now())
        results = write_results(await api.commit([write.to_wire()]))
        return results[0] if results else WriteResult(Timestamp.now())
