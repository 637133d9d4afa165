"""Write batches: staged writes committed atomically in one request."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from firestore_rest.errors import AlreadyCommitted, ValidationError
from firestore_rest.snapshots import WriteResult, write_results
from firestore_rest.types import FieldPath
from firestore_rest.writes import Write, assemble, delete_write

if TYPE_CHECKING:
    from firestore_rest.client import Firestore
    from firestore_rest.references import DocumentReference

logger = logging.getLogger(__name__)


class BaseWriteBatch(ABC):
    """
    Staging shared by WriteBatch and Transaction.

    Staging methods return self so calls can be chained. Writes are applied by
    the server in the order they were staged.
    """

    def __init__(self, client: Firestore) -> None:
        self._client = client
        self._writes: list[Write] = []

    @abstractmethod
    def _check_open(self) -> None:
        """Raise if the batch can no longer accept writes."""

    def _stage(self, write: Write):
        self._check_open()
        self._writes.append(write)
        return self

    def _check_reference(self, reference: DocumentReference) -> None:
        if reference.firestore is not self._client:
            raise ValidationError("Document reference belongs to a different client")

    def set(
        self,
        reference: DocumentReference,
        data: Mapping[str, Any],
        merge: bool = False,
        merge_fields: Iterable[str | FieldPath] | None = None,
    ):
        """Overwrite the document, or merge into it with merge / merge_fields."""
        self._check_open()
        self._check_reference(reference)
        if merge or merge_fields is not None:
            return self._stage(assemble(reference.resource_name, data, "merge", merge_fields))
        return self._stage(assemble(reference.resource_name, data, "replace"))

    def update(self, reference: DocumentReference, data: Mapping[str, Any]):
        """Change fields of a document that must already exist."""
        self._check_open()
        self._check_reference(reference)
        if not data:
            raise ValidationError("update() needs at least one field")
        return self._stage(assemble(reference.resource_name, data, "update"))

    def create(self, reference: DocumentReference, data: Mapping[str, Any]):
        """Create a document that must not exist yet."""
        self._check_open()
        self._check_reference(reference)
        return self._stage(assemble(reference.resource_name, data, "insert"))

    def delete(self, reference: DocumentReference):
        self._check_open()
        self._check_reference(reference)
        return self._stage(delete_write(reference.resource_name))

    @property
    def writes(self) -> list[Write]:
        return list(self._writes)

    def __len__(self) -> int:
        return len(self._writes)


class WriteBatch(BaseWriteBatch):
    """Single use: after commit every call raises AlreadyCommitted."""

    def __init__(self, client: Firestore) -> None:
        super().__init__(client)
        self._committed = False

    @property
    def committed(self) -> bool:
        return self._committed

    def _check_open(self) -> None:
        if self._committed:
            raise AlreadyCommitted("Batch has already been committed")

    async def commit(self) -> list[WriteResult]:
        """
        Send every staged write in one atomic request.

        An empty batch commits without a request. A failed commit leaves the
        batch open.
        """
        self._check_open()
        if not self._writes:
            self._committed = True
            return []
        response = await self._client._api.commit([w.to_wire() for w in self._writes])
        self._committed = True
        logger.debug("batch: committed %d writes", len(self._writes))
        return write_results(response)
