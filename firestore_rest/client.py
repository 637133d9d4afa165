"""
Firestore client entry point.

A Firestore instance binds one project and database to a token provider and
a transport. It is the factory for references, queries, batches and
transactions.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from firestore_rest.batch import WriteBatch
from firestore_rest.config import settings
from firestore_rest.errors import ValidationError
from firestore_rest.models.wire import Document
from firestore_rest.query import CollectionGroup
from firestore_rest.references import CollectionReference, DocumentReference, split_path
from firestore_rest.services.auth import TokenProvider, default_token_provider
from firestore_rest.services.rest_api import FirestoreApi
from firestore_rest.services.transport import HttpxTransport, Transport
from firestore_rest.snapshots import DocumentSnapshot, document_snapshot
from firestore_rest.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Firestore:
    """
    Client for one Firestore database.

    Anything not passed in comes from settings: project id, database, base URL
    (the emulator when FIRESTORE_EMULATOR_HOST is set) and the process-wide
    token provider.
    """

    def __init__(
        self,
        project_id: str | None = None,
        database: str | None = None,
        *,
        token_provider: TokenProvider | None = None,
        transport: Transport | None = None,
        base_url: str | None = None,
        api: FirestoreApi | None = None,
    ) -> None:
        self._owned_transport: HttpxTransport | None = None
        if api is None:
            project_id = project_id or settings.FIREBASE_PROJECT_ID
            if not project_id:
                raise ValidationError("A project id is required (set FIREBASE_PROJECT_ID)")
            if transport is None:
                transport = self._owned_transport = HttpxTransport()
            api = FirestoreApi(
                project_id=project_id,
                database=database or settings.FIRESTORE_DATABASE,
                token_provider=token_provider or default_token_provider(),
                transport=transport,
                base_url=base_url or settings.FIRESTORE_BASE_URL,
            )
        self._api = api

    @property
    def project_id(self) -> str:
        return self._api.project_id

    @property
    def database(self) -> str:
        return self._api.database

    # -----------------------------------------------------------------------
    # References
    # -----------------------------------------------------------------------

    def collection(self, path: str) -> CollectionReference:
        return CollectionReference(self, path)

    def doc(self, path: str) -> DocumentReference:
        """Reference from a document path such as "users/alice"."""
        segments = split_path(path)
        if len(segments) % 2 != 0:
            raise ValidationError(f"Document path must have an even number of segments: {path!r}")
        return DocumentReference(self, "/".join(segments[:-1]), segments[-1])

    def collection_group(self, collection_id: str) -> CollectionGroup:
        """Query over every collection named collection_id, at any depth."""
        return CollectionGroup(self, collection_id)

    def document_from_name(self, name: str) -> DocumentReference:
        """Reference from a fully qualified resource name."""
        return self.doc(self._api.relative_path(name))

    def _decode_reference(self, name: str) -> DocumentReference | str:
        # References into another database stay as resource names
        if not name.startswith(self._api.documents_root + "/"):
            return name
        return self.document_from_name(name)

    def _snapshot_from_document(self, doc: Document, read_time: str | None = None) -> DocumentSnapshot:
        return document_snapshot(self.document_from_name(doc.name), doc, read_time, self._decode_reference)

    # -----------------------------------------------------------------------
    # Reads and writes
    # -----------------------------------------------------------------------

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def _batch_get(
        self,
        references: list[DocumentReference],
        transaction: str | None = None,
        field_mask: list[str] | None = None,
    ) -> list[DocumentSnapshot]:
        if not references:
            return []
        items = await self._api.batch_get([r.path for r in references], transaction, field_mask)
        found: dict[str, tuple[Document | None, str | None]] = {}
        for item in items:
            if item.found is not None:
                found[item.found.name] = (item.found, item.read_time)
            elif item.missing:
                found[item.missing] = (None, item.read_time)
        snapshots = []
        for ref in references:
            doc, read_time = found.get(ref.resource_name, (None, None))
            snapshots.append(document_snapshot(ref, doc, read_time, self._decode_reference))
        return snapshots

    async def get_all(self, *references: DocumentReference, field_mask: Iterable[str] | None = None) -> list[DocumentSnapshot]:
        """Fetch several documents in one request; snapshots follow the order of references."""
        mask = list(field_mask) if field_mask is not None else None
        return await self._batch_get(list(references), field_mask=mask)

    async def run_transaction(
        self,
        fn: Callable[[Transaction], T | Awaitable[T]],
        max_attempts: int | None = None,
        read_only: bool = False,
    ) -> T:
        """
        Run fn inside a transaction, retrying when the service aborts it.

        Returns whatever fn returns once the commit succeeds.
        """
        runner = TransactionRunner(
            self,
            max_attempts=max_attempts or settings.FIRESTORE_MAX_TRANSACTION_ATTEMPTS,
            read_only=read_only,
        )
        return await runner.run(fn)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owned_transport is not None:
            await self._owned_transport.aclose()

    async def __aenter__(self) -> Firestore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


_client: Firestore | None = None


def get_firestore() -> Firestore:
    """Process-wide client built from settings, created on first use."""
    global _client
    if _client is None:
        _client = Firestore()
        logger.info("firestore: client ready for %s/%s", _client.project_id, _client.database)
    return _client


def reset_firestore() -> None:
    """Forget the process-wide client (it is not closed)."""
    global _client
    _client = None
