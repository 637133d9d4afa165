"""
Firestore REST API endpoints.

One method per endpoint the client uses. Requests carry a bearer token from
the token provider; responses are validated with the wire models. Non-2xx
statuses become typed errors, except the two 404s that mean "nothing there":
fetching a single document and deleting one.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from firestore_rest.errors import (
    AlreadyExists,
    NotFound,
    RemoteRequestFailed,
    TransactionAborted,
    ValidationError,
)
from firestore_rest.models.wire import (
    BatchGetItem,
    BeginTransactionResponse,
    CommitResponse,
    Document,
    ListDocumentsResponse,
    RunAggregationQueryItem,
    RunQueryItem,
)
from firestore_rest.services.auth import TokenProvider
from firestore_rest.services.transport import Transport, TransportResponse

logger = logging.getLogger(__name__)


def _error_status(body: Any) -> str:
    """The google.rpc status name from an error body, e.g. "ABORTED"."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("status") or "")
    if isinstance(body, list) and body:
        return _error_status(body[0])
    return ""


def raise_for_response(response: TransportResponse, action: str) -> None:
    """
    Translate a non-2xx response into the matching error.

    Raises:
        TransactionAborted: The service aborted because of contention
        AlreadyExists: The write required a missing document
        NotFound: The document or resource does not exist
        RemoteRequestFailed: Anything else
    """
    if response.ok:
        return
    status = _error_status(response.body)
    message = f"Failed to {action}: {response.status} {response.body}"
    if status == "ABORTED" or (response.status == 409 and "ABORTED" in str(response.body)):
        raise TransactionAborted(message, response.status, response.body)
    if status == "ALREADY_EXISTS":
        raise AlreadyExists(message)
    if response.status == 404 or status == "NOT_FOUND":
        raise NotFound(message)
    raise RemoteRequestFailed(message, response.status, response.body)


class FirestoreApi:
    """Thin async wrapper over the documents endpoints of one database."""

    def __init__(
        self,
        project_id: str,
        database: str,
        token_provider: TokenProvider,
        transport: Transport,
        base_url: str,
    ) -> None:
        if not project_id:
            raise ValidationError("A project id is required (set FIREBASE_PROJECT_ID)")
        self.project_id = project_id
        self.database = database
        self.token_provider = token_provider
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    # -----------------------------------------------------------------------
    # Names
    # -----------------------------------------------------------------------

    @property
    def database_root(self) -> str:
        return f"projects/{self.project_id}/databases/{self.database}"

    @property
    def documents_root(self) -> str:
        return f"{self.database_root}/documents"

    def resource_name(self, path: str) -> str:
        """projects/{p}/databases/{d}/documents/{path}"""
        return f"{self.documents_root}/{path}" if path else self.documents_root

    def relative_path(self, name: str) -> str:
        """Inverse of resource_name."""
        prefix = self.documents_root + "/"
        if not name.startswith(prefix):
            raise ValidationError(f"Resource {name!r} is not in database {self.database_root}")
        return name[len(prefix):]

    def _url(self, path: str = "", verb: str = "") -> str:
        url = f"{self.base_url}/{self.resource_name(path)}"
        return f"{url}:{verb}" if verb else url

    # -----------------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> TransportResponse:
        token = await self.token_provider.get_token()
        headers = {"Authorization": f"Bearer {token.value}", "Content-Type": "application/json"}
        logger.debug("firestore: %s %s", method, url)
        return await self.transport.send(method, url, headers, json_body=json_body, params=params)

    @staticmethod
    def _parse(model: type[BaseModel], body: Any, response: TransportResponse, action: str) -> Any:
        try:
            return model.model_validate(body)
        except PydanticValidationError as e:
            raise RemoteRequestFailed(
                f"Failed to {action}: unexpected response shape: {e}", response.status, response.body
            ) from e

    def _parse_list(self, model: type[BaseModel], response: TransportResponse, action: str) -> list[Any]:
        body = response.body or []
        if isinstance(body, dict):
            body = [body]
        return [self._parse(model, item, response, action) for item in body]

    # -----------------------------------------------------------------------
    # Single documents
    # -----------------------------------------------------------------------

    async def get_document(self, path: str, field_mask: list[str] | None = None) -> Document | None:
        """Fetch one document. Returns None when it does not exist."""
        params = {"mask.fieldPaths": field_mask} if field_mask else None
        response = await self._send("GET", self._url(path), params=params)
        if response.status == 404:
            return None
        raise_for_response(response, "get document")
        return self._parse(Document, response.body, response, "get document")

    async def patch_document(
        self,
        path: str,
        fields: dict[str, Any],
        update_mask: list[str],
        exists: bool | None = None,
    ) -> Document:
        """Update the masked fields of one document (no transforms: use commit for those)."""
        params: dict[str, Any] = {"updateMask.fieldPaths": update_mask}
        if exists is not None:
            params["currentDocument.exists"] = "true" if exists else "false"
        response = await self._send("PATCH", self._url(path), json_body={"fields": fields}, params=params)
        raise_for_response(response, "update document")
        return self._parse(Document, response.body, response, "update document")

    async def create_document(
        self,
        collection_path: str,
        fields: dict[str, Any],
        document_id: str | None = None,
    ) -> Document:
        """Create a document; the server picks the id when none is given."""
        params = {"documentId": document_id} if document_id else None
        response = await self._send("POST", self._url(collection_path), json_body={"fields": fields}, params=params)
        raise_for_response(response, "create document")
        return self._parse(Document, response.body, response, "create document")

    async def delete_document(self, path: str) -> None:
        """Delete one document. Deleting a missing document succeeds."""
        response = await self._send("DELETE", self._url(path))
        if response.status == 404:
            return
        raise_for_response(response, "delete document")

    async def list_documents(
        self,
        collection_path: str,
        page_size: int = 100,
        page_token: str | None = None,
    ) -> ListDocumentsResponse:
        params: dict[str, Any] = {"pageSize": page_size}
        if page_token:
            params["pageToken"] = page_token
        response = await self._send("GET", self._url(collection_path), params=params)
        raise_for_response(response, "list documents")
        return self._parse(ListDocumentsResponse, response.body or {}, response, "list documents")

    # -----------------------------------------------------------------------
    # Batches and transactions
    # -----------------------------------------------------------------------

    async def batch_get(
        self,
        paths: list[str],
        transaction: str | None = None,
        field_mask: list[str] | None = None,
    ) -> list[BatchGetItem]:
        """Fetch several documents; results come back in no particular order."""
        body: dict[str, Any] = {"documents": [self.resource_name(p) for p in paths]}
        if transaction:
            body["transaction"] = transaction
        if field_mask:
            body["mask"] = {"fieldPaths": field_mask}
        response = await self._send("POST", self._url(verb="batchGet"), json_body=body)
        raise_for_response(response, "batch get documents")
        return self._parse_list(BatchGetItem, response, "batch get documents")

    async def commit(self, writes: list[dict[str, Any]], transaction: str | None = None) -> CommitResponse:
        body: dict[str, Any] = {"writes": writes}
        if transaction:
            body["transaction"] = transaction
        action = "commit transaction" if transaction else "commit batch"
        response = await self._send("POST", self._url(verb="commit"), json_body=body)
        raise_for_response(response, action)
        return self._parse(CommitResponse, response.body or {}, response, action)

    async def begin_transaction(self, read_only: bool = False, retry_transaction: str | None = None) -> str:
        """Start a transaction and return its opaque id."""
        body: dict[str, Any] = {}
        if read_only:
            body["options"] = {"readOnly": {}}
        elif retry_transaction:
            body["options"] = {"readWrite": {"retryTransaction": retry_transaction}}
        response = await self._send("POST", self._url(verb="beginTransaction"), json_body=body)
        raise_for_response(response, "begin transaction")
        return self._parse(BeginTransactionResponse, response.body, response, "begin transaction").transaction

    async def rollback(self, transaction: str) -> None:
        response = await self._send("POST", self._url(verb="rollback"), json_body={"transaction": transaction})
        raise_for_response(response, "rollback transaction")

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    async def run_query(
        self,
        parent_path: str,
        structured_query: dict[str, Any],
        transaction: str | None = None,
    ) -> list[RunQueryItem]:
        body: dict[str, Any] = {"structuredQuery": structured_query}
        if transaction:
            body["transaction"] = transaction
        response = await self._send("POST", self._url(parent_path, "runQuery"), json_body=body)
        raise_for_response(response, "query documents")
        return self._parse_list(RunQueryItem, response, "query documents")

    async def run_aggregation_query(
        self,
        parent_path: str,
        structured_aggregation_query: dict[str, Any],
    ) -> list[RunAggregationQueryItem]:
        body = {"structuredAggregationQuery": structured_aggregation_query}
        response = await self._send("POST", self._url(parent_path, "runAggregationQuery"), json_body=body)
        raise_for_response(response, "run aggregation query")
        return self._parse_list(RunAggregationQueryItem, response, "run aggregation query")
