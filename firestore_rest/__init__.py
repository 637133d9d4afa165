"""
Async client for the Firestore REST API.

Public surface re-exported here. Wire plumbing lives in services/ and models/.
"""

from firestore_rest.batch import WriteBatch
from firestore_rest.client import Firestore, get_firestore, reset_firestore
from firestore_rest.errors import (
    AlreadyCommitted,
    AlreadyExists,
    AuthenticationFailed,
    FirestoreError,
    MissingDocumentId,
    NotFound,
    RemoteRequestFailed,
    TransactionAborted,
    TransactionExhausted,
    UnsupportedValueType,
    ValidationError,
)
from firestore_rest.query import AggregateQuery, CollectionGroup, Query
from firestore_rest.references import CollectionReference, DocumentReference
from firestore_rest.snapshots import AggregateQuerySnapshot, DocumentSnapshot, QuerySnapshot, WriteResult
from firestore_rest.transaction import Transaction
from firestore_rest.types import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    AggregateField,
    FieldPath,
    FieldValue,
    GeoPoint,
    Timestamp,
)

__all__ = [
    # Client
    "Firestore",
    "get_firestore",
    "reset_firestore",
    # References and queries
    "CollectionReference",
    "DocumentReference",
    "Query",
    "CollectionGroup",
    "AggregateQuery",
    # Writes
    "WriteBatch",
    "Transaction",
    # Snapshots
    "DocumentSnapshot",
    "QuerySnapshot",
    "AggregateQuerySnapshot",
    "WriteResult",
    # Values
    "Timestamp",
    "GeoPoint",
    "FieldPath",
    "FieldValue",
    "AggregateField",
    "SERVER_TIMESTAMP",
    "DELETE_FIELD",
    # Errors
    "FirestoreError",
    "UnsupportedValueType",
    "ValidationError",
    "MissingDocumentId",
    "AlreadyExists",
    "AlreadyCommitted",
    "NotFound",
    "AuthenticationFailed",
    "RemoteRequestFailed",
    "TransactionAborted",
    "TransactionExhausted",
]
