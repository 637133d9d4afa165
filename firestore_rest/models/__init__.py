"""
Pydantic models for firestore_rest.

Credential and wire response shapes. No imports from services or references.
"""

from firestore_rest.models.auth import ServiceAccount, TokenResponse
from firestore_rest.models.wire import (
    BatchGetItem,
    BeginTransactionResponse,
    CommitResponse,
    Document,
    ListDocumentsResponse,
    RunAggregationQueryItem,
    RunQueryItem,
    WriteResultPayload,
)

__all__ = [
    # Auth models
    "ServiceAccount",
    "TokenResponse",
    # Wire models
    "Document",
    "ListDocumentsResponse",
    "BatchGetItem",
    "RunQueryItem",
    "RunAggregationQueryItem",
    "CommitResponse",
    "WriteResultPayload",
    "BeginTransactionResponse",
]
