"""
Exceptions raised by firestore_rest.

Local misuse (bad values, bad paths, reused batches) is raised synchronously
before any request goes out. Remote failures are raised from the awaited call
and never leave a batch or transaction marked committed.
"""

from __future__ import annotations

from typing import Any


class FirestoreError(Exception):
    """Base class for every error raised by this package."""

    pass


class UnsupportedValueType(FirestoreError, TypeError):
    """A value has no wire representation."""

    pass


class ValidationError(FirestoreError, ValueError):
    """A value object or path failed validation."""

    pass


class MissingDocumentId(FirestoreError):
    """A data operation was attempted on a reference without a document id."""

    pass


class AlreadyExists(FirestoreError):
    """create() targeted a document that already exists."""

    pass


class AlreadyCommitted(FirestoreError):
    """A batch or transaction was used after commit (or rollback)."""

    pass


class NotFound(FirestoreError):
    """The remote document or resource does not exist."""

    pass


class AuthenticationFailed(FirestoreError):
    """No bearer token could be obtained."""

    pass


class RemoteRequestFailed(FirestoreError):
    """The service answered with a non-2xx status."""

    def __init__(self, message: str, status: int, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class TransactionAborted(RemoteRequestFailed):
    """The service aborted the request because of contention. Retryable."""

    pass


class TransactionExhausted(FirestoreError):
    """Every transaction attempt was aborted."""

    def __init__(self, attempts: int, last_error: BaseException | None):
        super().__init__(f"Transaction failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


# Markers the service uses when it gives up on a contended transaction
_RETRYABLE_MARKERS = ("ABORTED", "contention")


def is_retryable(error: BaseException) -> bool:
    """Return True if a transaction failure should trigger another attempt."""
    if isinstance(error, TransactionAborted):
        return True
    message = str(error)
    return any(marker in message for marker in _RETRYABLE_MARKERS)
