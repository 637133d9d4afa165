"""
Transactions

A Transaction holds a server-issued handle. Reads go out immediately with the
handle attached; writes are staged and sent with the commit. The runner drives
the begin / run / commit cycle and retries it when the service aborts because
of contention.

States:
  begun -> committing -> committed
  begun -> rolled_back
A failed commit returns to begun so the runner can roll back.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from firestore_rest.batch import BaseWriteBatch
from firestore_rest.errors import AlreadyCommitted, TransactionExhausted, ValidationError, is_retryable
from firestore_rest.query import Query
from firestore_rest.snapshots import DocumentSnapshot, QuerySnapshot, WriteResult, write_results

if TYPE_CHECKING:
    from firestore_rest.client import Firestore
    from firestore_rest.references import DocumentReference

logger = logging.getLogger(__name__)

T = TypeVar("T")

TransactionState = Literal["begun", "committing", "committed", "rolled_back"]

DEFAULT_BASE_DELAY_MS = 100


class Transaction(BaseWriteBatch):
    def __init__(self, client: Firestore, transaction_id: str, read_only: bool = False) -> None:
        super().__init__(client)
        self.id = transaction_id
        self.read_only = read_only
        self.state: TransactionState = "begun"

    def _check_open(self) -> None:
        if self.state == "rolled_back":
            raise AlreadyCommitted("Transaction has been rolled back")
        if self.state != "begun":
            raise AlreadyCommitted("Transaction has already been committed")

    def _stage(self, write):
        if self.read_only:
            raise ValidationError("Cannot write in a read-only transaction")
        return super()._stage(write)

    async def get(self, ref_or_query: DocumentReference | Query) -> DocumentSnapshot | QuerySnapshot:
        """Read a document or run a query inside the transaction."""
        self._check_open()
        if isinstance(ref_or_query, Query):
            return await ref_or_query._run(transaction=self.id)
        snapshots = await self._client._batch_get([ref_or_query], transaction=self.id)
        return snapshots[0]

    async def get_all(self, references: Iterable[DocumentReference]) -> list[DocumentSnapshot]:
        self._check_open()
        return await self._client._batch_get(list(references), transaction=self.id)

    async def commit(self) -> list[WriteResult]:
        """
        Send the staged writes with the transaction handle.

        Always calls the commit endpoint, even with nothing staged, so the
        server releases the transaction.
        """
        self._check_open()
        self.state = "committing"
        try:
            response = await self._client._api.commit([w.to_wire() for w in self._writes], transaction=self.id)
        except Exception:
            self.state = "begun"
            raise
        self.state = "committed"
        return write_results(response)

    async def rollback(self) -> None:
        if self.state == "rolled_back":
            return
        if self.state != "begun":
            raise AlreadyCommitted("Cannot roll back a committed transaction")
        await self._client._api.rollback(self.id)
        self.state = "rolled_back"


class TransactionRunner:
    """
    Runs user logic in a transaction, retrying on contention.

    After failed attempt n (counting from 1) the runner waits
    2**(n-1) * base_delay_ms before the next attempt: 100, 200, 400, 800 ms
    with the defaults. sleep is injectable for tests.
    """

    def __init__(
        self,
        client: Firestore,
        max_attempts: int,
        read_only: bool = False,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    ) -> None:
        if max_attempts < 1:
            raise ValidationError(f"max_attempts must be at least 1, got {max_attempts}")
        self._client = client
        self.max_attempts = max_attempts
        self.read_only = read_only
        self._sleep = sleep or asyncio.sleep
        self.base_delay_ms = base_delay_ms

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt `attempt`."""
        return (2 ** (attempt - 1)) * self.base_delay_ms / 1000

    async def _rollback_quietly(self, transaction: Transaction) -> None:
        if transaction.state != "begun":
            return
        try:
            await transaction.rollback()
        except Exception as e:
            logger.warning("transaction: rollback of %s failed: %s", transaction.id, e)

    async def run(self, fn: Callable[[Transaction], T | Awaitable[T]]) -> T:
        """
        Call fn(transaction) and commit, retrying the whole cycle on abort.

        fn may be a plain function or a coroutine function. Errors that are
        not retryable are re-raised as-is after a rollback.

        Raises:
            TransactionExhausted: Every attempt was aborted
        """
        last_error: BaseException | None = None
        previous_id: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            transaction: Transaction | None = None
            try:
                transaction_id = await self._client._api.begin_transaction(
                    read_only=self.read_only, retry_transaction=previous_id
                )
                transaction = Transaction(self._client, transaction_id, read_only=self.read_only)
                result = fn(transaction)
                if inspect.isawaitable(result):
                    result = await result
                await transaction.commit()
                return result
            except Exception as e:
                # Nothing to roll back when begin itself failed
                if transaction is not None:
                    await self._rollback_quietly(transaction)
                if not is_retryable(e):
                    raise
                last_error = e
                if transaction is not None:
                    previous_id = transaction.id

            if attempt < self.max_attempts:
                delay = self.delay_for(attempt)
                logger.info(
                    "transaction: attempt %d/%d aborted, retrying in %.1fs", attempt, self.max_attempts, delay
                )
                await self._sleep(delay)

        raise TransactionExhausted(self.max_attempts, last_error) from last_error
