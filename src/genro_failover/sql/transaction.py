# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Transactions pinned to one physical connection, with guaranteed cleanup.

State machine:
    NOT_STARTED → ACTIVE → COMMITTED | ROLLED_BACK

transaction_scope() drives it:

- begin: through the retry strategy, so a bad connection while beginning
  rotates connectors. Failure raises TransactionError(op="begin").
- block exits normally: commit. Failure raises TransactionError(op="commit");
  no rollback is attempted.
- block raises an Exception: rollback, then TransactionError(op=None)
  wrapping the exception. A failing rollback is attached as
  rollback_error, a TransactionError(op="rollback").
- block raises any other BaseException (an uncontrolled fault): rollback,
  then TransactionError(op="panic") wrapping a PanicError with the
  formatted traceback.
- cancellation, KeyboardInterrupt, SystemExit: rollback, then the
  original exception propagates unchanged.

Rollback is attempted exactly once on every failing exit path.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..context import attach_transaction
from ..errors import PanicError, TransactionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from .handle import DbHandle
    from .retry import RetryStrategy

logger = logging.getLogger(__name__)

# Exit signals that are never converted into a TransactionError
_PROPAGATE = (asyncio.CancelledError, KeyboardInterrupt, SystemExit, GeneratorExit)


class TxState(Enum):
    """Lifecycle state of a Transaction."""

    NOT_STARTED = "not started"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled back"


@dataclass(frozen=True)
class TxOptions:
    """Options applied when beginning a transaction.

    Attributes:
        isolation_level: Driver-specific level name, e.g. "serializable"
            (PostgreSQL) or "immediate" (SQLite). None uses the default.
        read_only: Start a read-only transaction where supported.
    """

    isolation_level: str | None = None
    read_only: bool = False


class Transaction:
    """A transaction bound to one connection checked out of a DbHandle.

    Statements run directly on that connection: they are never retried,
    since the server-side transaction cannot survive a reconnect. A bad
    connection inside a transaction raises BadConnectionError and fails
    the transaction.

    Attributes:
        name: Diagnostic name, included in every TransactionError.
        db: The handle the transaction was begun on.
        state: Current TxState.
    """

    def __init__(self, name: str, db: DbHandle):
        self.name = name
        self.db = db
        self.state = TxState.NOT_STARTED
        self._conn: Any = None

    def __repr__(self) -> str:
        return f"<Transaction {self.name!r} {self.state.value}>"

    @classmethod
    async def begin(
        cls, name: str, db: DbHandle, options: TxOptions | None = None
    ) -> Transaction:
        """Begin a transaction named `name` on `db`."""
        tx = cls(name, db)
        tx._conn = await db.begin(options)
        tx.state = TxState.ACTIVE
        return tx

    def _active_conn(self) -> Any:
        if self.state is not TxState.ACTIVE:
            raise TransactionError(
                self.name, "done", RuntimeError(f"transaction is {self.state.value}")
            )
        return self._conn

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        conn = self._active_conn()
        with self.db.classify():
            return await self.db.adapter.execute(conn, query, params)

    async def execute_many(self, query: str, params_list: Sequence[dict[str, Any]]) -> int:
        """Execute query multiple times with different params (batch insert)."""
        conn = self._active_conn()
        with self.db.classify():
            return await self.db.adapter.execute_many(conn, query, params_list)

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        conn = self._active_conn()
        with self.db.classify():
            return await self.db.adapter.fetch_one(conn, query, params)

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        conn = self._active_conn()
        with self.db.classify():
            return await self.db.adapter.fetch_all(conn, query, params)

    async def execute_script(self, script: str) -> None:
        """Execute multiple statements.

        Note: SQLite commits any open transaction before running a script.
        """
        conn = self._active_conn()
        with self.db.classify():
            await self.db.adapter.execute_script(conn, script)

    # -------------------------------------------------------------------------
    # Termination (driven by transaction_scope)
    # -------------------------------------------------------------------------

    async def _commit(self) -> None:
        conn = self._active_conn()
        try:
            with self.db.classify():
                await self.db.adapter.commit(conn)
            self.state = TxState.COMMITTED
        except BaseException:
            # a failed commit leaves nothing to roll back on the server
            self.state = TxState.ROLLED_BACK
            raise
        finally:
            await self._end(conn)

    async def _rollback(self) -> None:
        conn = self._active_conn()
        try:
            with self.db.classify():
                await self.db.adapter.rollback(conn)
        finally:
            self.state = TxState.ROLLED_BACK
            await self._end(conn)

    async def _end(self, conn: Any) -> None:
        try:
            await self.db.end(conn)
        except Exception as exc:
            logger.warning("Transaction %s: failed to release connection: %s", self.name, exc)


async def _abort(tx: Transaction, error: TransactionError) -> None:
    """Roll back once; a rollback failure is attached to `error`."""
    try:
        await tx._rollback()
    except Exception as exc:
        logger.warning("Transaction %s: rollback failed: %s", tx.name, exc)
        error.rollback_error = TransactionError(tx.name, "rollback", exc)


@asynccontextmanager
async def transaction_scope(
    strategy: RetryStrategy, name: str, options: TxOptions | None = None
) -> AsyncIterator[Transaction]:
    """Begin a transaction, yield it, then commit or roll back.

    The transaction is attached to the current context for the duration
    of the block (see genro_failover.context.current_transaction).
    """
    try:
        tx = await strategy.run(lambda db: Transaction.begin(name, db, options))
    except Exception as exc:
        raise TransactionError(name, "begin", exc) from exc

    try:
        with attach_transaction(tx):
            yield tx
    except Exception as exc:
        error = TransactionError(name, None, exc)
        await _abort(tx, error)
        raise error from exc
    except _PROPAGATE:
        try:
            await tx._rollback()
        except Exception as rb_exc:
            logger.warning("Transaction %s: rollback after interruption failed: %s", name, rb_exc)
        raise
    except BaseException as exc:
        stack = "".join(traceback.format_exception(exc))
        error = TransactionError(name, "panic", PanicError(exc, stack))
        await _abort(tx, error)
        raise error from exc

    try:
        await tx._commit()
    except Exception as exc:
        raise TransactionError(name, "commit", exc) from exc


__all__ = ["Transaction", "TxOptions", "TxState", "transaction_scope"]
