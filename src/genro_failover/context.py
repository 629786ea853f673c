# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Context propagation of the active transaction via contextvars.

Connection.transaction() attaches its Transaction to the current context
for the duration of the block, so helpers deep in the call stack can
join it without being passed the transaction explicitly:

    async def audit(conn, message):
        tx = current_transaction()
        target = tx if tx is not None else conn
        await target.execute("INSERT INTO audit (msg) VALUES (:msg)", {"msg": message})

For work scheduled outside the block (threads, loop callbacks), build an
explicit context with context_with_transaction() and run it there.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import Context, ContextVar, copy_context
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sql.transaction import Transaction

# Transaction context variable - each async task sees its own transaction
_current_tx: ContextVar[Transaction | None] = ContextVar("db_transaction", default=None)


def context_with_transaction(tx: Transaction, ctx: Context | None = None) -> Context:
    """Return a copy of `ctx` (default: the current context) carrying `tx`."""
    new_ctx = ctx.copy() if ctx is not None else copy_context()
    new_ctx.run(_current_tx.set, tx)
    return new_ctx


def transaction_from_context(ctx: Context | None = None) -> Transaction | None:
    """Return the transaction carried by `ctx` (default: the current context)."""
    if ctx is None:
        return _current_tx.get()
    return ctx.get(_current_tx)


def current_transaction() -> Transaction | None:
    """Return the transaction attached to the current context, if any."""
    return _current_tx.get()


@contextmanager
def attach_transaction(tx: Transaction) -> Iterator[Transaction]:
    """Attach `tx` to the current context for the duration of the block."""
    token = _current_tx.set(tx)
    try:
        yield tx
    finally:
        _current_tx.reset(token)


__all__ = [
    "attach_transaction",
    "context_with_transaction",
    "current_transaction",
    "transaction_from_context",
]
