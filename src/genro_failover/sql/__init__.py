# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async SQL layer with connector failover and transaction support.

Components:
    Connection: Owns the live handle, rotates connectors on bad connections.
    DbHandle: One live backend handle bound to its adapter.
    NoRetry, RotateRetry: Retry strategies chosen from the connector count.
    Transaction: Statements pinned to one physical connection.
    TxOptions, TxState: Transaction options and lifecycle states.
    DbAdapter: Abstract base for SQLite/PostgreSQL adapters.

Failover Model:
    - open(): Connects using the first connector that opens and pings
    - execute()/fetch_*(): Run on the live handle; a bad connection
      rotates to the next reachable connector and replays the statement
    - transaction()/transact(): Begin with failover, then pin every
      statement to one connection; COMMIT on success, ROLLBACK otherwise
    - close(): Closes the live handle

Example:
    conn = await Connection.open(
        connectors=[Connector("/data/primary.db"), Connector("/data/replica.db")]
    )
    async with conn.transaction("import") as tx:
        await tx.execute("INSERT INTO items (id) VALUES (:id)", {"id": "i1"})
    # COMMIT on success, ROLLBACK on exception
    await conn.close()
"""

from .adapters import ADAPTERS, DbAdapter, get_adapter, register_adapter
from .connection import Connection, open_connection
from .handle import DbHandle, open_handle
from .retry import NoRetry, RetryStrategy, RotateRetry
from .transaction import Transaction, TxOptions, TxState, transaction_scope

__all__ = [
    # Main classes
    "Connection",
    "DbHandle",
    "Transaction",
    "TxOptions",
    "TxState",
    # Strategies
    "NoRetry",
    "RetryStrategy",
    "RotateRetry",
    # Adapters
    "ADAPTERS",
    "DbAdapter",
    "get_adapter",
    "register_adapter",
    # Functions
    "open_connection",
    "open_handle",
    "transaction_scope",
]
