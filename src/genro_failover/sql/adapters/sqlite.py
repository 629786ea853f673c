# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite async adapter using aiosqlite with per-request connections."""

from __future__ import annotations

import itertools
import sqlite3
from typing import TYPE_CHECKING, Any

import aiosqlite

from .base import DbAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..transaction import TxOptions

# Names for shared-cache in-memory databases, unique per process
_memory_ids = itertools.count(1)


class SqliteHandle:
    """Raw SQLite handle: the database location plus an anchor connection.

    The anchor answers pings and keeps a shared in-memory database alive
    while the handle is open. Statements and transactions never run on it.

    Attributes:
        database: Path or `file:` URI every checked-out connection opens.
        anchor: Connection held for the lifetime of the handle.
        closed: True once close() was called.
    """

    def __init__(self, database: str, anchor: aiosqlite.Connection):
        self.database = database
        self.anchor = anchor
        self.closed = False

    def __repr__(self) -> str:
        return f"<SqliteHandle {self.database}>"

    async def close(self) -> None:
        """Close the anchor connection. Closing twice is a no-op."""
        if self.closed:
            return
        self.closed = True
        await self.anchor.close()


class SqliteAdapter(DbAdapter):
    """SQLite async adapter with per-request connections.

    Uses :name placeholders natively. open() returns a SqliteHandle; each
    acquire() opens a new connection to its database in autocommit mode,
    release() closes it. Statements and transactions therefore never share
    a connection: a transaction is isolated from concurrent statements
    issued through the same handle.

    ":memory:" is opened as a named shared-cache in-memory database, so
    every connection of one handle sees the same data.

    Isolation levels map to SQLite's BEGIN modes: "deferred" (default),
    "immediate", "exclusive". read_only is not supported by SQLite and
    is ignored.
    """

    _BEGIN_MODES = frozenset({"deferred", "immediate", "exclusive"})

    # Driver messages meaning the connection cannot be used any more
    _BAD_CONNECTION_MESSAGES = (
        "closed database",
        "connection closed",
        "no active connection",
        "unable to open database file",
        "disk i/o error",
    )

    async def _connect(self, database: str) -> aiosqlite.Connection:
        return await aiosqlite.connect(
            database, isolation_level=None, uri=database.startswith("file:")
        )

    def _check_open(self, raw: SqliteHandle) -> None:
        if raw.closed:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")

    async def open(self, address: str) -> SqliteHandle:
        """Open the anchor connection for `address`."""
        database = address or ":memory:"
        if database == ":memory:":
            database = f"file:genro-failover-{next(_memory_ids)}?mode=memory&cache=shared"
        anchor = await self._connect(database)
        return SqliteHandle(database, anchor)

    async def close(self, raw: SqliteHandle) -> None:
        """Close the handle's anchor connection."""
        await raw.close()

    async def ping(self, raw: SqliteHandle) -> None:
        """Run a trivial query on the anchor connection."""
        self._check_open(raw)
        async with raw.anchor.execute("SELECT 1") as cursor:
            await cursor.fetchone()

    async def acquire(self, raw: SqliteHandle) -> aiosqlite.Connection:
        """Open new connection for request."""
        self._check_open(raw)
        return await self._connect(raw.database)

    async def release(self, raw: SqliteHandle, conn: aiosqlite.Connection) -> None:
        """Close connection."""
        await conn.close()

    def is_bad_connection(self, exc: BaseException) -> bool:
        """Closed connections and unreachable database files are bad connections."""
        if not isinstance(exc, (sqlite3.ProgrammingError, sqlite3.OperationalError, ValueError)):
            return False
        message = str(exc).lower()
        return any(m in message for m in self._BAD_CONNECTION_MESSAGES)

    async def begin(self, conn: aiosqlite.Connection, options: TxOptions | None = None) -> None:
        """Issue BEGIN with the mode given by options.isolation_level."""
        mode = "deferred"
        if options is not None and options.isolation_level:
            mode = options.isolation_level.lower()
            if mode not in self._BEGIN_MODES:
                raise ValueError(
                    f"Unsupported SQLite isolation level: '{options.isolation_level}'. "
                    f"Supported: {', '.join(sorted(self._BEGIN_MODES))}"
                )
        await conn.execute(f"BEGIN {mode.upper()}")

    async def commit(self, conn: aiosqlite.Connection) -> None:
        """Commit transaction on connection."""
        await conn.commit()

    async def rollback(self, conn: aiosqlite.Connection) -> None:
        """Rollback transaction on connection."""
        await conn.rollback()

    async def execute(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> int:
        """Execute query, return affected row count."""
        async with conn.execute(query, params or {}) as cursor:
            return cursor.rowcount

    async def execute_many(
        self, conn: aiosqlite.Connection, query: str, params_list: Sequence[dict[str, Any]]
    ) -> int:
        """Execute query multiple times with different params (batch insert)."""
        await conn.executemany(query, params_list)
        return len(params_list)

    async def fetch_one(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        async with conn.execute(query, params or {}) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
            cols = [c[0] for c in cursor.description]
            return dict(zip(cols, row, strict=True))

    async def fetch_all(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        async with conn.execute(query, params or {}) as cursor:
            rows = await cursor.fetchall()
            cols = [c[0] for c in cursor.description]
            return [dict(zip(cols, row, strict=True)) for row in rows]

    async def execute_script(self, conn: aiosqlite.Connection, script: str) -> None:
        """Execute multiple statements (for schema creation)."""
        await conn.executescript(script)
