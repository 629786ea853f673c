# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PostgreSQL async adapter using psycopg3 with connection pooling.

The raw handle is an AsyncConnectionPool: pooling is delegated to
psycopg_pool. Operations outside a transaction borrow a connection for
the duration of one statement (autocommit); a transaction checks out
one connection and keeps it until commit or rollback.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from .base import DbAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..transaction import TxOptions


class PostgresAdapter(DbAdapter):
    """PostgreSQL async adapter with connection pooling.

    Uses :name placeholders converted to %(name)s. open() creates and
    opens a pool, close() closes it.
    """

    # SQLSTATE prefixes meaning the server connection is gone:
    # class 08 (connection exception), 57P01-57P03 (shutdown / cannot connect now)
    _BAD_CONNECTION_SQLSTATES = ("08", "57P01", "57P02", "57P03")

    def __init__(self, pool_size: int = 10, connect_timeout: float = 10.0):
        self.pool_size = pool_size
        self.connect_timeout = connect_timeout

        # Verify psycopg is available at init time
        try:
            import psycopg  # noqa: F401
            import psycopg_pool  # noqa: F401
        except ImportError as e:
            raise ImportError(
                "PostgreSQL support requires psycopg. "
                "Install with: pip install genro-failover[postgresql]"
            ) from e

    def _convert_placeholders(self, query: str) -> str:
        """Convert :name placeholders to %(name)s for psycopg."""
        return re.sub(r"(?<!:):([a-zA-Z_][a-zA-Z0-9_]*)", r"%(\1)s", query)

    async def open(self, address: str) -> Any:
        """Create a pool for `address` and wait until it is usable."""
        from psycopg_pool import AsyncConnectionPool

        pool = AsyncConnectionPool(
            address,
            min_size=1,
            max_size=self.pool_size,
            open=False,
            kwargs={"autocommit": True},
        )
        try:
            await pool.open(wait=True, timeout=self.connect_timeout)
        except BaseException:
            await pool.close()
            raise
        return pool

    async def close(self, raw: Any) -> None:
        """Close connection pool."""
        await raw.close()

    async def ping(self, raw: Any) -> None:
        """Run a trivial query on a pooled connection."""
        async with raw.connection() as conn:
            await conn.execute("SELECT 1")

    async def acquire(self, raw: Any) -> Any:
        """Acquire connection from pool."""
        return await raw.getconn()

    async def release(self, raw: Any, conn: Any) -> None:
        """Restore autocommit and return connection to pool."""
        try:
            if not conn.closed and not conn.autocommit:
                await conn.set_autocommit(True)
        finally:
            await raw.putconn(conn)

    def is_bad_connection(self, exc: BaseException) -> bool:
        """Classify psycopg and pool errors meaning the server is unreachable."""
        import psycopg
        from psycopg_pool import PoolClosed, PoolTimeout

        if isinstance(exc, (PoolTimeout, PoolClosed, psycopg.InterfaceError)):
            return True
        if isinstance(exc, psycopg.OperationalError):
            sqlstate = getattr(exc, "sqlstate", None)
            if sqlstate is None:
                return True
            return sqlstate.startswith(self._BAD_CONNECTION_SQLSTATES)
        return False

    async def begin(self, conn: Any, options: TxOptions | None = None) -> None:
        """Leave autocommit and apply isolation level / read-only options.

        The server-side transaction starts with the first statement.
        """
        from psycopg import IsolationLevel

        await conn.set_autocommit(False)
        if options is None:
            return
        if options.isolation_level:
            level = options.isolation_level.upper().replace(" ", "_")
            try:
                await conn.set_isolation_level(IsolationLevel[level])
            except KeyError:
                raise ValueError(
                    f"Unsupported PostgreSQL isolation level: '{options.isolation_level}'"
                ) from None
        if options.read_only:
            await conn.set_read_only(True)

    async def commit(self, conn: Any) -> None:
        """Commit transaction on connection."""
        await conn.commit()

    async def rollback(self, conn: Any) -> None:
        """Rollback transaction on connection."""
        await conn.rollback()

    async def execute(self, conn: Any, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        query = self._convert_placeholders(query)
        async with conn.cursor() as cur:
            await cur.execute(query, params or {})
            return cur.rowcount

    async def execute_many(
        self, conn: Any, query: str, params_list: Sequence[dict[str, Any]]
    ) -> int:
        """Execute query multiple times with different params (batch insert)."""
        query = self._convert_placeholders(query)
        async with conn.cursor() as cur:
            await cur.executemany(query, params_list)
            return len(params_list)

    async def fetch_one(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        from psycopg.rows import dict_row

        query = self._convert_placeholders(query)
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, params or {})
            return await cur.fetchone()

    async def fetch_all(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        from psycopg.rows import dict_row

        query = self._convert_placeholders(query)
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, params or {})
            return await cur.fetchall()

    async def execute_script(self, conn: Any, script: str) -> None:
        """Execute multiple statements (for schema creation)."""
        async with conn.cursor() as cur:
            await cur.execute(script)


__all__ = ["PostgresAdapter"]
