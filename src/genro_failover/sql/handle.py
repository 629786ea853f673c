# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""DbHandle: one live backend handle bound to its adapter."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import TYPE_CHECKING, Any

from ..errors import BadConnectionError
from .adapters import DbAdapter, get_adapter

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from ..connector import Connector
    from .transaction import TxOptions


class DbHandle:
    """A live backend handle: the raw driver object plus the adapter driving it.

    Every driver error that the adapter classifies as a bad connection is
    re-raised as BadConnectionError (chained from the driver error); any
    other error reaches the caller unmodified.

    Attributes:
        adapter: Adapter for the handle's driver.
        raw: Raw driver object returned by adapter.open().
        connector: Connector the handle was opened with (None if injected).
    """

    def __init__(self, adapter: DbAdapter, raw: Any, connector: Connector | None = None):
        self.adapter = adapter
        self.raw = raw
        self.connector = connector
        self.closed = False

    def __repr__(self) -> str:
        target = self.connector if self.connector is not None else type(self.raw).__name__
        state = "closed" if self.closed else "open"
        return f"<DbHandle {target} {state}>"

    # -------------------------------------------------------------------------
    # Error classification
    # -------------------------------------------------------------------------

    @contextmanager
    def classify(self) -> Iterator[None]:
        """Translate bad-connection driver errors into BadConnectionError."""
        try:
            yield
        except BadConnectionError:
            raise
        except Exception as exc:
            if self.adapter.is_bad_connection(exc):
                raise BadConnectionError(str(exc) or type(exc).__name__) from exc
            raise

    @asynccontextmanager
    async def checkout(self) -> AsyncIterator[Any]:
        """Check out a physical connection for the duration of the block."""
        if self.closed:
            raise BadConnectionError(f"{self!r} is closed")
        with self.classify():
            conn = await self.adapter.acquire(self.raw)
        try:
            yield conn
        finally:
            await self.adapter.release(self.raw, conn)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def ping(self) -> None:
        """Verify the backend is reachable."""
        if self.closed:
            raise BadConnectionError(f"{self!r} is closed")
        with self.classify():
            await self.adapter.ping(self.raw)

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        async with self.checkout() as conn:
            with self.classify():
                return await self.adapter.execute(conn, query, params)

    async def execute_many(self, query: str, params_list: Sequence[dict[str, Any]]) -> int:
        """Execute query multiple times with different params (batch insert)."""
        async with self.checkout() as conn:
            with self.classify():
                return await self.adapter.execute_many(conn, query, params_list)

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        async with self.checkout() as conn:
            with self.classify():
                return await self.adapter.fetch_one(conn, query, params)

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        async with self.checkout() as conn:
            with self.classify():
                return await self.adapter.fetch_all(conn, query, params)

    async def execute_script(self, script: str) -> None:
        """Execute multiple statements (for schema creation)."""
        async with self.checkout() as conn:
            with self.classify():
                await self.adapter.execute_script(conn, script)

    async def begin(self, options: TxOptions | None = None) -> Any:
        """Check out a connection and begin a transaction on it.

        Returns:
            The physical connection the transaction is pinned to. It must be
            handed back with end() after commit or rollback.
        """
        if self.closed:
            raise BadConnectionError(f"{self!r} is closed")
        with self.classify():
            conn = await self.adapter.acquire(self.raw)
        try:
            with self.classify():
                await self.adapter.begin(conn, options)
        except BaseException:
            await self.adapter.release(self.raw, conn)
            raise
        return conn

    async def end(self, conn: Any) -> None:
        """Return a transaction's connection to the handle."""
        await self.adapter.release(self.raw, conn)

    async def close(self) -> None:
        """Close the raw handle. Closing twice is a no-op."""
        if self.closed:
            return
        self.closed = True
        await self.adapter.close(self.raw)


async def open_handle(connector: Connector) -> DbHandle:
    """Open a DbHandle using the adapter registered for the connector's driver."""
    adapter = get_adapter(connector.driver)
    raw = await adapter.open(connector.address)
    return DbHandle(adapter, raw, connector)


__all__ = ["DbHandle", "open_handle"]
