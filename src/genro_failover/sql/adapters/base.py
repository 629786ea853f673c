# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter class for async database drivers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..transaction import TxOptions


class DbAdapter(ABC):
    """Abstract base class for async database drivers.

    An adapter is stateless: it knows how to drive one kind of backend
    but holds no connection itself. Live objects flow through its methods:

    - raw handle: what open() returns (e.g. a pool, or a SqliteHandle). Owned by
      a DbHandle, closed exactly once via close().
    - conn: a physical connection checked out of the raw handle with
      acquire() and returned with release(). Checked-out connections are
      never shared, so a transaction is isolated from other statements.

    Transaction control:
    - begin(conn, options): Start a transaction on a checked-out conn
    - commit(conn) / rollback(conn): Terminate it

    Failure classification:
    - is_bad_connection(exc): True when exc means the link is unusable
      and the handle must be replaced. Every other error is a query or
      logic failure and is never retried.

    Statements use `:name` placeholders; adapters translate them where the
    driver needs another style.
    """

    # -------------------------------------------------------------------------
    # Handle lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def open(self, address: str) -> Any:
        """Open a new raw handle to the backend at `address`."""
        ...

    @abstractmethod
    async def close(self, raw: Any) -> None:
        """Close a raw handle and release all its resources."""
        ...

    @abstractmethod
    async def ping(self, raw: Any) -> None:
        """Verify the raw handle can still reach the backend."""
        ...

    @abstractmethod
    async def acquire(self, raw: Any) -> Any:
        """Check out a physical connection from the raw handle."""
        ...

    @abstractmethod
    async def release(self, raw: Any, conn: Any) -> None:
        """Return a physical connection to the raw handle."""
        ...

    @abstractmethod
    def is_bad_connection(self, exc: BaseException) -> bool:
        """Return True if `exc` signals an unusable connection."""
        ...

    # -------------------------------------------------------------------------
    # Transaction control (on a checked-out connection)
    # -------------------------------------------------------------------------

    @abstractmethod
    async def begin(self, conn: Any, options: TxOptions | None = None) -> None:
        """Begin a transaction on connection."""
        ...

    @abstractmethod
    async def commit(self, conn: Any) -> None:
        """Commit transaction on connection."""
        ...

    @abstractmethod
    async def rollback(self, conn: Any) -> None:
        """Rollback transaction on connection."""
        ...

    # -------------------------------------------------------------------------
    # Connection-bound operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def execute(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> int:
        """Execute query on connection, return affected row count."""
        ...

    @abstractmethod
    async def execute_many(
        self, conn: Any, query: str, params_list: Sequence[dict[str, Any]]
    ) -> int:
        """Execute query multiple times with different params (batch insert)."""
        ...

    @abstractmethod
    async def fetch_one(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query on connection, return single row as dict or None."""
        ...

    @abstractmethod
    async def fetch_all(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query on connection, return all rows as list of dicts."""
        ...

    @abstractmethod
    async def execute_script(self, conn: Any, script: str) -> None:
        """Execute multiple statements on connection (for schema creation)."""
        ...
