# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database adapters for SQLite and PostgreSQL.

This package provides stateless async drivers behind a unified interface.
A Connection never talks to aiosqlite or psycopg directly: it opens a
DbHandle through the adapter registered for the connector's driver.

Components:
    DbAdapter: Abstract base class defining the adapter interface.
    SqliteAdapter: SQLite adapter using aiosqlite, one connection per request.
    PostgresAdapter: PostgreSQL adapter using psycopg3 with connection pooling.
    get_adapter: Factory returning the adapter for a driver name.
    register_adapter: Add or replace a driver in the registry.

Handle Model:
    - open(address): Returns a raw handle (pool, or SqliteHandle)
    - ping(raw): Liveness check
    - acquire(raw) / release(raw, conn): Check out a physical connection
    - begin/commit/rollback(conn): Transaction control on that connection
    - is_bad_connection(exc): Driver-specific bad-connection classification
    - close(raw): Release everything held by the raw handle

Note:
    PostgreSQL requires psycopg: `pip install genro-failover[postgresql]`.
"""

from .base import DbAdapter
from .sqlite import SqliteAdapter, SqliteHandle

__all__ = [
    "ADAPTERS",
    "DbAdapter",
    "SqliteAdapter",
    "SqliteHandle",
    "get_adapter",
    "register_adapter",
]

# Adapter registry
ADAPTERS: dict[str, type[DbAdapter]] = {
    "sqlite": SqliteAdapter,
}


def register_adapter(driver: str, adapter_class: type[DbAdapter]) -> None:
    """Register `adapter_class` for connectors using `driver`."""
    ADAPTERS[driver.lower()] = adapter_class


def get_adapter(driver: str) -> DbAdapter:
    """Create the database adapter for a driver name.

    Args:
        driver: Driver identifier from a Connector ("sqlite", "postgresql", ...).

    Returns:
        DbAdapter instance.

    Raises:
        ValueError: If no adapter is registered for the driver.
        ImportError: If postgresql requested but psycopg not installed.
    """
    driver = driver.lower()

    if driver in ("postgresql", "postgres") and driver not in ADAPTERS:
        # Lazy import to avoid ImportError when psycopg not installed
        from .postgresql import PostgresAdapter

        ADAPTERS["postgresql"] = PostgresAdapter
        ADAPTERS["postgres"] = PostgresAdapter

    adapter_class = ADAPTERS.get(driver)
    if adapter_class is None:
        supported = ", ".join(sorted({*ADAPTERS, "postgresql"}))
        raise ValueError(f"Unknown database driver: '{driver}'. Supported: {supported}")
    return adapter_class()
