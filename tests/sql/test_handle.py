# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for sql.handle module - DbHandle error classification and lifecycle."""

from __future__ import annotations

import pytest

from genro_failover import BadConnectionError, Connector, DbHandle
from genro_failover.sql import open_handle
from genro_failover.sql.adapters import SqliteAdapter
from tests.conftest import FakeBadConnection


class TestClassify:
    """Tests for bad-connection classification."""

    async def test_bad_connection_translated(self, farm):
        """Errors the adapter classifies as bad become BadConnectionError."""
        backend = farm.add("a")
        db = await farm.open(farm.connector("a"))
        cause = FakeBadConnection("link down")
        backend.results.append(cause)

        with pytest.raises(BadConnectionError, match="link down") as exc_info:
            await db.execute("SELECT 1")
        assert exc_info.value.__cause__ is cause

    async def test_other_errors_pass_through(self, farm):
        """Any other error reaches the caller as the same object."""
        backend = farm.add("a")
        db = await farm.open(farm.connector("a"))
        cause = ValueError("syntax error")
        backend.results.append(cause)

        with pytest.raises(ValueError) as exc_info:
            await db.fetch_one("SELEC 1")
        assert exc_info.value is cause

    async def test_ping_classified(self, farm):
        farm.add("a", ping_error=FakeBadConnection("gone"))
        db = await farm.open(farm.connector("a"))
        with pytest.raises(BadConnectionError):
            await db.ping()


class TestOperations:
    """Tests for statement helpers."""

    async def test_statement_results_and_release(self, farm):
        """Each statement checks a connection out and back in."""
        backend = farm.add("a")
        backend.results.extend([3, {"id": 1}, [{"id": 1}]])
        db = await farm.open(farm.connector("a"))

        assert await db.execute("UPDATE t SET x = 1") == 3
        assert await db.fetch_one("SELECT id FROM t") == {"id": 1}
        assert await db.fetch_all("SELECT id FROM t") == [{"id": 1}]
        assert backend.releases == 3

    async def test_release_on_error(self, farm):
        """The connection is released when the statement fails."""
        backend = farm.add("a")
        backend.results.append(ValueError("boom"))
        db = await farm.open(farm.connector("a"))
        with pytest.raises(ValueError):
            await db.execute("SELECT 1")
        assert backend.releases == 1


class TestBegin:
    """Tests for DbHandle.begin() / end()."""

    async def test_begin_returns_connection(self, farm):
        backend = farm.add("a")
        db = await farm.open(farm.connector("a"))
        conn = await db.begin()
        assert conn is backend
        assert backend.begins == 1
        assert backend.releases == 0
        await db.end(conn)
        assert backend.releases == 1

    async def test_begin_failure_releases(self, farm):
        """A failing BEGIN hands the connection back."""
        backend = farm.add("a")
        backend.begin_error = FakeBadConnection("gone")
        db = await farm.open(farm.connector("a"))
        with pytest.raises(BadConnectionError):
            await db.begin()
        assert backend.releases == 1


class TestClose:
    """Tests for DbHandle.close()."""

    async def test_close_idempotent(self, farm):
        """Closing twice closes the raw handle once."""
        backend = farm.add("a")
        db = await farm.open(farm.connector("a"))
        await db.close()
        await db.close()
        assert backend.closes == 1
        assert db.closed

    async def test_closed_handle_is_bad_connection(self, farm):
        """Using a closed handle raises BadConnectionError without touching the driver."""
        backend = farm.add("a")
        db = await farm.open(farm.connector("a"))
        await db.close()
        with pytest.raises(BadConnectionError, match="closed"):
            await db.ping()
        with pytest.raises(BadConnectionError):
            await db.execute("SELECT 1")
        with pytest.raises(BadConnectionError):
            await db.begin()
        assert backend.pings == 0
        assert backend.statements == []

    async def test_repr(self, farm):
        farm.add("a")
        db = await farm.open(farm.connector("a"))
        assert repr(db) == "<DbHandle fake:a open>"
        await db.close()
        assert repr(db) == "<DbHandle fake:a closed>"


class TestOpenHandle:
    """Tests for open_handle() with the registered adapters."""

    async def test_sqlite(self, tmp_path):
        connector = Connector(str(tmp_path / "test.db"))
        db = await open_handle(connector)
        try:
            assert isinstance(db, DbHandle)
            assert isinstance(db.adapter, SqliteAdapter)
            assert db.connector == connector
            await db.ping()
        finally:
            await db.close()

    async def test_unknown_driver(self):
        with pytest.raises(ValueError, match="Unknown database driver"):
            await open_handle(Connector("x", "oracle"))
