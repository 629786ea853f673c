# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: scripted fake backends for failover and transaction tests.

A FakeFarm holds named FakeBackend targets. Tests configure each backend's
behavior (open/ping/begin/commit/rollback errors, scripted statement
results) and pass farm.open as the Connection opener, so no real
database is needed to exercise rotation and retry.

Connection model of the fakes:
- Each open() of a backend returns the backend itself as raw handle
- acquire() returns the backend, release() counts releases
- FakeBadConnection is the only error the FakeAdapter classifies as
  a bad connection
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from genro_failover import Connector
from genro_failover.sql import DbAdapter, DbHandle


class FakeBadConnection(Exception):
    """Driver-level signal that the fake link is down."""


class FakeBackend:
    """One scripted backend target.

    Attributes:
        results: Outcomes consumed one per statement: an exception instance
            is raised, anything else is returned. When empty, statements
            return 1.
    """

    def __init__(
        self,
        name: str,
        *,
        open_error: BaseException | None = None,
        ping_error: BaseException | None = None,
        open_delay: float = 0.0,
        ping_delay: float = 0.0,
    ):
        self.name = name
        self.open_error = open_error
        self.ping_error = ping_error
        self.open_delay = open_delay
        self.ping_delay = ping_delay
        self.close_error: BaseException | None = None
        self.begin_error: BaseException | None = None
        self.commit_error: BaseException | None = None
        self.rollback_error: BaseException | None = None
        self.results: list[Any] = []
        self.statements: list[str] = []
        self.options: Any = None
        self.opens = 0
        self.pings = 0
        self.closes = 0
        self.begins = 0
        self.commits = 0
        self.rollbacks = 0
        self.releases = 0

    def __repr__(self) -> str:
        return f"<FakeBackend {self.name}>"

    def run(self, query: str) -> Any:
        self.statements.append(query)
        if self.results:
            outcome = self.results.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return 1


class FakeAdapter(DbAdapter):
    """Adapter driving FakeBackend objects."""

    def __init__(self, farm: FakeFarm):
        self.farm = farm

    async def open(self, address: str) -> FakeBackend:
        backend = self.farm.backends[address]
        backend.opens += 1
        self.farm.opened.append(address)
        if backend.open_delay:
            await asyncio.sleep(backend.open_delay)
        if backend.open_error is not None:
            raise backend.open_error
        return backend

    async def close(self, raw: FakeBackend) -> None:
        raw.closes += 1
        if raw.close_error is not None:
            raise raw.close_error

    async def ping(self, raw: FakeBackend) -> None:
        raw.pings += 1
        if raw.ping_delay:
            await asyncio.sleep(raw.ping_delay)
        if raw.ping_error is not None:
            raise raw.ping_error

    async def acquire(self, raw: FakeBackend) -> FakeBackend:
        return raw

    async def release(self, raw: FakeBackend, conn: FakeBackend) -> None:
        raw.releases += 1

    def is_bad_connection(self, exc: BaseException) -> bool:
        return isinstance(exc, FakeBadConnection)

    async def begin(self, conn: FakeBackend, options: Any = None) -> None:
        conn.begins += 1
        conn.options = options
        if conn.begin_error is not None:
            raise conn.begin_error

    async def commit(self, conn: FakeBackend) -> None:
        conn.commits += 1
        if conn.commit_error is not None:
            raise conn.commit_error

    async def rollback(self, conn: FakeBackend) -> None:
        conn.rollbacks += 1
        if conn.rollback_error is not None:
            raise conn.rollback_error

    async def execute(self, conn: FakeBackend, query: str, params: Any = None) -> Any:
        return conn.run(query)

    async def execute_many(self, conn: FakeBackend, query: str, params_list: Any) -> Any:
        return conn.run(query)

    async def fetch_one(self, conn: FakeBackend, query: str, params: Any = None) -> Any:
        return conn.run(query)

    async def fetch_all(self, conn: FakeBackend, query: str, params: Any = None) -> Any:
        return conn.run(query)

    async def execute_script(self, conn: FakeBackend, script: str) -> None:
        conn.run(script)


class FakeFarm:
    """Named fake backends plus an opener usable by Connection."""

    def __init__(self):
        self.backends: dict[str, FakeBackend] = {}
        self.opened: list[str] = []
        self.adapter = FakeAdapter(self)

    def add(self, name: str, **kwargs: Any) -> FakeBackend:
        backend = FakeBackend(name, **kwargs)
        self.backends[name] = backend
        return backend

    def connector(self, name: str) -> Connector:
        return Connector(name, driver="fake")

    def connectors(self, *names: str) -> list[Connector]:
        return [self.connector(name) for name in names]

    async def open(self, connector: Connector) -> DbHandle:
        raw = await self.adapter.open(connector.address)
        return DbHandle(self.adapter, raw, connector)


@pytest.fixture
def farm() -> FakeFarm:
    """Empty fake farm; add backends with farm.add(name)."""
    return FakeFarm()
