# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Retry strategies: how a Connection runs an operation against its live handle.

The strategy is chosen once, when the Connection is built:

- NoRetry: one connector or an injected handle. Reconnecting could not
  change the outcome, so the operation runs exactly once.
- RotateRetry: two or more connectors. A BadConnectionError replaces the
  live handle with the next reachable connector and replays the operation.

Only BadConnectionError is retried. Query errors, constraint violations,
permission errors and cancellation are raised after a single attempt.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from ..errors import BadConnectionError, ConfigurationError, ConnectionFailedError

if TYPE_CHECKING:
    from .connection import Connection
    from .handle import DbHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Callable[["DbHandle"], Awaitable[T]]


class RetryStrategy(ABC):
    """Runs operations against a connection's live handle.

    Attributes:
        connection: The Connection whose handle operations run against.
        attempts: Total operation invocations since creation.
        rotations: Total reconnects triggered since creation.
    """

    def __init__(self, connection: Connection):
        self.connection = connection
        self.attempts = 0
        self.rotations = 0

    @abstractmethod
    async def run(self, op: Operation[T]) -> T:
        """Run `op` against the live handle and return its result."""
        ...


class NoRetry(RetryStrategy):
    """Invoke the operation once; its outcome is returned or raised verbatim."""

    async def run(self, op: Operation[T]) -> T:
        self.attempts += 1
        return await op(self.connection.live_handle())


class RotateRetry(RetryStrategy):
    """Replace the live handle and replay the operation on bad connections.

    Each BadConnectionError triggers one rotation pass over the
    connectors. If the pass fails, its ConnectionFailedError is raised
    chained from the operation's error.

    By default there is no limit beyond each pass trying every connector
    once: as long as rotation succeeds the operation is replayed. With
    `max_rotations` set, an operation is replayed after at most that many
    rotations; past that the bad connection errors seen are raised as a
    ConnectionFailedError.
    """

    def __init__(self, connection: Connection, max_rotations: int | None = None):
        super().__init__(connection)
        self.max_rotations = max_rotations

    async def run(self, op: Operation[T]) -> T:
        failures: list[BadConnectionError] = []
        while True:
            db = self.connection.handle
            self.attempts += 1
            try:
                if db is None:
                    raise BadConnectionError("no live connection")
                return await op(db)
            except BadConnectionError as exc:
                failures.append(exc)
                if self.max_rotations is not None and len(failures) > self.max_rotations:
                    raise ConnectionFailedError(failures) from exc

                logger.warning("Bad connection on %r, rotating connectors: %s", db, exc)
                self.rotations += 1
                try:
                    await self.connection.reconnect(db)
                except (ConnectionFailedError, ConfigurationError) as err:
                    raise err from exc


__all__ = ["NoRetry", "Operation", "RetryStrategy", "RotateRetry"]
