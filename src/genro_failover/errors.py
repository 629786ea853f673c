# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for connection failover and transactions.

Taxonomy:
    ConfigurationError: Invalid setup or failing post-connect hook.
    BadConnectionError: The physical link is unusable (the only retryable signal).
    ConnectorError: One failed connection attempt with a specific connector.
    ConnectionFailedError: Every connector failed during a rotation pass.
    TransactionError: A transaction phase failed (begin/commit/rollback/panic).
    PanicError: Snapshot of an uncontrolled fault raised inside a transaction.

Driver errors that are not bad-connection signals are never wrapped:
they reach the caller unmodified.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .connector import Connector

ERR_WITH_DB_AND_CONNECTORS = "cannot use connectors when using an injected db"
ERR_WITH_DB_AND_CONFIGURATION = "cannot use a configure hook when using an injected db"
ERR_NO_CONNECTORS = "no connectors configured or database specified"
ERR_PING_TIMEOUT_INVALID = "ping timeout must be greater than or equal to zero"
ERR_CONNECT_TIMEOUT_INVALID = "connect timeout must be greater than zero"
ERR_MAX_ROTATIONS_INVALID = "max rotations must be greater than or equal to zero"


class FailoverError(Exception):
    """Base class for all genro-failover errors."""


class ConfigurationError(FailoverError):
    """Bad configuration combination or a failing configure hook."""

    def __str__(self) -> str:
        return f"configuration error: {super().__str__()}"


class BadConnectionError(FailoverError):
    """The connection is no longer usable and must be replaced.

    Adapters translate driver-specific signals (closed connection, lost
    socket, ping timeout) into this error, chained from the driver error.
    """


class ConnectorError(FailoverError):
    """A connection attempt with one connector failed.

    Attributes:
        connector: The connector that was tried.
        op: Failed step, "open" or "ping".
        cause: The underlying error.
    """

    def __init__(self, connector: Connector, op: str, cause: BaseException):
        super().__init__(connector, op, cause)
        self.connector = connector
        self.op = op
        self.cause = cause

    def __str__(self) -> str:
        return f"unable to connect: {self.connector}: {self.op}: {self.cause}"


class ConnectionFailedError(FailoverError):
    """No connector could be reached.

    Attributes:
        errors: Every per-attempt error, in attempt order.
    """

    def __init__(self, errors: Sequence[BaseException]):
        self.errors = tuple(errors)
        super().__init__(*self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return "connection failed"
        return "connection failed: " + "; ".join(str(e) for e in self.errors)


class TransactionError(FailoverError):
    """A transaction failed.

    Attributes:
        name: Diagnostic name given to the transaction.
        op: Phase that failed ("begin", "commit", "rollback", "panic", "done"),
            or None when the unit of work itself failed.
        cause: The underlying error.
        rollback_error: Nested rollback TransactionError when the rollback
            after a failed unit of work also failed.
    """

    def __init__(
        self,
        name: str,
        op: str | None,
        cause: BaseException,
        rollback_error: TransactionError | None = None,
    ):
        super().__init__(name, op, cause)
        self.name = name
        self.op = op
        self.cause = cause
        self.rollback_error = rollback_error

    def matches(self, name: str, op: str | None = None) -> bool:
        """True if this error belongs to transaction `name` and phase `op`."""
        return self.name == name and self.op == op

    def __str__(self) -> str:
        if self.op:
            msg = f"transaction: {self.name}: {self.op}: {self.cause}"
        else:
            msg = f"transaction: {self.name}: {self.cause}"
        if self.rollback_error is not None:
            msg += f"; {self.rollback_error}"
        return msg


class PanicError(FailoverError):
    """Snapshot of an uncontrolled fault, including its stack trace."""

    def __init__(self, fault: BaseException, stack: str):
        super().__init__(stack)
        self.fault = fault
        self.stack = stack

    def __str__(self) -> str:
        return f"{type(self.fault).__name__}: {self.fault}\n{self.stack}"


__all__ = [
    "BadConnectionError",
    "ConfigurationError",
    "ConnectionFailedError",
    "ConnectorError",
    "ERR_CONNECT_TIMEOUT_INVALID",
    "ERR_MAX_ROTATIONS_INVALID",
    "ERR_NO_CONNECTORS",
    "ERR_PING_TIMEOUT_INVALID",
    "ERR_WITH_DB_AND_CONFIGURATION",
    "ERR_WITH_DB_AND_CONNECTORS",
    "FailoverError",
    "PanicError",
    "TransactionError",
]
