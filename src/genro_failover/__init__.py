# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""genro-failover: SQL connection failover and panic-safe transactions."""

from .config import CONNECT_TIMEOUT, PING_TIMEOUT, ConnectionConfig, config_from_env
from .connector import Connector
from .context import (
    attach_transaction,
    context_with_transaction,
    current_transaction,
    transaction_from_context,
)
from .errors import (
    BadConnectionError,
    ConfigurationError,
    ConnectionFailedError,
    ConnectorError,
    FailoverError,
    PanicError,
    TransactionError,
)
from .sql import Connection, DbHandle, Transaction, TxOptions, TxState, open_connection

__version__ = "0.1.0"

__all__ = [
    "BadConnectionError",
    "CONNECT_TIMEOUT",
    "ConfigurationError",
    "Connection",
    "ConnectionConfig",
    "ConnectionFailedError",
    "Connector",
    "ConnectorError",
    "DbHandle",
    "FailoverError",
    "PING_TIMEOUT",
    "PanicError",
    "Transaction",
    "TransactionError",
    "TxOptions",
    "TxState",
    "attach_transaction",
    "config_from_env",
    "context_with_transaction",
    "current_transaction",
    "open_connection",
    "transaction_from_context",
]
