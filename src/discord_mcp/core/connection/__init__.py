"""Gateway connection lifecycle: state machine, reconnect policy, manager."""

from discord_mcp.core.connection.backoff import compute_backoff_ms
from discord_mcp.core.connection.manager import ConnectionManager
from discord_mcp.core.connection.state import (
    BackoffStrategy,
    ConnectionState,
    ConnectionStats,
    ReconnectPolicy,
)

__all__ = [
    "BackoffStrategy",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStats",
    "ReconnectPolicy",
    "compute_backoff_ms",
]
