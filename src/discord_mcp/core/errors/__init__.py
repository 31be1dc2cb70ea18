"""Unified error vocabulary for discord-mcp.

Domain errors are values; gateway and lifecycle errors are exceptions that
are translated into domain errors at the operation boundary.

Usage:
    from discord_mcp.core.errors import DomainError, EntityKind, translate_exception
"""

from discord_mcp.core.errors.base import ERROR_MAPPINGS, translate_exception
from discord_mcp.core.errors.domain import DomainError, EntityKind, ErrorKind
from discord_mcp.core.errors.gateway import (
    GatewayAuthError,
    GatewayClosed,
    GatewayConnectError,
    GatewayError,
    GatewayForbidden,
    GatewayHTTPError,
    GatewayNotFound,
    GatewayRateLimited,
)
from discord_mcp.core.errors.lifecycle import ConnectionFailedError, NotConnectedError

__all__ = [
    # Registry
    "ERROR_MAPPINGS",
    "translate_exception",
    # Domain values
    "DomainError",
    "EntityKind",
    "ErrorKind",
    # Gateway errors
    "GatewayError",
    "GatewayNotFound",
    "GatewayForbidden",
    "GatewayRateLimited",
    "GatewayHTTPError",
    "GatewayConnectError",
    "GatewayAuthError",
    "GatewayClosed",
    # Lifecycle errors
    "NotConnectedError",
    "ConnectionFailedError",
]
