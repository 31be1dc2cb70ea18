"""Health surface for the gateway connection.

Exposes the connection manager's state as an MCP tool and, on HTTP
transports, as ``GET /health`` for orchestrator probes. Neither path ever
raises: both read :meth:`ConnectionManager.status`, which is always safe.
"""

import logging
from typing import Any, Collection, Dict, Tuple

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from discord_mcp.core.connection import ConnectionManager, ConnectionState
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.responses import success_response

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


def health_report(manager: ConnectionManager, server_name: str, server_version: str) -> Tuple[Dict[str, Any], int]:
    """Build the health document and its HTTP status code.

    Only a connected session is healthy; ``reconnecting`` and
    ``failed_permanently`` both report 503.
    """
    status = manager.status()
    healthy = status["state"] == ConnectionState.CONNECTED.value
    stats = {key: status[key] for key in ("connected", "guild_count", "latency_ms", "uptime_ms")}
    report = {
        "status": HEALTHY if healthy else UNHEALTHY,
        "server": {"name": server_name, "version": server_version},
        "discord": stats,
        "state": status["state"],
        "reconnect": {
            "attempts_so_far": status["attempts_so_far"],
            "max_attempts": status["max_attempts"],
            "last_error": status["last_error"],
        },
    }
    return report, 200 if healthy else 503


def register_health_tools(
    mcp: FastMCP,
    manager: ConnectionManager,
    *,
    server_name: str,
    server_version: str,
    http_route: bool = False,
    disabled: Collection[str] = (),
) -> None:
    """Register the connection status tool and, optionally, the HTTP probe.

    Args:
        mcp: FastMCP server instance
        manager: The process-wide connection manager
        server_name: Reported in the health document
        server_version: Reported in the health document
        http_route: Also mount ``GET /health`` (HTTP transports only)
        disabled: Tool names to leave unregistered
    """

    @canonical_tool(mcp, canonical_name="connection_status", disabled=disabled)
    def connection_status() -> dict:
        """
        Report the gateway connection state.

        WHEN TO USE:
        - Before a batch of operations, to confirm the bot is connected
        - After a not_connected error, to see whether it is reconnecting
          or has failed permanently

        Returns:
            JSON object with status, state, discord stats (connected,
            guild_count, latency_ms, uptime_ms) and reconnect attempts
        """
        report, _ = health_report(manager, server_name, server_version)
        return success_response(report, summary=f"Gateway {report['state']}").to_dict()

    if not http_route:
        return

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        report, status_code = health_report(manager, server_name, server_version)
        if status_code != 200:
            logger.debug("Health probe reporting %s", report["state"])
        return JSONResponse(report, status_code=status_code)
