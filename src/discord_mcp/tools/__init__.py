"""MCP tool groups. Each module exposes ``register_<group>_tools``."""

from typing import Collection

from mcp.server.fastmcp import FastMCP

from discord_mcp.tools.channels import register_channel_tools
from discord_mcp.tools.executor import OperationExecutor
from discord_mcp.tools.members import register_member_tools
from discord_mcp.tools.messaging import register_messaging_tools
from discord_mcp.tools.moderation import register_moderation_tools
from discord_mcp.tools.roles import register_role_tools
from discord_mcp.tools.server_tools import register_server_tools
from discord_mcp.tools.threads import register_thread_tools

_OPERATION_GROUPS = (
    register_messaging_tools,
    register_channel_tools,
    register_thread_tools,
    register_server_tools,
    register_moderation_tools,
    register_role_tools,
    register_member_tools,
)


def register_operation_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register every gateway-backed tool group."""
    for register in _OPERATION_GROUPS:
        register(mcp, executor, disabled=disabled)


__all__ = ["register_operation_tools"]
