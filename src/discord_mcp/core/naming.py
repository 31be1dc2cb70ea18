"""Registration of Discord tools on a FastMCP server."""

from __future__ import annotations

from typing import Any, Callable, Collection, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.observability import mcp_tool

ToolFunc = Callable[..., Any]


def canonical_tool(
    mcp: FastMCP,
    *,
    canonical_name: str,
    disabled: Optional[Collection[str]] = None,
    **tool_kwargs: Any,
) -> Callable[[ToolFunc], ToolFunc]:
    """Register the decorated coroutine as the tool ``canonical_name``.

    The registered callable is wrapped by :func:`mcp_tool`, so every call gets
    a correlation id, an audit record and latency metrics. A name listed in
    ``disabled`` (from ``DISCORD_MCP_DISABLED_TOOLS``) is skipped and the
    function comes back untouched.
    """

    def register(func: ToolFunc) -> ToolFunc:
        if canonical_name in (disabled or ()):
            return func
        instrumented = mcp_tool(tool_name=canonical_name)(func)
        return mcp.tool(name=canonical_name, **tool_kwargs)(instrumented)

    return register
