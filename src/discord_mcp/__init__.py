"""Discord MCP server: guild, channel, thread, role and message operations over one gateway session."""

__version__ = "0.3.0"
