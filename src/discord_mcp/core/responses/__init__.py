"""Standard response contracts for MCP tool operations.

Every tool returns the dict form of a :class:`ToolResponse`::

    {"success": True, "data": {...}, "summary": "...", "meta": {"version": "response-v2"}}
    {"success": False, "data": {"error_code": ..., "error_type": ...}, "error": "...", ...}
"""

from discord_mcp.core.responses.builders import error_response, success_response
from discord_mcp.core.responses.sanitization import sanitize_error_message
from discord_mcp.core.responses.types import (
    RESPONSE_VERSION,
    ErrorCode,
    ErrorType,
    ToolResponse,
)

__all__ = [
    "RESPONSE_VERSION",
    "ErrorCode",
    "ErrorType",
    "ToolResponse",
    "error_response",
    "success_response",
    "sanitize_error_message",
]
