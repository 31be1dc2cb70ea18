"""Envelope types shared by every Discord tool response."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from discord_mcp.core.context import get_correlation_id

RESPONSE_VERSION = "response-v2"


class ErrorCode(str, Enum):
    """Stable codes an agent can branch on. Never renamed once shipped."""

    DISCORD_NOT_CONNECTED = "DISCORD_NOT_CONNECTED"
    INVALID_INPUT = "INVALID_INPUT"

    # A snowflake that resolves to nothing, by entity kind
    NOT_FOUND = "NOT_FOUND"
    GUILD_NOT_FOUND = "GUILD_NOT_FOUND"
    CHANNEL_NOT_FOUND = "CHANNEL_NOT_FOUND"
    THREAD_NOT_FOUND = "THREAD_NOT_FOUND"
    MESSAGE_NOT_FOUND = "MESSAGE_NOT_FOUND"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
    # A search or filter that matched nothing where something was required
    NO_MATCHES_FOUND = "NO_MATCHES_FOUND"

    PERMISSION_DENIED = "PERMISSION_DENIED"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorType(str, Enum):
    """Coarse failure category, roughly the HTTP status Discord would use."""

    VALIDATION = "validation"  # 400
    AUTHORIZATION = "authorization"  # 403
    NOT_FOUND = "not_found"  # 404
    RATE_LIMIT = "rate_limit"  # 429, retry after meta.rate_limit.retry_after_ms
    INTERNAL = "internal"  # 500
    UNAVAILABLE = "unavailable"  # gateway down, retry once reconnected


@dataclass
class ToolResponse:
    """What a tool hands back across the MCP boundary.

    ``data`` holds the operation payload on success and the error code,
    type, remediation and details on failure. ``meta`` always carries
    ``version``.
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    summary: str = ""
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "data": dict(self.data),
            "summary": self.summary,
            "meta": dict(self.meta),
        }
        # Failures always explain themselves; successes never carry the key.
        if not self.success:
            payload["error"] = self.error or "Operation failed"
        return payload


def response_meta(
    *,
    warnings: Optional[Sequence[str]] = None,
    rate_limit: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build ``meta``: the version, the current request id, and any extras given."""
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}
    request_id = get_correlation_id()
    if request_id:
        meta["request_id"] = request_id
    if warnings:
        meta["warnings"] = list(warnings)
    if rate_limit:
        meta["rate_limit"] = dict(rate_limit)
    return meta
