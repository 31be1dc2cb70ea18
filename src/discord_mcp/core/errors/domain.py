"""Domain error values.

Expected failures (missing entities, missing permissions, throttling, bad
input, no live session) are represented as immutable :class:`DomainError`
values rather than exceptions. Every component describes failure with this
one vocabulary, and the executor serializes it into the response envelope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from discord_mcp.core.responses.builders import error_response
from discord_mcp.core.responses.types import ErrorCode, ErrorType, ToolResponse


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""

    NOT_CONNECTED = "not_connected"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


class EntityKind(str, Enum):
    """Remote entity kinds that identifiers resolve to."""

    GUILD = "guild"
    CHANNEL = "channel"
    THREAD = "thread"
    MESSAGE = "message"
    MEMBER = "member"
    ROLE = "role"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


_NOT_FOUND_CODES = {
    EntityKind.GUILD: ErrorCode.GUILD_NOT_FOUND,
    EntityKind.CHANNEL: ErrorCode.CHANNEL_NOT_FOUND,
    EntityKind.THREAD: ErrorCode.THREAD_NOT_FOUND,
    EntityKind.MESSAGE: ErrorCode.MESSAGE_NOT_FOUND,
    EntityKind.MEMBER: ErrorCode.MEMBER_NOT_FOUND,
    EntityKind.ROLE: ErrorCode.ROLE_NOT_FOUND,
}

_NOT_FOUND_RESOLUTIONS = {
    EntityKind.GUILD: "Verify the guild ID is correct and the bot is a member of it",
    EntityKind.CHANNEL: "Verify the channel ID is correct and the bot has access to it",
    EntityKind.THREAD: "Verify the thread ID is correct and the thread has not been deleted",
    EntityKind.MESSAGE: "Verify the message ID is correct and the message has not been deleted",
    EntityKind.MEMBER: "Verify the user ID is correct and the user is a member of the guild",
    EntityKind.ROLE: "Verify the role ID is correct and the role exists in the guild",
}

_KIND_TO_TYPE = {
    ErrorKind.NOT_CONNECTED: ErrorType.UNAVAILABLE,
    ErrorKind.PERMISSION_DENIED: ErrorType.AUTHORIZATION,
    ErrorKind.NOT_FOUND: ErrorType.NOT_FOUND,
    ErrorKind.RATE_LIMITED: ErrorType.RATE_LIMIT,
    ErrorKind.INVALID_INPUT: ErrorType.VALIDATION,
    ErrorKind.INTERNAL: ErrorType.INTERNAL,
}


@dataclass(frozen=True)
class DomainError:
    """An expected, serializable failure.

    Attributes:
        kind: Failure category.
        message: Human-readable description.
        code: Machine-readable code (``ErrorCode`` value).
        resolution: Hint on how the caller can fix or work around it.
        details: Kind-specific fields, e.g. ``retry_after_ms`` or ``field``.
    """

    kind: ErrorKind
    message: str
    code: str
    resolution: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @classmethod
    def not_connected(cls, state: Optional[str] = None) -> "DomainError":
        details = {"state": state} if state else {}
        return cls(
            kind=ErrorKind.NOT_CONNECTED,
            message="Discord client is not connected",
            code=ErrorCode.DISCORD_NOT_CONNECTED.value,
            resolution=(
                "Ensure the bot is logged in before making requests. "
                "If the connection is reconnecting, retry shortly; if it failed permanently, restart the server."
            ),
            details=details,
        )

    @classmethod
    def permission_denied(cls, capability: str, entity_id: str) -> "DomainError":
        return cls(
            kind=ErrorKind.PERMISSION_DENIED,
            message=f"Missing permission: {capability} for resource {entity_id}",
            code=ErrorCode.PERMISSION_DENIED.value,
            resolution=f"Grant the bot the '{capability}' permission in the server or channel settings",
            details={"capability": capability, "entity_id": entity_id},
        )

    @classmethod
    def role_hierarchy(cls, action: str, target_id: str) -> "DomainError":
        """The bot holds the capability but the target ranks at or above it."""
        return cls(
            kind=ErrorKind.PERMISSION_DENIED,
            message=f"Cannot {action} {target_id}: its highest role is not below the bot's highest role",
            code=ErrorCode.PERMISSION_DENIED.value,
            resolution="Move the bot's role above the target's highest role in the server settings",
            details={"capability": "RoleHierarchy", "entity_id": target_id, "action": action},
        )

    @classmethod
    def not_found(cls, kind: EntityKind, entity_id: str) -> "DomainError":
        return cls(
            kind=ErrorKind.NOT_FOUND,
            message=f"{kind.display_name} not found: {entity_id}",
            code=_NOT_FOUND_CODES.get(kind, ErrorCode.NOT_FOUND).value,
            resolution=_NOT_FOUND_RESOLUTIONS.get(kind),
            details={"entity_kind": kind.value, "entity_id": entity_id},
        )

    @classmethod
    def no_matches(cls, message: str, resolution: Optional[str] = None, **details: Any) -> "DomainError":
        """Not-found for queries that resolved their target but matched nothing."""
        return cls(
            kind=ErrorKind.NOT_FOUND,
            message=message,
            code=ErrorCode.NO_MATCHES_FOUND.value,
            resolution=resolution,
            details=details,
        )

    @classmethod
    def rate_limited(cls, retry_after_ms: int) -> "DomainError":
        return cls(
            kind=ErrorKind.RATE_LIMITED,
            message=f"Rate limited. Retry after {retry_after_ms}ms",
            code=ErrorCode.RATE_LIMITED.value,
            resolution=f"Wait {retry_after_ms}ms before retrying",
            details={"retry_after_ms": retry_after_ms},
        )

    @classmethod
    def invalid_input(cls, field_name: str, reason: str) -> "DomainError":
        return cls(
            kind=ErrorKind.INVALID_INPUT,
            message=f"Invalid input for {field_name}: {reason}",
            code=ErrorCode.INVALID_INPUT.value,
            resolution=f"Correct the {field_name} field: {reason}",
            details={"field": field_name, "reason": reason},
        )

    @classmethod
    def internal(cls, message: str, **details: Any) -> "DomainError":
        return cls(
            kind=ErrorKind.INTERNAL,
            message=message,
            code=ErrorCode.INTERNAL_ERROR.value,
            resolution="Check the server logs for details and retry",
            details=details,
        )

    @property
    def retry_after_ms(self) -> Optional[int]:
        return self.details.get("retry_after_ms")

    def to_dict(self) -> dict:
        payload = {"kind": self.kind.value, "message": self.message, "code": self.code}
        if self.resolution:
            payload["resolution"] = self.resolution
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def to_response(self, *, summary: Optional[str] = None) -> ToolResponse:
        rate_limit = None
        if self.kind is ErrorKind.RATE_LIMITED:
            rate_limit = {"retry_after_ms": self.retry_after_ms}
        return error_response(
            self.message,
            error_code=self.code,
            error_type=_KIND_TO_TYPE[self.kind],
            remediation=self.resolution,
            details=dict(self.details) or None,
            summary=summary,
            rate_limit=rate_limit,
        )
