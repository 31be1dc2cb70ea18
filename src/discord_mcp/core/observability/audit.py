"""Audit trail for actions taken against Discord guilds.

Audit records go to the ``discord_mcp.core.observability.audit.audit``
logger at INFO, each carrying its payload as ``record.audit``:

    {"event_type": "moderation_action", "timestamp": "...",
     "details": {"action": "ban", "guild_id": "...", "target_id": "..."},
     "correlation_id": "tool_..."}

Kicks, bans, timeouts, role changes and bulk deletes are recorded here on
top of the per-call operation record, so the trail survives log filtering
that drops the operations logger.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from discord_mcp.core.context import get_correlation_id


class AuditEventType(Enum):
    TOOL_INVOCATION = "tool_invocation"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMIT = "rate_limit"
    MODERATION_ACTION = "moderation_action"
    CONNECTION_FATAL = "connection_fatal"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@dataclass
class AuditEvent:
    """A single audit entry; ``correlation_id`` defaults to the current call's."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.correlation_id = self.correlation_id or get_correlation_id() or None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        if self.correlation_id:
            record["correlation_id"] = self.correlation_id
        return record


class AuditLogger:
    """Writes audit events; one method per kind of event the server records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(f"{__name__}.audit")

    def log(self, event: AuditEvent) -> None:
        self._logger.info("audit %s %s", event.event_type.value, event.details, extra={"audit": event.to_dict()})

    def _record(self, event_type: AuditEventType, correlation_id: Optional[str] = None, **details: Any) -> None:
        self.log(AuditEvent(event_type=event_type, details=details, correlation_id=correlation_id))

    def tool_invocation(
        self,
        tool_name: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
        correlation_id: Optional[str] = None,
        **details: Any,
    ) -> None:
        self._record(
            AuditEventType.TOOL_INVOCATION,
            correlation_id,
            tool=tool_name,
            success=success,
            duration_ms=duration_ms,
            **details,
        )

    def permission_denied(self, operation: str, capability: str, entity_id: str, **details: Any) -> None:
        """The bot lacked ``capability`` on ``entity_id`` and ``operation`` was refused."""
        self._record(
            AuditEventType.PERMISSION_DENIED,
            operation=operation,
            capability=capability,
            entity_id=entity_id,
            **details,
        )

    def rate_limit(self, operation: str, retry_after_ms: Optional[int] = None, **details: Any) -> None:
        self._record(AuditEventType.RATE_LIMIT, operation=operation, retry_after_ms=retry_after_ms, **details)

    def moderation_action(self, action: str, guild_id: str, target_id: str, **details: Any) -> None:
        """``action`` was carried out against ``target_id`` in ``guild_id``.

        Only call this after Discord accepted the change.
        """
        self._record(
            AuditEventType.MODERATION_ACTION,
            action=action,
            guild_id=guild_id,
            target_id=target_id,
            **details,
        )

    def connection_fatal(self, reason: str, attempts: int, **details: Any) -> None:
        """The reconnect policy gave up on the gateway."""
        self._record(AuditEventType.CONNECTION_FATAL, reason=reason, attempts=attempts, **details)


_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    return _audit

