"""
Observability utilities for discord-mcp.

Provides metrics collection, audit logging, and secret redaction for MCP
tools. Every tool is wrapped by :func:`mcp_tool` through
:func:`discord_mcp.core.naming.canonical_tool`:

    @canonical_tool(mcp, canonical_name="send_message")
    async def send_message(channel_id: str, content: str) -> dict:
        ...
"""

from discord_mcp.core.observability.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    get_audit_logger,
)
from discord_mcp.core.observability.decorators import mcp_tool
from discord_mcp.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)
from discord_mcp.core.observability.redaction import (
    SENSITIVE_PATTERNS,
    RedactionFilter,
    redact_sensitive_data,
)

__all__ = [
    # Metrics
    "Metric",
    "MetricType",
    "MetricsCollector",
    "get_metrics",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "get_audit_logger",
    # Redaction
    "SENSITIVE_PATTERNS",
    "RedactionFilter",
    "redact_sensitive_data",
    # Decorators
    "mcp_tool",
]
