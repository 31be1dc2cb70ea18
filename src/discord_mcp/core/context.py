"""Request-scoped context for discord-mcp tool calls.

Holds the correlation ID for the call currently being served.
Values live in context variables, so concurrently in-flight tool calls never
observe each other's identifiers.

Example:
    from discord_mcp.core.context import sync_request_context, get_correlation_id

    with sync_request_context(correlation_id=generate_correlation_id("tool")):
        assert get_correlation_id().startswith("tool_")
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ulid import ULID

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id(prefix: str = "req") -> str:
    """Return a new sortable correlation ID, e.g. ``tool_01J9Z...``."""
    return f"{prefix}_{ULID()}"


def get_correlation_id() -> str:
    """Return the correlation ID of the current call, or ``""`` outside one."""
    return correlation_id_var.get()


@contextmanager
def sync_request_context(
    *,
    correlation_id: Optional[str] = None,
) -> Iterator[str]:
    """Establish request context for the duration of the ``with`` block.

    Args:
        correlation_id: Explicit correlation ID; generated when omitted.

    Yields:
        The effective correlation ID.
    """
    effective_id = correlation_id or generate_correlation_id()
    corr_token = correlation_id_var.set(effective_id)
    try:
        yield effective_id
    finally:
        correlation_id_var.reset(corr_token)
