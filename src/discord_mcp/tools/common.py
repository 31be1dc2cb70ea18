"""Shared helpers for operation modules.

Schema fragments reused across tools, ``prepare`` hooks for nested input,
and small result constructors. Imports only from ``discord_mcp.core`` and
sibling tool helpers.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from discord_mcp.core.errors.domain import DomainError, ErrorKind
from discord_mcp.core.responses.types import ErrorCode
from discord_mcp.tools.inputs import parse_embeds
from discord_mcp.tools.param_schema import Str

# Audit-log reason; the platform caps it at 512 characters.
REASON = Str(max_length=512)
CHANNEL_NAME = Str(required=True, min_length=1, max_length=100)

MESSAGE_CONTENT_LIMIT = 2000
MAX_EMBEDS = 10


def prepare_embeds(payload: Dict[str, Any], field_name: str = "embeds") -> Optional[DomainError]:
    """Validate ``payload[field_name]`` and replace it with rendered embeds."""
    raw = payload.get(field_name)
    if raw is None:
        return None
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        return DomainError.invalid_input(field_name, "must be a list of embed objects")
    if len(raw) > MAX_EMBEDS:
        return DomainError.invalid_input(field_name, f"must have at most {MAX_EMBEDS} items")
    rendered, error = parse_embeds(raw, field_name)
    if error:
        return error
    payload[field_name] = rendered
    return None


def not_message_author(action: str, message_id: str) -> DomainError:
    """The bot may only alter messages it sent itself."""
    return DomainError(
        kind=ErrorKind.PERMISSION_DENIED,
        message=f"Cannot {action} message {message_id}: it was not sent by the bot",
        code=ErrorCode.PERMISSION_DENIED.value,
        resolution="Only messages authored by the bot can be edited; send a new message instead",
        details={"capability": "MessageAuthor", "entity_id": message_id},
    )


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
