"""Exception-to-DomainError mapping registry.

Provides a centralized mapping from gateway exception types to domain error
constructors, so every operation translates remote failures the same way.

Usage:
    from discord_mcp.core.errors.base import translate_exception

    try:
        await session.create_text_channel(...)
    except Exception as e:
        return Failure(translate_exception(e, entity_id=channel_id))
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Type

from discord_mcp.core.errors.domain import DomainError, EntityKind
from discord_mcp.core.errors.gateway import (
    GatewayClosed,
    GatewayForbidden,
    GatewayHTTPError,
    GatewayNotFound,
    GatewayRateLimited,
)
from discord_mcp.core.errors.lifecycle import NotConnectedError
from discord_mcp.core.responses.sanitization import sanitize_error_message

logger = logging.getLogger(__name__)

Translator = Callable[[Exception, Optional[EntityKind], str], DomainError]


def _not_found(exc: Exception, kind: Optional[EntityKind], entity_id: str) -> DomainError:
    if kind is None:
        return DomainError.no_matches(f"Resource not found: {entity_id or exc}")
    return DomainError.not_found(kind, entity_id)


def _forbidden(exc: Exception, kind: Optional[EntityKind], entity_id: str) -> DomainError:
    capability = getattr(exc, "capability", None) or "required permission"
    return DomainError.permission_denied(capability, entity_id or "unknown")


def _rate_limited(exc: Exception, kind: Optional[EntityKind], entity_id: str) -> DomainError:
    return DomainError.rate_limited(int(getattr(exc, "retry_after_ms", 0)))


def _not_connected(exc: Exception, kind: Optional[EntityKind], entity_id: str) -> DomainError:
    if isinstance(exc, NotConnectedError):
        return exc.error
    return DomainError.not_connected()


def _http_error(exc: Exception, kind: Optional[EntityKind], entity_id: str) -> DomainError:
    status = getattr(exc, "status", None)
    return DomainError.internal(f"Discord API error: {exc}", status=status)


ERROR_MAPPINGS: Dict[Type[Exception], Translator] = {
    GatewayNotFound: _not_found,
    GatewayForbidden: _forbidden,
    GatewayRateLimited: _rate_limited,
    GatewayClosed: _not_connected,
    NotConnectedError: _not_connected,
    GatewayHTTPError: _http_error,
}


def translate_exception(
    exc: Exception,
    *,
    kind: Optional[EntityKind] = None,
    entity_id: str = "",
    context: str = "",
) -> DomainError:
    """Convert an exception raised during an operation into a ``DomainError``.

    Looks up the exception's type (and its bases) in ``ERROR_MAPPINGS``.
    Unknown exceptions become ``internal`` errors with a sanitized message.

    Args:
        exc: The exception to convert.
        kind: Entity kind the failing call targeted, used for not-found errors.
        entity_id: Identifier the failing call targeted.
        context: Operation name, for server-side logging.
    """
    for exc_type in type(exc).__mro__:
        translator = ERROR_MAPPINGS.get(exc_type)
        if translator is not None:
            return translator(exc, kind, entity_id)

    logger.exception("Unexpected error in %s", context or "operation", exc_info=exc)
    return DomainError.internal(
        sanitize_error_message(exc, context=context, include_type=True),
        error_type=type(exc).__name__,
    )
