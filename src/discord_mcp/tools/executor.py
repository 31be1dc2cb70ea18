"""Uniform execution contract shared by every operation.

An operation is an async handler ``handler(ctx, **payload)`` returning an
:data:`~discord_mcp.core.results.OperationResult`. The handler resolves its
targets through ``ctx.access``, checks capabilities through
``ctx.require(...)``, then calls the session. :meth:`OperationExecutor.run`
wraps it in the fixed stages:

1. validate the payload against the operation's schema (no network)
2. borrow the session; fail fast with ``not_connected`` unless connected
3. run the handler (resolve, authorize, execute)
4. translate any exception into a :class:`DomainError`
5. emit one structured log record and return the response envelope

``run`` never raises: every outcome is a ``{"success": ...}`` dict.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

from discord_mcp.core.access import AccessValidator
from discord_mcp.core.capabilities import Capability, CapabilityGuard, Entity
from discord_mcp.core.connection.manager import ConnectionManager
from discord_mcp.core.context import get_correlation_id
from discord_mcp.core.errors.base import translate_exception
from discord_mcp.core.errors.domain import DomainError, EntityKind, ErrorKind
from discord_mcp.core.errors.lifecycle import NotConnectedError
from discord_mcp.core.observability.audit import get_audit_logger
from discord_mcp.core.observability.metrics import get_metrics
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.gateway.protocol import GatewaySession
from discord_mcp.tools.param_schema import AtLeastOne, FieldSchema, validate_payload

_default_logger = logging.getLogger("discord_mcp.operations")

Handler = Callable[..., Awaitable[OperationResult]]
Prepare = Callable[[Dict[str, Any]], Optional[DomainError]]

# Identifier fields in order of increasing specificity.
_IDENTIFIER_KINDS = (
    ("guild_id", EntityKind.GUILD),
    ("channel_id", EntityKind.CHANNEL),
    ("thread_id", EntityKind.THREAD),
    ("role_id", EntityKind.ROLE),
    ("user_id", EntityKind.MEMBER),
    ("message_id", EntityKind.MESSAGE),
)


@dataclass
class OperationContext:
    """Per-call collaborators handed to an operation handler.

    ``session`` is borrowed for this call only and must not be stored.
    """

    operation: str
    session: GatewaySession
    access: AccessValidator
    guard: CapabilityGuard

    async def require(self, entity: Entity, *capabilities: Capability) -> Optional[DomainError]:
        return await self.guard.require(self.session, entity, *capabilities)


def _target(identifiers: Mapping[str, Any]) -> tuple:
    """Pick the most specific identifier for not-found translation."""
    kind: Optional[EntityKind] = None
    entity_id = ""
    for key, candidate in _IDENTIFIER_KINDS:
        value = identifiers.get(key)
        if value:
            kind, entity_id = candidate, str(value)
    return kind, entity_id


class OperationExecutor:
    """Runs operation handlers against the connection manager's session.

    Args:
        manager: The process-wide connection manager.
        logger: Receives exactly one record per call.
    """

    def __init__(self, manager: ConnectionManager, *, logger: Optional[logging.Logger] = None):
        self._manager = manager
        self._logger = logger or _default_logger

    async def run(
        self,
        operation: str,
        handler: Handler,
        *,
        schema: Optional[Mapping[str, FieldSchema]] = None,
        identifiers: Sequence[str] = (),
        cross_field_rules: Optional[Sequence[AtLeastOne]] = None,
        prepare: Optional[Prepare] = None,
        **payload: Any,
    ) -> Dict[str, Any]:
        """Execute ``handler`` under the operation contract.

        Args:
            operation: Operation (tool) name, used in logs.
            handler: ``async handler(ctx, **payload) -> OperationResult``.
            schema: Field schema validated before the session is touched.
            identifiers: Payload keys logged with the call.
            cross_field_rules: Extra rules applied after field validation.
            prepare: Validates and rewrites nested input in place (e.g. embeds)
                after the schema passes; still runs before the session is used.
            **payload: Operation input, normalised in place by validation.

        Returns:
            The serialized response envelope.
        """
        start = time.perf_counter()
        result = await self._execute(operation, handler, schema, cross_field_rules, prepare, payload)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        logged_ids = {key: payload.get(key) for key in identifiers if payload.get(key) is not None}
        self._log(operation, logged_ids, result, duration_ms)

        response = result.to_response()
        response.meta.setdefault("telemetry", {})["duration_ms"] = duration_ms
        return response.to_dict()

    async def _execute(
        self,
        operation: str,
        handler: Handler,
        schema: Optional[Mapping[str, FieldSchema]],
        cross_field_rules: Optional[Sequence[AtLeastOne]],
        prepare: Optional[Prepare],
        payload: Dict[str, Any],
    ) -> OperationResult:
        if schema is not None:
            error = validate_payload(payload, schema, cross_field_rules=cross_field_rules)
            if error:
                return Failure(error)
        if prepare is not None:
            error = prepare(payload)
            if error:
                return Failure(error)

        try:
            session = self._manager.get_session()
        except NotConnectedError as exc:
            return Failure(exc.error)

        context = OperationContext(
            operation=operation,
            session=session,
            access=AccessValidator(session),
            guard=CapabilityGuard(operation),
        )
        try:
            result = await handler(context, **payload)
        except Exception as exc:
            kind, entity_id = _target(payload)
            return Failure(translate_exception(exc, kind=kind, entity_id=entity_id, context=operation))

        if not isinstance(result, (Success, Failure)):
            self._logger.error("Operation %s returned %r instead of a result", operation, type(result).__name__)
            return Failure(DomainError.internal(f"{operation} produced no result"))
        return result

    def _log(
        self,
        operation: str,
        identifiers: Dict[str, Any],
        result: OperationResult,
        duration_ms: float,
    ) -> None:
        extra: Dict[str, Any] = {
            "event": "operation",
            "operation": operation,
            "identifiers": identifiers,
            "outcome": "success" if result.ok else "failure",
            "duration_ms": duration_ms,
            "correlation_id": get_correlation_id() or None,
        }
        if isinstance(result, Success):
            get_metrics().operation(operation, "success", duration_ms)
            self._logger.info("Operation %s succeeded", operation, extra=extra)
            return

        error = result.error
        extra.update(error_kind=error.kind.value, error_code=error.code)
        get_metrics().operation(operation, "failure", duration_ms, error.code)
        if error.kind is ErrorKind.RATE_LIMITED:
            get_audit_logger().rate_limit(operation, error.retry_after_ms, **identifiers)
            get_metrics().rate_limited(operation, error.retry_after_ms)
        level = logging.ERROR if error.kind is ErrorKind.INTERNAL else logging.WARNING
        self._logger.log(level, "Operation %s failed: %s", operation, error.message, extra=extra)
