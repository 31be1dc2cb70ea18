"""Constructors for :class:`ToolResponse`.

Handlers never build responses directly; they return ``Success`` or
``Failure`` and those call into here.
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Union

from discord_mcp.core.responses.types import ErrorCode, ErrorType, ToolResponse, response_meta


def _text(value: Union[ErrorCode, ErrorType, str]) -> str:
    return value.value if isinstance(value, (ErrorCode, ErrorType)) else value


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    summary: str = "",
    warnings: Optional[Sequence[str]] = None,
    **fields: Any,
) -> ToolResponse:
    """Wrap an operation payload.

    ``data`` and keyword ``fields`` are merged, fields last:

        >>> success_response({"message_id": "1234567890123456789"},
        ...                  summary="Message sent to #general").data
        {'message_id': '1234567890123456789'}
    """
    payload: Dict[str, Any] = {**(data or {}), **fields}
    return ToolResponse(
        success=True,
        data=payload,
        summary=summary,
        meta=response_meta(warnings=warnings),
    )


def error_response(
    message: str,
    *,
    data: Optional[Mapping[str, Any]] = None,
    error_code: Union[ErrorCode, str] = ErrorCode.INTERNAL_ERROR,
    error_type: Union[ErrorType, str] = ErrorType.INTERNAL,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    summary: Optional[str] = None,
    rate_limit: Optional[Mapping[str, Any]] = None,
) -> ToolResponse:
    """Describe a failed operation.

    Keys already present in ``data`` win over the code, type, remediation
    and details arguments. ``summary`` falls back to ``message``.
    """
    payload: Dict[str, Any] = dict(data or {})
    payload.setdefault("error_code", _text(error_code))
    payload.setdefault("error_type", _text(error_type))
    if remediation is not None:
        payload.setdefault("remediation", remediation)
    if details:
        payload.setdefault("details", dict(details))

    return ToolResponse(
        success=False,
        data=payload,
        error=message or "Operation failed",
        summary=summary or message,
        meta=response_meta(rate_limit=rate_limit),
    )
