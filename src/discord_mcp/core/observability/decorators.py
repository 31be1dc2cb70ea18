"""The ``mcp_tool`` wrapper applied to every registered Discord tool.

Each call runs under a correlation id (``tool_<ulid>`` unless the caller
already set one) and, when it returns or raises, produces one audit record
plus ``tool.invocations`` and ``tool.latency`` metric samples.
"""

import asyncio
import functools
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from discord_mcp.core.context import generate_correlation_id, get_correlation_id, sync_request_context
from discord_mcp.core.observability.audit import _audit
from discord_mcp.core.observability.metrics import _metrics

T = TypeVar("T")


class _CallRecord:
    """Outcome of one tool call, filled in while it runs."""

    def __init__(self) -> None:
        self.success = True
        self.error: Optional[str] = None

    def observe(self, result: Any) -> Any:
        # Tools return envelopes rather than raising, so read the verdict off the dict.
        if isinstance(result, dict) and result.get("success") is False:
            self.success = False
            self.error = result.get("error")
        return result


@contextmanager
def _tracked_call(name: str, emit_metrics: bool, audit: bool) -> Iterator[_CallRecord]:
    correlation_id = get_correlation_id() or generate_correlation_id(prefix="tool")
    call = _CallRecord()
    with sync_request_context(correlation_id=correlation_id):
        started = time.perf_counter()
        try:
            yield call
        except Exception as exc:
            call.success = False
            call.error = f"unhandled {type(exc).__name__}"
            raise
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if emit_metrics:
                status = "success" if call.success else "error"
                _metrics.counter("tool.invocations", labels={"tool": name, "status": status})
                _metrics.timer("tool.latency", elapsed_ms, labels={"tool": name})
            if audit:
                _audit.tool_invocation(
                    tool_name=name,
                    success=call.success,
                    duration_ms=round(elapsed_ms, 2),
                    error=call.error,
                    correlation_id=correlation_id,
                )


def mcp_tool(
    tool_name: Optional[str] = None, emit_metrics: bool = True, audit: bool = True
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Wrap a tool function, sync or async, with request context and telemetry.

    Args:
        tool_name: Name used in metrics and audit records; defaults to the
            function name.
        emit_metrics: Emit ``tool.*`` metric samples.
        audit: Emit a ``tool_invocation`` audit record.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = tool_name or func.__name__

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _tracked_call(name, emit_metrics, audit) as call:
                    return call.observe(await func(*args, **kwargs))

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _tracked_call(name, emit_metrics, audit) as call:
                return call.observe(func(*args, **kwargs))

        return sync_wrapper  # type: ignore[return-value]

    return decorator
