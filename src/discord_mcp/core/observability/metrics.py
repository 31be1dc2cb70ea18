"""Log-backed metrics for tool calls, Discord operations and the gateway link.

Nothing here aggregates. Each sample becomes one DEBUG record on the
``discord_mcp.core.observability.metrics.metrics`` logger with the sample
attached as ``record.metric``; a log shipper does the counting.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

Number = Union[int, float]


class MetricType(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


@dataclass(frozen=True)
class Metric:
    """One sample. ``timestamp`` is seconds since the epoch."""

    name: str
    value: Number
    metric_type: MetricType
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = data.pop("metric_type").value
        return data


# Numeric gauge values for ConnectionState, so dashboards can plot the link.
_CONNECTION_LEVELS = {
    "disconnected": 0,
    "connecting": 1,
    "connected": 2,
    "reconnecting": 3,
    "failed_permanently": 4,
}


class MetricsCollector:
    """Turns samples into log records.

    The generic ``counter``/``gauge``/``timer`` calls take any name; the
    named helpers below fix the names and label sets used across the server.
    """

    def __init__(self, prefix: str = "discord_mcp", logger: Optional[logging.Logger] = None):
        self.prefix = prefix
        self._logger = logger or logging.getLogger(f"{__name__}.metrics")

    def emit(self, metric: Metric) -> None:
        if not self._logger.isEnabledFor(logging.DEBUG):
            return
        self._logger.debug(
            "%s.%s=%s %s",
            self.prefix,
            metric.name,
            metric.value,
            metric.labels or "",
            extra={"metric": metric.to_dict()},
        )

    def _sample(self, kind: MetricType, name: str, value: Number, labels: Optional[Mapping[str, Any]]) -> None:
        clean = {key: str(val) for key, val in (labels or {}).items() if val is not None}
        self.emit(Metric(name=name, value=value, metric_type=kind, labels=clean))

    def counter(self, name: str, value: int = 1, labels: Optional[Mapping[str, Any]] = None) -> None:
        self._sample(MetricType.COUNTER, name, value, labels)

    def gauge(self, name: str, value: Number, labels: Optional[Mapping[str, Any]] = None) -> None:
        self._sample(MetricType.GAUGE, name, value, labels)

    def timer(self, name: str, duration_ms: float, labels: Optional[Mapping[str, Any]] = None) -> None:
        """Record a duration in milliseconds."""
        self._sample(MetricType.TIMER, name, duration_ms, labels)

    # Named samples

    def operation(self, operation: str, outcome: str, duration_ms: float, error_code: Optional[str] = None) -> None:
        """One Discord operation finished, successfully or not."""
        self.counter("operation.calls", labels={"operation": operation, "outcome": outcome, "code": error_code})
        self.timer("operation.latency", duration_ms, labels={"operation": operation})

    def rate_limited(self, operation: str, retry_after_ms: Optional[int]) -> None:
        self.counter("discord.rate_limited", labels={"operation": operation})
        if retry_after_ms is not None:
            self.gauge("discord.retry_after_ms", retry_after_ms, labels={"operation": operation})

    def connection_state(self, state: str, attempts: int) -> None:
        """The gateway link moved to ``state`` after ``attempts`` failed opens."""
        self.gauge("gateway.state", _CONNECTION_LEVELS.get(state, -1), labels={"state": state})
        self.gauge("gateway.reconnect_attempts", attempts)


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics
