"""Connection state machine types, reconnect policy, and stats snapshot."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionState(str, Enum):
    """Lifecycle of the gateway session.

    ``CONNECTED`` is the only state in which operations may run.
    ``FAILED_PERMANENTLY`` is reached only by exhausting the reconnect policy
    (or by rejected credentials) and is never left automatically.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED_PERMANENTLY = "failed_permanently"


class BackoffStrategy(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Immutable reconnection policy.

    Attributes:
        max_attempts: Retries allowed after a failure. ``0`` never retries;
            ``None`` retries forever.
        backoff_base_ms: Base delay between attempts.
        strategy: ``linear`` waits ``base * attempt``; ``exponential`` waits
            ``base * 2 ** (attempt - 1)``.
        max_backoff_ms: Upper bound on a single wait (``None`` for no cap).
        jitter: Fractional randomisation of each wait (0.0-1.0; 0.25 means
            75-125% of the computed delay).
    """

    max_attempts: Optional[int] = 5
    backoff_base_ms: int = 1000
    strategy: BackoffStrategy = BackoffStrategy.LINEAR
    max_backoff_ms: Optional[int] = 60_000
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0 or None")
        if self.backoff_base_ms < 0:
            raise ValueError("backoff_base_ms must be >= 0")
        if self.max_backoff_ms is not None and self.max_backoff_ms < 0:
            raise ValueError("max_backoff_ms must be >= 0 or None")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")
        object.__setattr__(self, "strategy", BackoffStrategy(self.strategy))

    def exhausted(self, attempts: int) -> bool:
        """True once ``attempts`` exceeds the allowed retries."""
        return self.max_attempts is not None and attempts > self.max_attempts


@dataclass(frozen=True)
class ConnectionStats:
    """Read-only snapshot derived from the live session at call time."""

    connected: bool = False
    guild_count: int = 0
    latency_ms: float = 0.0
    uptime_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "guild_count": self.guild_count,
            "latency_ms": self.latency_ms,
            "uptime_ms": self.uptime_ms,
        }
