"""Domain-specific configuration sections.

Each section is a dataclass with a ``from_toml_dict`` constructor for its
TOML table.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from discord_mcp.config.parsing import _parse_bool, _parse_max_attempts
from discord_mcp.core.connection import BackoffStrategy, ReconnectPolicy


@dataclass
class ReconnectSettings:
    """Reconnection policy for the gateway session.

    Attributes:
        max_attempts: Retries after a failure. ``0`` never retries;
            ``None`` (``unlimited``) retries forever.
        backoff_base_ms: Base delay between attempts
        strategy: ``linear`` or ``exponential``
        max_backoff_ms: Upper bound on one wait (``None`` for no cap)
        jitter: Fractional randomisation of each wait (0.0 to 1.0)
    """

    max_attempts: Optional[int] = 5
    backoff_base_ms: int = 1000
    strategy: str = "linear"
    max_backoff_ms: Optional[int] = 60_000
    jitter: float = 0.0

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ReconnectSettings":
        """Create settings from the ``[reconnect]`` table."""
        defaults = cls()
        max_backoff = data.get("max_backoff_ms", defaults.max_backoff_ms)
        return cls(
            max_attempts=_parse_max_attempts(data.get("max_attempts", defaults.max_attempts)),
            backoff_base_ms=int(data.get("backoff_base_ms", defaults.backoff_base_ms)),
            strategy=str(data.get("strategy", defaults.strategy)).lower(),
            max_backoff_ms=int(max_backoff) if max_backoff is not None else None,
            jitter=float(data.get("jitter", defaults.jitter)),
        )

    def to_policy(self) -> ReconnectPolicy:
        """Build the immutable policy the connection manager consumes.

        Raises:
            ValueError: A value is out of range or the strategy is unknown.
        """
        return ReconnectPolicy(
            max_attempts=self.max_attempts,
            backoff_base_ms=self.backoff_base_ms,
            strategy=BackoffStrategy(self.strategy),
            max_backoff_ms=self.max_backoff_ms,
            jitter=self.jitter,
        )


@dataclass
class GatewaySettings:
    """Gateway client options.

    Attributes:
        ready_timeout_seconds: Wait for READY after login before giving up
        max_ratelimit_timeout_seconds: Longest rate-limit wait absorbed by
            the client; longer waits surface as ``rate_limited``
        intent_members: Request the privileged server members intent
        intent_message_content: Request the privileged message content intent
    """

    ready_timeout_seconds: float = 30.0
    max_ratelimit_timeout_seconds: float = 5.0
    intent_members: bool = True
    intent_message_content: bool = True

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "GatewaySettings":
        """Create settings from the ``[gateway]`` table."""
        defaults = cls()
        return cls(
            ready_timeout_seconds=float(data.get("ready_timeout_seconds", defaults.ready_timeout_seconds)),
            max_ratelimit_timeout_seconds=float(
                data.get("max_ratelimit_timeout_seconds", defaults.max_ratelimit_timeout_seconds)
            ),
            intent_members=_parse_bool(data.get("intent_members", defaults.intent_members)),
            intent_message_content=_parse_bool(
                data.get("intent_message_content", defaults.intent_message_content)
            ),
        )
