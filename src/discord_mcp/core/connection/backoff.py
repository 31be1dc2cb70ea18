"""Reconnect delay computation."""

import random
from typing import Optional

from discord_mcp.core.connection.state import BackoffStrategy, ReconnectPolicy

_MAX_DOUBLINGS = 62


def compute_backoff_ms(
    policy: ReconnectPolicy,
    attempt: int,
    rng: Optional[random.Random] = None,
) -> int:
    """Return the wait before reconnect ``attempt`` (1-based), in milliseconds.

    Args:
        policy: Reconnect policy supplying base, curve, cap, and jitter.
        attempt: Attempt number; values below 1 are treated as 1.
        rng: Injectable Random instance for deterministic testing.

    Example:
        >>> policy = ReconnectPolicy(backoff_base_ms=500)
        >>> [compute_backoff_ms(policy, n) for n in (1, 2, 3)]
        [500, 1000, 1500]
    """
    attempt = max(attempt, 1)
    if policy.strategy is BackoffStrategy.EXPONENTIAL:
        # Integer math with a bounded exponent; no float overflow in retry-forever mode.
        raw = policy.backoff_base_ms * (1 << min(attempt - 1, _MAX_DOUBLINGS))
    else:
        raw = policy.backoff_base_ms * attempt

    if policy.max_backoff_ms is not None:
        raw = min(raw, policy.max_backoff_ms)
    delay = float(raw)

    if policy.jitter:
        _rng = rng or random.Random()
        delay *= 1.0 - policy.jitter + 2.0 * policy.jitter * _rng.random()

    return int(round(delay))
