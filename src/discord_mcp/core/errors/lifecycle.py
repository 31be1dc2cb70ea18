"""Process-level connection lifecycle errors.

These never cross the operation boundary as exceptions. The executor turns
``NotConnectedError`` into a ``not_connected`` failure value;
``ConnectionFailedError`` is for the process owner (startup and reconnect
exhaustion).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from discord_mcp.core.errors.domain import DomainError


class NotConnectedError(Exception):
    """Raised by ``ConnectionManager.get_session`` outside the ``connected`` state.

    Attributes:
        state: Connection state observed at the time of the call.
        error: The equivalent ``DomainError`` value.
    """

    def __init__(self, state: str):
        from discord_mcp.core.errors.domain import DomainError

        super().__init__(f"Discord client is not connected (state: {state})")
        self.state = state
        self.error: DomainError = DomainError.not_connected(state)


class ConnectionFailedError(Exception):
    """The gateway session could not be established within policy.

    Attributes:
        attempts: Connection attempts made before giving up.
        permanent: True when retrying cannot help (e.g. rejected credentials).
    """

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        permanent: bool = False,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.permanent = permanent
        self.cause = cause
