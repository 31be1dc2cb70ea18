"""Gateway adapter error classes.

Raised only by the gateway adapter so that nothing above it depends on the
client library's exception hierarchy.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for failures reported by the remote platform.

    Attributes:
        status: HTTP-style status code reported by the platform, if any.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class GatewayNotFound(GatewayError):
    """The platform reported that the target entity does not exist."""

    def __init__(self, message: str = "Unknown entity"):
        super().__init__(message, status=404)


class GatewayForbidden(GatewayError):
    """The platform refused the call for lack of permission.

    Attributes:
        capability: Capability the platform reported as missing, if known.
    """

    def __init__(self, message: str = "Missing access", capability: Optional[str] = None):
        super().__init__(message, status=403)
        self.capability = capability


class GatewayRateLimited(GatewayError):
    """The platform throttled the call.

    Attributes:
        retry_after_ms: Milliseconds the platform asked us to wait.
    """

    def __init__(self, retry_after_ms: int, message: Optional[str] = None):
        super().__init__(message or f"Rate limited for {retry_after_ms}ms", status=429)
        self.retry_after_ms = retry_after_ms


class GatewayHTTPError(GatewayError):
    """Any other non-success response from the platform."""


class GatewayConnectError(GatewayError):
    """Opening the gateway session failed for a transient reason."""


class GatewayAuthError(GatewayConnectError):
    """The platform rejected the bot token. Retrying cannot succeed."""

    def __init__(self, message: str = "Improper token has been passed"):
        super().__init__(message, status=401)


class GatewayClosed(GatewayError):
    """The gateway session ended while a call was in flight."""
