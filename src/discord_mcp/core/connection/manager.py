"""Ownership of the single gateway session.

The :class:`ConnectionManager` is constructed once per process and passed to
every component that needs the session. Operations borrow the session via
:meth:`ConnectionManager.get_session` for the duration of one call and never
keep it; a reconnect replaces the session object.

Example:
    manager = ConnectionManager(DiscordGatewayFactory(token), ReconnectPolicy())
    await manager.connect()          # raises ConnectionFailedError if fatal
    session = manager.get_session()  # raises NotConnectedError unless connected
    ...
    await manager.disconnect()
"""

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, Optional, Protocol

from discord_mcp.core.connection.backoff import compute_backoff_ms
from discord_mcp.core.connection.state import ConnectionState, ConnectionStats, ReconnectPolicy
from discord_mcp.core.errors.gateway import GatewayAuthError
from discord_mcp.core.errors.lifecycle import ConnectionFailedError, NotConnectedError
from discord_mcp.core.observability.metrics import get_metrics
from discord_mcp.core.observability.redaction import redact_sensitive_data
from discord_mcp.gateway.protocol import GatewayFactory, GatewaySession

_default_logger = logging.getLogger(__name__)

_TRANSITION_LEVELS = {
    ConnectionState.DISCONNECTED: logging.INFO,
    ConnectionState.CONNECTING: logging.INFO,
    ConnectionState.CONNECTED: logging.INFO,
    ConnectionState.RECONNECTING: logging.WARNING,
    ConnectionState.FAILED_PERMANENTLY: logging.CRITICAL,
}


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


FatalHandler = Callable[[ConnectionFailedError], Any]


def _describe(exc: BaseException) -> str:
    """Error text safe to log and report: secrets redacted."""
    return redact_sensitive_data(str(exc)) or type(exc).__name__


class ConnectionManager:
    """Owns the gateway session, its state machine, and the reconnect loop.

    Args:
        factory: Opens a new gateway session per connection attempt.
        policy: Reconnect policy; defaults to ``ReconnectPolicy()``.
        logger: Logger receiving one record per state transition.
        sleep_func: Injectable sleep for backoff waits (tests).
        rng: Injectable Random instance for backoff jitter (tests).
        on_fatal: Called once when a mid-session reconnect exhausts the policy.
            May be a plain function or a coroutine function.
        clock: Monotonic clock in seconds, used for uptime.
    """

    def __init__(
        self,
        factory: GatewayFactory,
        policy: Optional[ReconnectPolicy] = None,
        *,
        logger: Optional[logging.Logger] = None,
        sleep_func: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        on_fatal: Optional[FatalHandler] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._factory = factory
        self._policy = policy or ReconnectPolicy()
        self._logger = logger or _default_logger
        self._sleep: SleepFunc = sleep_func or asyncio.sleep
        self._rng = rng or random.Random()
        self._on_fatal = on_fatal
        self._clock = clock or time.monotonic

        self._state = ConnectionState.DISCONNECTED
        self._session: Optional[GatewaySession] = None
        self._attempts = 0
        self._connected_at: Optional[float] = None
        self._last_error: Optional[str] = None
        self._stop_requested = False
        self._wakeup = asyncio.Event()
        self._connect_lock = asyncio.Lock()
        self._supervisor: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def attempts_so_far(self) -> int:
        return self._attempts

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def get_session(self) -> GatewaySession:
        """Return the live session; callers must not keep it past one call.

        Raises:
            NotConnectedError: The state is anything other than ``CONNECTED``.
        """
        session = self._session
        if self._state is not ConnectionState.CONNECTED or session is None:
            raise NotConnectedError(self._state.value)
        return session

    def get_stats(self) -> ConnectionStats:
        """Snapshot computed from the live session. Never raises."""
        session = self._session
        if self._state is not ConnectionState.CONNECTED or session is None:
            return ConnectionStats()
        uptime_ms = 0
        if self._connected_at is not None:
            uptime_ms = max(int((self._clock() - self._connected_at) * 1000), 0)
        try:
            return ConnectionStats(
                connected=True,
                guild_count=session.guild_count,
                latency_ms=session.latency_ms,
                uptime_ms=uptime_ms,
            )
        except Exception:
            self._logger.debug("Failed to read session stats", exc_info=True)
            return ConnectionStats(connected=True, uptime_ms=uptime_ms)

    def status(self) -> Dict[str, Any]:
        """Stats plus state-machine details for the health surface."""
        return {
            "state": self._state.value,
            "attempts_so_far": self._attempts,
            "max_attempts": self._policy.max_attempts,
            "last_error": self._last_error,
            **self.get_stats().to_dict(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Establish the session, retrying per policy.

        Returns immediately when already connected. Returns with state
        ``DISCONNECTED`` if :meth:`disconnect` interrupts it. While a reconnect is in progress it waits for that attempt instead of
        opening a second session.

        Raises:
            ConnectionFailedError: The policy was exhausted, the credentials
                were rejected, or the connection already failed permanently.
        """
        async with self._connect_lock:
            if self._state is ConnectionState.CONNECTED:
                return
            if self._state is ConnectionState.RECONNECTING:
                await self._await_reconnect()
                return
            if self._state is ConnectionState.FAILED_PERMANENTLY:
                raise ConnectionFailedError(
                    "Connection failed permanently; restart the server",
                    attempts=self._attempts,
                    permanent=True,
                )

            self._stop_requested = False
            self._wakeup = asyncio.Event()
            self._attempts = 0
            self._transition(ConnectionState.CONNECTING)

            try:
                session = await self._open_with_retry(immediate=True)
            except ConnectionFailedError as exc:
                self._fail_permanently(exc)
                raise
            if session is None:
                return
            self._install(session)

    async def disconnect(self) -> None:
        """Close the session and settle in ``DISCONNECTED``. Idempotent.

        Interrupts any pending backoff wait or reconnect attempt.
        """
        self._stop_requested = True
        self._wakeup.set()

        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and not supervisor.done() and supervisor is not asyncio.current_task():
            supervisor.cancel()
            await asyncio.gather(supervisor, return_exceptions=True)

        session, self._session = self._session, None
        self._connected_at = None
        if session is not None:
            await self._close_quietly(session)

        if self._state is not ConnectionState.DISCONNECTED:
            self._transition(ConnectionState.DISCONNECTED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, new_state: ConnectionState, **context: Any) -> None:
        previous = self._state
        self._state = new_state
        self._logger.log(
            _TRANSITION_LEVELS[new_state],
            "Gateway connection %s -> %s",
            previous.value,
            new_state.value,
            extra={
                "event": "connection.transition",
                "from_state": previous.value,
                "to_state": new_state.value,
                "attempts_so_far": self._attempts,
                "max_attempts": self._policy.max_attempts,
                **context,
            },
        )
        get_metrics().connection_state(new_state.value, self._attempts)

    def _install(self, session: GatewaySession) -> None:
        self._session = session
        self._attempts = 0
        self._last_error = None
        self._connected_at = self._clock()
        self._transition(ConnectionState.CONNECTED, guild_count=self._safe_guild_count(session))
        self._supervisor = asyncio.create_task(self._supervise(session), name="gateway-supervisor")

    def _fail_permanently(self, exc: ConnectionFailedError) -> None:
        self._session = None
        self._connected_at = None
        self._last_error = str(exc)
        self._transition(ConnectionState.FAILED_PERMANENTLY, error=str(exc), permanent=exc.permanent)

    async def _open_with_retry(self, *, immediate: bool) -> Optional[GatewaySession]:
        """Open a session, applying the policy between failed attempts.

        Returns ``None`` when interrupted by :meth:`disconnect`.
        """
        skip_wait = immediate
        while True:
            if not skip_wait:
                self._attempts += 1
                if self._policy.exhausted(self._attempts):
                    raise ConnectionFailedError(
                        f"Gateway connection failed after {self._attempts - 1} retries: {self._last_error}",
                        attempts=self._attempts,
                    )
                delay_ms = compute_backoff_ms(self._policy, self._attempts, self._rng)
                self._logger.info(
                    "Reconnect attempt %d in %dms",
                    self._attempts,
                    delay_ms,
                    extra={"event": "connection.backoff", "attempt": self._attempts, "delay_ms": delay_ms},
                )
                if await self._wait(delay_ms / 1000.0):
                    return None
            skip_wait = False

            if self._stop_requested:
                return None

            try:
                session = await self._factory.open()
            except GatewayAuthError as exc:
                self._last_error = _describe(exc)
                raise ConnectionFailedError(
                    f"Gateway rejected credentials: {exc}",
                    attempts=self._attempts,
                    permanent=True,
                    cause=exc,
                ) from exc
            except Exception as exc:
                self._last_error = _describe(exc)
                self._logger.warning(
                    "Gateway connection attempt failed: %s",
                    self._last_error,
                    extra={"event": "connection.attempt_failed", "attempts_so_far": self._attempts},
                )
                continue

            if self._stop_requested:
                await self._close_quietly(session)
                return None
            return session

    async def _supervise(self, session: GatewaySession) -> None:
        """Watch a live session and drive reconnection when it drops."""
        cause = await session.wait_closed()
        if self._stop_requested or self._session is not session:
            return

        self._session = None
        self._connected_at = None
        self._last_error = _describe(cause) if cause else "Gateway session closed unexpectedly"
        self._transition(ConnectionState.RECONNECTING, reason=self._last_error)

        try:
            replacement = await self._open_with_retry(immediate=False)
        except ConnectionFailedError as exc:
            self._fail_permanently(exc)
            await self._notify_fatal(exc)
            return
        except Exception as exc:
            self._logger.exception("Reconnect loop crashed")
            failure = ConnectionFailedError(
                f"Reconnect loop crashed: {_describe(exc)}",
                attempts=self._attempts,
                permanent=True,
                cause=exc,
            )
            self._fail_permanently(failure)
            await self._notify_fatal(failure)
            return
        if replacement is None:
            return
        self._install(replacement)

    async def _await_reconnect(self) -> None:
        supervisor = self._supervisor
        if supervisor is not None and not supervisor.done():
            # asyncio.wait neither cancels the loop with its caller nor re-raises its outcome
            await asyncio.wait({supervisor})
        if self._state is ConnectionState.FAILED_PERMANENTLY:
            raise ConnectionFailedError(
                self._last_error or "Connection failed permanently; restart the server",
                attempts=self._attempts,
                permanent=True,
            )

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless woken by disconnect. True if interrupted."""
        if self._stop_requested:
            return True
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waker = asyncio.ensure_future(self._wakeup.wait())
        try:
            await asyncio.wait({sleeper, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waker):
                if not task.done():
                    task.cancel()
        return self._stop_requested

    async def _notify_fatal(self, exc: ConnectionFailedError) -> None:
        if self._on_fatal is None:
            return
        try:
            outcome = self._on_fatal(exc)
            if asyncio.iscoroutine(outcome):
                await outcome
        except Exception:
            self._logger.exception("Fatal connection handler raised")

    async def _close_quietly(self, session: GatewaySession) -> None:
        try:
            await session.close()
        except Exception:
            self._logger.warning("Error while closing gateway session", exc_info=True)

    @staticmethod
    def _safe_guild_count(session: GatewaySession) -> int:
        try:
            return session.guild_count
        except Exception:
            return 0
