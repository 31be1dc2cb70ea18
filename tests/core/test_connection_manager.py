"""Tests for the ConnectionManager state machine and reconnect loop.

Backoff waits go through an injected sleep function so nothing here sleeps
for real.
"""

import asyncio
import logging
import random

import pytest

from conftest import FakeFactory, FakeSession
from discord_mcp.core.connection import ConnectionManager, ConnectionState, ReconnectPolicy
from discord_mcp.core.errors import (
    ConnectionFailedError,
    GatewayAuthError,
    GatewayConnectError,
    NotConnectedError,
)

LEAKED_TOKEN = "MTExMTExMTExMTExMTExMTEx.abcdef.ghijklmnopqrstuvwxyz0123456789"


class RecordingSleep:
    """Sleep stand-in: records requested delays, optionally blocks on a gate."""

    def __init__(self, gate: asyncio.Event = None):
        self.delays = []
        self.gate = gate

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.gate is not None:
            await self.gate.wait()


async def settle(predicate, rounds: int = 100) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never reached")


def make_manager(factory, sleep=None, **policy):
    policy.setdefault("backoff_base_ms", 100)
    policy.setdefault("max_backoff_ms", None)
    return ConnectionManager(factory, ReconnectPolicy(**policy), sleep_func=sleep or RecordingSleep())


class TestInitialConnect:
    @pytest.mark.asyncio
    async def test_connect_installs_session(self):
        session = FakeSession()
        manager = make_manager(FakeFactory([session]))

        await manager.connect()

        assert manager.state is ConnectionState.CONNECTED
        assert manager.get_session() is session
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_connect_when_connected_is_noop(self):
        factory = FakeFactory([FakeSession()])
        manager = make_manager(factory)

        await manager.connect()
        await manager.connect()

        assert factory.opened == 1
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_transient_failures_retry_with_linear_backoff(self):
        session = FakeSession()
        sleep = RecordingSleep()
        factory = FakeFactory([ConnectionError("reset"), GatewayConnectError("503"), session])
        manager = make_manager(factory, sleep, max_attempts=3)

        await manager.connect()

        assert manager.get_session() is session
        assert sleep.delays == [0.1, 0.2]
        assert manager.attempts_so_far == 0
        assert manager.last_error is None
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_exhaustion_fails_permanently(self):
        sleep = RecordingSleep()
        factory = FakeFactory([])
        manager = make_manager(factory, sleep, max_attempts=2)

        with pytest.raises(ConnectionFailedError) as excinfo:
            await manager.connect()

        assert factory.opened == 3
        assert len(sleep.delays) == 2
        assert excinfo.value.permanent is False
        assert manager.state is ConnectionState.FAILED_PERMANENTLY
        with pytest.raises(NotConnectedError) as not_connected:
            manager.get_session()
        assert not_connected.value.state == "failed_permanently"

    @pytest.mark.asyncio
    async def test_zero_attempts_means_single_try(self):
        sleep = RecordingSleep()
        factory = FakeFactory([])
        manager = make_manager(factory, sleep, max_attempts=0)

        with pytest.raises(ConnectionFailedError):
            await manager.connect()

        assert factory.opened == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_rejected_credentials_are_fatal_without_retry(self):
        sleep = RecordingSleep()
        factory = FakeFactory([GatewayAuthError(), FakeSession()])
        manager = make_manager(factory, sleep, max_attempts=5)

        with pytest.raises(ConnectionFailedError) as excinfo:
            await manager.connect()

        assert excinfo.value.permanent is True
        assert factory.opened == 1
        assert sleep.delays == []
        assert manager.state is ConnectionState.FAILED_PERMANENTLY

    @pytest.mark.asyncio
    async def test_failed_permanently_is_never_left(self):
        factory = FakeFactory([GatewayAuthError(), FakeSession()])
        manager = make_manager(factory)
        with pytest.raises(ConnectionFailedError):
            await manager.connect()

        with pytest.raises(ConnectionFailedError) as excinfo:
            await manager.connect()

        assert excinfo.value.permanent is True
        assert factory.opened == 1

    @pytest.mark.asyncio
    async def test_last_error_is_redacted(self):
        factory = FakeFactory([], exhausted=ConnectionError(f"login failed for Bot {LEAKED_TOKEN}"))
        manager = make_manager(factory, max_attempts=0)

        with pytest.raises(ConnectionFailedError):
            await manager.connect()

        assert LEAKED_TOKEN not in manager.last_error
        assert "REDACTED" in manager.status()["last_error"]


class TestReconnect:
    @pytest.mark.asyncio
    async def test_dropped_session_is_replaced(self):
        first, second = FakeSession(), FakeSession()
        sleep = RecordingSleep()
        manager = make_manager(FakeFactory([first, second]), sleep, max_attempts=3)
        await manager.connect()

        first.drop(ConnectionResetError("gateway went away"))
        await settle(lambda: manager.state is ConnectionState.CONNECTED and manager._session is second)

        assert manager.get_session() is second
        assert sleep.delays == [0.1]
        assert manager.attempts_so_far == 0
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_operations_fail_fast_while_reconnecting(self):
        gate = asyncio.Event()
        first, second = FakeSession(), FakeSession()
        manager = make_manager(FakeFactory([first, second]), RecordingSleep(gate), max_attempts=3)
        await manager.connect()

        first.drop()
        await settle(lambda: manager.state is ConnectionState.RECONNECTING)

        with pytest.raises(NotConnectedError) as excinfo:
            manager.get_session()
        assert excinfo.value.error.details["state"] == "reconnecting"
        assert manager.get_stats().connected is False

        gate.set()
        await settle(lambda: manager.state is ConnectionState.CONNECTED)
        assert manager.get_session() is second
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_attempts_reset_after_each_successful_reconnect(self):
        sessions = [FakeSession() for _ in range(3)]
        factory = FakeFactory([sessions[0], ConnectionError("1"), sessions[1], ConnectionError("2"), sessions[2]])
        manager = make_manager(factory, max_attempts=2)
        await manager.connect()

        sessions[0].drop()
        await settle(lambda: manager._session is sessions[1])
        assert manager.attempts_so_far == 0

        sessions[1].drop()
        await settle(lambda: manager._session is sessions[2])
        assert manager.state is ConnectionState.CONNECTED
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_reconnect_exhaustion_notifies_once(self):
        first = FakeSession()
        fatal = []
        manager = ConnectionManager(
            FakeFactory([first]),
            ReconnectPolicy(max_attempts=2, backoff_base_ms=10),
            sleep_func=RecordingSleep(),
            on_fatal=fatal.append,
        )
        await manager.connect()

        first.drop(ConnectionResetError("lost"))
        await settle(lambda: manager.state is ConnectionState.FAILED_PERMANENTLY)
        await settle(lambda: bool(fatal))

        assert len(fatal) == 1
        assert isinstance(fatal[0], ConnectionFailedError)
        with pytest.raises(NotConnectedError):
            manager.get_session()
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_async_fatal_handler_is_awaited(self):
        first = FakeSession()
        seen = []

        async def on_fatal(exc):
            seen.append(exc.attempts)

        manager = ConnectionManager(
            FakeFactory([first]),
            ReconnectPolicy(max_attempts=0),
            sleep_func=RecordingSleep(),
            on_fatal=on_fatal,
        )
        await manager.connect()
        first.drop()
        await settle(lambda: bool(seen))
        assert seen == [1]
        await manager.disconnect()


    @pytest.mark.asyncio
    async def test_unlimited_exponential_outlasts_a_thousand_attempts(self):
        first, second = FakeSession(), FakeSession()
        outages = [ConnectionError("down")] * 1100
        factory = FakeFactory([first, *outages, second])
        manager = make_manager(factory, max_attempts=None, strategy="exponential", max_backoff_ms=60_000)
        await manager.connect()

        first.drop()
        await settle(lambda: manager._session is second, rounds=100_000)

        assert manager.state is ConnectionState.CONNECTED
        assert factory.opened == 1102
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_crashed_reconnect_loop_fails_loudly(self):
        class BrokenRandom(random.Random):
            def random(self):
                raise RuntimeError("entropy gone")

        first = FakeSession()
        fatal = []
        manager = ConnectionManager(
            FakeFactory([first]),
            ReconnectPolicy(max_attempts=None, jitter=0.5),
            sleep_func=RecordingSleep(),
            rng=BrokenRandom(),
            on_fatal=fatal.append,
        )
        await manager.connect()

        first.drop()
        await settle(lambda: bool(fatal))

        assert manager.state is ConnectionState.FAILED_PERMANENTLY
        assert fatal[0].permanent is True
        assert isinstance(fatal[0].cause, RuntimeError)
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_connect_while_reconnecting_waits_for_the_loop(self):
        gate = asyncio.Event()
        first, second = FakeSession(), FakeSession()
        factory = FakeFactory([first, second])
        manager = make_manager(factory, RecordingSleep(gate), max_attempts=3)
        await manager.connect()

        first.drop()
        await settle(lambda: manager.state is ConnectionState.RECONNECTING)
        pending = asyncio.ensure_future(manager.connect())
        await asyncio.sleep(0)
        assert factory.opened == 1

        gate.set()
        await pending

        assert manager.get_session() is second
        assert factory.opened == 2
        await manager.disconnect()
        assert second.closed is True

    @pytest.mark.asyncio
    async def test_connect_while_reconnecting_reports_exhaustion(self):
        gate = asyncio.Event()
        first = FakeSession()
        manager = make_manager(FakeFactory([first]), RecordingSleep(gate), max_attempts=1)
        await manager.connect()

        first.drop()
        await settle(lambda: manager.state is ConnectionState.RECONNECTING)
        pending = asyncio.ensure_future(manager.connect())
        gate.set()

        with pytest.raises(ConnectionFailedError):
            await pending
        assert manager.state is ConnectionState.FAILED_PERMANENTLY
        await manager.disconnect()

class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_closes_session(self):
        session = FakeSession()
        manager = make_manager(FakeFactory([session]))
        await manager.connect()

        await manager.disconnect()

        assert session.closed is True
        assert manager.state is ConnectionState.DISCONNECTED
        with pytest.raises(NotConnectedError):
            manager.get_session()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self):
        manager = make_manager(FakeFactory([FakeSession()]))
        await manager.connect()

        await manager.disconnect()
        await manager.disconnect()

        assert manager.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_interrupts_backoff(self):
        first = FakeSession()
        factory = FakeFactory([first, FakeSession()])
        manager = make_manager(factory, RecordingSleep(asyncio.Event()), max_attempts=None)
        await manager.connect()

        first.drop()
        await settle(lambda: manager.state is ConnectionState.RECONNECTING)
        await manager.disconnect()

        assert manager.state is ConnectionState.DISCONNECTED
        assert factory.opened == 1


class TestStats:
    @pytest.mark.asyncio
    async def test_stats_from_live_session(self):
        now = [100.0]
        session = FakeSession()
        session.guilds["1"] = object()
        manager = ConnectionManager(FakeFactory([session]), clock=lambda: now[0])
        await manager.connect()

        now[0] = 101.5
        stats = manager.get_stats()

        assert stats.connected is True
        assert stats.guild_count == 1
        assert stats.latency_ms == 42.0
        assert stats.uptime_ms == 1500
        await manager.disconnect()

    def test_stats_when_disconnected(self):
        manager = ConnectionManager(FakeFactory())
        assert manager.get_stats().to_dict() == {
            "connected": False,
            "guild_count": 0,
            "latency_ms": 0.0,
            "uptime_ms": 0,
        }

    def test_status_shape(self):
        manager = ConnectionManager(FakeFactory(), ReconnectPolicy(max_attempts=7))
        status = manager.status()
        assert status["state"] == "disconnected"
        assert status["max_attempts"] == 7
        assert status["attempts_so_far"] == 0
        assert status["last_error"] is None


class TestTransitionLogging:
    @pytest.mark.asyncio
    async def test_one_record_per_transition(self, caplog):
        manager = make_manager(FakeFactory([FakeSession()]))

        with caplog.at_level(logging.INFO, logger="discord_mcp.core.connection.manager"):
            await manager.connect()
            await manager.disconnect()

        transitions = [
            (r.from_state, r.to_state) for r in caplog.records if getattr(r, "event", None) == "connection.transition"
        ]
        assert transitions == [
            ("disconnected", "connecting"),
            ("connecting", "connected"),
            ("connected", "disconnected"),
        ]
