"""Tests for the connection_status tool and the /health probe."""

import pytest

from conftest import FakeFactory, FakeSession, ToolRecorder
from discord_mcp.core.connection import ConnectionManager, ReconnectPolicy
from discord_mcp.core.errors import ConnectionFailedError
from discord_mcp.tools.health import HEALTHY, UNHEALTHY, health_report, register_health_tools


async def _no_sleep(seconds):
    return None


def make_manager(factory, **policy):
    return ConnectionManager(factory, ReconnectPolicy(**policy), sleep_func=_no_sleep)


class RouteRecorder(ToolRecorder):
    """Also captures custom HTTP routes."""

    def __init__(self):
        super().__init__()
        self.routes = {}

    def custom_route(self, path, methods, **kwargs):
        def decorator(fn):
            self.routes[path] = (tuple(methods), fn)
            return fn

        return decorator


class TestHealthReport:
    def test_before_connect_is_unhealthy(self):
        report, status_code = health_report(make_manager(FakeFactory()), "discord-mcp", "1.0.0")

        assert status_code == 503
        assert report["status"] == UNHEALTHY
        assert report["state"] == "disconnected"
        assert report["discord"]["connected"] is False

    @pytest.mark.asyncio
    async def test_connected(self):
        manager = make_manager(FakeFactory([FakeSession()]))
        await manager.connect()

        report, status_code = health_report(manager, "discord-mcp", "1.0.0")

        assert status_code == 200
        assert report["status"] == HEALTHY
        assert report["server"] == {"name": "discord-mcp", "version": "1.0.0"}
        assert report["discord"]["latency_ms"] == 42.0
        assert report["reconnect"]["max_attempts"] == 5
        await manager.disconnect()

    @pytest.mark.asyncio
    async def test_failed_permanently(self):
        manager = make_manager(FakeFactory(), max_attempts=0)
        with pytest.raises(ConnectionFailedError):
            await manager.connect()

        report, status_code = health_report(manager, "discord-mcp", "1.0.0")

        assert status_code == 503
        assert report["state"] == "failed_permanently"
        assert report["reconnect"]["last_error"]


class TestRegistration:
    def test_status_tool(self):
        recorder = RouteRecorder()
        register_health_tools(
            recorder, make_manager(FakeFactory()), server_name="discord-mcp", server_version="1.0.0"
        )

        response = recorder["connection_status"]()

        assert response["success"] is True
        assert response["data"]["state"] == "disconnected"
        assert response["summary"] == "Gateway disconnected"
        assert recorder.routes == {}

    @pytest.mark.asyncio
    async def test_http_route(self):
        recorder = RouteRecorder()
        register_health_tools(
            recorder,
            make_manager(FakeFactory()),
            server_name="discord-mcp",
            server_version="1.0.0",
            http_route=True,
        )

        methods, handler = recorder.routes["/health"]
        response = await handler(None)

        assert methods == ("GET",)
        assert response.status_code == 503

    def test_disabled(self):
        recorder = RouteRecorder()
        register_health_tools(
            recorder,
            make_manager(FakeFactory()),
            server_name="discord-mcp",
            server_version="1.0.0",
            disabled={"connection_status"},
        )
        assert "connection_status" not in recorder.tools
