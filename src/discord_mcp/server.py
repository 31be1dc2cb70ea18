"""Server bootstrap: one gateway session, one MCP server, one shutdown.

``serve`` owns the process lifecycle. The connection manager is built once
and connected before any tool is reachable; a failed initial connection is
fatal. Shutdown (signal or transport exit) disconnects exactly once.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.config import ServerConfig, get_config, set_config
from discord_mcp.core.connection import ConnectionManager
from discord_mcp.core.errors import ConnectionFailedError
from discord_mcp.core.observability import get_audit_logger
from discord_mcp.gateway.protocol import GatewayFactory
from discord_mcp.tools import register_operation_tools
from discord_mcp.tools.executor import OperationExecutor
from discord_mcp.tools.health import register_health_tools
from discord_mcp.tools.prompts import register_prompts

logger = logging.getLogger(__name__)

_INSTRUCTIONS = (
    "Operates one Discord bot account. Identifiers are snowflake strings. "
    "Every tool returns {success, data, error, meta}; on failure data.error_code "
    "and data.remediation say what to do next. Call connection_status when a "
    "tool reports not_connected."
)


def create_server(config: ServerConfig, manager: ConnectionManager) -> FastMCP:
    """Build the FastMCP server and register every enabled tool and prompt.

    Args:
        config: Server configuration
        manager: Connection manager shared by every tool

    Returns:
        Configured FastMCP instance (not yet running)
    """
    mcp = FastMCP(
        name=config.server_name,
        instructions=_INSTRUCTIONS,
        host=config.http_host,
        port=config.http_port,
    )
    disabled = frozenset(config.disabled_tools)
    executor = OperationExecutor(manager)

    register_operation_tools(mcp, executor, disabled=disabled)
    register_health_tools(
        mcp,
        manager,
        server_name=config.server_name,
        server_version=config.server_version,
        http_route=config.uses_http,
        disabled=disabled,
    )
    register_prompts(mcp, disabled=disabled)

    if disabled:
        logger.info("Tools disabled by configuration: %s", ", ".join(sorted(disabled)))
    return mcp


def _default_factory(config: ServerConfig) -> GatewayFactory:
    # Only the gateway adapter imports discord.py.
    from discord_mcp.gateway.discord_client import DiscordGatewayFactory

    return DiscordGatewayFactory(
        config.require_token(),
        ready_timeout=config.gateway.ready_timeout_seconds,
        max_ratelimit_timeout=config.gateway.max_ratelimit_timeout_seconds,
        intent_members=config.gateway.intent_members,
        intent_message_content=config.gateway.intent_message_content,
    )


def _report_fatal(exc: ConnectionFailedError) -> None:
    """Reconnect exhaustion mid-session: tools keep answering not_connected."""
    get_audit_logger().connection_fatal(str(exc), exc.attempts, permanent=exc.permanent)


async def _run_transport(mcp: FastMCP, transport: str) -> None:
    if transport == "sse":
        await mcp.run_sse_async()
    elif transport == "streamable-http":
        await mcp.run_streamable_http_async()
    else:
        await mcp.run_stdio_async()


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down", sig.name)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_signal, sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler.
            logger.debug("Signal handler for %s unavailable on this platform", sig.name)


async def serve(config: ServerConfig, *, factory: Optional[GatewayFactory] = None) -> int:
    """Connect, serve MCP until shutdown, then disconnect once.

    Args:
        config: Server configuration
        factory: Gateway factory override (tests); defaults to discord.py

    Returns:
        Process exit status: 0 after a clean shutdown, 1 when the initial
        connection fails.
    """
    gateway_factory = factory or _default_factory(config)
    manager = ConnectionManager(gateway_factory, config.reconnect.to_policy(), on_fatal=_report_fatal)

    logger.info(
        "Starting %s %s",
        config.server_name,
        config.server_version,
        extra={"transport": config.transport},
    )
    try:
        await manager.connect()
    except ConnectionFailedError as exc:
        logger.critical("Failed to connect to Discord: %s", exc, extra={"attempts": exc.attempts})
        get_audit_logger().connection_fatal(str(exc), exc.attempts, permanent=exc.permanent)
        await manager.disconnect()
        return 1

    mcp = create_server(config, manager)
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    transport_task = asyncio.create_task(_run_transport(mcp, config.transport), name="mcp-transport")
    stop_task = asyncio.create_task(stop.wait(), name="shutdown-signal")
    try:
        done, _ = await asyncio.wait({transport_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if transport_task in done and transport_task.exception() is not None:
            logger.error("MCP transport stopped with an error", exc_info=transport_task.exception())
    finally:
        for task in (transport_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(transport_task, stop_task, return_exceptions=True)
        await manager.disconnect()
        logger.info("Shutdown complete")
    return 0


def main() -> None:
    """Console entry point."""
    try:
        config = ServerConfig.from_env()
        config.require_token()
    except ValueError as exc:
        print(f"discord-mcp: {exc}", file=sys.stderr)
        sys.exit(1)

    set_config(config)
    get_config().setup_logging()
    try:
        status = asyncio.run(serve(config))
    except KeyboardInterrupt:
        status = 0
    sys.exit(status)


if __name__ == "__main__":
    main()
