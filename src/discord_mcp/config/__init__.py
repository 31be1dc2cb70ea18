"""Configuration package for discord-mcp.

Sub-modules:
    parsing – Boolean, retry-limit and name-list parsing helpers
    domains – ReconnectSettings, GatewaySettings
    server  – ServerConfig dataclass, get_config/set_config globals
    loader  – ServerConfig loading/validation mixin (_ServerConfigLoader)
"""

from discord_mcp.config.domains import GatewaySettings, ReconnectSettings  # noqa: F401
from discord_mcp.config.loader import HTTP_TRANSPORTS, VALID_TRANSPORTS  # noqa: F401
from discord_mcp.config.server import (  # noqa: F401
    _PACKAGE_VERSION,
    ServerConfig,
    get_config,
    set_config,
)
