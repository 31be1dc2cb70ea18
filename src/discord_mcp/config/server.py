"""The ``ServerConfig`` dataclass, log setup, and the process-wide config.

Field defaults live here; reading TOML files and ``DISCORD_*`` variables is
done by ``_ServerConfigLoader`` in ``loader.py``.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version
from typing import Any, Dict, List, Optional

from discord_mcp.config.domains import GatewaySettings, ReconnectSettings
from discord_mcp.config.loader import _ServerConfigLoader
from discord_mcp.core.observability import RedactionFilter

try:
    _PACKAGE_VERSION = get_package_version("discord-mcp")
except PackageNotFoundError:  # running from a source checkout
    _PACKAGE_VERSION = "0.3.0"

# ``extra`` keys the operations, connection, audit and metrics loggers attach.
_STRUCTURED_FIELDS = (
    "event",
    "operation",
    "outcome",
    "identifiers",
    "duration_ms",
    "error_kind",
    "error_code",
    "correlation_id",
    "from_state",
    "to_state",
    "attempts_so_far",
    "audit",
    "metric",
)


class _JsonLineFormatter(logging.Formatter):
    """One JSON object per record, carrying the structured ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _STRUCTURED_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


@dataclass
class ServerConfig(_ServerConfigLoader):
    """Everything the server reads at startup.

    The bot token only ever comes from the environment and is kept out of
    ``repr`` so it cannot leak through a logged config.
    """

    discord_token: Optional[str] = field(default=None, repr=False)

    log_level: str = "INFO"
    structured_logging: bool = True

    server_name: str = "discord-mcp"
    server_version: str = _PACKAGE_VERSION
    transport: str = "stdio"
    http_host: str = "127.0.0.1"
    http_port: int = 8000

    reconnect: ReconnectSettings = field(default_factory=ReconnectSettings)
    gateway: GatewaySettings = field(default_factory=GatewaySettings)

    # Names of tools and prompts that are not registered at all
    disabled_tools: List[str] = field(default_factory=list)

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)

    def setup_logging(self) -> None:
        """Attach a redacting stderr handler to the ``discord_mcp`` logger.

        stdout belongs to the stdio transport. Calling this twice does not
        add a second handler.
        """
        package_logger = logging.getLogger("discord_mcp")
        package_logger.setLevel(getattr(logging, self.log_level, logging.INFO))
        if any(getattr(h, "_discord_mcp", False) for h in package_logger.handlers):
            return

        handler = logging.StreamHandler(sys.stderr)
        handler._discord_mcp = True  # type: ignore[attr-defined]
        if self.structured_logging:
            handler.setFormatter(_JsonLineFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))
        handler.addFilter(RedactionFilter())
        package_logger.addHandler(handler)


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Process-wide config, loaded from the environment on first use."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def set_config(config: ServerConfig) -> None:
    global _config
    _config = config
