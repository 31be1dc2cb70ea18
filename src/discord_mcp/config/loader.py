"""Reading ``ServerConfig`` from TOML layers and ``DISCORD_*`` variables.

``_ServerConfigLoader`` is mixed into the ``ServerConfig`` dataclass; at
runtime ``self`` is always a ``ServerConfig``.

Layers, lowest first:

1. field defaults
2. ``$XDG_CONFIG_HOME/discord-mcp/config.toml``
3. ``~/.discord-mcp.toml``
4. ``./discord-mcp.toml``
5. environment variables

``--config`` or ``DISCORD_MCP_CONFIG_FILE`` names a single file that takes
the place of layers 2 to 4. Bad values in a file or in the environment are
skipped and reported through ``startup_warnings``; only an unknown transport
or an unusable reconnect policy stops startup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, cast

if TYPE_CHECKING:
    from discord_mcp.config.server import ServerConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from discord_mcp.config.domains import GatewaySettings, ReconnectSettings
from discord_mcp.config.parsing import _parse_max_attempts, _parse_name_list, _try_parse_bool

logger = logging.getLogger(__name__)

VALID_TRANSPORTS = ("stdio", "sse", "streamable-http")
HTTP_TRANSPORTS = frozenset({"sse", "streamable-http"})

TOKEN_VARIABLES = ("DISCORD_TOKEN", "DISCORD_BOT_TOKEN")


def _config_layers() -> List[Path]:
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return [
        xdg_home / "discord-mcp" / "config.toml",
        Path.home() / ".discord-mcp.toml",
        Path("discord-mcp.toml"),
    ]


def _strict_bool(raw: str) -> bool:
    parsed = _try_parse_bool(raw)
    if parsed is None:
        raise ValueError("expected true/false")
    return parsed


def _retry_limit(raw: str) -> Optional[int]:
    try:
        return _parse_max_attempts(raw)
    except ValueError:
        raise ValueError("expected an integer or 'unlimited'") from None


def _set_reconnect(field_name: str) -> Callable[["_ServerConfigLoader", Any], None]:
    def apply(config: "_ServerConfigLoader", value: Any) -> None:
        setattr(config.reconnect, field_name, value)

    return apply


def _set(field_name: str) -> Callable[["_ServerConfigLoader", Any], None]:
    def apply(config: "_ServerConfigLoader", value: Any) -> None:
        setattr(config, field_name, value)

    return apply


# variable -> (parser, setter). A parser raising ValueError turns into a warning.
_ENV_SETTINGS: Dict[str, Tuple[Callable[[str], Any], Callable[["_ServerConfigLoader", Any], None]]] = {
    "DISCORD_MCP_LOG_LEVEL": (str.upper, _set("log_level")),
    "DISCORD_MCP_STRUCTURED_LOGGING": (_strict_bool, _set("structured_logging")),
    "DISCORD_MCP_TRANSPORT": (lambda raw: raw.strip().lower(), _set("transport")),
    "DISCORD_MCP_HTTP_HOST": (str.strip, _set("http_host")),
    "DISCORD_MCP_HTTP_PORT": (int, _set("http_port")),
    "DISCORD_MCP_RECONNECT_MAX_ATTEMPTS": (_retry_limit, _set_reconnect("max_attempts")),
    "DISCORD_MCP_RECONNECT_BACKOFF_MS": (int, _set_reconnect("backoff_base_ms")),
    "DISCORD_MCP_RECONNECT_STRATEGY": (lambda raw: raw.strip().lower(), _set_reconnect("strategy")),
    "DISCORD_MCP_DISABLED_TOOLS": (_parse_name_list, _set("disabled_tools")),
}


class _ServerConfigLoader:
    """Loading and validation methods inherited by ``ServerConfig``."""

    if TYPE_CHECKING:

        def __init_subclass__(cls, **kwargs: Any) -> None: ...

        discord_token: Optional[str]
        log_level: str
        structured_logging: bool
        server_name: str
        server_version: str
        transport: str
        http_host: str
        http_port: int
        reconnect: ReconnectSettings
        gateway: GatewaySettings
        disabled_tools: List[str]
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ServerConfig":
        """Build the config from the TOML layers and the environment.

        Raises:
            ValueError: The transport is unknown or the reconnect settings
                cannot form a policy.
        """
        config = cls()

        explicit = config_file or os.environ.get("DISCORD_MCP_CONFIG_FILE")
        if explicit:
            config._load_toml(Path(explicit))
        else:
            for path in _config_layers():
                if path.exists():
                    config._load_toml(path)
                    logger.debug("Loaded config layer %s", path)

        config._load_env()
        config._validate_startup_configuration()
        return cast("ServerConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Apply one TOML file. A ``token`` key anywhere is ignored."""
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("Error loading config file %s: %s", path, e)
            self._add_startup_warning(f"Ignoring unreadable config file {path}: {e}")
            return

        log_table = data.get("logging", {})
        if "level" in log_table:
            self.log_level = str(log_table["level"]).upper()
        if "structured" in log_table:
            structured = _try_parse_bool(log_table["structured"])
            if structured is None:
                self._add_startup_warning(f"Ignoring [logging].structured in {path}: not a boolean")
            else:
                self.structured_logging = structured

        server_table = data.get("server", {})
        for key, attr in (("name", "server_name"), ("version", "server_version"), ("host", "http_host")):
            if key in server_table:
                setattr(self, attr, str(server_table[key]))
        if "transport" in server_table:
            self.transport = str(server_table["transport"]).lower()
        if "port" in server_table:
            try:
                self.http_port = int(server_table["port"])
            except (TypeError, ValueError):
                self._add_startup_warning(f"Ignoring [server].port in {path}: not an integer")

        tools_table = data.get("tools", {})
        if "disabled_tools" in tools_table:
            self.disabled_tools = _parse_name_list(tools_table["disabled_tools"])

        for section, settings_cls, attr in (
            ("reconnect", ReconnectSettings, "reconnect"),
            ("gateway", GatewaySettings, "gateway"),
        ):
            if section not in data:
                continue
            try:
                setattr(self, attr, settings_cls.from_toml_dict(data[section]))
            except (TypeError, ValueError) as e:
                self._add_startup_warning(f"Ignoring [{section}] in {path}: {e}")

    def _load_env(self) -> None:
        for name in TOKEN_VARIABLES:
            token = os.environ.get(name, "").strip()
            if token:
                self.discord_token = token
                break

        for name, (parse, apply) in _ENV_SETTINGS.items():
            raw = os.environ.get(name)
            if not raw:
                continue
            try:
                value = parse(raw)
            except ValueError as e:
                self._add_startup_warning(f"Ignoring {name}={raw!r}: {e}")
                continue
            apply(self, value)

    def _validate_startup_configuration(self) -> None:
        """Reject fatal misconfiguration and log every collected warning.

        A missing token is checked later by :meth:`require_token`, so that
        ``--help`` and config inspection work without one.
        """
        if self.transport not in VALID_TRANSPORTS:
            raise ValueError(
                f"Invalid transport {self.transport!r}; expected one of: {', '.join(VALID_TRANSPORTS)}"
            )
        if not isinstance(logging.getLevelName(self.log_level), int):
            self._add_startup_warning(f"Unknown log level {self.log_level!r}; using INFO")
            self.log_level = "INFO"
        try:
            self.reconnect.to_policy()
        except ValueError as e:
            raise ValueError(f"Invalid reconnect settings: {e}") from e
        if self.reconnect.max_attempts is None:
            self._add_startup_warning("Reconnect attempts are unlimited; the server will retry forever")

        for warning in self.startup_warnings:
            logger.warning(warning)

    def require_token(self) -> str:
        """Return the bot token.

        Raises:
            ValueError: Neither ``DISCORD_TOKEN`` nor ``DISCORD_BOT_TOKEN`` is set.
        """
        if not self.discord_token:
            raise ValueError("DISCORD_TOKEN is not set; export the bot token before starting the server")
        return self.discord_token

    @property
    def uses_http(self) -> bool:
        return self.transport in HTTP_TRANSPORTS
