"""Gateway adapter: the only package that imports discord.py."""

from discord_mcp.gateway.models import (
    AuditLogEntryView,
    BanView,
    ChannelKind,
    ChannelView,
    GuildView,
    InviteView,
    MemberView,
    MessageView,
    RoleView,
    WebhookView,
)
from discord_mcp.gateway.protocol import GatewayFactory, GatewaySession

__all__ = [
    "GatewayFactory",
    "GatewaySession",
    "ChannelKind",
    "GuildView",
    "ChannelView",
    "MessageView",
    "MemberView",
    "RoleView",
    "BanView",
    "InviteView",
    "WebhookView",
    "AuditLogEntryView",
]
