"""Capability checks for the acting bot identity.

Every mutating operation calls :meth:`CapabilityGuard.require` after its
targets resolve and before any side-effecting gateway call. The platform's
own resolution rules decide the effective permission set: guild-wide
permissions for guild targets, and guild permissions with channel
overwrites applied for channel and message targets.

Permission names are the gateway client's flag names (``manage_channels``).
Callers may supply them in platform spelling (``ManageChannels``), snake
case, or upper case; :func:`normalize_permission_name` maps all of these
onto flag names.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union

from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.observability.audit import get_audit_logger
from discord_mcp.gateway.models import ChannelView, GuildView, MemberView, MessageView, RoleView
from discord_mcp.gateway.protocol import GatewaySession

logger = logging.getLogger(__name__)

Entity = Union[GuildView, ChannelView, MessageView, MemberView, RoleView]


class Capability(str, Enum):
    """Capabilities operations require, valued by permission flag name."""

    ADMINISTRATOR = "administrator"
    VIEW_CHANNEL = "read_messages"
    SEND_MESSAGES = "send_messages"
    SEND_MESSAGES_IN_THREADS = "send_messages_in_threads"
    EMBED_LINKS = "embed_links"
    READ_MESSAGE_HISTORY = "read_message_history"
    ADD_REACTIONS = "add_reactions"
    MANAGE_MESSAGES = "manage_messages"
    MANAGE_CHANNELS = "manage_channels"
    MANAGE_GUILD = "manage_guild"
    MANAGE_ROLES = "manage_roles"
    MANAGE_THREADS = "manage_threads"
    MANAGE_WEBHOOKS = "manage_webhooks"
    MANAGE_NICKNAMES = "manage_nicknames"
    CREATE_PUBLIC_THREADS = "create_public_threads"
    CREATE_PRIVATE_THREADS = "create_private_threads"
    CREATE_INSTANT_INVITE = "create_instant_invite"
    VIEW_AUDIT_LOG = "view_audit_log"
    KICK_MEMBERS = "kick_members"
    BAN_MEMBERS = "ban_members"
    MODERATE_MEMBERS = "moderate_members"

    @property
    def display_name(self) -> str:
        """Platform spelling, e.g. ``ManageChannels``."""
        return _DISPLAY_OVERRIDES.get(self.value) or "".join(part.capitalize() for part in self.value.split("_"))


_DISPLAY_OVERRIDES = {"read_messages": "ViewChannel"}

# Every flag the platform defines, in client-library spelling.
PERMISSION_FLAGS: FrozenSet[str] = frozenset(
    {
        "add_reactions",
        "administrator",
        "attach_files",
        "ban_members",
        "change_nickname",
        "connect",
        "create_events",
        "create_expressions",
        "create_instant_invite",
        "create_polls",
        "create_private_threads",
        "create_public_threads",
        "deafen_members",
        "embed_links",
        "external_emojis",
        "external_stickers",
        "kick_members",
        "manage_channels",
        "manage_events",
        "manage_expressions",
        "manage_guild",
        "manage_messages",
        "manage_nicknames",
        "manage_roles",
        "manage_threads",
        "manage_webhooks",
        "mention_everyone",
        "moderate_members",
        "move_members",
        "mute_members",
        "priority_speaker",
        "read_message_history",
        "read_messages",
        "request_to_speak",
        "send_messages",
        "send_messages_in_threads",
        "send_polls",
        "send_tts_messages",
        "send_voice_messages",
        "speak",
        "stream",
        "use_application_commands",
        "use_embedded_activities",
        "use_external_apps",
        "use_external_sounds",
        "use_soundboard",
        "use_voice_activation",
        "view_audit_log",
        "view_creator_monetization_analytics",
        "view_guild_insights",
    }
)

_PERMISSION_ALIASES = {
    "view_channel": "read_messages",
    "manage_permissions": "manage_roles",
    "manage_server": "manage_guild",
    "use_external_emojis": "external_emojis",
    "use_external_stickers": "external_stickers",
    "manage_emojis": "manage_expressions",
    "manage_emojis_and_stickers": "manage_expressions",
    "manage_guild_expressions": "manage_expressions",
    "create_guild_expressions": "create_expressions",
    "use_vad": "use_voice_activation",
    "start_embedded_activities": "use_embedded_activities",
    "timeout_members": "moderate_members",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def normalize_permission_name(name: str) -> Optional[str]:
    """Map a permission name in any accepted spelling to its flag name.

    Returns ``None`` for names the platform does not define.

    Example:
        >>> normalize_permission_name("ViewChannel")
        'read_messages'
        >>> normalize_permission_name("SEND_MESSAGES")
        'send_messages'
    """
    candidate = name.strip()
    if not candidate:
        return None
    if "_" not in candidate and not candidate.isupper():
        candidate = _CAMEL_BOUNDARY.sub("_", candidate)
    candidate = candidate.lower().replace(" ", "_")
    candidate = _PERMISSION_ALIASES.get(candidate, candidate)
    return candidate if candidate in PERMISSION_FLAGS else None


def normalize_permission_names(names: Iterable[str]) -> Tuple[FrozenSet[str], List[str]]:
    """Normalize many names; returns ``(flags, unknown_names)``."""
    flags = set()
    unknown = []
    for name in names:
        flag = normalize_permission_name(name)
        if flag is None:
            unknown.append(name)
        else:
            flags.add(flag)
    return frozenset(flags), unknown


def _scope(entity: Entity) -> Tuple[str, str]:
    """Return ``(scope, id)`` whose permission set governs ``entity``."""
    if isinstance(entity, GuildView):
        return "guild", entity.id
    if isinstance(entity, ChannelView):
        return "channel", entity.id
    if isinstance(entity, MessageView):
        return "channel", entity.channel_id
    return "guild", entity.guild_id


class CapabilityGuard:
    """Confirms the bot holds capabilities before an operation mutates anything.

    Args:
        operation: Operation name recorded with denials in the audit log.
    """

    def __init__(self, operation: str = ""):
        self._operation = operation

    async def effective_permissions(self, session: GatewaySession, entity: Entity) -> FrozenSet[str]:
        scope, scope_id = _scope(entity)
        if scope == "guild":
            return await session.guild_permissions(scope_id)
        return await session.channel_permissions(scope_id)

    async def require(
        self,
        session: GatewaySession,
        entity: Entity,
        *capabilities: Capability,
    ) -> Optional[DomainError]:
        """Check all ``capabilities`` against one permission fetch.

        Returns:
            ``None`` when every capability is held, else ``permission_denied``
            naming the first missing capability and the scope's identifier.
        """
        if not capabilities:
            return None
        granted = await self.effective_permissions(session, entity)
        if Capability.ADMINISTRATOR.value in granted:
            return None

        _, scope_id = _scope(entity)
        for capability in capabilities:
            if capability.value not in granted:
                logger.info(
                    "Capability %s missing on %s",
                    capability.display_name,
                    scope_id,
                    extra={"operation": self._operation, "capability": capability.display_name},
                )
                get_audit_logger().permission_denied(self._operation, capability.display_name, scope_id)
                return DomainError.permission_denied(capability.display_name, scope_id)
        return None

    async def require_outranks(
        self,
        session: GatewaySession,
        guild: GuildView,
        target: Union[MemberView, RoleView],
        action: str,
    ) -> Optional[DomainError]:
        """Check the bot's highest role sits above ``target``.

        The guild owner outranks everyone; nobody outranks the owner.
        """
        if isinstance(target, MemberView) and (target.is_owner or target.id == guild.owner_id):
            return DomainError.role_hierarchy(action, target.id)
        if guild.owner_id is not None and guild.owner_id == session.user_id:
            return None

        me = await session.fetch_member(guild.id, session.user_id)
        my_position = me.top_role_position if me is not None else 0
        target_position = target.top_role_position if isinstance(target, MemberView) else target.position
        if target_position >= my_position:
            return DomainError.role_hierarchy(action, target.id)
        return None
