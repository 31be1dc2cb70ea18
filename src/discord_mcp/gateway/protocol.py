"""Narrow interface between the server core and the gateway client.

Everything above the adapter (connection manager, access validation,
permission checks, operations) talks to a :class:`GatewaySession`. The real
implementation wraps discord.py; tests use an in-memory fake.

Identifiers are snowflake strings throughout. ``fetch_*`` methods return
``None`` when the entity does not exist. Every other method raises the
gateway exceptions from :mod:`discord_mcp.core.errors.gateway`.
"""

from datetime import datetime
from typing import Any, FrozenSet, List, Mapping, Optional, Protocol, Sequence

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


class GatewaySession(Protocol):
    """One live, authenticated gateway session."""

    @property
    def user_id(self) -> str: ...

    @property
    def guild_count(self) -> int: ...

    @property
    def latency_ms(self) -> float: ...

    async def wait_closed(self) -> Optional[BaseException]:
        """Wait until the session ends; return the cause, if any."""
        ...

    async def close(self) -> None: ...

    # --- lookups -------------------------------------------------------

    async def fetch_guild(self, guild_id: str) -> Optional[GuildView]: ...

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelView]: ...

    async def fetch_message(self, channel_id: str, message_id: str) -> Optional[MessageView]: ...

    async def fetch_member(self, guild_id: str, user_id: str) -> Optional[MemberView]: ...

    async def fetch_role(self, guild_id: str, role_id: str) -> Optional[RoleView]: ...

    async def guild_permissions(self, guild_id: str) -> FrozenSet[str]:
        """Permission flag names the bot holds guild-wide."""
        ...

    async def channel_permissions(self, channel_id: str) -> FrozenSet[str]:
        """Permission flag names the bot holds in a channel, overwrites applied."""
        ...

    # --- messages ------------------------------------------------------

    async def send_message(
        self, channel_id: str, content: Optional[str], embeds: Sequence[Mapping[str, Any]] = ()
    ) -> MessageView: ...

    async def history(
        self,
        channel_id: str,
        limit: int,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> List[MessageView]: ...

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: Optional[str] = None,
        embeds: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> MessageView: ...

    async def delete_message(self, channel_id: str, message_id: str, reason: Optional[str] = None) -> None: ...

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None: ...

    async def pin_message(self, channel_id: str, message_id: str, reason: Optional[str] = None) -> None: ...

    async def unpin_message(self, channel_id: str, message_id: str, reason: Optional[str] = None) -> None: ...

    async def bulk_delete(self, channel_id: str, message_ids: Sequence[str], reason: Optional[str] = None) -> int: ...

    # --- channels and threads -------------------------------------------

    async def create_channel(
        self, guild_id: str, kind: ChannelKind, name: str, options: Mapping[str, Any]
    ) -> ChannelView: ...

    async def edit_channel(
        self, channel_id: str, changes: Mapping[str, Any], reason: Optional[str] = None
    ) -> ChannelView: ...

    async def delete_channel(self, channel_id: str, reason: Optional[str] = None) -> None: ...

    async def list_channels(self, guild_id: str) -> List[ChannelView]: ...

    async def set_permission_overwrite(
        self,
        channel_id: str,
        target_id: str,
        target_type: str,
        allow: FrozenSet[str],
        deny: FrozenSet[str],
        reason: Optional[str] = None,
    ) -> None: ...

    async def create_thread(
        self, channel_id: str, name: str, options: Mapping[str, Any]
    ) -> ChannelView: ...

    async def list_threads(self, channel_id: str, include_archived: bool, limit: int) -> List[ChannelView]: ...

    # --- guild administration -------------------------------------------

    async def edit_guild(self, guild_id: str, changes: Mapping[str, Any], reason: Optional[str] = None) -> GuildView: ...

    async def audit_logs(
        self,
        guild_id: str,
        limit: int,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> List[AuditLogEntryView]: ...

    async def list_webhooks(self, guild_id: str, channel_id: Optional[str] = None) -> List[WebhookView]: ...

    async def create_webhook(self, channel_id: str, name: str, reason: Optional[str] = None) -> WebhookView: ...

    async def list_invites(self, guild_id: str) -> List[InviteView]: ...

    async def create_invite(self, channel_id: str, options: Mapping[str, Any]) -> InviteView: ...

    # --- roles and members ----------------------------------------------

    async def list_roles(self, guild_id: str) -> List[RoleView]: ...

    async def create_role(self, guild_id: str, options: Mapping[str, Any]) -> RoleView: ...

    async def delete_role(self, guild_id: str, role_id: str, reason: Optional[str] = None) -> None: ...

    async def add_member_role(self, guild_id: str, user_id: str, role_id: str, reason: Optional[str] = None) -> None: ...

    async def remove_member_role(
        self, guild_id: str, user_id: str, role_id: str, reason: Optional[str] = None
    ) -> None: ...

    async def list_members(self, guild_id: str, limit: int, after: Optional[str] = None) -> List[MemberView]: ...

    async def set_nickname(
        self, guild_id: str, user_id: str, nickname: Optional[str], reason: Optional[str] = None
    ) -> MemberView: ...

    async def timeout_member(
        self, guild_id: str, user_id: str, until: Optional[datetime], reason: Optional[str] = None
    ) -> MemberView: ...

    async def kick_member(self, guild_id: str, user_id: str, reason: Optional[str] = None) -> None: ...

    async def ban_member(
        self,
        guild_id: str,
        user_id: str,
        reason: Optional[str] = None,
        delete_message_seconds: int = 0,
    ) -> None: ...

    async def unban_member(self, guild_id: str, user_id: str, reason: Optional[str] = None) -> None: ...

    async def list_bans(self, guild_id: str, limit: int) -> List[BanView]: ...


class GatewayFactory(Protocol):
    """Opens new gateway sessions. Called once per (re)connection attempt."""

    async def open(self) -> GatewaySession:
        """Log in and wait for the session to become ready.

        Raises:
            GatewayAuthError: The credentials were rejected.
            GatewayConnectError: The session could not be opened.
        """
        ...

