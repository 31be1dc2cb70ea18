"""discord.py implementation of the gateway session interface.

Each call to :meth:`DiscordGatewayFactory.open` logs in a fresh
``discord.Client`` with the library's own reconnect loop disabled, so an
unexpected disconnect ends the session and the connection manager decides
whether and when to reconnect.
"""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, FrozenSet, List, Mapping, Optional, Sequence

import discord

from discord_mcp.core.errors.gateway import (
    GatewayAuthError,
    GatewayClosed,
    GatewayConnectError,
    GatewayForbidden,
    GatewayHTTPError,
    GatewayNotFound,
    GatewayRateLimited,
)
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

logger = logging.getLogger(__name__)

_CHANNEL_KINDS = {
    discord.ChannelType.text: ChannelKind.TEXT,
    discord.ChannelType.voice: ChannelKind.VOICE,
    discord.ChannelType.category: ChannelKind.CATEGORY,
    discord.ChannelType.news: ChannelKind.NEWS,
    discord.ChannelType.stage_voice: ChannelKind.STAGE,
    discord.ChannelType.forum: ChannelKind.FORUM,
    discord.ChannelType.media: ChannelKind.MEDIA,
    discord.ChannelType.public_thread: ChannelKind.PUBLIC_THREAD,
    discord.ChannelType.private_thread: ChannelKind.PRIVATE_THREAD,
    discord.ChannelType.news_thread: ChannelKind.NEWS_THREAD,
    discord.ChannelType.private: ChannelKind.DM,
    discord.ChannelType.group: ChannelKind.GROUP,
}

_ALL_PERMISSIONS = frozenset(name for name, _ in discord.Permissions.all())


def _permission_names(permissions: discord.Permissions) -> FrozenSet[str]:
    return frozenset(name for name, granted in permissions if granted)


def _permissions_from_names(names: Sequence[str]) -> discord.Permissions:
    return discord.Permissions(**{name: True for name in names})


@asynccontextmanager
async def _translate_errors() -> AsyncIterator[None]:
    """Re-raise discord.py exceptions as gateway exceptions."""
    try:
        yield
    except discord.RateLimited as exc:
        raise GatewayRateLimited(int(math.ceil(exc.retry_after * 1000))) from exc
    except discord.NotFound as exc:
        raise GatewayNotFound(exc.text or str(exc)) from exc
    except discord.Forbidden as exc:
        raise GatewayForbidden(exc.text or str(exc)) from exc
    except discord.HTTPException as exc:
        raise GatewayHTTPError(exc.text or str(exc), status=exc.status) from exc
    except discord.ConnectionClosed as exc:
        raise GatewayClosed(f"Gateway closed with code {exc.code}") from exc


# ---------------------------------------------------------------------------
# Library objects -> views
# ---------------------------------------------------------------------------


def _guild_view(guild: discord.Guild) -> GuildView:
    member_count = guild.member_count or guild.approximate_member_count
    return GuildView(
        id=str(guild.id),
        name=guild.name,
        owner_id=str(guild.owner_id) if guild.owner_id else None,
        description=guild.description,
        member_count=member_count,
        icon_url=guild.icon.url if guild.icon else None,
        created_at=guild.created_at,
        premium_tier=guild.premium_tier,
        channel_count=len(guild.channels),
        role_count=len(guild.roles),
        verification_level=guild.verification_level.name,
        features=tuple(guild.features),
    )


def _channel_view(channel: Any) -> ChannelView:
    guild = getattr(channel, "guild", None)
    kind = _CHANNEL_KINDS.get(getattr(channel, "type", None), ChannelKind.UNKNOWN)
    name = getattr(channel, "name", None)
    if name is None:
        recipient = getattr(channel, "recipient", None)
        name = f"DM with {recipient}" if recipient else "Direct Message"
    return ChannelView(
        id=str(channel.id),
        name=name,
        kind=kind,
        guild_id=str(guild.id) if guild is not None else None,
        parent_id=str(channel.parent_id) if getattr(channel, "parent_id", None) else None,
        position=getattr(channel, "position", 0) or 0,
        topic=getattr(channel, "topic", None),
        nsfw=bool(getattr(channel, "nsfw", False)),
        slowmode_seconds=getattr(channel, "slowmode_delay", 0) or 0,
        created_at=getattr(channel, "created_at", None),
        archived=bool(getattr(channel, "archived", False)),
        locked=bool(getattr(channel, "locked", False)),
        owner_id=str(channel.owner_id) if getattr(channel, "owner_id", None) else None,
    )


def _message_view(message: discord.Message) -> MessageView:
    return MessageView(
        id=str(message.id),
        channel_id=str(message.channel.id),
        guild_id=str(message.guild.id) if message.guild else None,
        author_id=str(message.author.id),
        author_name=str(message.author),
        author_is_bot=message.author.bot,
        content=message.content,
        created_at=message.created_at,
        edited_at=message.edited_at,
        pinned=message.pinned,
        embed_count=len(message.embeds),
        attachment_count=len(message.attachments),
    )


def _member_view(member: discord.Member) -> MemberView:
    return MemberView(
        id=str(member.id),
        guild_id=str(member.guild.id),
        name=member.name,
        display_name=member.display_name,
        nick=member.nick,
        is_bot=member.bot,
        joined_at=member.joined_at,
        role_ids=tuple(str(role.id) for role in member.roles if not role.is_default()),
        top_role_position=member.top_role.position,
        is_owner=member.guild.owner_id == member.id,
        timed_out_until=member.timed_out_until,
    )


def _role_view(role: discord.Role) -> RoleView:
    return RoleView(
        id=str(role.id),
        guild_id=str(role.guild.id),
        name=role.name,
        position=role.position,
        color=role.colour.value,
        hoist=role.hoist,
        mentionable=role.mentionable,
        managed=role.managed,
        permissions=_permission_names(role.permissions),
    )


def _invite_view(invite: discord.Invite) -> InviteView:
    return InviteView(
        code=invite.code,
        channel_id=str(invite.channel.id) if invite.channel else None,
        inviter_id=str(invite.inviter.id) if invite.inviter else None,
        uses=invite.uses or 0,
        max_uses=invite.max_uses or 0,
        max_age_seconds=invite.max_age or 0,
        temporary=bool(invite.temporary),
        created_at=invite.created_at,
        expires_at=invite.expires_at,
    )


def _webhook_view(webhook: discord.Webhook) -> WebhookView:
    return WebhookView(
        id=str(webhook.id),
        name=webhook.name or "",
        channel_id=str(webhook.channel_id) if webhook.channel_id else None,
        guild_id=str(webhook.guild_id) if webhook.guild_id else None,
        creator_id=str(webhook.user.id) if webhook.user else None,
        created_at=webhook.created_at,
    )


def _audit_entry_view(entry: discord.AuditLogEntry) -> AuditLogEntryView:
    target = entry.target
    return AuditLogEntryView(
        id=str(entry.id),
        action=entry.action.name,
        user_id=str(entry.user.id) if entry.user else None,
        target_id=str(target.id) if target is not None and getattr(target, "id", None) else None,
        reason=entry.reason,
        created_at=entry.created_at,
    )


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class DiscordSession:
    """A logged-in ``discord.Client`` and the task running its gateway loop."""

    def __init__(self, client: discord.Client, runner: asyncio.Task):
        self._client = client
        self._runner = runner

    # --- identity and stats ---------------------------------------------

    @property
    def user_id(self) -> str:
        return str(self._client.user.id) if self._client.user else ""

    @property
    def guild_count(self) -> int:
        return len(self._client.guilds)

    @property
    def latency_ms(self) -> float:
        latency = self._client.latency
        if not math.isfinite(latency):
            return 0.0
        return round(latency * 1000, 2)

    async def wait_closed(self) -> Optional[BaseException]:
        try:
            await asyncio.shield(self._runner)
        except asyncio.CancelledError:
            if self._runner.cancelled():
                return None
            raise
        except Exception as exc:
            return exc
        return None

    async def close(self) -> None:
        if not self._client.is_closed():
            await self._client.close()
        if not self._runner.done():
            self._runner.cancel()
            try:
                await self._runner
            except (asyncio.CancelledError, Exception):
                logger.debug("Gateway runner ended during close", exc_info=True)

    # --- internal resolution --------------------------------------------

    async def _guild(self, guild_id: str) -> discord.Guild:
        guild = self._client.get_guild(int(guild_id))
        if guild is None:
            async with _translate_errors():
                guild = await self._client.fetch_guild(int(guild_id))
        return guild

    async def _channel(self, channel_id: str) -> Any:
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            async with _translate_errors():
                channel = await self._client.fetch_channel(int(channel_id))
        return channel

    async def _message(self, channel_id: str, message_id: str) -> discord.Message:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            return await channel.fetch_message(int(message_id))

    async def _member(self, guild: discord.Guild, user_id: str) -> discord.Member:
        member = guild.get_member(int(user_id))
        if member is None:
            async with _translate_errors():
                member = await guild.fetch_member(int(user_id))
        return member

    async def _me(self, guild: discord.Guild) -> discord.Member:
        if guild.me is not None:
            return guild.me
        return await self._member(guild, self.user_id)

    async def _role(self, guild: discord.Guild, role_id: str) -> discord.Role:
        role = guild.get_role(int(role_id))
        if role is None:
            async with _translate_errors():
                roles = await guild.fetch_roles()
            role = next((r for r in roles if r.id == int(role_id)), None)
        if role is None:
            raise GatewayNotFound(f"Unknown role {role_id}")
        return role

    # --- lookups ----------------------------------------------------------

    async def fetch_guild(self, guild_id: str) -> Optional[GuildView]:
        try:
            return _guild_view(await self._guild(guild_id))
        except GatewayNotFound:
            return None
        except GatewayForbidden:
            # The bot is not a member of the guild.
            return None

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelView]:
        try:
            return _channel_view(await self._channel(channel_id))
        except GatewayNotFound:
            return None

    async def fetch_message(self, channel_id: str, message_id: str) -> Optional[MessageView]:
        try:
            return _message_view(await self._message(channel_id, message_id))
        except GatewayNotFound:
            return None

    async def fetch_member(self, guild_id: str, user_id: str) -> Optional[MemberView]:
        guild = await self._guild(guild_id)
        try:
            return _member_view(await self._member(guild, user_id))
        except GatewayNotFound:
            return None

    async def fetch_role(self, guild_id: str, role_id: str) -> Optional[RoleView]:
        guild = await self._guild(guild_id)
        try:
            return _role_view(await self._role(guild, role_id))
        except GatewayNotFound:
            return None

    async def guild_permissions(self, guild_id: str) -> FrozenSet[str]:
        guild = await self._guild(guild_id)
        me = await self._me(guild)
        return _permission_names(me.guild_permissions)

    async def channel_permissions(self, channel_id: str) -> FrozenSet[str]:
        channel = await self._channel(channel_id)
        guild = getattr(channel, "guild", None)
        if guild is None:
            return _ALL_PERMISSIONS
        me = await self._me(guild)
        return _permission_names(channel.permissions_for(me))

    # --- messages ---------------------------------------------------------

    async def send_message(
        self, channel_id: str, content: Optional[str], embeds: Sequence[Mapping[str, Any]] = ()
    ) -> MessageView:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            message = await channel.send(
                content=content,
                embeds=[discord.Embed.from_dict(dict(embed)) for embed in embeds],
            )
        return _message_view(message)

    async def history(
        self,
        channel_id: str,
        limit: int,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> List[MessageView]:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            messages = [
                message
                async for message in channel.history(
                    limit=limit,
                    before=discord.Object(int(before)) if before else None,
                    after=discord.Object(int(after)) if after else None,
                )
            ]
        return [_message_view(message) for message in messages]

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: Optional[str] = None,
        embeds: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> MessageView:
        message = await self._message(channel_id, message_id)
        changes: dict = {}
        if content is not None:
            changes["content"] = content
        if embeds is not None:
            changes["embeds"] = [discord.Embed.from_dict(dict(embed)) for embed in embeds]
        async with _translate_errors():
            edited = await message.edit(**changes)
        return _message_view(edited)

    async def delete_message(self, channel_id: str, message_id: str, reason: Optional[str] = None) -> None:
        # Message.delete has no reason argument; the HTTP route carries X-Audit-Log-Reason.
        async with _translate_errors():
            await self._client.http.delete_message(int(channel_id), int(message_id), reason=reason)

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            await channel.get_partial_message(int(message_id)).add_reaction(emoji)

    async def pin_message(self, channel_id: str, message_id: str, reason: Optional[str] = None) -> None:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            await channel.get_partial_message(int(message_id)).pin(reason=reason)

    async def unpin_message(self, channel_id: str, message_id: str, reason: Optional[str] = None) -> None:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            await channel.get_partial_message(int(message_id)).unpin(reason=reason)

    async def bulk_delete(self, channel_id: str, message_ids: Sequence[str], reason: Optional[str] = None) -> int:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            await channel.delete_messages([discord.Object(int(mid)) for mid in message_ids], reason=reason)
        return len(message_ids)

    # --- channels and threads ---------------------------------------------

    async def create_channel(
        self, guild_id: str, kind: ChannelKind, name: str, options: Mapping[str, Any]
    ) -> ChannelView:
        guild = await self._guild(guild_id)
        reason = options.get("reason")
        kwargs: dict = {}
        parent_id = options.get("parent_id")
        if parent_id and kind is not ChannelKind.CATEGORY:
            kwargs["category"] = guild.get_channel(int(parent_id)) or await self._channel(parent_id)
        for key, target in (("topic", "topic"), ("nsfw", "nsfw"), ("slowmode_seconds", "slowmode_delay")):
            if options.get(key) is not None and kind in (ChannelKind.TEXT, ChannelKind.FORUM):
                kwargs[target] = options[key]
        for key in ("bitrate", "user_limit"):
            if options.get(key) is not None and kind in (ChannelKind.VOICE, ChannelKind.STAGE):
                kwargs[key] = options[key]

        async with _translate_errors():
            if kind is ChannelKind.TEXT:
                channel = await guild.create_text_channel(name, reason=reason, **kwargs)
            elif kind is ChannelKind.VOICE:
                channel = await guild.create_voice_channel(name, reason=reason, **kwargs)
            elif kind is ChannelKind.CATEGORY:
                channel = await guild.create_category(name, reason=reason)
            elif kind is ChannelKind.FORUM:
                channel = await guild.create_forum(name, reason=reason, **kwargs)
            elif kind is ChannelKind.STAGE:
                channel = await guild.create_stage_channel(name, reason=reason, **kwargs)
            else:
                raise GatewayHTTPError(f"Unsupported channel type: {kind.value}", status=400)
        return _channel_view(channel)

    async def edit_channel(
        self, channel_id: str, changes: Mapping[str, Any], reason: Optional[str] = None
    ) -> ChannelView:
        channel = await self._channel(channel_id)
        kwargs = dict(changes)
        if "slowmode_seconds" in kwargs:
            kwargs["slowmode_delay"] = kwargs.pop("slowmode_seconds")
        async with _translate_errors():
            edited = await channel.edit(reason=reason, **kwargs)
        return _channel_view(edited or channel)

    async def delete_channel(self, channel_id: str, reason: Optional[str] = None) -> None:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            await channel.delete(reason=reason)

    async def list_channels(self, guild_id: str) -> List[ChannelView]:
        guild = await self._guild(guild_id)
        channels = guild.channels
        if not channels:
            async with _translate_errors():
                channels = await guild.fetch_channels()
        return [_channel_view(channel) for channel in channels]

    async def set_permission_overwrite(
        self,
        channel_id: str,
        target_id: str,
        target_type: str,
        allow: FrozenSet[str],
        deny: FrozenSet[str],
        reason: Optional[str] = None,
    ) -> None:
        channel = await self._channel(channel_id)
        if target_type == "role":
            target: Any = await self._role(channel.guild, target_id)
        else:
            target = await self._member(channel.guild, target_id)
        overwrite = discord.PermissionOverwrite.from_pair(
            _permissions_from_names(sorted(allow)),
            _permissions_from_names(sorted(deny)),
        )
        async with _translate_errors():
            await channel.set_permissions(target, overwrite=overwrite, reason=reason)

    async def create_thread(self, channel_id: str, name: str, options: Mapping[str, Any]) -> ChannelView:
        channel = await self._channel(channel_id)
        reason = options.get("reason")
        kwargs: dict = {"name": name, "reason": reason}
        if options.get("auto_archive_minutes"):
            kwargs["auto_archive_duration"] = options["auto_archive_minutes"]

        async with _translate_errors():
            if isinstance(channel, discord.ForumChannel):
                created = await channel.create_thread(content=options.get("content") or name, **kwargs)
                thread = created.thread
            elif options.get("message_id"):
                message = await channel.fetch_message(int(options["message_id"]))
                thread = await message.create_thread(**kwargs)
            else:
                thread_type = (
                    discord.ChannelType.private_thread if options.get("private") else discord.ChannelType.public_thread
                )
                thread = await channel.create_thread(type=thread_type, **kwargs)
        return _channel_view(thread)

    async def list_threads(self, channel_id: str, include_archived: bool, limit: int) -> List[ChannelView]:
        channel = await self._channel(channel_id)
        threads = list(getattr(channel, "threads", []))
        if include_archived and hasattr(channel, "archived_threads"):
            async with _translate_errors():
                threads.extend([thread async for thread in channel.archived_threads(limit=limit)])
        return [_channel_view(thread) for thread in threads]

    # --- guild administration ---------------------------------------------

    async def edit_guild(self, guild_id: str, changes: Mapping[str, Any], reason: Optional[str] = None) -> GuildView:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            edited = await guild.edit(reason=reason, **dict(changes))
        return _guild_view(edited)

    async def audit_logs(
        self,
        guild_id: str,
        limit: int,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> List[AuditLogEntryView]:
        guild = await self._guild(guild_id)
        kwargs: dict = {"limit": limit}
        if user_id:
            kwargs["user"] = discord.Object(int(user_id))
        if action:
            kwargs["action"] = discord.AuditLogAction[action]
        async with _translate_errors():
            entries = [entry async for entry in guild.audit_logs(**kwargs)]
        return [_audit_entry_view(entry) for entry in entries]

    async def list_webhooks(self, guild_id: str, channel_id: Optional[str] = None) -> List[WebhookView]:
        async with _translate_errors():
            if channel_id:
                channel = await self._channel(channel_id)
                webhooks = await channel.webhooks()
            else:
                webhooks = await (await self._guild(guild_id)).webhooks()
        return [_webhook_view(webhook) for webhook in webhooks]

    async def create_webhook(self, channel_id: str, name: str, reason: Optional[str] = None) -> WebhookView:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            webhook = await channel.create_webhook(name=name, reason=reason)
        return _webhook_view(webhook)

    async def list_invites(self, guild_id: str) -> List[InviteView]:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            invites = await guild.invites()
        return [_invite_view(invite) for invite in invites]

    async def create_invite(self, channel_id: str, options: Mapping[str, Any]) -> InviteView:
        channel = await self._channel(channel_id)
        async with _translate_errors():
            invite = await channel.create_invite(
                max_age=options.get("max_age_seconds", 86400),
                max_uses=options.get("max_uses", 0),
                temporary=options.get("temporary", False),
                unique=options.get("unique", False),
                reason=options.get("reason"),
            )
        return _invite_view(invite)

    # --- roles and members ------------------------------------------------

    async def list_roles(self, guild_id: str) -> List[RoleView]:
        guild = await self._guild(guild_id)
        roles = guild.roles
        if not roles:
            async with _translate_errors():
                roles = await guild.fetch_roles()
        return [_role_view(role) for role in roles]

    async def create_role(self, guild_id: str, options: Mapping[str, Any]) -> RoleView:
        guild = await self._guild(guild_id)
        kwargs: dict = {
            "name": options["name"],
            "hoist": options.get("hoist", False),
            "mentionable": options.get("mentionable", False),
            "reason": options.get("reason"),
        }
        if options.get("permissions"):
            kwargs["permissions"] = _permissions_from_names(options["permissions"])
        if options.get("color") is not None:
            kwargs["colour"] = discord.Colour(options["color"])
        async with _translate_errors():
            role = await guild.create_role(**kwargs)
        return _role_view(role)

    async def delete_role(self, guild_id: str, role_id: str, reason: Optional[str] = None) -> None:
        guild = await self._guild(guild_id)
        role = await self._role(guild, role_id)
        async with _translate_errors():
            await role.delete(reason=reason)

    async def add_member_role(self, guild_id: str, user_id: str, role_id: str, reason: Optional[str] = None) -> None:
        guild = await self._guild(guild_id)
        member = await self._member(guild, user_id)
        async with _translate_errors():
            await member.add_roles(discord.Object(int(role_id)), reason=reason)

    async def remove_member_role(
        self, guild_id: str, user_id: str, role_id: str, reason: Optional[str] = None
    ) -> None:
        guild = await self._guild(guild_id)
        member = await self._member(guild, user_id)
        async with _translate_errors():
            await member.remove_roles(discord.Object(int(role_id)), reason=reason)

    async def list_members(self, guild_id: str, limit: int, after: Optional[str] = None) -> List[MemberView]:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            members = [
                member
                async for member in guild.fetch_members(
                    limit=limit, after=discord.Object(int(after)) if after else None
                )
            ]
        return [_member_view(member) for member in members]

    async def set_nickname(
        self, guild_id: str, user_id: str, nickname: Optional[str], reason: Optional[str] = None
    ) -> MemberView:
        guild = await self._guild(guild_id)
        member = await self._member(guild, user_id)
        async with _translate_errors():
            edited = await member.edit(nick=nickname, reason=reason)
        return _member_view(edited or member)

    async def timeout_member(
        self, guild_id: str, user_id: str, until: Optional[datetime], reason: Optional[str] = None
    ) -> MemberView:
        guild = await self._guild(guild_id)
        member = await self._member(guild, user_id)
        async with _translate_errors():
            edited = await member.edit(timed_out_until=until, reason=reason)
        return _member_view(edited or member)

    async def kick_member(self, guild_id: str, user_id: str, reason: Optional[str] = None) -> None:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            await guild.kick(discord.Object(int(user_id)), reason=reason)

    async def ban_member(
        self,
        guild_id: str,
        user_id: str,
        reason: Optional[str] = None,
        delete_message_seconds: int = 0,
    ) -> None:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            await guild.ban(
                discord.Object(int(user_id)),
                reason=reason,
                delete_message_seconds=delete_message_seconds,
            )

    async def unban_member(self, guild_id: str, user_id: str, reason: Optional[str] = None) -> None:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            await guild.unban(discord.Object(int(user_id)), reason=reason)

    async def list_bans(self, guild_id: str, limit: int) -> List[BanView]:
        guild = await self._guild(guild_id)
        async with _translate_errors():
            entries = [entry async for entry in guild.bans(limit=limit)]
        return [
            BanView(user_id=str(entry.user.id), user_name=str(entry.user), reason=entry.reason) for entry in entries
        ]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class DiscordGatewayFactory:
    """Opens :class:`DiscordSession` instances for one bot token.

    Args:
        token: Bot token.
        ready_timeout: Seconds to wait for the READY event after login.
        max_ratelimit_timeout: Longest rate-limit wait discord.py absorbs
            silently; longer waits raise and surface as ``rate_limited``.
        intent_members: Request the privileged members intent.
        intent_message_content: Request the privileged message content intent.
    """

    def __init__(
        self,
        token: str,
        *,
        ready_timeout: float = 30.0,
        max_ratelimit_timeout: Optional[float] = 5.0,
        intent_members: bool = True,
        intent_message_content: bool = True,
    ):
        self._token = token
        self._ready_timeout = ready_timeout
        self._max_ratelimit_timeout = max_ratelimit_timeout
        self._intent_members = intent_members
        self._intent_message_content = intent_message_content

    def _intents(self) -> discord.Intents:
        intents = discord.Intents.default()
        intents.members = self._intent_members
        intents.message_content = self._intent_message_content
        return intents

    async def open(self) -> DiscordSession:
        client = discord.Client(
            intents=self._intents(),
            max_ratelimit_timeout=self._max_ratelimit_timeout,
        )
        ready = asyncio.Event()

        @client.event
        async def on_ready() -> None:
            ready.set()

        runner = asyncio.create_task(client.start(self._token, reconnect=False), name="discord-gateway")
        ready_wait = asyncio.create_task(ready.wait())
        try:
            done, _ = await asyncio.wait(
                {runner, ready_wait},
                timeout=self._ready_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            ready_wait.cancel()
            await _discard(client, runner)
            raise
        ready_wait.cancel()

        if ready_wait in done and ready.is_set():
            logger.debug("Gateway session ready", extra={"user_id": str(client.user.id) if client.user else None})
            return DiscordSession(client, runner)

        if runner in done:
            exc = runner.exception()
            await _discard(client, runner)
            if isinstance(exc, discord.LoginFailure):
                raise GatewayAuthError(str(exc)) from exc
            if isinstance(exc, discord.PrivilegedIntentsRequired):
                raise GatewayAuthError(
                    "Privileged intents are not enabled for this bot in the developer portal"
                ) from exc
            raise GatewayConnectError(f"Gateway connection failed: {exc or 'session closed before READY'}") from exc

        await _discard(client, runner)
        raise GatewayConnectError(f"Timed out after {self._ready_timeout}s waiting for gateway READY")


async def _discard(client: discord.Client, runner: asyncio.Task) -> None:
    if not client.is_closed():
        await client.close()
    if not runner.done():
        runner.cancel()
    try:
        await runner
    except (asyncio.CancelledError, Exception):
        logger.debug("Discarded gateway runner ended", exc_info=True)
