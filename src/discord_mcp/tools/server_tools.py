"""Server (guild) administration tools."""

import logging
from typing import Collection, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.tools.common import REASON, plural
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.param_schema import AtLeastOne, Bool, Num, Snowflake, Str

logger = logging.getLogger(__name__)

# Audit-log action names accepted by the gateway client.
AUDIT_LOG_ACTIONS = frozenset(
    {
        "guild_update",
        "channel_create",
        "channel_update",
        "channel_delete",
        "overwrite_create",
        "overwrite_update",
        "overwrite_delete",
        "kick",
        "member_prune",
        "ban",
        "unban",
        "member_update",
        "member_role_update",
        "member_move",
        "member_disconnect",
        "bot_add",
        "role_create",
        "role_update",
        "role_delete",
        "invite_create",
        "invite_update",
        "invite_delete",
        "webhook_create",
        "webhook_update",
        "webhook_delete",
        "emoji_create",
        "emoji_update",
        "emoji_delete",
        "message_delete",
        "message_bulk_delete",
        "message_pin",
        "message_unpin",
        "integration_create",
        "integration_update",
        "integration_delete",
        "stage_instance_create",
        "stage_instance_update",
        "stage_instance_delete",
        "sticker_create",
        "sticker_update",
        "sticker_delete",
        "scheduled_event_create",
        "scheduled_event_update",
        "scheduled_event_delete",
        "thread_create",
        "thread_update",
        "thread_delete",
        "app_command_permission_update",
        "automod_rule_create",
        "automod_rule_update",
        "automod_rule_delete",
        "automod_block_message",
        "automod_flag_message",
        "automod_timeout_member",
    }
)

_GUILD_SCHEMA = {"guild_id": Snowflake(required=True)}
_MODIFY_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "name": Str(min_length=2, max_length=100),
    "description": Str(max_length=120, allow_empty=True),
    "reason": REASON,
}
_MODIFY_RULES = [AtLeastOne(("name", "description"), remediation="Provide a new name, description, or both")]
_AUDIT_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "limit": Num(integer_only=True, min_val=1, max_val=100, default=50),
    "user_id": Snowflake(),
    "action": Str(choices=AUDIT_LOG_ACTIONS, remediation="Use a lowercase action name such as member_update or ban"),
}
_LIST_WEBHOOKS_SCHEMA = {"guild_id": Snowflake(required=True), "channel_id": Snowflake()}
_CREATE_WEBHOOK_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "name": Str(required=True, min_length=1, max_length=80),
    "reason": REASON,
}
_CREATE_INVITE_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "max_age_seconds": Num(integer_only=True, min_val=0, max_val=604800, default=86400),
    "max_uses": Num(integer_only=True, min_val=0, max_val=100, default=0),
    "temporary": Bool(default=False),
    "unique": Bool(default=False),
    "reason": REASON,
}


async def _get_server_info(ctx: OperationContext, *, guild_id: str) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    return Success({"server": guild.to_dict()}, summary=f"{guild.name}: {guild.member_count} members")


async def _modify_server(
    ctx: OperationContext,
    *,
    guild_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.MANAGE_GUILD)
    if error:
        return Failure(error)

    changes = {}
    if name is not None:
        changes["name"] = name
    if description is not None:
        changes["description"] = description or None
    updated = await ctx.session.edit_guild(guild.id, changes, reason=reason)
    return Success(
        {"server": updated.to_dict(), "changed": sorted(changes)},
        summary=f"Updated {updated.name}: {', '.join(sorted(changes))}",
    )


async def _get_audit_logs(
    ctx: OperationContext,
    *,
    guild_id: str,
    limit: int = 50,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.VIEW_AUDIT_LOG)
    if error:
        return Failure(error)

    entries = await ctx.session.audit_logs(guild.id, limit, user_id=user_id, action=action)
    return Success(
        {"guild_id": guild.id, "entries": [entry.to_dict() for entry in entries], "count": len(entries)},
        summary=f"{len(entries)} audit log entries from {guild.name}",
    )


async def _list_webhooks(ctx: OperationContext, *, guild_id: str, channel_id: Optional[str] = None) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    if channel_id:
        channel, error = await ctx.access.resolve_channel(channel_id, guild_id=guild.id)
        if error:
            return Failure(error)
        error = await ctx.require(channel, Capability.MANAGE_WEBHOOKS)
    else:
        error = await ctx.require(guild, Capability.MANAGE_WEBHOOKS)
    if error:
        return Failure(error)

    webhooks = await ctx.session.list_webhooks(guild.id, channel_id=channel_id)
    return Success(
        {"guild_id": guild.id, "webhooks": [webhook.to_dict() for webhook in webhooks], "count": len(webhooks)},
        summary=f"{plural(len(webhooks), 'webhook')} in {guild.name}",
    )


async def _create_webhook(
    ctx: OperationContext,
    *,
    channel_id: str,
    name: str,
    reason: Optional[str] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True, require_guild=True)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.MANAGE_WEBHOOKS)
    if error:
        return Failure(error)

    webhook = await ctx.session.create_webhook(channel.id, name, reason=reason)
    return Success({"webhook": webhook.to_dict()}, summary=f"Created webhook '{webhook.name}' in #{channel.name}")


async def _get_invites(ctx: OperationContext, *, guild_id: str) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.MANAGE_GUILD)
    if error:
        return Failure(error)

    invites = await ctx.session.list_invites(guild.id)
    return Success(
        {"guild_id": guild.id, "invites": [invite.to_dict() for invite in invites], "count": len(invites)},
        summary=f"{plural(len(invites), 'invite')} for {guild.name}",
    )


async def _create_invite(ctx: OperationContext, *, channel_id: str, **options) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.CREATE_INSTANT_INVITE)
    if error:
        return Failure(error)

    invite = await ctx.session.create_invite(channel.id, options)
    return Success({"invite": invite.to_dict()}, summary=f"Invite {invite.url} created for #{channel.name}")


def register_server_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register server administration tools with the FastMCP server."""

    @canonical_tool(mcp, canonical_name="get_server_info", disabled=disabled)
    async def get_server_info(guild_id: str) -> dict:
        """
        Get a server's name, owner, member count, features and other details.

        Args:
            guild_id: Server ID (snowflake)

        Returns:
            JSON object with server details
        """
        return await executor.run(
            "get_server_info",
            _get_server_info,
            schema=_GUILD_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
        )

    @canonical_tool(mcp, canonical_name="modify_server", disabled=disabled)
    async def modify_server(
        guild_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Rename a server or change its description. Requires ManageGuild.

        Args:
            guild_id: Server ID (snowflake)
            name: New name, 2-100 characters
            description: New description, up to 120 characters ("" clears it)
            reason: Audit log reason

        Returns:
            JSON object with the updated server and the changed fields
        """
        return await executor.run(
            "modify_server",
            _modify_server,
            schema=_MODIFY_SCHEMA,
            identifiers=("guild_id",),
            cross_field_rules=_MODIFY_RULES,
            guild_id=guild_id,
            name=name,
            description=description,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="get_audit_logs", disabled=disabled)
    async def get_audit_logs(
        guild_id: str,
        limit: int = 50,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> dict:
        """
        Read recent audit log entries. Requires ViewAuditLog.

        Args:
            guild_id: Server ID (snowflake)
            limit: Number of entries, 1-100 (default 50)
            user_id: Only actions performed by this user
            action: Only this action type, e.g. ban, kick, channel_delete

        Returns:
            JSON object with entries and count
        """
        return await executor.run(
            "get_audit_logs",
            _get_audit_logs,
            schema=_AUDIT_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            limit=limit,
            user_id=user_id,
            action=action,
        )

    @canonical_tool(mcp, canonical_name="list_webhooks", disabled=disabled)
    async def list_webhooks(guild_id: str, channel_id: Optional[str] = None) -> dict:
        """
        List webhooks in a server or one of its channels. Requires ManageWebhooks.

        Webhook tokens are never returned.

        Args:
            guild_id: Server ID (snowflake)
            channel_id: Only webhooks on this channel

        Returns:
            JSON object with webhooks and count
        """
        return await executor.run(
            "list_webhooks",
            _list_webhooks,
            schema=_LIST_WEBHOOKS_SCHEMA,
            identifiers=("guild_id", "channel_id"),
            guild_id=guild_id,
            channel_id=channel_id,
        )

    @canonical_tool(mcp, canonical_name="create_webhook", disabled=disabled)
    async def create_webhook(channel_id: str, name: str, reason: Optional[str] = None) -> dict:
        """
        Create a webhook on a text channel. Requires ManageWebhooks.

        Args:
            channel_id: Channel ID (snowflake)
            name: Webhook name, 1-80 characters
            reason: Audit log reason

        Returns:
            JSON object with the webhook (without its token)
        """
        return await executor.run(
            "create_webhook",
            _create_webhook,
            schema=_CREATE_WEBHOOK_SCHEMA,
            identifiers=("channel_id",),
            channel_id=channel_id,
            name=name,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="get_invites", disabled=disabled)
    async def get_invites(guild_id: str) -> dict:
        """
        List a server's active invites. Requires ManageGuild.

        Args:
            guild_id: Server ID (snowflake)

        Returns:
            JSON object with invites and count
        """
        return await executor.run(
            "get_invites",
            _get_invites,
            schema=_GUILD_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
        )

    @canonical_tool(mcp, canonical_name="create_invite", disabled=disabled)
    async def create_invite(
        channel_id: str,
        max_age_seconds: int = 86400,
        max_uses: int = 0,
        temporary: bool = False,
        unique: bool = False,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Create an invite to a channel. Requires CreateInstantInvite.

        Args:
            channel_id: Channel ID (snowflake)
            max_age_seconds: Lifetime in seconds, 0 for never (max 604800)
            max_uses: Maximum uses, 0 for unlimited (max 100)
            temporary: Kick members who joined through it when they disconnect
                without a role
            unique: Always create a new invite instead of reusing one
            reason: Audit log reason

        Returns:
            JSON object with the invite code and URL
        """
        return await executor.run(
            "create_invite",
            _create_invite,
            schema=_CREATE_INVITE_SCHEMA,
            identifiers=("channel_id",),
            channel_id=channel_id,
            max_age_seconds=max_age_seconds,
            max_uses=max_uses,
            temporary=temporary,
            unique=unique,
            reason=reason,
        )
