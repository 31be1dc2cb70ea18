"""Channel management tools."""

import logging
from typing import Any, Collection, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.gateway.models import ChannelKind
from discord_mcp.tools.common import CHANNEL_NAME, REASON, plural
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.inputs import PermissionOverwriteInput, parse_model
from discord_mcp.tools.param_schema import AtLeastOne, Bool, List_, Num, Snowflake, Str

logger = logging.getLogger(__name__)

MAX_SLOWMODE_SECONDS = 21600

_LISTABLE_KINDS = frozenset(kind.value for kind in ChannelKind if kind not in (ChannelKind.DM, ChannelKind.GROUP))

_BASE_CREATE_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "name": CHANNEL_NAME,
    "parent_id": Snowflake(),
    "reason": REASON,
}
_TEXT_CREATE_SCHEMA = {
    **_BASE_CREATE_SCHEMA,
    "topic": Str(max_length=1024),
    "nsfw": Bool(default=False),
    "slowmode_seconds": Num(integer_only=True, min_val=0, max_val=MAX_SLOWMODE_SECONDS),
}
_VOICE_CREATE_SCHEMA = {
    **_BASE_CREATE_SCHEMA,
    "bitrate": Num(integer_only=True, min_val=8000, max_val=384000),
    "user_limit": Num(integer_only=True, min_val=0, max_val=99),
}
_FORUM_CREATE_SCHEMA = {
    **_BASE_CREATE_SCHEMA,
    "topic": Str(max_length=4096),
    "nsfw": Bool(default=False),
}
_CATEGORY_CREATE_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "name": CHANNEL_NAME,
    "reason": REASON,
}
_MODIFY_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "name": Str(min_length=1, max_length=100),
    "topic": Str(max_length=1024, allow_empty=True),
    "nsfw": Bool(),
    "slowmode_seconds": Num(integer_only=True, min_val=0, max_val=MAX_SLOWMODE_SECONDS),
    "reason": REASON,
}
_MODIFY_RULES = [
    AtLeastOne(
        ("name", "topic", "nsfw", "slowmode_seconds"),
        remediation="Provide at least one of name, topic, nsfw, slowmode_seconds",
    )
]
_DELETE_SCHEMA = {"channel_id": Snowflake(required=True), "reason": REASON}
_LIST_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "type": Str(choices=_LISTABLE_KINDS),
}
_DETAILS_SCHEMA = {"channel_id": Snowflake(required=True)}
_PERMISSIONS_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "target_id": Snowflake(required=True),
    "target_type": Str(required=True, choices=frozenset({"role", "member"})),
    "allow": List_(item=Str()),
    "deny": List_(item=Str()),
    "reason": REASON,
}


def _prepare_overwrite(payload: Dict[str, Any]) -> Optional[DomainError]:
    """Normalise allow/deny flag names before any network call."""
    overwrite, error = parse_model(
        PermissionOverwriteInput,
        {
            "target_type": payload["target_type"],
            "allow": payload.get("allow") or (),
            "deny": payload.get("deny") or (),
        },
        "permissions",
    )
    if error:
        return error
    payload["allow"] = list(overwrite.allow)
    payload["deny"] = list(overwrite.deny)
    return None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _create_channel(
    ctx: OperationContext,
    *,
    kind: ChannelKind,
    guild_id: str,
    name: str,
    parent_id: Optional[str] = None,
    reason: Optional[str] = None,
    **options: Any,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    if parent_id:
        parent, error = await ctx.access.resolve_channel(parent_id, guild_id=guild.id, field_name="parent_id")
        if error:
            return Failure(error)
        if parent.kind is not ChannelKind.CATEGORY:
            reason = f"channel {parent_id} is a {parent.kind.value} channel, not a category"
            return Failure(DomainError.invalid_input("parent_id", reason))
    error = await ctx.require(guild, Capability.MANAGE_CHANNELS)
    if error:
        return Failure(error)

    settings = {key: value for key, value in options.items() if value is not None}
    settings.update(parent_id=parent_id, reason=reason)
    channel = await ctx.session.create_channel(guild.id, kind, name, settings)
    return Success(
        {"channel": channel.to_dict()},
        summary=f"Created {kind.value} channel #{channel.name} in {guild.name}",
    )


async def _create_text_channel(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _create_channel(ctx, kind=ChannelKind.TEXT, **payload)


async def _create_voice_channel(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _create_channel(ctx, kind=ChannelKind.VOICE, **payload)


async def _create_stage_channel(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _create_channel(ctx, kind=ChannelKind.STAGE, **payload)


async def _create_forum_channel(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _create_channel(ctx, kind=ChannelKind.FORUM, **payload)


async def _create_category(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _create_channel(ctx, kind=ChannelKind.CATEGORY, **payload)


async def _modify_channel(
    ctx: OperationContext,
    *,
    channel_id: str,
    reason: Optional[str] = None,
    **changes: Any,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.MANAGE_CHANNELS)
    if error:
        return Failure(error)

    applied = {key: value for key, value in changes.items() if value is not None}
    if applied.get("topic") == "":
        applied["topic"] = None
    updated = await ctx.session.edit_channel(channel.id, applied, reason=reason)
    return Success(
        {"channel": updated.to_dict(), "changed": sorted(applied)},
        summary=f"Updated #{updated.name}: {', '.join(sorted(applied))}",
    )


async def _delete_channel(ctx: OperationContext, *, channel_id: str, reason: Optional[str] = None) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.MANAGE_CHANNELS)
    if error:
        return Failure(error)

    await ctx.session.delete_channel(channel.id, reason=reason)
    return Success(
        {"channel_id": channel.id, "name": channel.name, "deleted": True},
        summary=f"Deleted #{channel.name}",
    )


async def _list_channels(ctx: OperationContext, *, guild_id: str, type: Optional[str] = None) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)

    channels = await ctx.session.list_channels(guild.id)
    if type:
        channels = [channel for channel in channels if channel.kind.value == type]
    channels = sorted(channels, key=lambda channel: (channel.position, channel.id))
    return Success(
        {"guild_id": guild.id, "channels": [channel.to_dict() for channel in channels], "count": len(channels)},
        summary=f"{plural(len(channels), 'channel')} in {guild.name}",
    )


async def _get_channel_details(ctx: OperationContext, *, channel_id: str) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    return Success({"channel": channel.to_dict()}, summary=f"#{channel.name} ({channel.kind.value})")


async def _set_channel_permissions(
    ctx: OperationContext,
    *,
    channel_id: str,
    target_id: str,
    target_type: str,
    allow: List[str],
    deny: List[str],
    reason: Optional[str] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    if target_type == "role":
        _, error = await ctx.access.resolve_role(channel.guild_id, target_id)
    else:
        _, error = await ctx.access.resolve_member(channel.guild_id, target_id)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.MANAGE_ROLES)
    if error:
        return Failure(error)

    await ctx.session.set_permission_overwrite(
        channel.id, target_id, target_type, frozenset(allow), frozenset(deny), reason=reason
    )
    return Success(
        {
            "channel_id": channel.id,
            "target_id": target_id,
            "target_type": target_type,
            "allow": allow,
            "deny": deny,
        },
        summary=f"Updated {target_type} {target_id} permissions on #{channel.name}",
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_channel_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register channel management tools with the FastMCP server."""

    @canonical_tool(mcp, canonical_name="create_text_channel", disabled=disabled)
    async def create_text_channel(
        guild_id: str,
        name: str,
        parent_id: Optional[str] = None,
        topic: Optional[str] = None,
        nsfw: bool = False,
        slowmode_seconds: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Create a text channel. Requires ManageChannels.

        Args:
            guild_id: Server ID (snowflake)
            name: Channel name, 1-100 characters
            parent_id: Category to place the channel in
            topic: Channel topic, up to 1024 characters
            nsfw: Mark the channel age-restricted
            slowmode_seconds: Per-user send interval, 0-21600
            reason: Audit log reason

        Returns:
            JSON object with the created channel
        """
        return await executor.run(
            "create_text_channel",
            _create_text_channel,
            schema=_TEXT_CREATE_SCHEMA,
            identifiers=("guild_id", "parent_id"),
            guild_id=guild_id,
            name=name,
            parent_id=parent_id,
            topic=topic,
            nsfw=nsfw,
            slowmode_seconds=slowmode_seconds,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="create_voice_channel", disabled=disabled)
    async def create_voice_channel(
        guild_id: str,
        name: str,
        parent_id: Optional[str] = None,
        bitrate: Optional[int] = None,
        user_limit: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Create a voice channel. Requires ManageChannels.

        Args:
            guild_id: Server ID (snowflake)
            name: Channel name, 1-100 characters
            parent_id: Category to place the channel in
            bitrate: Audio bitrate in bits per second (8000-384000)
            user_limit: Maximum connected users, 0 for unlimited (max 99)
            reason: Audit log reason

        Returns:
            JSON object with the created channel
        """
        return await executor.run(
            "create_voice_channel",
            _create_voice_channel,
            schema=_VOICE_CREATE_SCHEMA,
            identifiers=("guild_id", "parent_id"),
            guild_id=guild_id,
            name=name,
            parent_id=parent_id,
            bitrate=bitrate,
            user_limit=user_limit,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="create_stage_channel", disabled=disabled)
    async def create_stage_channel(
        guild_id: str,
        name: str,
        parent_id: Optional[str] = None,
        bitrate: Optional[int] = None,
        user_limit: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Create a stage channel for audio events. Requires ManageChannels.

        Args:
            guild_id: Server ID (snowflake)
            name: Channel name, 1-100 characters
            parent_id: Category to place the channel in
            bitrate: Audio bitrate in bits per second
            user_limit: Maximum listeners, 0 for unlimited
            reason: Audit log reason

        Returns:
            JSON object with the created channel
        """
        return await executor.run(
            "create_stage_channel",
            _create_stage_channel,
            schema=_VOICE_CREATE_SCHEMA,
            identifiers=("guild_id", "parent_id"),
            guild_id=guild_id,
            name=name,
            parent_id=parent_id,
            bitrate=bitrate,
            user_limit=user_limit,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="create_forum_channel", disabled=disabled)
    async def create_forum_channel(
        guild_id: str,
        name: str,
        parent_id: Optional[str] = None,
        topic: Optional[str] = None,
        nsfw: bool = False,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Create a forum channel. Requires ManageChannels.

        Posts in a forum are threads; use create_thread on the forum to post.

        Args:
            guild_id: Server ID (snowflake)
            name: Channel name, 1-100 characters
            parent_id: Category to place the forum in
            topic: Posting guidelines shown to members
            nsfw: Mark the forum age-restricted
            reason: Audit log reason

        Returns:
            JSON object with the created channel
        """
        return await executor.run(
            "create_forum_channel",
            _create_forum_channel,
            schema=_FORUM_CREATE_SCHEMA,
            identifiers=("guild_id", "parent_id"),
            guild_id=guild_id,
            name=name,
            parent_id=parent_id,
            topic=topic,
            nsfw=nsfw,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="create_category", disabled=disabled)
    async def create_category(guild_id: str, name: str, reason: Optional[str] = None) -> dict:
        """
        Create a channel category. Requires ManageChannels.

        Args:
            guild_id: Server ID (snowflake)
            name: Category name, 1-100 characters
            reason: Audit log reason

        Returns:
            JSON object with the created category
        """
        return await executor.run(
            "create_category",
            _create_category,
            schema=_CATEGORY_CREATE_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
            name=name,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="modify_channel", disabled=disabled)
    async def modify_channel(
        channel_id: str,
        name: Optional[str] = None,
        topic: Optional[str] = None,
        nsfw: Optional[bool] = None,
        slowmode_seconds: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Change a server channel's settings. Requires ManageChannels.

        Only the fields provided are changed. Pass an empty topic to clear it.

        Args:
            channel_id: Channel ID (snowflake)
            name: New name
            topic: New topic ("" clears it)
            nsfw: Age-restricted flag
            slowmode_seconds: Per-user send interval, 0-21600
            reason: Audit log reason

        Returns:
            JSON object with the updated channel and the changed fields
        """
        return await executor.run(
            "modify_channel",
            _modify_channel,
            schema=_MODIFY_SCHEMA,
            identifiers=("channel_id",),
            cross_field_rules=_MODIFY_RULES,
            channel_id=channel_id,
            name=name,
            topic=topic,
            nsfw=nsfw,
            slowmode_seconds=slowmode_seconds,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="delete_channel", disabled=disabled)
    async def delete_channel(channel_id: str, reason: Optional[str] = None) -> dict:
        """
        Delete a server channel. Requires ManageChannels. This cannot be undone.

        Args:
            channel_id: Channel ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with channel_id, name, deleted
        """
        return await executor.run(
            "delete_channel",
            _delete_channel,
            schema=_DELETE_SCHEMA,
            identifiers=("channel_id",),
            channel_id=channel_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="list_channels", disabled=disabled)
    async def list_channels(guild_id: str, type: Optional[str] = None) -> dict:
        """
        List a server's channels ordered by position.

        Args:
            guild_id: Server ID (snowflake)
            type: Only channels of this type (text, voice, category, news,
                stage, forum, media, public_thread, private_thread, news_thread)

        Returns:
            JSON object with channels and count
        """
        return await executor.run(
            "list_channels",
            _list_channels,
            schema=_LIST_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
            type=type,
        )

    @canonical_tool(mcp, canonical_name="get_channel_details", disabled=disabled)
    async def get_channel_details(channel_id: str) -> dict:
        """
        Get a server channel's settings.

        Args:
            channel_id: Channel ID (snowflake)

        Returns:
            JSON object with the channel
        """
        return await executor.run(
            "get_channel_details",
            _get_channel_details,
            schema=_DETAILS_SCHEMA,
            identifiers=("channel_id",),
            channel_id=channel_id,
        )

    @canonical_tool(mcp, canonical_name="set_channel_permissions", disabled=disabled)
    async def set_channel_permissions(
        channel_id: str,
        target_id: str,
        target_type: str,
        allow: Optional[List[str]] = None,
        deny: Optional[List[str]] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Set a role's or member's permission overwrite on a channel.

        Requires ManageRoles on the channel. Permission names accept
        PascalCase (ViewChannel) or snake_case (view_channel).

        Args:
            channel_id: Channel ID (snowflake)
            target_id: Role or user ID (snowflake)
            target_type: "role" or "member"
            allow: Permissions to grant explicitly
            deny: Permissions to deny explicitly
            reason: Audit log reason

        Returns:
            JSON object with the normalised allow and deny lists
        """
        return await executor.run(
            "set_channel_permissions",
            _set_channel_permissions,
            schema=_PERMISSIONS_SCHEMA,
            identifiers=("channel_id", "target_id"),
            prepare=_prepare_overwrite,
            channel_id=channel_id,
            target_id=target_id,
            target_type=target_type,
            allow=allow,
            deny=deny,
            reason=reason,
        )
