"""Moderation tools: bulk message deletion, bans, nicknames."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Collection, Iterable, List, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.observability import get_audit_logger
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.gateway.models import MessageView
from discord_mcp.tools.common import REASON, plural
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.param_schema import Bool, Num, Snowflake, Str

logger = logging.getLogger(__name__)

# The platform refuses bulk deletion of messages this old.
BULK_DELETE_MAX_AGE = timedelta(days=14)

# Milliseconds between the Unix epoch and the platform epoch (2015-01-01).
_SNOWFLAKE_EPOCH_MS = 1420070400000

_BULK_DELETE_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "limit": Num(required=True, integer_only=True, min_val=2, max_val=100),
    "filter_user_id": Snowflake(),
    "filter_bots": Bool(default=False),
    "reason": REASON,
}
_BANS_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "limit": Num(integer_only=True, min_val=1, max_val=1000, default=100),
}
_NICKNAME_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "user_id": Snowflake(required=True),
    "nickname": Str(max_length=32, allow_empty=True),
    "reason": REASON,
}

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def snowflake_time(snowflake: str) -> datetime:
    """Creation time encoded in a snowflake identifier."""
    milliseconds = (int(snowflake) >> 22) + _SNOWFLAKE_EPOCH_MS
    return datetime.fromtimestamp(milliseconds / 1000, tz=timezone.utc)


def _created_at(message: MessageView) -> datetime:
    return message.created_at or snowflake_time(message.id)


def deletable_in_bulk(
    messages: Iterable[MessageView],
    *,
    now: datetime,
    user_id: Optional[str] = None,
    bots_only: bool = False,
) -> List[MessageView]:
    """Messages young enough for bulk deletion that match the filters."""
    cutoff = now - BULK_DELETE_MAX_AGE
    selected = []
    for message in messages:
        if user_id and message.author_id != user_id:
            continue
        if bots_only and not message.author_is_bot:
            continue
        if _created_at(message) <= cutoff:
            continue
        selected.append(message)
    return selected


async def _bulk_delete_messages(
    ctx: OperationContext,
    *,
    channel_id: str,
    limit: int,
    filter_user_id: Optional[str] = None,
    filter_bots: bool = False,
    reason: Optional[str] = None,
    clock: Clock = _utcnow,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True, require_guild=True)
    if error:
        return Failure(error)
    # One check covers every message in the batch.
    error = await ctx.require(channel, Capability.MANAGE_MESSAGES, Capability.READ_MESSAGE_HISTORY)
    if error:
        return Failure(error)

    recent = await ctx.session.history(channel.id, limit)
    selected = deletable_in_bulk(recent, now=clock(), user_id=filter_user_id, bots_only=filter_bots)
    if not selected:
        return Failure(
            DomainError.no_matches(
                f"No messages in #{channel.name} can be bulk deleted",
                resolution="Only messages newer than 14 days that match the filters can be bulk deleted",
                channel_id=channel.id,
                scanned=len(recent),
            )
        )

    deleted = await ctx.session.bulk_delete(channel.id, [message.id for message in selected], reason=reason)
    skipped = len(recent) - len(selected)
    get_audit_logger().moderation_action("bulk_delete", channel.guild_id, channel.id, count=deleted, reason=reason)
    return Success(
        {"channel_id": channel.id, "deleted": deleted, "skipped": skipped},
        summary=f"Deleted {plural(deleted, 'message')} from #{channel.name}",
    )


async def _get_bans(ctx: OperationContext, *, guild_id: str, limit: int = 100) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.BAN_MEMBERS)
    if error:
        return Failure(error)

    bans = await ctx.session.list_bans(guild.id, limit)
    return Success(
        {"guild_id": guild.id, "bans": [ban.to_dict() for ban in bans], "count": len(bans)},
        summary=f"{plural(len(bans), 'ban')} in {guild.name}",
    )


async def _set_nickname(
    ctx: OperationContext,
    *,
    guild_id: str,
    user_id: str,
    nickname: Optional[str] = None,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    member, error = await ctx.access.resolve_member(guild.id, user_id)
    if error:
        return Failure(error)

    error = await ctx.require(guild, Capability.MANAGE_NICKNAMES)
    if not error and member.id != ctx.session.user_id:
        error = await ctx.guard.require_outranks(ctx.session, guild, member, "rename")
    if error:
        return Failure(error)

    updated = await ctx.session.set_nickname(guild.id, member.id, nickname or None, reason=reason)
    get_audit_logger().moderation_action("set_nickname", guild.id, member.id, reason=reason)
    if updated.nick:
        summary = f"Nickname for {updated.name} set to '{updated.nick}'"
    else:
        summary = f"Nickname for {updated.name} cleared"
    return Success({"member": updated.to_dict()}, summary=summary)


def register_moderation_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register moderation tools with the FastMCP server."""

    @canonical_tool(mcp, canonical_name="bulk_delete_messages", disabled=disabled)
    async def bulk_delete_messages(
        channel_id: str,
        limit: int,
        filter_user_id: Optional[str] = None,
        filter_bots: bool = False,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Delete recent messages from a channel in one batch.

        Scans the last `limit` messages and deletes those matching the filters.
        Messages older than 14 days cannot be bulk deleted and are skipped.
        Requires ManageMessages and ReadMessageHistory.

        WHEN TO USE:
        - Cleaning up spam or a raid in a channel
        - Removing a single user's recent messages (filter_user_id)

        Args:
            channel_id: Channel ID (snowflake)
            limit: Number of recent messages to scan, 2-100
            filter_user_id: Only delete this user's messages
            filter_bots: Only delete messages from bots
            reason: Audit log reason

        Returns:
            JSON object with deleted and skipped counts
        """
        return await executor.run(
            "bulk_delete_messages",
            _bulk_delete_messages,
            schema=_BULK_DELETE_SCHEMA,
            identifiers=("channel_id", "filter_user_id"),
            channel_id=channel_id,
            limit=limit,
            filter_user_id=filter_user_id,
            filter_bots=filter_bots,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="get_bans", disabled=disabled)
    async def get_bans(guild_id: str, limit: int = 100) -> dict:
        """
        List banned users and ban reasons. Requires BanMembers.

        Args:
            guild_id: Server ID (snowflake)
            limit: Maximum entries, 1-1000 (default 100)

        Returns:
            JSON object with bans and count
        """
        return await executor.run(
            "get_bans",
            _get_bans,
            schema=_BANS_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
            limit=limit,
        )

    @canonical_tool(mcp, canonical_name="set_nickname", disabled=disabled)
    async def set_nickname(
        guild_id: str,
        user_id: str,
        nickname: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Set or clear a member's nickname. Requires ManageNicknames.

        Members whose highest role is at or above the bot's cannot be renamed.

        Args:
            guild_id: Server ID (snowflake)
            user_id: Member's user ID (snowflake)
            nickname: New nickname, up to 32 characters; omit or "" to clear
            reason: Audit log reason

        Returns:
            JSON object with the updated member
        """
        return await executor.run(
            "set_nickname",
            _set_nickname,
            schema=_NICKNAME_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            user_id=user_id,
            nickname=nickname,
            reason=reason,
        )
