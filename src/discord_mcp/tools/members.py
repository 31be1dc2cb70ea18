"""Member tools: lookup, listing, and member moderation."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Collection, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.observability import get_audit_logger
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.tools.common import REASON, plural
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.param_schema import Num, Snowflake

logger = logging.getLogger(__name__)

# 28 days, the longest timeout the platform accepts.
MAX_TIMEOUT_MINUTES = 40320
MAX_BAN_DELETE_SECONDS = 604800

_MEMBER_SCHEMA = {"guild_id": Snowflake(required=True), "user_id": Snowflake(required=True)}
_LIST_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "limit": Num(integer_only=True, min_val=1, max_val=1000, default=100),
    "after": Snowflake(),
}
_KICK_SCHEMA = {**_MEMBER_SCHEMA, "reason": REASON}
_BAN_SCHEMA = {
    **_MEMBER_SCHEMA,
    "delete_message_seconds": Num(integer_only=True, min_val=0, max_val=MAX_BAN_DELETE_SECONDS, default=0),
    "reason": REASON,
}
_TIMEOUT_SCHEMA = {
    **_MEMBER_SCHEMA,
    "duration_minutes": Num(
        required=True,
        integer_only=True,
        min_val=0,
        max_val=MAX_TIMEOUT_MINUTES,
        remediation="Use 1-40320 minutes, or 0 to lift an existing timeout",
    ),
    "reason": REASON,
}


async def _get_member_info(ctx: OperationContext, *, guild_id: str, user_id: str) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    member, error = await ctx.access.resolve_member(guild.id, user_id)
    if error:
        return Failure(error)
    return Success({"member": member.to_dict()}, summary=f"{member.display_name} in {guild.name}")


async def _list_members(
    ctx: OperationContext,
    *,
    guild_id: str,
    limit: int = 100,
    after: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)

    members = await ctx.session.list_members(guild.id, limit, after=after)
    return Success(
        {
            "guild_id": guild.id,
            "members": [member.to_dict() for member in members],
            "count": len(members),
            "has_more": len(members) == limit,
        },
        summary=f"{plural(len(members), 'member')} from {guild.name}",
    )


async def _resolve_target(ctx: OperationContext, guild_id: str, user_id: str, capability: Capability, action: str):
    """Resolve guild and member, then check the capability and role hierarchy."""
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return None, None, error
    member, error = await ctx.access.resolve_member(guild.id, user_id)
    if error:
        return None, None, error
    if member.id == ctx.session.user_id:
        return None, None, DomainError.invalid_input("user_id", f"the bot cannot {action} itself")
    error = await ctx.require(guild, capability)
    if not error:
        error = await ctx.guard.require_outranks(ctx.session, guild, member, action)
    if error:
        return None, None, error
    return guild, member, None


async def _kick_member(
    ctx: OperationContext,
    *,
    guild_id: str,
    user_id: str,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, member, error = await _resolve_target(ctx, guild_id, user_id, Capability.KICK_MEMBERS, "kick")
    if error:
        return Failure(error)

    await ctx.session.kick_member(guild.id, member.id, reason=reason)
    get_audit_logger().moderation_action("kick", guild.id, member.id, reason=reason)
    return Success(
        {"guild_id": guild.id, "user_id": member.id, "kicked": True},
        summary=f"Kicked {member.display_name} from {guild.name}",
    )


async def _ban_member(
    ctx: OperationContext,
    *,
    guild_id: str,
    user_id: str,
    delete_message_seconds: int = 0,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    # Users who already left can still be banned; hierarchy only applies to members.
    member, _ = await ctx.access.resolve_member(guild.id, user_id)
    if member is not None and member.id == ctx.session.user_id:
        return Failure(DomainError.invalid_input("user_id", "the bot cannot ban itself"))
    error = await ctx.require(guild, Capability.BAN_MEMBERS)
    if not error and member is not None:
        error = await ctx.guard.require_outranks(ctx.session, guild, member, "ban")
    if error:
        return Failure(error)

    await ctx.session.ban_member(guild.id, user_id, reason=reason, delete_message_seconds=delete_message_seconds)
    get_audit_logger().moderation_action(
        "ban", guild.id, user_id, reason=reason, delete_message_seconds=delete_message_seconds
    )
    name = member.display_name if member is not None else user_id
    return Success(
        {"guild_id": guild.id, "user_id": user_id, "banned": True},
        summary=f"Banned {name} from {guild.name}",
    )


async def _unban_member(
    ctx: OperationContext,
    *,
    guild_id: str,
    user_id: str,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.BAN_MEMBERS)
    if error:
        return Failure(error)

    await ctx.session.unban_member(guild.id, user_id, reason=reason)
    get_audit_logger().moderation_action("unban", guild.id, user_id, reason=reason)
    return Success(
        {"guild_id": guild.id, "user_id": user_id, "banned": False},
        summary=f"Unbanned {user_id} in {guild.name}",
    )


async def _timeout_member(
    ctx: OperationContext,
    *,
    guild_id: str,
    user_id: str,
    duration_minutes: int,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, member, error = await _resolve_target(ctx, guild_id, user_id, Capability.MODERATE_MEMBERS, "time out")
    if error:
        return Failure(error)

    until: Optional[datetime] = None
    if duration_minutes:
        until = datetime.now(timezone.utc) + timedelta(minutes=duration_minutes)
    updated = await ctx.session.timeout_member(guild.id, member.id, until, reason=reason)
    get_audit_logger().moderation_action(
        "timeout", guild.id, member.id, reason=reason, duration_minutes=duration_minutes
    )
    if until is None:
        summary = f"Timeout lifted for {member.display_name}"
    else:
        summary = f"Timed out {member.display_name} for {plural(duration_minutes, 'minute')}"
    return Success(
        {
            "guild_id": guild.id,
            "user_id": member.id,
            "timed_out_until": until.isoformat() if until else None,
            "member": updated.to_dict(),
        },
        summary=summary,
    )


def register_member_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register member tools with the FastMCP server."""

    @canonical_tool(mcp, canonical_name="get_member_info", disabled=disabled)
    async def get_member_info(guild_id: str, user_id: str) -> dict:
        """
        Get a member's names, roles, join date and timeout state.

        Args:
            guild_id: Server ID (snowflake)
            user_id: User ID (snowflake)

        Returns:
            JSON object with the member
        """
        return await executor.run(
            "get_member_info",
            _get_member_info,
            schema=_MEMBER_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            user_id=user_id,
        )

    @canonical_tool(mcp, canonical_name="list_members", disabled=disabled)
    async def list_members(guild_id: str, limit: int = 100, after: Optional[str] = None) -> dict:
        """
        List server members in user ID order.

        Requires the server members intent. Page with `after` set to the
        last user ID returned.

        Args:
            guild_id: Server ID (snowflake)
            limit: Maximum members, 1-1000 (default 100)
            after: Only members with a user ID above this one

        Returns:
            JSON object with members, count, has_more
        """
        return await executor.run(
            "list_members",
            _list_members,
            schema=_LIST_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
            limit=limit,
            after=after,
        )

    @canonical_tool(mcp, canonical_name="kick_member", disabled=disabled)
    async def kick_member(guild_id: str, user_id: str, reason: Optional[str] = None) -> dict:
        """
        Remove a member from the server. Requires KickMembers.

        Args:
            guild_id: Server ID (snowflake)
            user_id: User ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with guild_id, user_id, kicked
        """
        return await executor.run(
            "kick_member",
            _kick_member,
            schema=_KICK_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            user_id=user_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="ban_member", disabled=disabled)
    async def ban_member(
        guild_id: str,
        user_id: str,
        delete_message_seconds: int = 0,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Ban a user from the server. Requires BanMembers.

        Args:
            guild_id: Server ID (snowflake)
            user_id: User ID (snowflake); need not be a current member
            delete_message_seconds: Also delete their messages from this many
                seconds back, 0-604800
            reason: Audit log reason

        Returns:
            JSON object with guild_id, user_id, banned
        """
        return await executor.run(
            "ban_member",
            _ban_member,
            schema=_BAN_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            user_id=user_id,
            delete_message_seconds=delete_message_seconds,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="unban_member", disabled=disabled)
    async def unban_member(guild_id: str, user_id: str, reason: Optional[str] = None) -> dict:
        """
        Lift a ban. Requires BanMembers.

        Args:
            guild_id: Server ID (snowflake)
            user_id: User ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with guild_id, user_id, banned
        """
        return await executor.run(
            "unban_member",
            _unban_member,
            schema=_KICK_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            user_id=user_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="timeout_member", disabled=disabled)
    async def timeout_member(
        guild_id: str,
        user_id: str,
        duration_minutes: int,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Time a member out so they cannot talk or react. Requires ModerateMembers.

        Args:
            guild_id: Server ID (snowflake)
            user_id: User ID (snowflake)
            duration_minutes: 1-40320 (28 days); 0 lifts an existing timeout
            reason: Audit log reason

        Returns:
            JSON object with timed_out_until and the member
        """
        return await executor.run(
            "timeout_member",
            _timeout_member,
            schema=_TIMEOUT_SCHEMA,
            identifiers=("guild_id", "user_id"),
            guild_id=guild_id,
            user_id=user_id,
            duration_minutes=duration_minutes,
            reason=reason,
        )
