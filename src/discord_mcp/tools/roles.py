"""Role tools: list, create, delete, assign, remove."""

import logging
from typing import Any, Collection, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.observability import get_audit_logger
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.gateway.models import RoleView
from discord_mcp.tools.common import REASON, plural
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.inputs import RoleInput, parse_model
from discord_mcp.tools.param_schema import Bool, List_, Num, Snowflake, Str

logger = logging.getLogger(__name__)

_LIST_SCHEMA = {"guild_id": Snowflake(required=True)}
_CREATE_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "name": Str(required=True, min_length=1, max_length=100),
    "color": Num(integer_only=True, min_val=0, max_val=0xFFFFFF),
    "hoist": Bool(default=False),
    "mentionable": Bool(default=False),
    "permissions": List_(item=Str()),
    "reason": REASON,
}
_DELETE_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "role_id": Snowflake(required=True),
    "reason": REASON,
}
_MEMBER_ROLE_SCHEMA = {
    "guild_id": Snowflake(required=True),
    "user_id": Snowflake(required=True),
    "role_id": Snowflake(required=True),
    "reason": REASON,
}


def _prepare_role(payload: Dict[str, Any]) -> Optional[DomainError]:
    """Normalise permission names on the new role."""
    role, error = parse_model(
        RoleInput,
        {
            "name": payload["name"],
            "color": payload.get("color"),
            "hoist": payload.get("hoist", False),
            "mentionable": payload.get("mentionable", False),
            "permissions": payload.get("permissions") or (),
        },
        "role",
    )
    if error:
        return error
    payload["permissions"] = list(role.permissions)
    return None


def _unassignable(role: RoleView) -> Optional[DomainError]:
    if role.is_default:
        return DomainError.invalid_input("role_id", "the @everyone role cannot be changed this way")
    if role.managed:
        return DomainError.invalid_input("role_id", f"role {role.name} is managed by an integration")
    return None


async def _list_roles(ctx: OperationContext, *, guild_id: str) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)

    roles = sorted(await ctx.session.list_roles(guild.id), key=lambda role: role.position, reverse=True)
    return Success(
        {"guild_id": guild.id, "roles": [role.to_dict() for role in roles], "count": len(roles)},
        summary=f"{plural(len(roles), 'role')} in {guild.name}",
    )


async def _create_role(
    ctx: OperationContext,
    *,
    guild_id: str,
    name: str,
    color: Optional[int] = None,
    hoist: bool = False,
    mentionable: bool = False,
    permissions: Optional[List[str]] = None,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.MANAGE_ROLES)
    if error:
        return Failure(error)

    role = await ctx.session.create_role(
        guild.id,
        {
            "name": name,
            "color": color,
            "hoist": hoist,
            "mentionable": mentionable,
            "permissions": permissions or [],
            "reason": reason,
        },
    )
    return Success({"role": role.to_dict()}, summary=f"Created role {role.name} in {guild.name}")


async def _delete_role(
    ctx: OperationContext,
    *,
    guild_id: str,
    role_id: str,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    role, error = await ctx.access.resolve_role(guild.id, role_id)
    if error:
        return Failure(error)
    error = _unassignable(role)
    if error:
        return Failure(error)
    error = await ctx.require(guild, Capability.MANAGE_ROLES)
    if not error:
        error = await ctx.guard.require_outranks(ctx.session, guild, role, "delete role")
    if error:
        return Failure(error)

    await ctx.session.delete_role(guild.id, role.id, reason=reason)
    return Success({"role_id": role.id, "name": role.name, "deleted": True}, summary=f"Deleted role {role.name}")


async def _change_member_role(
    ctx: OperationContext,
    *,
    add: bool,
    guild_id: str,
    user_id: str,
    role_id: str,
    reason: Optional[str] = None,
) -> OperationResult:
    guild, error = await ctx.access.resolve_guild(guild_id)
    if error:
        return Failure(error)
    member, error = await ctx.access.resolve_member(guild.id, user_id)
    if error:
        return Failure(error)
    role, error = await ctx.access.resolve_role(guild.id, role_id)
    if error:
        return Failure(error)
    error = _unassignable(role)
    if error:
        return Failure(error)
    action = "assign role" if add else "remove role"
    error = await ctx.require(guild, Capability.MANAGE_ROLES)
    if not error:
        error = await ctx.guard.require_outranks(ctx.session, guild, role, action)
    if error:
        return Failure(error)

    if add:
        await ctx.session.add_member_role(guild.id, member.id, role.id, reason=reason)
    else:
        await ctx.session.remove_member_role(guild.id, member.id, role.id, reason=reason)
    get_audit_logger().moderation_action(action.replace(" ", "_"), guild.id, member.id, role_id=role.id, reason=reason)
    verb = "Assigned" if add else "Removed"
    preposition = "to" if add else "from"
    return Success(
        {"guild_id": guild.id, "user_id": member.id, "role_id": role.id, "assigned": add},
        summary=f"{verb} role {role.name} {preposition} {member.display_name}",
    )


async def _assign_role(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _change_member_role(ctx, add=True, **payload)


async def _remove_role(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _change_member_role(ctx, add=False, **payload)


def register_role_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register role tools with the FastMCP server."""

    @canonical_tool(mcp, canonical_name="list_roles", disabled=disabled)
    async def list_roles(guild_id: str) -> dict:
        """
        List a server's roles, highest first.

        Args:
            guild_id: Server ID (snowflake)

        Returns:
            JSON object with roles and count
        """
        return await executor.run(
            "list_roles",
            _list_roles,
            schema=_LIST_SCHEMA,
            identifiers=("guild_id",),
            guild_id=guild_id,
        )

    @canonical_tool(mcp, canonical_name="create_role", disabled=disabled)
    async def create_role(
        guild_id: str,
        name: str,
        color: Optional[int] = None,
        hoist: bool = False,
        mentionable: bool = False,
        permissions: Optional[List[str]] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Create a role. Requires ManageRoles.

        Args:
            guild_id: Server ID (snowflake)
            name: Role name, 1-100 characters
            color: RGB color as an integer (0x000000-0xFFFFFF)
            hoist: Show members separately in the member list
            mentionable: Allow anyone to @mention the role
            permissions: Permission names, e.g. ["SendMessages", "view_channel"]
            reason: Audit log reason

        Returns:
            JSON object with the created role
        """
        return await executor.run(
            "create_role",
            _create_role,
            schema=_CREATE_SCHEMA,
            identifiers=("guild_id",),
            prepare=_prepare_role,
            guild_id=guild_id,
            name=name,
            color=color,
            hoist=hoist,
            mentionable=mentionable,
            permissions=permissions,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="delete_role", disabled=disabled)
    async def delete_role(guild_id: str, role_id: str, reason: Optional[str] = None) -> dict:
        """
        Delete a role below the bot's highest role. Requires ManageRoles.

        Args:
            guild_id: Server ID (snowflake)
            role_id: Role ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with role_id, name, deleted
        """
        return await executor.run(
            "delete_role",
            _delete_role,
            schema=_DELETE_SCHEMA,
            identifiers=("guild_id", "role_id"),
            guild_id=guild_id,
            role_id=role_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="assign_role", disabled=disabled)
    async def assign_role(guild_id: str, user_id: str, role_id: str, reason: Optional[str] = None) -> dict:
        """
        Give a member a role. Requires ManageRoles and a higher bot role.

        Args:
            guild_id: Server ID (snowflake)
            user_id: Member's user ID (snowflake)
            role_id: Role ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with guild_id, user_id, role_id
        """
        return await executor.run(
            "assign_role",
            _assign_role,
            schema=_MEMBER_ROLE_SCHEMA,
            identifiers=("guild_id", "user_id", "role_id"),
            guild_id=guild_id,
            user_id=user_id,
            role_id=role_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="remove_role", disabled=disabled)
    async def remove_role(guild_id: str, user_id: str, role_id: str, reason: Optional[str] = None) -> dict:
        """
        Take a role away from a member. Requires ManageRoles and a higher bot role.

        Args:
            guild_id: Server ID (snowflake)
            user_id: Member's user ID (snowflake)
            role_id: Role ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with guild_id, user_id, role_id
        """
        return await executor.run(
            "remove_role",
            _remove_role,
            schema=_MEMBER_ROLE_SCHEMA,
            identifiers=("guild_id", "user_id", "role_id"),
            guild_id=guild_id,
            user_id=user_id,
            role_id=role_id,
            reason=reason,
        )
