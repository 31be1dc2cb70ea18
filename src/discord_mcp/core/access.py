"""Identifier resolution against the live gateway session.

The validator turns opaque snowflake identifiers into entity views or a
``not_found`` :class:`DomainError` that carries the literal identifier. It
never checks permissions; that is the capability guard's job, so "does not
exist" and "exists but forbidden" always reach the caller as different
failures.

Every resolver returns a ``(view, error)`` tuple with exactly one side set.
Transport faults other than not-found propagate to the executor.

Example:
    validator = AccessValidator(session)
    channel, error = await validator.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple, TypeVar

from discord_mcp.core.errors.domain import DomainError, EntityKind
from discord_mcp.core.errors.gateway import GatewayNotFound
from discord_mcp.gateway.models import ChannelKind, ChannelView, GuildView, MemberView, MessageView, RoleView
from discord_mcp.gateway.protocol import GatewaySession

logger = logging.getLogger(__name__)

V = TypeVar("V")
Resolved = Tuple[Optional[V], Optional[DomainError]]

_FORUM_KINDS = frozenset({ChannelKind.FORUM, ChannelKind.MEDIA})


class AccessValidator:
    """Resolves identifiers through one borrowed session.

    Args:
        session: Session borrowed from the connection manager for the
            current call only.
    """

    def __init__(self, session: GatewaySession):
        self._session = session

    async def _fetch(
        self,
        kind: EntityKind,
        entity_id: str,
        fetch: Callable[[], Awaitable[Optional[V]]],
    ) -> Resolved[V]:
        try:
            view = await fetch()
        except GatewayNotFound:
            view = None
        if view is None:
            logger.debug("%s %s did not resolve", kind.display_name, entity_id)
            return None, DomainError.not_found(kind, entity_id)
        return view, None

    async def resolve_guild(self, guild_id: str) -> Resolved[GuildView]:
        return await self._fetch(EntityKind.GUILD, guild_id, lambda: self._session.fetch_guild(guild_id))

    async def resolve_channel(
        self,
        channel_id: str,
        *,
        require_text: bool = False,
        require_guild: bool = False,
        require_thread: bool = False,
        require_forum: bool = False,
        guild_id: Optional[str] = None,
        field_name: str = "channel_id",
    ) -> Resolved[ChannelView]:
        """Resolve a channel and check its shape.

        Args:
            channel_id: Channel snowflake.
            require_text: The channel must accept messages.
            require_guild: The channel must belong to a guild (not a DM).
            require_thread: The channel must be a thread. A missing or
                non-thread channel resolves as a missing thread.
            require_forum: The channel must be a forum or media channel.
            guild_id: The channel must belong to this guild.
            field_name: Input field reported on shape violations.
        """
        kind = EntityKind.THREAD if require_thread else EntityKind.CHANNEL
        channel, error = await self._fetch(kind, channel_id, lambda: self._session.fetch_channel(channel_id))
        if error:
            return None, error
        assert channel is not None

        if require_thread and not channel.kind.is_thread:
            return None, DomainError.not_found(EntityKind.THREAD, channel_id)
        if require_text and not channel.kind.is_text_based:
            return None, DomainError.invalid_input(
                field_name, f"channel {channel_id} is a {channel.kind.value} channel and does not accept messages"
            )
        if require_forum and channel.kind not in _FORUM_KINDS:
            return None, DomainError.invalid_input(
                field_name, f"channel {channel_id} is a {channel.kind.value} channel, not a forum"
            )
        if (require_guild or guild_id) and not channel.in_guild:
            return None, DomainError.invalid_input(field_name, f"channel {channel_id} is not a server channel")
        if guild_id and channel.guild_id != guild_id:
            # Outside the requested guild reads as missing from it.
            return None, DomainError.not_found(kind, channel_id)
        return channel, None

    async def resolve_message(self, channel: ChannelView, message_id: str) -> Resolved[MessageView]:
        return await self._fetch(
            EntityKind.MESSAGE,
            message_id,
            lambda: self._session.fetch_message(channel.id, message_id),
        )

    async def resolve_member(self, guild_id: str, user_id: str) -> Resolved[MemberView]:
        return await self._fetch(EntityKind.MEMBER, user_id, lambda: self._session.fetch_member(guild_id, user_id))

    async def resolve_role(self, guild_id: str, role_id: str) -> Resolved[RoleView]:
        return await self._fetch(EntityKind.ROLE, role_id, lambda: self._session.fetch_role(guild_id, role_id))

    async def resolve(
        self,
        kind: EntityKind,
        entity_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Resolved[Any]:
        """Resolve any entity kind.

        Scoped kinds read their scope from ``context``: messages need
        ``channel_id``; members and roles need ``guild_id``.
        """
        context = context or {}
        if kind is EntityKind.GUILD:
            return await self.resolve_guild(entity_id)
        if kind is EntityKind.CHANNEL:
            return await self.resolve_channel(entity_id)
        if kind is EntityKind.THREAD:
            return await self.resolve_channel(entity_id, require_thread=True)

        scope_field = "channel_id" if kind is EntityKind.MESSAGE else "guild_id"
        scope_id = context.get(scope_field)
        if not scope_id:
            return None, DomainError.invalid_input(scope_field, f"required to resolve a {kind.value}")

        if kind is EntityKind.MESSAGE:
            channel, error = await self.resolve_channel(scope_id, require_text=True)
            if error:
                return None, error
            assert channel is not None
            return await self.resolve_message(channel, entity_id)
        if kind is EntityKind.MEMBER:
            return await self.resolve_member(scope_id, entity_id)
        return await self.resolve_role(scope_id, entity_id)
