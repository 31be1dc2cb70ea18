"""Messaging tools: send, read, edit, delete, react, pin.

Handlers are module-level coroutines ``_handler(ctx, **payload)`` so tests
can drive them through :class:`~discord_mcp.tools.executor.OperationExecutor`
without an MCP server.
"""

import logging
from typing import Any, Collection, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.tools.common import (
    MESSAGE_CONTENT_LIMIT,
    REASON,
    not_message_author,
    plural,
    prepare_embeds,
)
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.param_schema import AtLeastOne, List_, Num, Snowflake, Str

logger = logging.getLogger(__name__)

_CONTENT = Str(max_length=MESSAGE_CONTENT_LIMIT, strip=False)

_SEND_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "content": _CONTENT,
    "embeds": List_(),
}
_SEND_RICH_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "content": _CONTENT,
}
_READ_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "limit": Num(integer_only=True, min_val=1, max_val=100, default=50),
    "before": Snowflake(),
    "after": Snowflake(),
}
_EDIT_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "message_id": Snowflake(required=True),
    "content": _CONTENT,
    "embeds": List_(),
}
_MESSAGE_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "message_id": Snowflake(required=True),
    "reason": REASON,
}
_REACTION_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "message_id": Snowflake(required=True),
    "emoji": Str(required=True, max_length=100),
}
_CONTENT_OR_EMBEDS = [AtLeastOne(("content", "embeds"), remediation="Provide message content, embeds, or both")]
_CONTENT_OR_EMBED = [AtLeastOne(("content", "embed"), remediation="Provide message content, an embed, or both")]


def _prepare_embed(payload: Dict[str, Any]):
    return prepare_embeds(payload, "embed")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _send_message(
    ctx: OperationContext,
    *,
    channel_id: str,
    content: Optional[str] = None,
    embeds: Optional[List[Dict[str, Any]]] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)

    needed = [Capability.SEND_MESSAGES_IN_THREADS if channel.kind.is_thread else Capability.SEND_MESSAGES]
    if embeds:
        needed.append(Capability.EMBED_LINKS)
    error = await ctx.require(channel, *needed)
    if error:
        return Failure(error)

    message = await ctx.session.send_message(channel.id, content, embeds or ())
    return Success(
        {
            "message_id": message.id,
            "channel_id": message.channel_id,
            "timestamp": message.created_at.isoformat() if message.created_at else None,
        },
        summary=f"Message sent to #{channel.name}",
    )


async def _send_rich_message(
    ctx: OperationContext,
    *,
    channel_id: str,
    content: Optional[str] = None,
    embed: Optional[List[Dict[str, Any]]] = None,
) -> OperationResult:
    return await _send_message(ctx, channel_id=channel_id, content=content, embeds=embed)


async def _read_messages(
    ctx: OperationContext,
    *,
    channel_id: str,
    limit: int = 50,
    before: Optional[str] = None,
    after: Optional[str] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.VIEW_CHANNEL, Capability.READ_MESSAGE_HISTORY)
    if error:
        return Failure(error)

    messages = await ctx.session.history(channel.id, limit, before=before, after=after)
    return Success(
        {
            "channel_id": channel.id,
            "messages": [message.to_dict() for message in messages],
            "count": len(messages),
            "has_more": len(messages) == limit,
        },
        summary=f"Read {plural(len(messages), 'message')} from #{channel.name}",
    )


async def _edit_message(
    ctx: OperationContext,
    *,
    channel_id: str,
    message_id: str,
    content: Optional[str] = None,
    embeds: Optional[List[Dict[str, Any]]] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)
    message, error = await ctx.access.resolve_message(channel, message_id)
    if error:
        return Failure(error)
    if message.author_id != ctx.session.user_id:
        return Failure(not_message_author("edit", message_id))
    if embeds:
        error = await ctx.require(channel, Capability.EMBED_LINKS)
        if error:
            return Failure(error)

    edited = await ctx.session.edit_message(channel.id, message.id, content=content, embeds=embeds)
    return Success(
        {
            "message_id": edited.id,
            "channel_id": edited.channel_id,
            "edited_timestamp": edited.edited_at.isoformat() if edited.edited_at else None,
        },
        summary=f"Message {edited.id} edited",
    )


async def _delete_message(
    ctx: OperationContext,
    *,
    channel_id: str,
    message_id: str,
    reason: Optional[str] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)
    message, error = await ctx.access.resolve_message(channel, message_id)
    if error:
        return Failure(error)
    # Any member may delete their own messages.
    if message.author_id != ctx.session.user_id:
        error = await ctx.require(channel, Capability.MANAGE_MESSAGES)
        if error:
            return Failure(error)

    await ctx.session.delete_message(channel.id, message.id, reason=reason)
    return Success(
        {"message_id": message.id, "channel_id": channel.id},
        summary=f"Message {message.id} deleted",
    )


async def _add_reaction(
    ctx: OperationContext,
    *,
    channel_id: str,
    message_id: str,
    emoji: str,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)
    message, error = await ctx.access.resolve_message(channel, message_id)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.ADD_REACTIONS, Capability.READ_MESSAGE_HISTORY)
    if error:
        return Failure(error)

    await ctx.session.add_reaction(channel.id, message.id, emoji)
    return Success(
        {"message_id": message.id, "channel_id": channel.id, "emoji": emoji},
        summary=f"Reacted with {emoji} to message {message.id}",
    )


async def _set_pinned(
    ctx: OperationContext,
    *,
    pinned: bool,
    channel_id: str,
    message_id: str,
    reason: Optional[str] = None,
) -> OperationResult:
    channel, error = await ctx.access.resolve_channel(channel_id, require_text=True)
    if error:
        return Failure(error)
    message, error = await ctx.access.resolve_message(channel, message_id)
    if error:
        return Failure(error)
    error = await ctx.require(channel, Capability.MANAGE_MESSAGES)
    if error:
        return Failure(error)

    if pinned:
        await ctx.session.pin_message(channel.id, message.id, reason=reason)
    else:
        await ctx.session.unpin_message(channel.id, message.id, reason=reason)
    verb = "pinned" if pinned else "unpinned"
    return Success(
        {"message_id": message.id, "channel_id": channel.id, "pinned": pinned},
        summary=f"Message {message.id} {verb}",
    )


async def _pin_message(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _set_pinned(ctx, pinned=True, **payload)


async def _unpin_message(ctx: OperationContext, **payload: Any) -> OperationResult:
    return await _set_pinned(ctx, pinned=False, **payload)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_messaging_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register messaging tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        executor: Operation executor bound to the connection manager
        disabled: Tool names to leave unregistered
    """

    @canonical_tool(mcp, canonical_name="send_message", disabled=disabled)
    async def send_message(
        channel_id: str,
        content: Optional[str] = None,
        embeds: Optional[List[Dict[str, Any]]] = None,
    ) -> dict:
        """
        Send a message to a text channel, thread, or DM channel.

        Content supports Discord markdown. Requires SendMessages
        (SendMessagesInThreads in threads) and EmbedLinks when embeds are sent.

        Args:
            channel_id: Target channel ID (snowflake)
            content: Message text, up to 2000 characters
            embeds: Up to 10 embed objects (title, description, url, color,
                image, thumbnail, author, footer, fields, timestamp)

        Returns:
            JSON object with message_id, channel_id, timestamp
        """
        return await executor.run(
            "send_message",
            _send_message,
            schema=_SEND_SCHEMA,
            identifiers=("channel_id",),
            cross_field_rules=_CONTENT_OR_EMBEDS,
            prepare=prepare_embeds,
            channel_id=channel_id,
            content=content,
            embeds=embeds,
        )

    @canonical_tool(mcp, canonical_name="send_rich_message", disabled=disabled)
    async def send_rich_message(
        channel_id: str,
        content: Optional[str] = None,
        embed: Optional[Dict[str, Any]] = None,
    ) -> dict:
        """
        Send a richly formatted message with a single embed.

        Args:
            channel_id: Target channel ID (snowflake)
            content: Optional message text with Discord markdown
            embed: Embed object: title (256), description (4096), url,
                color (0x000000-0xFFFFFF), image, thumbnail,
                author {name, url, iconURL}, footer {text, iconURL},
                fields [{name, value, inline}] (max 25), timestamp (bool)

        Returns:
            JSON object with message_id, channel_id, timestamp
        """
        return await executor.run(
            "send_rich_message",
            _send_rich_message,
            schema=_SEND_RICH_SCHEMA,
            identifiers=("channel_id",),
            cross_field_rules=_CONTENT_OR_EMBED,
            prepare=_prepare_embed,
            channel_id=channel_id,
            content=content,
            embed=embed,
        )

    @canonical_tool(mcp, canonical_name="read_messages", disabled=disabled)
    async def read_messages(
        channel_id: str,
        limit: int = 50,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> dict:
        """
        Read recent message history from a channel, newest first.

        WHEN TO USE:
        - Reviewing a conversation before replying or moderating
        - Paging backwards with `before` set to the oldest message ID seen

        Args:
            channel_id: Channel ID (snowflake)
            limit: Number of messages, 1-100 (default 50)
            before: Only messages before this message ID
            after: Only messages after this message ID

        Returns:
            JSON object with messages, count, has_more
        """
        return await executor.run(
            "read_messages",
            _read_messages,
            schema=_READ_SCHEMA,
            identifiers=("channel_id",),
            channel_id=channel_id,
            limit=limit,
            before=before,
            after=after,
        )

    @canonical_tool(mcp, canonical_name="edit_message", disabled=disabled)
    async def edit_message(
        channel_id: str,
        message_id: str,
        content: Optional[str] = None,
        embeds: Optional[List[Dict[str, Any]]] = None,
    ) -> dict:
        """
        Edit a message previously sent by the bot.

        Args:
            channel_id: Channel ID (snowflake)
            message_id: Message ID (snowflake)
            content: Replacement text
            embeds: Replacement embeds

        Returns:
            JSON object with message_id, channel_id, edited_timestamp
        """
        return await executor.run(
            "edit_message",
            _edit_message,
            schema=_EDIT_SCHEMA,
            identifiers=("channel_id", "message_id"),
            cross_field_rules=_CONTENT_OR_EMBEDS,
            prepare=prepare_embeds,
            channel_id=channel_id,
            message_id=message_id,
            content=content,
            embeds=embeds,
        )

    @canonical_tool(mcp, canonical_name="delete_message", disabled=disabled)
    async def delete_message(channel_id: str, message_id: str, reason: Optional[str] = None) -> dict:
        """
        Delete a message.

        Messages sent by the bot can always be deleted; others require
        ManageMessages.

        Args:
            channel_id: Channel ID (snowflake)
            message_id: Message ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with message_id, channel_id
        """
        return await executor.run(
            "delete_message",
            _delete_message,
            schema=_MESSAGE_SCHEMA,
            identifiers=("channel_id", "message_id"),
            channel_id=channel_id,
            message_id=message_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="add_reaction", disabled=disabled)
    async def add_reaction(channel_id: str, message_id: str, emoji: str) -> dict:
        """
        Add a reaction to a message.

        Args:
            channel_id: Channel ID (snowflake)
            message_id: Message ID (snowflake)
            emoji: Unicode emoji or custom emoji in `<:name:id>` form

        Returns:
            JSON object with message_id, channel_id, emoji
        """
        return await executor.run(
            "add_reaction",
            _add_reaction,
            schema=_REACTION_SCHEMA,
            identifiers=("channel_id", "message_id"),
            channel_id=channel_id,
            message_id=message_id,
            emoji=emoji,
        )

    @canonical_tool(mcp, canonical_name="pin_message", disabled=disabled)
    async def pin_message(channel_id: str, message_id: str, reason: Optional[str] = None) -> dict:
        """
        Pin a message in its channel. Requires ManageMessages.

        Args:
            channel_id: Channel ID (snowflake)
            message_id: Message ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with message_id, channel_id, pinned
        """
        return await executor.run(
            "pin_message",
            _pin_message,
            schema=_MESSAGE_SCHEMA,
            identifiers=("channel_id", "message_id"),
            channel_id=channel_id,
            message_id=message_id,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="unpin_message", disabled=disabled)
    async def unpin_message(channel_id: str, message_id: str, reason: Optional[str] = None) -> dict:
        """
        Unpin a message. Requires ManageMessages.

        Args:
            channel_id: Channel ID (snowflake)
            message_id: Message ID (snowflake)
            reason: Audit log reason

        Returns:
            JSON object with message_id, channel_id, pinned
        """
        return await executor.run(
            "unpin_message",
            _unpin_message,
            schema=_MESSAGE_SCHEMA,
            identifiers=("channel_id", "message_id"),
            channel_id=channel_id,
            message_id=message_id,
            reason=reason,
        )
