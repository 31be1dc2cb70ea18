"""Thread tools: create, archive, search."""

import logging
from typing import Collection, Optional

from mcp.server.fastmcp import FastMCP

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.errors.domain import DomainError
from discord_mcp.core.naming import canonical_tool
from discord_mcp.core.results import Failure, OperationResult, Success
from discord_mcp.gateway.models import ChannelKind
from discord_mcp.tools.common import MESSAGE_CONTENT_LIMIT, REASON, plural
from discord_mcp.tools.executor import OperationContext, OperationExecutor
from discord_mcp.tools.param_schema import Bool, Num, Snowflake, Str

logger = logging.getLogger(__name__)

AUTO_ARCHIVE_MINUTES = frozenset({60, 1440, 4320, 10080})

_CREATE_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "name": Str(required=True, min_length=1, max_length=100),
    "message_id": Snowflake(),
    "content": Str(max_length=MESSAGE_CONTENT_LIMIT, strip=False),
    "auto_archive_minutes": Num(
        integer_only=True,
        choices=AUTO_ARCHIVE_MINUTES,
        remediation="Use 60 (1 hour), 1440 (1 day), 4320 (3 days) or 10080 (7 days)",
    ),
    "private": Bool(default=False),
    "reason": REASON,
}
_ARCHIVE_SCHEMA = {
    "thread_id": Snowflake(required=True),
    "locked": Bool(default=True),
    "reason": REASON,
}
_FIND_SCHEMA = {
    "channel_id": Snowflake(required=True),
    "name": Str(max_length=100),
    "include_archived": Bool(default=False),
    "limit": Num(integer_only=True, min_val=1, max_val=100, default=50),
}

_FORUM_KINDS = frozenset({ChannelKind.FORUM, ChannelKind.MEDIA})


async def _create_thread(
    ctx: OperationContext,
    *,
    channel_id: str,
    name: str,
    message_id: Optional[str] = None,
    content: Optional[str] = None,
    auto_archive_minutes: Optional[int] = None,
    private: bool = False,
    reason: Optional[str] = None,
) -> OperationResult:
    parent, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    if not parent.kind.is_thread_parent:
        return Failure(
            DomainError.invalid_input(
                "channel_id", f"channel {channel_id} is a {parent.kind.value} channel and cannot hold threads"
            )
        )

    if parent.kind in _FORUM_KINDS:
        # A forum post is a thread whose first message is the post body.
        if message_id:
            return Failure(DomainError.invalid_input("message_id", "forum posts cannot start from an existing message"))
        if not content:
            return Failure(DomainError.invalid_input("content", "is required to start a forum post"))
        needed = Capability.SEND_MESSAGES
    elif private:
        if message_id:
            return Failure(DomainError.invalid_input("private", "threads started from a message are always public"))
        needed = Capability.CREATE_PRIVATE_THREADS
    else:
        needed = Capability.CREATE_PUBLIC_THREADS

    if message_id:
        _, error = await ctx.access.resolve_message(parent, message_id)
        if error:
            return Failure(error)
    error = await ctx.require(parent, needed)
    if error:
        return Failure(error)

    options = {
        "message_id": message_id,
        "content": content,
        "auto_archive_minutes": auto_archive_minutes,
        "private": private,
        "reason": reason,
    }
    thread = await ctx.session.create_thread(parent.id, name, options)
    return Success(
        {"thread": thread.to_dict(), "parent_id": parent.id},
        summary=f"Created thread '{thread.name}' in #{parent.name}",
    )


async def _archive_thread(
    ctx: OperationContext,
    *,
    thread_id: str,
    locked: bool = True,
    reason: Optional[str] = None,
) -> OperationResult:
    thread, error = await ctx.access.resolve_channel(thread_id, require_thread=True, field_name="thread_id")
    if error:
        return Failure(error)
    error = await ctx.require(thread, Capability.MANAGE_THREADS)
    if error:
        return Failure(error)

    updated = await ctx.session.edit_channel(thread.id, {"archived": True, "locked": locked}, reason=reason)
    state = "archived and locked" if locked else "archived"
    return Success({"thread": updated.to_dict()}, summary=f"Thread '{updated.name}' {state}")


async def _find_threads(
    ctx: OperationContext,
    *,
    channel_id: str,
    name: Optional[str] = None,
    include_archived: bool = False,
    limit: int = 50,
) -> OperationResult:
    parent, error = await ctx.access.resolve_channel(channel_id, require_guild=True)
    if error:
        return Failure(error)
    if not parent.kind.is_thread_parent:
        return Failure(
            DomainError.invalid_input(
                "channel_id", f"channel {channel_id} is a {parent.kind.value} channel and cannot hold threads"
            )
        )
    needed = [Capability.VIEW_CHANNEL]
    if include_archived:
        needed.append(Capability.READ_MESSAGE_HISTORY)
    error = await ctx.require(parent, *needed)
    if error:
        return Failure(error)

    threads = await ctx.session.list_threads(parent.id, include_archived, limit)
    if name:
        needle = name.casefold()
        threads = [thread for thread in threads if needle in thread.name.casefold()]
    threads = threads[:limit]
    return Success(
        {"channel_id": parent.id, "threads": [thread.to_dict() for thread in threads], "count": len(threads)},
        summary=f"Found {plural(len(threads), 'thread')} in #{parent.name}",
    )


def register_thread_tools(
    mcp: FastMCP,
    executor: OperationExecutor,
    *,
    disabled: Collection[str] = (),
) -> None:
    """Register thread tools with the FastMCP server."""

    @canonical_tool(mcp, canonical_name="create_thread", disabled=disabled)
    async def create_thread(
        channel_id: str,
        name: str,
        message_id: Optional[str] = None,
        content: Optional[str] = None,
        auto_archive_minutes: Optional[int] = None,
        private: bool = False,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Start a thread in a text channel or a post in a forum.

        WHEN TO USE:
        - Splitting a side conversation off a busy channel (pass message_id)
        - Opening a forum post (content becomes the first message)

        Requires CreatePublicThreads, CreatePrivateThreads for private
        threads, or SendMessages for forum posts.

        Args:
            channel_id: Parent channel ID (text, announcement, or forum)
            name: Thread name, 1-100 characters
            message_id: Start the thread from this message
            content: First message; required for forum posts
            auto_archive_minutes: 60, 1440, 4320 or 10080
            private: Create a private thread (text channels only)
            reason: Audit log reason

        Returns:
            JSON object with the created thread and parent_id
        """
        return await executor.run(
            "create_thread",
            _create_thread,
            schema=_CREATE_SCHEMA,
            identifiers=("channel_id", "message_id"),
            channel_id=channel_id,
            name=name,
            message_id=message_id,
            content=content,
            auto_archive_minutes=auto_archive_minutes,
            private=private,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="archive_thread", disabled=disabled)
    async def archive_thread(thread_id: str, locked: bool = True, reason: Optional[str] = None) -> dict:
        """
        Archive a thread, locking it by default. Requires ManageThreads.

        Args:
            thread_id: Thread ID (snowflake)
            locked: Also prevent members from unarchiving it
            reason: Audit log reason

        Returns:
            JSON object with the updated thread
        """
        return await executor.run(
            "archive_thread",
            _archive_thread,
            schema=_ARCHIVE_SCHEMA,
            identifiers=("thread_id",),
            thread_id=thread_id,
            locked=locked,
            reason=reason,
        )

    @canonical_tool(mcp, canonical_name="find_threads", disabled=disabled)
    async def find_threads(
        channel_id: str,
        name: Optional[str] = None,
        include_archived: bool = False,
        limit: int = 50,
    ) -> dict:
        """
        Find threads under a channel by partial, case-insensitive name.

        Args:
            channel_id: Parent channel ID (snowflake)
            name: Substring to match; omit to list every thread
            include_archived: Also search archived threads
            limit: Maximum results, 1-100 (default 50)

        Returns:
            JSON object with threads and count
        """
        return await executor.run(
            "find_threads",
            _find_threads,
            schema=_FIND_SCHEMA,
            identifiers=("channel_id",),
            channel_id=channel_id,
            name=name,
            include_archived=include_archived,
            limit=limit,
        )
