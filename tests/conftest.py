"""Shared fixtures: an in-memory gateway session and a tool recorder.

``FakeSession`` implements the full ``GatewaySession`` protocol over plain
dicts. Every side-effecting call is appended to ``session.calls`` so tests
can assert that a rejected operation performed no mutation.
"""

import asyncio
import itertools
from dataclasses import fields, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from discord_mcp.core.capabilities import Capability
from discord_mcp.core.connection import ConnectionManager
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
from discord_mcp.tools import register_operation_tools
from discord_mcp.tools.executor import OperationExecutor

GUILD_ID = "111111111111111111"
OTHER_GUILD_ID = "111111111111111112"

BOT_ID = "222222222222222222"
OWNER_ID = "222222222222222223"
USER_ID = "222222222222222224"
SENIOR_USER_ID = "222222222222222225"
BOT_USER_ID = "222222222222222226"

TEXT_CHANNEL_ID = "333333333333333331"
VOICE_CHANNEL_ID = "333333333333333332"
CATEGORY_ID = "333333333333333333"
FORUM_CHANNEL_ID = "333333333333333334"
THREAD_ID = "333333333333333335"
DM_CHANNEL_ID = "333333333333333336"
OTHER_GUILD_CHANNEL_ID = "333333333333333337"
ARCHIVED_THREAD_ID = "333333333333333338"

USER_MESSAGE_ID = "444444444444444441"
BOT_MESSAGE_ID = "444444444444444442"

LOW_ROLE_ID = "555555555555555551"
HIGH_ROLE_ID = "555555555555555552"
MANAGED_ROLE_ID = "555555555555555553"

MISSING_ID = "999999999999999999"

# Everything the operations check, without Administrator.
STANDARD_PERMISSIONS = frozenset(cap.value for cap in Capability if cap is not Capability.ADMINISTRATOR)

_DM_PERMISSIONS = frozenset({"read_messages", "send_messages", "read_message_history", "add_reactions", "embed_links"})


def _ago(**delta: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**delta)


class FakeSession:
    """In-memory ``GatewaySession`` seeded with one guild."""

    def __init__(self, user_id: str = BOT_ID):
        self._user_id = user_id
        self._ids = itertools.count(666666666666666600)
        self._closed = asyncio.Event()
        self.close_cause: Optional[BaseException] = None
        self.closed = False
        self.latency = 42.0

        self.guilds: Dict[str, GuildView] = {}
        self.channels: Dict[str, ChannelView] = {}
        self.messages: Dict[str, Dict[str, MessageView]] = {}
        self.members: Dict[tuple, MemberView] = {}
        self.roles: Dict[tuple, RoleView] = {}
        self.guild_perms: Dict[str, frozenset] = {}
        self.channel_perms: Dict[str, frozenset] = {}
        self.audit_entries: List[AuditLogEntryView] = []
        self.webhooks: List[WebhookView] = []
        self.invites: List[InviteView] = []
        self.bans: List[BanView] = []

        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}

    # --- session surface -------------------------------------------------

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def guild_count(self) -> int:
        return len(self.guilds)

    @property
    def latency_ms(self) -> float:
        return self.latency

    async def wait_closed(self) -> Optional[BaseException]:
        await self._closed.wait()
        return self.close_cause

    async def close(self) -> None:
        self.closed = True
        self._closed.set()

    def drop(self, cause: Optional[BaseException] = None) -> None:
        """Simulate the remote end closing the session."""
        self.close_cause = cause
        self._closed.set()

    # --- bookkeeping -----------------------------------------------------

    @property
    def mutations(self) -> List[tuple]:
        return list(self.calls)

    def called(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    def _mutate(self, name: str, *args: Any) -> None:
        if name in self.failures:
            raise self.failures[name]
        self.calls.append((name, args))

    def _read(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def _next_id(self) -> str:
        return str(next(self._ids))

    # --- lookups -----------------------------------------------------------

    async def fetch_guild(self, guild_id):
        self._read("fetch_guild")
        return self.guilds.get(guild_id)

    async def fetch_channel(self, channel_id):
        self._read("fetch_channel")
        return self.channels.get(channel_id)

    async def fetch_message(self, channel_id, message_id):
        self._read("fetch_message")
        return self.messages.get(channel_id, {}).get(message_id)

    async def fetch_member(self, guild_id, user_id):
        self._read("fetch_member")
        return self.members.get((guild_id, user_id))

    async def fetch_role(self, guild_id, role_id):
        return self.roles.get((guild_id, role_id))

    async def guild_permissions(self, guild_id):
        return self.guild_perms.get(guild_id, frozenset())

    async def channel_permissions(self, channel_id):
        if channel_id in self.channel_perms:
            return self.channel_perms[channel_id]
        channel = self.channels.get(channel_id)
        if channel is not None and channel.guild_id:
            return self.guild_perms.get(channel.guild_id, frozenset())
        return _DM_PERMISSIONS

    # --- messages ----------------------------------------------------------

    async def send_message(self, channel_id, content, embeds=()):
        self._mutate("send_message", channel_id, content, list(embeds))
        channel = self.channels[channel_id]
        message = MessageView(
            id=self._next_id(),
            channel_id=channel_id,
            guild_id=channel.guild_id,
            author_id=self._user_id,
            author_name="discord-mcp",
            author_is_bot=True,
            content=content or "",
            created_at=datetime.now(timezone.utc),
            embed_count=len(embeds),
        )
        self.messages.setdefault(channel_id, {})[message.id] = message
        return message

    async def history(self, channel_id, limit, before=None, after=None):
        self._read("history")
        messages = sorted(self.messages.get(channel_id, {}).values(), key=lambda m: int(m.id), reverse=True)
        if before:
            messages = [m for m in messages if int(m.id) < int(before)]
        if after:
            messages = [m for m in messages if int(m.id) > int(after)]
        return messages[:limit]

    async def edit_message(self, channel_id, message_id, content=None, embeds=None):
        self._mutate("edit_message", channel_id, message_id, content, embeds)
        message = self.messages[channel_id][message_id]
        updated = replace(
            message,
            content=content if content is not None else message.content,
            embed_count=len(embeds) if embeds is not None else message.embed_count,
            edited_at=datetime.now(timezone.utc),
        )
        self.messages[channel_id][message_id] = updated
        return updated

    async def delete_message(self, channel_id, message_id, reason=None):
        self._mutate("delete_message", channel_id, message_id, reason)
        self.messages.get(channel_id, {}).pop(message_id, None)

    async def add_reaction(self, channel_id, message_id, emoji):
        self._mutate("add_reaction", channel_id, message_id, emoji)

    async def pin_message(self, channel_id, message_id, reason=None):
        self._mutate("pin_message", channel_id, message_id, reason)

    async def unpin_message(self, channel_id, message_id, reason=None):
        self._mutate("unpin_message", channel_id, message_id, reason)

    async def bulk_delete(self, channel_id, message_ids, reason=None):
        self._mutate("bulk_delete", channel_id, list(message_ids), reason)
        for message_id in message_ids:
            self.messages.get(channel_id, {}).pop(message_id, None)
        return len(message_ids)

    # --- channels and threads ------------------------------------------------

    async def create_channel(self, guild_id, kind, name, options):
        self._mutate("create_channel", guild_id, kind, name, dict(options))
        channel = ChannelView(
            id=self._next_id(),
            name=name,
            kind=kind,
            guild_id=guild_id,
            parent_id=options.get("parent_id"),
            topic=options.get("topic"),
            nsfw=bool(options.get("nsfw", False)),
            slowmode_seconds=options.get("slowmode_seconds") or 0,
        )
        self.channels[channel.id] = channel
        return channel

    async def edit_channel(self, channel_id, changes, reason=None):
        self._mutate("edit_channel", channel_id, dict(changes), reason)
        known = {f.name for f in fields(ChannelView)}
        updated = replace(self.channels[channel_id], **{k: v for k, v in changes.items() if k in known})
        self.channels[channel_id] = updated
        return updated

    async def delete_channel(self, channel_id, reason=None):
        self._mutate("delete_channel", channel_id, reason)
        self.channels.pop(channel_id, None)

    async def list_channels(self, guild_id):
        self._read("list_channels")
        return [c for c in self.channels.values() if c.guild_id == guild_id and not c.kind.is_thread]

    async def set_permission_overwrite(self, channel_id, target_id, target_type, allow, deny, reason=None):
        self._mutate("set_permission_overwrite", channel_id, target_id, target_type, allow, deny, reason)

    async def create_thread(self, channel_id, name, options):
        self._mutate("create_thread", channel_id, name, dict(options))
        parent = self.channels[channel_id]
        kind = ChannelKind.PRIVATE_THREAD if options.get("private") else ChannelKind.PUBLIC_THREAD
        thread = ChannelView(
            id=self._next_id(),
            name=name,
            kind=kind,
            guild_id=parent.guild_id,
            parent_id=parent.id,
            owner_id=self._user_id,
        )
        self.channels[thread.id] = thread
        return thread

    async def list_threads(self, channel_id, include_archived, limit):
        self._read("list_threads")
        threads = [
            c
            for c in self.channels.values()
            if c.kind.is_thread and c.parent_id == channel_id and (include_archived or not c.archived)
        ]
        return threads[:limit]

    # --- guild administration --------------------------------------------------

    async def edit_guild(self, guild_id, changes, reason=None):
        self._mutate("edit_guild", guild_id, dict(changes), reason)
        updated = replace(self.guilds[guild_id], **dict(changes))
        self.guilds[guild_id] = updated
        return updated

    async def audit_logs(self, guild_id, limit, user_id=None, action=None):
        self._read("audit_logs")
        entries = [
            e
            for e in self.audit_entries
            if (user_id is None or e.user_id == user_id) and (action is None or e.action == action)
        ]
        return entries[:limit]

    async def list_webhooks(self, guild_id, channel_id=None):
        return [w for w in self.webhooks if channel_id is None or w.channel_id == channel_id]

    async def create_webhook(self, channel_id, name, reason=None):
        self._mutate("create_webhook", channel_id, name, reason)
        webhook = WebhookView(id=self._next_id(), name=name, channel_id=channel_id, creator_id=self._user_id)
        self.webhooks.append(webhook)
        return webhook

    async def list_invites(self, guild_id):
        return list(self.invites)

    async def create_invite(self, channel_id, options):
        self._mutate("create_invite", channel_id, dict(options))
        return InviteView(
            code="aBcD1234",
            channel_id=channel_id,
            inviter_id=self._user_id,
            max_uses=options.get("max_uses", 0),
            max_age_seconds=options.get("max_age_seconds", 0),
            temporary=options.get("temporary", False),
        )

    # --- roles and members -------------------------------------------------------

    async def list_roles(self, guild_id):
        return [role for (gid, _), role in self.roles.items() if gid == guild_id]

    async def create_role(self, guild_id, options):
        self._mutate("create_role", guild_id, dict(options))
        role = RoleView(
            id=self._next_id(),
            guild_id=guild_id,
            name=options["name"],
            color=options.get("color") or 0,
            hoist=options.get("hoist", False),
            mentionable=options.get("mentionable", False),
            permissions=frozenset(options.get("permissions") or ()),
            position=1,
        )
        self.roles[(guild_id, role.id)] = role
        return role

    async def delete_role(self, guild_id, role_id, reason=None):
        self._mutate("delete_role", guild_id, role_id, reason)

    async def add_member_role(self, guild_id, user_id, role_id, reason=None):
        self._mutate("add_member_role", guild_id, user_id, role_id, reason)

    async def remove_member_role(self, guild_id, user_id, role_id, reason=None):
        self._mutate("remove_member_role", guild_id, user_id, role_id, reason)

    async def list_members(self, guild_id, limit, after=None):
        members = sorted(
            (m for (gid, _), m in self.members.items() if gid == guild_id),
            key=lambda m: int(m.id),
        )
        if after:
            members = [m for m in members if int(m.id) > int(after)]
        return members[:limit]

    async def set_nickname(self, guild_id, user_id, nickname, reason=None):
        self._mutate("set_nickname", guild_id, user_id, nickname, reason)
        updated = replace(self.members[(guild_id, user_id)], nick=nickname)
        self.members[(guild_id, user_id)] = updated
        return updated

    async def timeout_member(self, guild_id, user_id, until, reason=None):
        self._mutate("timeout_member", guild_id, user_id, until, reason)
        updated = replace(self.members[(guild_id, user_id)], timed_out_until=until)
        self.members[(guild_id, user_id)] = updated
        return updated

    async def kick_member(self, guild_id, user_id, reason=None):
        self._mutate("kick_member", guild_id, user_id, reason)

    async def ban_member(self, guild_id, user_id, reason=None, delete_message_seconds=0):
        self._mutate("ban_member", guild_id, user_id, reason, delete_message_seconds)

    async def unban_member(self, guild_id, user_id, reason=None):
        self._mutate("unban_member", guild_id, user_id, reason)

    async def list_bans(self, guild_id, limit):
        return self.bans[:limit]


def seed(session: FakeSession) -> FakeSession:
    """Populate ``session`` with the standard test guild."""
    session.guilds[GUILD_ID] = GuildView(
        id=GUILD_ID,
        name="Test Guild",
        owner_id=OWNER_ID,
        description="A guild for tests",
        member_count=5,
        channel_count=6,
        role_count=4,
    )
    session.guilds[OTHER_GUILD_ID] = GuildView(id=OTHER_GUILD_ID, name="Other Guild", owner_id=OWNER_ID)
    session.guild_perms[GUILD_ID] = STANDARD_PERMISSIONS
    session.guild_perms[OTHER_GUILD_ID] = STANDARD_PERMISSIONS

    for channel in (
        ChannelView(id=TEXT_CHANNEL_ID, name="general", kind=ChannelKind.TEXT, guild_id=GUILD_ID, position=1),
        ChannelView(id=VOICE_CHANNEL_ID, name="Lounge", kind=ChannelKind.VOICE, guild_id=GUILD_ID, position=3),
        ChannelView(id=CATEGORY_ID, name="Community", kind=ChannelKind.CATEGORY, guild_id=GUILD_ID, position=0),
        ChannelView(id=FORUM_CHANNEL_ID, name="help", kind=ChannelKind.FORUM, guild_id=GUILD_ID, position=2),
        ChannelView(
            id=THREAD_ID,
            name="Release Planning",
            kind=ChannelKind.PUBLIC_THREAD,
            guild_id=GUILD_ID,
            parent_id=TEXT_CHANNEL_ID,
        ),
        ChannelView(
            id=ARCHIVED_THREAD_ID,
            name="Old planning notes",
            kind=ChannelKind.PUBLIC_THREAD,
            guild_id=GUILD_ID,
            parent_id=TEXT_CHANNEL_ID,
            archived=True,
        ),
        ChannelView(id=DM_CHANNEL_ID, name="dm", kind=ChannelKind.DM),
        ChannelView(id=OTHER_GUILD_CHANNEL_ID, name="elsewhere", kind=ChannelKind.TEXT, guild_id=OTHER_GUILD_ID),
    ):
        session.channels[channel.id] = channel

    session.messages[TEXT_CHANNEL_ID] = {
        USER_MESSAGE_ID: MessageView(
            id=USER_MESSAGE_ID,
            channel_id=TEXT_CHANNEL_ID,
            guild_id=GUILD_ID,
            author_id=USER_ID,
            author_name="alice",
            content="hello",
            created_at=_ago(minutes=5),
        ),
        BOT_MESSAGE_ID: MessageView(
            id=BOT_MESSAGE_ID,
            channel_id=TEXT_CHANNEL_ID,
            guild_id=GUILD_ID,
            author_id=BOT_ID,
            author_name="discord-mcp",
            author_is_bot=True,
            content="beep",
            created_at=_ago(minutes=1),
        ),
    }

    for member in (
        MemberView(id=BOT_ID, guild_id=GUILD_ID, name="discord-mcp", display_name="discord-mcp", is_bot=True,
                   top_role_position=10),
        MemberView(id=OWNER_ID, guild_id=GUILD_ID, name="owner", display_name="Owner", is_owner=True,
                   top_role_position=30),
        MemberView(id=USER_ID, guild_id=GUILD_ID, name="alice", display_name="Alice", role_ids=(LOW_ROLE_ID,),
                   top_role_position=3),
        MemberView(id=SENIOR_USER_ID, guild_id=GUILD_ID, name="bob", display_name="Bob",
                   role_ids=(HIGH_ROLE_ID,), top_role_position=20),
        MemberView(id=BOT_USER_ID, guild_id=GUILD_ID, name="helper", display_name="Helper", is_bot=True,
                   top_role_position=2),
    ):
        session.members[(member.guild_id, member.id)] = member

    for role in (
        RoleView(id=GUILD_ID, guild_id=GUILD_ID, name="@everyone", position=0),
        RoleView(id=LOW_ROLE_ID, guild_id=GUILD_ID, name="Member", position=3),
        RoleView(id=HIGH_ROLE_ID, guild_id=GUILD_ID, name="Moderator", position=20),
        RoleView(id=MANAGED_ROLE_ID, guild_id=GUILD_ID, name="Integration", position=2, managed=True),
    ):
        session.roles[(role.guild_id, role.id)] = role
    return session


class FakeFactory:
    """Opens queued outcomes in order: a session is returned, an exception raised.

    When the queue runs dry every further open fails with ``exhausted``.
    """

    def __init__(self, outcomes=(), exhausted: Optional[Exception] = None):
        self.outcomes = list(outcomes)
        self.exhausted = exhausted or ConnectionError("no more sessions")
        self.opened = 0

    async def open(self):
        self.opened += 1
        if not self.outcomes:
            raise self.exhausted
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ToolRecorder:
    """Stands in for FastMCP: captures the functions tools register."""

    def __init__(self):
        self.tools: Dict[str, Any] = {}
        self.prompts: Dict[str, Any] = {}

    def tool(self, name=None, **kwargs):
        def decorator(fn):
            self.tools[name or fn.__name__] = fn
            return fn

        return decorator

    def prompt(self, name=None, **kwargs):
        def decorator(fn):
            self.prompts[name or fn.__name__] = fn
            return fn

        return decorator

    def __getitem__(self, name):
        return self.tools[name]


@pytest.fixture
def session():
    """A seeded fake session with standard (non-administrator) permissions."""
    return seed(FakeSession())


@pytest.fixture
def manager(session):
    """Connection manager stand-in that always hands out ``session``."""
    mock = MagicMock(spec=ConnectionManager)
    mock.get_session.return_value = session
    return mock


@pytest.fixture
def executor(manager):
    return OperationExecutor(manager)


@pytest.fixture
def tools(executor):
    """Every operation tool, registered against the fake session."""
    recorder = ToolRecorder()
    register_operation_tools(recorder, executor)
    return recorder


def error_code(response: Dict[str, Any]) -> str:
    assert response["success"] is False, response
    return response["data"]["error_code"]
