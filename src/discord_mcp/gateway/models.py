"""Immutable snapshots of remote entities.

The gateway adapter returns these views instead of the client library's
objects. A view is a point-in-time copy taken for one call; nothing in the
server keeps views beyond that call.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ChannelKind(str, Enum):
    """Channel types exposed by the platform."""

    TEXT = "text"
    VOICE = "voice"
    CATEGORY = "category"
    NEWS = "news"
    STAGE = "stage"
    FORUM = "forum"
    MEDIA = "media"
    PUBLIC_THREAD = "public_thread"
    PRIVATE_THREAD = "private_thread"
    NEWS_THREAD = "news_thread"
    DM = "dm"
    GROUP = "group"
    UNKNOWN = "unknown"

    @property
    def is_thread(self) -> bool:
        return self in _THREAD_KINDS

    @property
    def is_text_based(self) -> bool:
        return self in _TEXT_BASED_KINDS

    @property
    def is_thread_parent(self) -> bool:
        return self in (ChannelKind.TEXT, ChannelKind.NEWS, ChannelKind.FORUM, ChannelKind.MEDIA)


_THREAD_KINDS = frozenset({ChannelKind.PUBLIC_THREAD, ChannelKind.PRIVATE_THREAD, ChannelKind.NEWS_THREAD})
_TEXT_BASED_KINDS = _THREAD_KINDS | {
    ChannelKind.TEXT,
    ChannelKind.NEWS,
    ChannelKind.VOICE,
    ChannelKind.STAGE,
    ChannelKind.DM,
    ChannelKind.GROUP,
}


@dataclass(frozen=True)
class GuildView:
    id: str
    name: str
    owner_id: Optional[str] = None
    description: Optional[str] = None
    member_count: Optional[int] = None
    icon_url: Optional[str] = None
    created_at: Optional[datetime] = None
    premium_tier: int = 0
    channel_count: int = 0
    role_count: int = 0
    verification_level: Optional[str] = None
    features: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "owner_id": self.owner_id,
            "member_count": self.member_count,
            "icon_url": self.icon_url,
            "created_at": _iso(self.created_at),
            "premium_tier": self.premium_tier,
            "channel_count": self.channel_count,
            "role_count": self.role_count,
            "verification_level": self.verification_level,
            "features": list(self.features),
        }


@dataclass(frozen=True)
class ChannelView:
    """A guild channel, thread, or direct-message channel."""

    id: str
    name: str
    kind: ChannelKind
    guild_id: Optional[str] = None
    parent_id: Optional[str] = None
    position: int = 0
    topic: Optional[str] = None
    nsfw: bool = False
    slowmode_seconds: int = 0
    created_at: Optional[datetime] = None
    archived: bool = False
    locked: bool = False
    owner_id: Optional[str] = None

    @property
    def in_guild(self) -> bool:
        return self.guild_id is not None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value,
            "guild_id": self.guild_id,
            "parent_id": self.parent_id,
            "position": self.position,
            "topic": self.topic,
            "nsfw": self.nsfw,
            "slowmode_seconds": self.slowmode_seconds,
            "created_at": _iso(self.created_at),
        }
        if self.kind.is_thread:
            payload.update(archived=self.archived, locked=self.locked, owner_id=self.owner_id)
        return payload


@dataclass(frozen=True)
class MessageView:
    id: str
    channel_id: str
    author_id: str
    author_name: str
    content: str = ""
    created_at: Optional[datetime] = None
    guild_id: Optional[str] = None
    author_is_bot: bool = False
    edited_at: Optional[datetime] = None
    pinned: bool = False
    embed_count: int = 0
    attachment_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "channel_id": self.channel_id,
            "author": {"id": self.author_id, "name": self.author_name, "bot": self.author_is_bot},
            "content": self.content,
            "timestamp": _iso(self.created_at),
            "edited_timestamp": _iso(self.edited_at),
            "pinned": self.pinned,
            "embeds": self.embed_count,
            "attachments": self.attachment_count,
        }


@dataclass(frozen=True)
class MemberView:
    id: str
    guild_id: str
    name: str
    display_name: str
    nick: Optional[str] = None
    is_bot: bool = False
    joined_at: Optional[datetime] = None
    role_ids: Tuple[str, ...] = ()
    top_role_position: int = 0
    is_owner: bool = False
    timed_out_until: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "nick": self.nick,
            "bot": self.is_bot,
            "joined_at": _iso(self.joined_at),
            "roles": list(self.role_ids),
            "timed_out_until": _iso(self.timed_out_until),
        }


@dataclass(frozen=True)
class RoleView:
    id: str
    guild_id: str
    name: str
    position: int = 0
    color: int = 0
    hoist: bool = False
    mentionable: bool = False
    managed: bool = False
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_default(self) -> bool:
        """The @everyone role shares its ID with the guild."""
        return self.id == self.guild_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "color": f"#{self.color:06x}",
            "hoist": self.hoist,
            "mentionable": self.mentionable,
            "managed": self.managed,
            "permissions": sorted(self.permissions),
        }


@dataclass(frozen=True)
class BanView:
    user_id: str
    user_name: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"user": {"id": self.user_id, "name": self.user_name}, "reason": self.reason}


@dataclass(frozen=True)
class InviteView:
    code: str
    channel_id: Optional[str] = None
    inviter_id: Optional[str] = None
    uses: int = 0
    max_uses: int = 0
    max_age_seconds: int = 0
    temporary: bool = False
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def url(self) -> str:
        return f"https://discord.gg/{self.code}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "url": self.url,
            "channel_id": self.channel_id,
            "inviter_id": self.inviter_id,
            "uses": self.uses,
            "max_uses": self.max_uses,
            "max_age_seconds": self.max_age_seconds,
            "temporary": self.temporary,
            "created_at": _iso(self.created_at),
            "expires_at": _iso(self.expires_at),
        }


@dataclass(frozen=True)
class WebhookView:
    """A channel webhook. The webhook token is never captured."""

    id: str
    name: str
    channel_id: Optional[str] = None
    guild_id: Optional[str] = None
    creator_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "channel_id": self.channel_id,
            "creator_id": self.creator_id,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class AuditLogEntryView:
    id: str
    action: str
    user_id: Optional[str] = None
    target_id: Optional[str] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "user_id": self.user_id,
            "target_id": self.target_id,
            "reason": self.reason,
            "created_at": _iso(self.created_at),
        }
