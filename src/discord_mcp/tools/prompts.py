"""Guided-workflow prompts for moderation and announcements."""

from typing import Collection, Dict

from mcp.server.fastmcp import FastMCP

MODERATION_LEVELS = ("light", "standard", "strict")

# Embed color suggested for each announcement type.
ANNOUNCEMENT_COLORS: Dict[str, int] = {
    "update": 0x0099FF,
    "event": 0x00FF00,
    "notice": 0xFFFF00,
    "alert": 0xFF0000,
}

_MODERATE_CHANNEL_TEMPLATE = """You are moderating a Discord channel.

Server ID: {guild_id}
Channel ID: {channel_id}
Moderation level: {level}

Guidelines:
1. Review recent messages for rule violations
2. Look for spam, harassment, or inappropriate content
3. React to flag messages that need a second look
4. Delete messages that clearly break the rules
5. Note every action you take and why

Before acting:
- Call connection_status if a tool reports not_connected
- Deleting other users' messages needs ManageMessages
- Weigh context and the author's history
- Keep actions consistent with the server's rules

Tools:
- read_messages: review recent history
- delete_message / bulk_delete_messages: remove violating content
- add_reaction: flag messages for review
- timeout_member: pause a disruptive member
- send_message: post moderation notices

What moderation action would you like to take?"""

_ANNOUNCEMENT_TEMPLATE = """Create a professional Discord announcement.

Channel ID: {channel_id}
Announcement type: {announcement_type}
Suggested embed color: {color} (0x{color:06X})

Good announcements:
1. Use an embed for formatting
2. Have a clear title and description
3. Use emoji sparingly for visual cues
4. Use the color to signal the announcement type
5. Include a timestamp or deadline when one applies
6. Invite reactions when asking for feedback

Send it with send_rich_message (one embed) or send_message (several embeds).

What is the content of your announcement?"""


def moderate_channel_prompt(guild_id: str, channel_id: str, moderation_level: str = "standard") -> str:
    if moderation_level not in MODERATION_LEVELS:
        raise ValueError(f"moderation_level must be one of: {', '.join(MODERATION_LEVELS)}")
    return _MODERATE_CHANNEL_TEMPLATE.format(guild_id=guild_id, channel_id=channel_id, level=moderation_level)


def create_announcement_prompt(channel_id: str, announcement_type: str = "notice") -> str:
    if announcement_type not in ANNOUNCEMENT_COLORS:
        raise ValueError(f"announcement_type must be one of: {', '.join(ANNOUNCEMENT_COLORS)}")
    return _ANNOUNCEMENT_TEMPLATE.format(
        channel_id=channel_id,
        announcement_type=announcement_type,
        color=ANNOUNCEMENT_COLORS[announcement_type],
    )


def register_prompts(mcp: FastMCP, *, disabled: Collection[str] = ()) -> None:
    """Register workflow prompts with the FastMCP server."""
    if "moderate-channel" not in disabled:
        mcp.prompt(
            name="moderate-channel",
            description="Guides moderation of a Discord channel",
        )(moderate_channel_prompt)
    if "create-announcement" not in disabled:
        mcp.prompt(
            name="create-announcement",
            description="Guides creation of a formatted Discord announcement",
        )(create_announcement_prompt)
