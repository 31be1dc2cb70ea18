"""Tests for AccessValidator identifier resolution."""

import pytest

from conftest import (
    CATEGORY_ID,
    DM_CHANNEL_ID,
    FORUM_CHANNEL_ID,
    GUILD_ID,
    LOW_ROLE_ID,
    MISSING_ID,
    OTHER_GUILD_CHANNEL_ID,
    TEXT_CHANNEL_ID,
    THREAD_ID,
    USER_ID,
    USER_MESSAGE_ID,
    VOICE_CHANNEL_ID,
)
from discord_mcp.core.access import AccessValidator
from discord_mcp.core.errors import EntityKind, ErrorKind, GatewayNotFound, GatewayRateLimited


@pytest.fixture
def access(session):
    return AccessValidator(session)


class TestResolveGuild:
    @pytest.mark.asyncio
    async def test_existing_guild(self, access):
        guild, error = await access.resolve_guild(GUILD_ID)
        assert error is None
        assert guild.name == "Test Guild"

    @pytest.mark.asyncio
    async def test_missing_guild_reports_literal_id(self, access):
        guild, error = await access.resolve_guild(MISSING_ID)
        assert guild is None
        assert error.code == "GUILD_NOT_FOUND"
        assert error.details["entity_id"] == MISSING_ID

    @pytest.mark.asyncio
    async def test_gateway_not_found_is_missing(self, session, access):
        session.failures["fetch_guild"] = GatewayNotFound()
        _, error = await access.resolve_guild(GUILD_ID)
        assert error.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_other_transport_faults_propagate(self, session, access):
        session.failures["fetch_guild"] = GatewayRateLimited(500)
        with pytest.raises(GatewayRateLimited):
            await access.resolve_guild(GUILD_ID)


class TestResolveChannel:
    @pytest.mark.asyncio
    async def test_text_channel(self, access):
        channel, error = await access.resolve_channel(TEXT_CHANNEL_ID, require_text=True)
        assert error is None
        assert channel.id == TEXT_CHANNEL_ID

    @pytest.mark.asyncio
    async def test_missing_channel(self, access):
        _, error = await access.resolve_channel(MISSING_ID)
        assert error.code == "CHANNEL_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_category_cannot_hold_messages(self, access):
        _, error = await access.resolve_channel(CATEGORY_ID, require_text=True)
        assert error.kind is ErrorKind.INVALID_INPUT
        assert error.details["field"] == "channel_id"

    @pytest.mark.asyncio
    async def test_voice_channel_accepts_messages(self, access):
        _, error = await access.resolve_channel(VOICE_CHANNEL_ID, require_text=True)
        assert error is None

    @pytest.mark.asyncio
    async def test_dm_rejected_when_guild_required(self, access):
        _, error = await access.resolve_channel(DM_CHANNEL_ID, require_guild=True)
        assert error.kind is ErrorKind.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_require_thread(self, access):
        thread, error = await access.resolve_channel(THREAD_ID, require_thread=True)
        assert error is None
        assert thread.kind.is_thread

    @pytest.mark.asyncio
    async def test_non_thread_reads_as_missing_thread(self, access):
        _, error = await access.resolve_channel(TEXT_CHANNEL_ID, require_thread=True)
        assert error.code == "THREAD_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_require_forum(self, access):
        _, ok = await access.resolve_channel(FORUM_CHANNEL_ID, require_forum=True)
        _, error = await access.resolve_channel(TEXT_CHANNEL_ID, require_forum=True, field_name="parent_id")
        assert ok is None
        assert error.details["field"] == "parent_id"

    @pytest.mark.asyncio
    async def test_channel_outside_guild_reads_as_missing(self, access):
        _, error = await access.resolve_channel(OTHER_GUILD_CHANNEL_ID, guild_id=GUILD_ID)
        assert error.code == "CHANNEL_NOT_FOUND"


class TestResolveScoped:
    @pytest.mark.asyncio
    async def test_message(self, access):
        channel, _ = await access.resolve_channel(TEXT_CHANNEL_ID)
        message, error = await access.resolve_message(channel, USER_MESSAGE_ID)
        assert error is None
        assert message.author_id == USER_ID

    @pytest.mark.asyncio
    async def test_missing_member(self, access):
        _, error = await access.resolve_member(GUILD_ID, MISSING_ID)
        assert error.code == "MEMBER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_generic_resolve_role(self, access):
        role, error = await access.resolve(EntityKind.ROLE, LOW_ROLE_ID, {"guild_id": GUILD_ID})
        assert error is None
        assert role.name == "Member"

    @pytest.mark.asyncio
    async def test_generic_resolve_message_through_channel(self, access):
        message, error = await access.resolve(EntityKind.MESSAGE, USER_MESSAGE_ID, {"channel_id": TEXT_CHANNEL_ID})
        assert error is None
        assert message.id == USER_MESSAGE_ID

    @pytest.mark.asyncio
    async def test_generic_resolve_requires_scope(self, access):
        _, error = await access.resolve(EntityKind.MEMBER, USER_ID)
        assert error.kind is ErrorKind.INVALID_INPUT
        assert error.details["field"] == "guild_id"

    @pytest.mark.asyncio
    async def test_generic_resolve_thread(self, access):
        _, error = await access.resolve(EntityKind.THREAD, TEXT_CHANNEL_ID)
        assert error.code == "THREAD_NOT_FOUND"
