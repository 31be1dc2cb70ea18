"""Tests for member lookup and member moderation tools."""

import logging
from datetime import datetime, timezone

import pytest

from conftest import (
    BOT_ID,
    BOT_USER_ID,
    GUILD_ID,
    MISSING_ID,
    OWNER_ID,
    SENIOR_USER_ID,
    USER_ID,
    error_code,
)

AUDIT_LOGGER = "discord_mcp.core.observability.audit.audit"


class TestLookup:
    @pytest.mark.asyncio
    async def test_member_info(self, tools):
        response = await tools["get_member_info"](guild_id=GUILD_ID, user_id=USER_ID)
        member = response["data"]["member"]
        assert member["display_name"] == "Alice"
        assert member["roles"] == ["555555555555555551"]

    @pytest.mark.asyncio
    async def test_member_missing(self, tools):
        response = await tools["get_member_info"](guild_id=GUILD_ID, user_id=MISSING_ID)
        assert error_code(response) == "MEMBER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_paginates(self, tools):
        first = await tools["list_members"](guild_id=GUILD_ID, limit=2)
        assert [m["id"] for m in first["data"]["members"]] == [BOT_ID, OWNER_ID]
        assert first["data"]["has_more"] is True

        rest = await tools["list_members"](guild_id=GUILD_ID, after=OWNER_ID)
        assert [m["id"] for m in rest["data"]["members"]] == [USER_ID, SENIOR_USER_ID, BOT_USER_ID]
        assert rest["data"]["has_more"] is False


class TestKick:
    @pytest.mark.asyncio
    async def test_kick_lower_member(self, tools, session, caplog):
        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER):
            response = await tools["kick_member"](guild_id=GUILD_ID, user_id=USER_ID, reason="spam")

        assert response["data"]["kicked"] is True
        assert session.called("kick_member") == [(GUILD_ID, USER_ID, "spam")]
        actions = [r.audit["details"].get("action") for r in caplog.records if hasattr(r, "audit")]
        assert "kick" in actions

    @pytest.mark.asyncio
    async def test_owner_cannot_be_kicked(self, tools, session):
        response = await tools["kick_member"](guild_id=GUILD_ID, user_id=OWNER_ID)
        assert response["data"]["details"]["capability"] == "RoleHierarchy"
        assert session.mutations == []

    @pytest.mark.asyncio
    async def test_bot_cannot_kick_itself(self, tools):
        response = await tools["kick_member"](guild_id=GUILD_ID, user_id=BOT_ID)
        assert response["data"]["details"]["field"] == "user_id"

    @pytest.mark.asyncio
    async def test_requires_kick_members(self, tools, session):
        session.guild_perms[GUILD_ID] = frozenset({"ban_members"})
        response = await tools["kick_member"](guild_id=GUILD_ID, user_id=USER_ID)
        assert response["data"]["details"]["capability"] == "KickMembers"


class TestBan:
    @pytest.mark.asyncio
    async def test_ban_member_with_history_purge(self, tools, session):
        response = await tools["ban_member"](guild_id=GUILD_ID, user_id=USER_ID, delete_message_seconds=3600)
        assert response["data"]["banned"] is True
        assert session.called("ban_member") == [(GUILD_ID, USER_ID, None, 3600)]

    @pytest.mark.asyncio
    async def test_ban_user_who_left(self, tools, session):
        response = await tools["ban_member"](guild_id=GUILD_ID, user_id=MISSING_ID)
        assert response["success"] is True
        assert response["summary"] == f"Banned {MISSING_ID} from Test Guild"

    @pytest.mark.asyncio
    async def test_higher_member_refused(self, tools, session):
        response = await tools["ban_member"](guild_id=GUILD_ID, user_id=SENIOR_USER_ID)
        assert error_code(response) == "PERMISSION_DENIED"
        assert session.mutations == []

    @pytest.mark.asyncio
    async def test_purge_window_bound(self, tools):
        response = await tools["ban_member"](guild_id=GUILD_ID, user_id=USER_ID, delete_message_seconds=604801)
        assert response["data"]["details"]["field"] == "delete_message_seconds"

    @pytest.mark.asyncio
    async def test_unban(self, tools, session):
        response = await tools["unban_member"](guild_id=GUILD_ID, user_id=MISSING_ID)
        assert response["data"]["banned"] is False
        assert session.called("unban_member") == [(GUILD_ID, MISSING_ID, None)]


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout(self, tools, session):
        before = datetime.now(timezone.utc)
        response = await tools["timeout_member"](guild_id=GUILD_ID, user_id=USER_ID, duration_minutes=60)

        until = datetime.fromisoformat(response["data"]["timed_out_until"])
        assert 3590 <= (until - before).total_seconds() <= 3660
        assert response["summary"] == "Timed out Alice for 60 minutes"

    @pytest.mark.asyncio
    async def test_zero_lifts_timeout(self, tools, session):
        response = await tools["timeout_member"](guild_id=GUILD_ID, user_id=USER_ID, duration_minutes=0)
        assert response["data"]["timed_out_until"] is None
        assert session.called("timeout_member")[0][2] is None

    @pytest.mark.asyncio
    async def test_duration_bound(self, tools):
        response = await tools["timeout_member"](guild_id=GUILD_ID, user_id=USER_ID, duration_minutes=40321)
        assert "40320" in response["data"]["remediation"]

    @pytest.mark.asyncio
    async def test_requires_moderate_members(self, tools, session):
        session.guild_perms[GUILD_ID] = frozenset({"kick_members"})
        response = await tools["timeout_member"](guild_id=GUILD_ID, user_id=USER_ID, duration_minutes=5)
        assert response["data"]["details"]["capability"] == "ModerateMembers"
