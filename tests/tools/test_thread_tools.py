"""Tests for the thread tools."""

import pytest

from conftest import (
    ARCHIVED_THREAD_ID,
    FORUM_CHANNEL_ID,
    MISSING_ID,
    TEXT_CHANNEL_ID,
    THREAD_ID,
    USER_MESSAGE_ID,
    VOICE_CHANNEL_ID,
    error_code,
)


class TestCreateThread:
    @pytest.mark.asyncio
    async def test_public_thread(self, tools, session):
        response = await tools["create_thread"](channel_id=TEXT_CHANNEL_ID, name="Side chat", auto_archive_minutes=1440)

        assert response["success"] is True
        assert response["data"]["parent_id"] == TEXT_CHANNEL_ID
        assert response["data"]["thread"]["type"] == "public_thread"
        [(parent_id, name, options)] = session.called("create_thread")
        assert (parent_id, name) == (TEXT_CHANNEL_ID, "Side chat")
        assert options["auto_archive_minutes"] == 1440
        assert options["private"] is False

    @pytest.mark.asyncio
    async def test_from_message(self, tools, session):
        response = await tools["create_thread"](channel_id=TEXT_CHANNEL_ID, name="Re: hello", message_id=USER_MESSAGE_ID)
        assert response["success"] is True
        assert session.called("create_thread")[0][2]["message_id"] == USER_MESSAGE_ID

    @pytest.mark.asyncio
    async def test_from_missing_message(self, tools, session):
        response = await tools["create_thread"](channel_id=TEXT_CHANNEL_ID, name="x", message_id=MISSING_ID)
        assert error_code(response) == "MESSAGE_NOT_FOUND"
        assert session.mutations == []

    @pytest.mark.asyncio
    async def test_private_thread_capability(self, tools, session):
        session.channel_perms[TEXT_CHANNEL_ID] = frozenset({"read_messages", "create_public_threads"})
        response = await tools["create_thread"](channel_id=TEXT_CHANNEL_ID, name="Staff", private=True)
        assert response["data"]["details"]["capability"] == "CreatePrivateThreads"

    @pytest.mark.asyncio
    async def test_private_thread_cannot_start_from_message(self, tools):
        response = await tools["create_thread"](
            channel_id=TEXT_CHANNEL_ID, name="x", message_id=USER_MESSAGE_ID, private=True
        )
        assert response["data"]["details"]["field"] == "private"

    @pytest.mark.asyncio
    async def test_forum_post_needs_content(self, tools, session):
        response = await tools["create_thread"](channel_id=FORUM_CHANNEL_ID, name="How do I deploy?")
        assert response["data"]["details"]["field"] == "content"
        assert session.mutations == []

    @pytest.mark.asyncio
    async def test_forum_post(self, tools, session):
        response = await tools["create_thread"](
            channel_id=FORUM_CHANNEL_ID, name="How do I deploy?", content="Steps I tried..."
        )
        assert response["success"] is True
        assert session.called("create_thread")[0][2]["content"] == "Steps I tried..."

    @pytest.mark.asyncio
    async def test_voice_channel_cannot_hold_threads(self, tools):
        response = await tools["create_thread"](channel_id=VOICE_CHANNEL_ID, name="x")
        assert response["data"]["details"]["field"] == "channel_id"

    @pytest.mark.asyncio
    async def test_auto_archive_choices(self, tools):
        response = await tools["create_thread"](channel_id=TEXT_CHANNEL_ID, name="x", auto_archive_minutes=30)
        assert response["data"]["details"]["field"] == "auto_archive_minutes"
        assert "10080" in response["data"]["remediation"]


class TestArchiveThread:
    @pytest.mark.asyncio
    async def test_archive_and_lock(self, tools, session):
        response = await tools["archive_thread"](thread_id=THREAD_ID)
        assert response["data"]["thread"]["archived"] is True
        assert response["data"]["thread"]["locked"] is True
        assert session.called("edit_channel")[0][1] == {"archived": True, "locked": True}

    @pytest.mark.asyncio
    async def test_archive_without_lock(self, tools, session):
        response = await tools["archive_thread"](thread_id=THREAD_ID, locked=False)
        assert response["data"]["thread"]["locked"] is False

    @pytest.mark.asyncio
    async def test_non_thread(self, tools):
        response = await tools["archive_thread"](thread_id=TEXT_CHANNEL_ID)
        assert error_code(response) == "THREAD_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_requires_manage_threads(self, tools, session):
        session.channel_perms[THREAD_ID] = frozenset({"read_messages"})
        response = await tools["archive_thread"](thread_id=THREAD_ID)
        assert response["data"]["details"]["capability"] == "ManageThreads"
        assert session.mutations == []


class TestFindThreads:
    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, tools):
        response = await tools["find_threads"](channel_id=TEXT_CHANNEL_ID, name="PLANNING")
        assert [t["id"] for t in response["data"]["threads"]] == [THREAD_ID]

    @pytest.mark.asyncio
    async def test_include_archived(self, tools):
        response = await tools["find_threads"](channel_id=TEXT_CHANNEL_ID, name="planning", include_archived=True)
        assert {t["id"] for t in response["data"]["threads"]} == {THREAD_ID, ARCHIVED_THREAD_ID}
        assert response["data"]["count"] == 2

    @pytest.mark.asyncio
    async def test_no_name_lists_all_active(self, tools):
        response = await tools["find_threads"](channel_id=TEXT_CHANNEL_ID)
        assert response["data"]["count"] == 1

    @pytest.mark.asyncio
    async def test_no_match_is_empty_success(self, tools):
        response = await tools["find_threads"](channel_id=TEXT_CHANNEL_ID, name="nothing like it")
        assert response["success"] is True
        assert response["data"]["threads"] == []
