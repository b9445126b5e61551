"""
Tests for chat sessions: creation, listing and ownership checks.
"""

import pytest

from workdesk.core.errors import NotFoundError, ResourceAccessError, UnauthorizedError
from workdesk.models import MessageRole
from workdesk.services.chat_messages import ChatMessageStore
from workdesk.services.chat_sessions import ChatSessionStore, format_display_id


@pytest.fixture
def sessions(store):
    return ChatSessionStore(store)


@pytest.fixture
def messages(store, sessions):
    return ChatMessageStore(store, sessions)


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_defaults(self, sessions):
        session = await sessions.create_session("alice")
        assert session.owner_id == "alice"
        assert session.title == "New Chat"
        assert session.message_count == 0
        assert session.display_id == "CS-000001"

    @pytest.mark.asyncio
    async def test_blank_title_falls_back(self, sessions):
        session = await sessions.create_session("alice", "   ")
        assert session.title == "New Chat"

    @pytest.mark.asyncio
    async def test_display_ids_are_sequential(self, sessions):
        first = await sessions.create_session("alice", "One")
        second = await sessions.create_session("bob", "Two")
        assert first.display_id == "CS-000001"
        assert second.display_id == "CS-000002"

    def test_format_display_id(self):
        assert format_display_id("CS", 42) == "CS-000042"


class TestListSessions:

    @pytest.mark.asyncio
    async def test_only_own_sessions(self, sessions):
        await sessions.create_session("alice", "A1")
        await sessions.create_session("bob", "B1")
        await sessions.create_session("alice", "A2")

        page = await sessions.list_sessions("alice")
        assert {s.title for s in page.sessions} == {"A1", "A2"}
        assert page.total == 2
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_newest_activity_first(self, sessions, messages):
        first = await sessions.create_session("alice", "first")
        await sessions.create_session("alice", "second")
        await sessions.create_session("alice", "third")
        await messages.save_message(first.id, "alice", MessageRole.USER, "bump")

        page = await sessions.list_sessions("alice")
        assert [s.title for s in page.sessions] == ["first", "third", "second"]

    @pytest.mark.asyncio
    async def test_pagination(self, sessions):
        for i in range(5):
            await sessions.create_session("alice", f"s{i}")

        page = await sessions.list_sessions("alice", limit=2, offset=2)
        assert len(page.sessions) == 2
        assert page.total == 5
        assert page.has_more is True

        last = await sessions.list_sessions("alice", limit=2, offset=4)
        assert len(last.sessions) == 1
        assert last.has_more is False


class TestSessionAccess:

    @pytest.mark.asyncio
    async def test_owner_can_read(self, sessions):
        created = await sessions.create_session("alice", "Mine")
        fetched = await sessions.get_session(created.id, "alice")
        assert fetched.id == created.id

    @pytest.mark.asyncio
    async def test_unknown_session(self, sessions):
        with pytest.raises(NotFoundError):
            await sessions.get_session("missing", "alice")

    @pytest.mark.asyncio
    async def test_foreign_session(self, sessions):
        created = await sessions.create_session("alice", "Mine")
        with pytest.raises(UnauthorizedError):
            await sessions.get_session(created.id, "mallory")

    @pytest.mark.asyncio
    async def test_not_found_and_unauthorized_look_alike(self, sessions):
        created = await sessions.create_session("alice", "Mine")

        with pytest.raises(ResourceAccessError) as missing:
            await sessions.get_session("missing", "mallory")
        with pytest.raises(ResourceAccessError) as foreign:
            await sessions.get_session(created.id, "mallory")

        assert missing.value.status_code == foreign.value.status_code == 404
        assert missing.value.to_dict() == foreign.value.to_dict()

    @pytest.mark.asyncio
    async def test_rename(self, sessions):
        created = await sessions.create_session("alice")
        renamed = await sessions.update_title(created.id, "alice", "  Planning  ")
        assert renamed.title == "Planning"
        assert renamed.updated_at >= created.updated_at

    @pytest.mark.asyncio
    async def test_rename_foreign_session_rejected(self, sessions):
        created = await sessions.create_session("alice", "Mine")
        with pytest.raises(UnauthorizedError):
            await sessions.update_title(created.id, "mallory", "Stolen")
        assert (await sessions.get_session(created.id, "alice")).title == "Mine"
