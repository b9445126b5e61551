"""
Tests for chat messages and the streaming state machine.
"""

import asyncio
import pytest
import pytest_asyncio

from workdesk.core.errors import InvalidStreamStateError, NotFoundError, UnauthorizedError
from workdesk.models import MessageRole
from workdesk.services.chat_messages import ChatMessageStore
from workdesk.services.chat_sessions import ChatSessionStore


@pytest.fixture
def sessions(store):
    return ChatSessionStore(store)


@pytest.fixture
def messages(store, sessions):
    return ChatMessageStore(store, sessions)


@pytest_asyncio.fixture
async def session(sessions):
    return await sessions.create_session("alice", "Test")


class TestSaveMessage:

    @pytest.mark.asyncio
    async def test_save_user_message(self, messages, sessions, session):
        message = await messages.save_message(session.id, "alice", MessageRole.USER, "Hello")
        assert message.role == MessageRole.USER
        assert message.content == "Hello"
        assert message.is_streaming is False
        assert message.error is None

        updated = await sessions.get_session(session.id, "alice")
        assert updated.message_count == 1
        assert updated.updated_at >= session.updated_at

    @pytest.mark.asyncio
    async def test_save_into_foreign_session(self, messages, session):
        with pytest.raises(UnauthorizedError):
            await messages.save_message(session.id, "mallory", MessageRole.USER, "hi")

    @pytest.mark.asyncio
    async def test_save_into_missing_session(self, messages):
        with pytest.raises(NotFoundError):
            await messages.save_message("missing", "alice", MessageRole.USER, "hi")

    @pytest.mark.asyncio
    async def test_message_count_under_concurrency(self, messages, sessions, session):
        await asyncio.gather(*(
            messages.save_message(session.id, "alice", MessageRole.USER, f"m{i}")
            for i in range(10)
        ))
        assert (await sessions.get_session(session.id, "alice")).message_count == 10


class TestStreaming:

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, messages, sessions, session):
        placeholder = await messages.start(session.id, "alice")
        assert placeholder.is_streaming is True
        assert placeholder.content == ""
        assert (await sessions.get_session(session.id, "alice")).message_count == 1

        await messages.append_chunk(placeholder.id, "alice", "Hi")
        await messages.append_chunk(placeholder.id, "alice", " there!")
        final = await messages.finalize(placeholder.id, "alice", tokens=15, credits_used=3)

        assert final.content == "Hi there!"
        assert final.is_streaming is False
        assert final.tokens == 15
        assert final.credits_used == 3
        assert final.failed is False

    @pytest.mark.asyncio
    async def test_start_rejects_user_role(self, messages, session):
        with pytest.raises(InvalidStreamStateError):
            await messages.start(session.id, "alice", role=MessageRole.USER)

    @pytest.mark.asyncio
    async def test_append_after_finalize_rejected(self, messages, session):
        placeholder = await messages.start(session.id, "alice")
        await messages.append_chunk(placeholder.id, "alice", "done")
        await messages.finalize(placeholder.id, "alice", tokens=1, credits_used=3)

        with pytest.raises(InvalidStreamStateError):
            await messages.append_chunk(placeholder.id, "alice", "late")
        assert (await messages.get_message(placeholder.id, "alice")).content == "done"

    @pytest.mark.asyncio
    async def test_append_to_saved_message_rejected(self, messages, session):
        saved = await messages.save_message(session.id, "alice", MessageRole.USER, "hi")
        with pytest.raises(InvalidStreamStateError):
            await messages.append_chunk(saved.id, "alice", "more")

    @pytest.mark.asyncio
    async def test_finalize_is_idempotent(self, messages, session):
        placeholder = await messages.start(session.id, "alice")
        await messages.append_chunk(placeholder.id, "alice", "text")
        first = await messages.finalize(placeholder.id, "alice", tokens=4, credits_used=3)
        second = await messages.finalize(placeholder.id, "alice", tokens=4, credits_used=3)
        assert first.model_dump() == second.model_dump()

    @pytest.mark.asyncio
    async def test_finalize_with_error_keeps_partial_content(self, messages, session):
        placeholder = await messages.start(session.id, "alice")
        await messages.append_chunk(placeholder.id, "alice", "Part")
        final = await messages.finalize(
            placeholder.id, "alice", tokens=0, credits_used=0, error="[provider error]"
        )
        assert final.content == "Part"
        assert final.failed is True

    @pytest.mark.asyncio
    async def test_finalize_rejects_negative_values(self, messages, session):
        placeholder = await messages.start(session.id, "alice")
        with pytest.raises(ValueError):
            await messages.finalize(placeholder.id, "alice", tokens=-1, credits_used=0)

    @pytest.mark.asyncio
    async def test_foreign_caller_cannot_append(self, messages, session):
        placeholder = await messages.start(session.id, "alice")
        with pytest.raises(UnauthorizedError):
            await messages.append_chunk(placeholder.id, "mallory", "x")

    @pytest.mark.asyncio
    async def test_unknown_message(self, messages):
        with pytest.raises(NotFoundError):
            await messages.append_chunk("missing", "alice", "x")
        with pytest.raises(NotFoundError):
            await messages.finalize("missing", "alice", tokens=0, credits_used=0)

    @pytest.mark.asyncio
    async def test_chunks_keep_order(self, messages, session):
        placeholder = await messages.start(session.id, "alice")
        for word in ["a", "b", "c", "d", "e"]:
            await messages.append_chunk(placeholder.id, "alice", word)
        assert (await messages.get_message(placeholder.id, "alice")).content == "abcde"


class TestListing:

    @pytest.mark.asyncio
    async def test_list_in_reading_order(self, messages, session):
        for i in range(12):
            await messages.save_message(session.id, "alice", MessageRole.USER, f"m{i}")

        listed = await messages.list_messages(session.id, "alice")
        assert [m.content for m in listed] == [f"m{i}" for i in range(12)]

        limited = await messages.list_messages(session.id, "alice", limit=5)
        assert [m.content for m in limited] == [f"m{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_recent_messages_are_last_n(self, messages, session):
        for i in range(12):
            await messages.save_message(session.id, "alice", MessageRole.USER, f"m{i}")

        recent = await messages.recent_messages(session.id, "alice", limit=10)
        assert [m.content for m in recent] == [f"m{i}" for i in range(2, 12)]

    @pytest.mark.asyncio
    async def test_messages_scoped_to_session(self, messages, sessions, session):
        other = await sessions.create_session("alice", "Other")
        await messages.save_message(session.id, "alice", MessageRole.USER, "here")
        await messages.save_message(other.id, "alice", MessageRole.USER, "there")

        listed = await messages.list_messages(session.id, "alice")
        assert [m.content for m in listed] == ["here"]

    @pytest.mark.asyncio
    async def test_list_foreign_session_rejected(self, messages, session):
        with pytest.raises(UnauthorizedError):
            await messages.list_messages(session.id, "mallory")

    @pytest.mark.asyncio
    async def test_has_streaming_messages(self, messages, session):
        assert await messages.has_streaming_messages(session.id, "alice") is False
        placeholder = await messages.start(session.id, "alice")
        assert await messages.has_streaming_messages(session.id, "alice") is True
        await messages.finalize(placeholder.id, "alice", tokens=0, credits_used=0)
        assert await messages.has_streaming_messages(session.id, "alice") is False
