"""
Chat Message Store - messages of a session and the streaming state machine.

An assistant reply goes through three states:

    Pending  --start()-->  Streaming  --finalize()-->  Finalized

While streaming, ``append_chunk`` grows the content in the order chunks are
applied. Finalized is terminal: later appends fail with
InvalidStreamStateError. ``finalize`` itself has no state precondition, so a
retried call just rewrites the same terminal fields.

Every insert (``start`` or ``save_message``) bumps the owning session's
``message_count`` while the session document is locked.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..core.errors import InvalidStreamStateError, NotFoundError, UnauthorizedError
from ..models.chat import ChatMessage, MessageRole
from ..storage.document_store import Document, DocumentStore
from .chat_sessions import SESSIONS_COLLECTION, ChatSessionStore

logger = logging.getLogger(__name__)

MESSAGES_COLLECTION = "chat_messages"


class ChatMessageStore:
    """Reads and writes chat messages on behalf of an authenticated caller."""

    def __init__(self, store: DocumentStore, sessions: ChatSessionStore):
        self.store = store
        self.sessions = sessions

    async def _insert(
        self,
        session_id: str,
        caller_id: str,
        role: MessageRole,
        content: str,
        tokens: int,
        credits_used: int,
        is_streaming: bool,
    ) -> ChatMessage:
        # Session lock keeps message_count in step with the inserts
        async with self.store.locked(SESSIONS_COLLECTION, session_id):
            session = await self.sessions.get_owned_document(session_id, caller_id)
            now = datetime.now(timezone.utc)
            message = await self.store.insert(MESSAGES_COLLECTION, {
                "session_id": session_id,
                "owner_id": caller_id,
                "role": role.value,
                "content": content,
                "tokens": tokens,
                "credits_used": credits_used,
                "created_at": now,
                "is_streaming": is_streaming,
                "error": None,
            })
            session["message_count"] = session.get("message_count", 0) + 1
            session["updated_at"] = now
            await self.store.replace(SESSIONS_COLLECTION, session)
        return ChatMessage.model_validate(message)

    async def save_message(
        self,
        session_id: str,
        caller_id: str,
        role: MessageRole,
        content: str,
        tokens: int = 0,
        credits_used: int = 0,
    ) -> ChatMessage:
        """
        Write a complete message in one shot (typically the user's turn).

        Args:
            session_id: Owning session
            caller_id: Authenticated user, must own the session
            role: Message author
            content: Full message text
            tokens: Token count, if known
            credits_used: Credits charged for the message

        Returns:
            ChatMessage: The stored, non-streaming message
        """
        return await self._insert(
            session_id, caller_id, MessageRole(role), content,
            tokens, credits_used, is_streaming=False
        )

    async def start(
        self,
        session_id: str,
        caller_id: str,
        role: MessageRole = MessageRole.ASSISTANT,
    ) -> ChatMessage:
        """
        Create an empty placeholder in the Streaming state.

        Raises:
            InvalidStreamStateError: role is not assistant
        """
        if MessageRole(role) != MessageRole.ASSISTANT:
            raise InvalidStreamStateError(None, "Only assistant messages can be streamed")

        message = await self._insert(
            session_id, caller_id, MessageRole.ASSISTANT, "",
            tokens=0, credits_used=0, is_streaming=True
        )
        logger.debug(f"Streaming message {message.id} started in session {session_id}")
        return message

    def _check_owner(self, document: Optional[Document], message_id: str, caller_id: str) -> Document:
        if document is None:
            raise NotFoundError("Message", message_id)
        if document.get("owner_id") != caller_id:
            logger.warning(
                f"Rejected access to message {message_id}",
                extra={"extra_fields": {"user_id": caller_id, "message_id": message_id}}
            )
            raise UnauthorizedError("Message", message_id, caller_id)
        return document

    async def get_message(self, message_id: str, caller_id: str) -> ChatMessage:
        document = await self.store.get(MESSAGES_COLLECTION, message_id)
        return ChatMessage.model_validate(self._check_owner(document, message_id, caller_id))

    async def append_chunk(self, message_id: str, caller_id: str, chunk: str) -> ChatMessage:
        """
        Append streamed text to a message in the Streaming state.

        Raises:
            NotFoundError: Unknown message id
            UnauthorizedError: Message belongs to another user
            InvalidStreamStateError: Message is already finalized
        """
        async with self.store.locked(MESSAGES_COLLECTION, message_id):
            document = self._check_owner(
                await self.store.get(MESSAGES_COLLECTION, message_id), message_id, caller_id
            )
            if not document.get("is_streaming"):
                logger.warning(
                    f"Append to finalized message {message_id} rejected",
                    extra={"extra_fields": {"message_id": message_id, "chunk_length": len(chunk)}}
                )
                raise InvalidStreamStateError(message_id, "Message is not in streaming state")

            # Chunks are appended in arrival order
            document["content"] = document.get("content", "") + chunk
            await self.store.replace(MESSAGES_COLLECTION, document)
        return ChatMessage.model_validate(document)

    async def finalize(
        self,
        message_id: str,
        caller_id: str,
        tokens: int,
        credits_used: int,
        error: Optional[str] = None,
    ) -> ChatMessage:
        """
        Move a message to the Finalized state with its final accounting.

        Args:
            message_id: Message to finalize
            caller_id: Authenticated user, must own the message
            tokens: Final token count
            credits_used: Credits charged for the message
            error: Failure marker when the content is partial

        Returns:
            ChatMessage: The finalized message
        """
        if tokens < 0 or credits_used < 0:
            raise ValueError("tokens and credits_used must be non-negative")

        async with self.store.locked(MESSAGES_COLLECTION, message_id):
            document = self._check_owner(
                await self.store.get(MESSAGES_COLLECTION, message_id), message_id, caller_id
            )
            document.update({
                "is_streaming": False,
                "tokens": tokens,
                "credits_used": credits_used,
                "error": error,
            })
            await self.store.replace(MESSAGES_COLLECTION, document)

        logger.debug(
            f"Message {message_id} finalized",
            extra={"extra_fields": {
                "message_id": message_id,
                "tokens": tokens,
                "credits_used": credits_used,
                "failed": error is not None,
            }}
        )
        return ChatMessage.model_validate(document)

    async def _session_messages(self, session_id: str, caller_id: str) -> List[ChatMessage]:
        # Ownership check raises before any message is read
        await self.sessions.get_session(session_id, caller_id)
        documents = await self.store.query(
            MESSAGES_COLLECTION, where=lambda d: d.get("session_id") == session_id
        )
        return [ChatMessage.model_validate(d) for d in documents]

    async def list_messages(self, session_id: str, caller_id: str, limit: int = 100) -> List[ChatMessage]:
        """
        Messages of a session in reading order (oldest first), at most ``limit``.

        Raises:
            NotFoundError / UnauthorizedError: session lookup failed
        """
        return (await self._session_messages(session_id, caller_id))[:limit]

    async def recent_messages(self, session_id: str, caller_id: str, limit: int = 10) -> List[ChatMessage]:
        """The last ``limit`` messages of a session, still oldest first."""
        messages = await self._session_messages(session_id, caller_id)
        return messages[-limit:] if limit > 0 else []

    async def has_streaming_messages(self, session_id: str, caller_id: str) -> bool:
        """Whether a client polling this session should keep polling."""
        return any(m.is_streaming for m in await self._session_messages(session_id, caller_id))
