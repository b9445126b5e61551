"""
Chat Session Store - conversation containers and their message counters.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..core.errors import NotFoundError, UnauthorizedError
from ..models.chat import ChatSession, SessionPage
from ..storage.document_store import Document, DocumentStore

logger = logging.getLogger(__name__)

SESSIONS_COLLECTION = "chat_sessions"
DEFAULT_SESSION_TITLE = "New Chat"
SESSION_DISPLAY_PREFIX = "CS"


def format_display_id(prefix: str, sequence: int) -> str:
    """Human readable id, e.g. CS-000042."""
    return f"{prefix}-{sequence:06d}"


class ChatSessionStore:
    """Creates, lists and authorizes access to chat sessions."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_session(self, owner_id: str, title: Optional[str] = None) -> ChatSession:
        """
        Create an empty session.

        Args:
            owner_id: User creating the session
            title: Optional title, "New Chat" if empty

        Returns:
            ChatSession: The stored session
        """
        now = datetime.now(timezone.utc)
        sequence = await self.store.next_sequence(f"display_id:{SESSIONS_COLLECTION}")
        document = await self.store.insert(SESSIONS_COLLECTION, {
            "display_id": format_display_id(SESSION_DISPLAY_PREFIX, sequence),
            "owner_id": owner_id,
            "title": (title or "").strip() or DEFAULT_SESSION_TITLE,
            "message_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(
            f"Chat session created: {document['display_id']}",
            extra={"extra_fields": {"user_id": owner_id, "session_id": document["id"]}}
        )
        return ChatSession.model_validate(document)

    async def list_sessions(self, owner_id: str, limit: int = 50, offset: int = 0) -> SessionPage:
        """
        Sessions of a user, most recently updated first.

        Args:
            owner_id: Session owner
            limit: Page size
            offset: Number of sessions to skip

        Returns:
            SessionPage: sessions plus the total count of the user's sessions
        """
        documents = await self.store.query(
            SESSIONS_COLLECTION, where=lambda d: d.get("owner_id") == owner_id
        )
        sessions = [ChatSession.model_validate(d) for d in documents]
        # Newest-created first among sessions with equal timestamps (sort is stable)
        sessions.reverse()
        sessions.sort(key=lambda s: s.updated_at, reverse=True)

        page = sessions[offset:offset + limit]
        return SessionPage(
            sessions=page,
            total=len(sessions),
            has_more=len(sessions) > offset + limit,
        )

    async def get_owned_document(self, session_id: str, caller_id: str) -> Document:
        """Raw session document after the ownership check."""
        document = await self.store.get(SESSIONS_COLLECTION, session_id)
        if document is None:
            raise NotFoundError("Chat session", session_id)
        if document.get("owner_id") != caller_id:
            logger.warning(
                f"Rejected access to chat session {session_id}",
                extra={"extra_fields": {"user_id": caller_id, "session_id": session_id}}
            )
            raise UnauthorizedError("Chat session", session_id, caller_id)
        return document

    async def get_session(self, session_id: str, caller_id: str) -> ChatSession:
        """
        Fetch a session the caller owns.

        Raises:
            NotFoundError: The id doesn't resolve
            UnauthorizedError: The session belongs to another user
        """
        return ChatSession.model_validate(await self.get_owned_document(session_id, caller_id))

    async def update_title(self, session_id: str, caller_id: str, title: str) -> ChatSession:
        """Rename a session."""
        async with self.store.locked(SESSIONS_COLLECTION, session_id):
            document = await self.get_owned_document(session_id, caller_id)
            document["title"] = title.strip() or DEFAULT_SESSION_TITLE
            document["updated_at"] = datetime.now(timezone.utc)
            await self.store.replace(SESSIONS_COLLECTION, document)
        return ChatSession.model_validate(document)
