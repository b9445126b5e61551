"""
Chat Models - sessions, messages and the request/response bodies of the chat API.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class ChatSession(BaseModel):
    """Conversation container owned by one user."""
    id: str
    display_id: str
    owner_id: str
    title: str = "New Chat"
    message_count: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ChatMessage(BaseModel):
    """
    One turn of a conversation.

    Assistant messages are created empty with ``is_streaming=True`` and grow
    chunk by chunk until finalized. ``error`` is set when the provider failed
    and the content is partial.
    """
    id: str
    session_id: str
    owner_id: str
    role: MessageRole
    content: str = ""
    tokens: int = Field(0, ge=0)
    credits_used: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    is_streaming: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class SessionCreate(BaseModel):
    """Body of POST /chat/sessions."""
    title: Optional[str] = Field(None, max_length=200)


class SessionUpdate(BaseModel):
    """Body of PATCH /chat/sessions/{id}."""
    title: str = Field(..., min_length=1, max_length=200)


class SessionPage(BaseModel):
    """Page of sessions, newest activity first."""
    sessions: List[ChatSession]
    total: int
    has_more: bool


class SendMessageRequest(BaseModel):
    """Body of POST /chat/sessions/{id}/messages."""
    content: str = Field(..., min_length=1, max_length=20000)
    include_context: bool = False


class MessageList(BaseModel):
    """
    Messages of a session in reading order.
    ``is_streaming`` tells the client whether to keep polling.
    """
    session_id: str
    messages: List[ChatMessage]
    is_streaming: bool


class ChatReply(BaseModel):
    """Outcome of one chat turn."""
    session_id: str
    message: ChatMessage
    tokens_used: int
    credits_used: int
    credits_remaining: Optional[int] = None  # None for unlimited plans
    failed: bool = False
    error: Optional[str] = None
