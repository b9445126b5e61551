"""
Chat API endpoints - sessions, messages and the send-message action.

Clients render streaming replies by polling GET /chat/sessions/{id}/messages
while the response reports ``is_streaming: true``.
"""

from fastapi import APIRouter, Depends, Query, status

from ..models import (
    ChatReply, ChatSession, MessageList, SendMessageRequest,
    SessionCreate, SessionPage, SessionUpdate
)
from ..services import Services, get_services
from ..utils.auth import get_current_user_id

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/sessions", response_model=ChatSession, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Start a new conversation."""
    return await services.sessions.create_session(user_id, body.title)


@router.get("/sessions", response_model=SessionPage)
async def list_sessions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """List the caller's sessions, most recently active first."""
    return await services.sessions.list_sessions(user_id, limit=limit, offset=offset)


@router.get("/sessions/{session_id}", response_model=ChatSession)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.sessions.get_session(session_id, user_id)


@router.patch("/sessions/{session_id}", response_model=ChatSession)
async def rename_session(
    session_id: str,
    body: SessionUpdate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.sessions.update_title(session_id, user_id, body.title)


@router.get("/sessions/{session_id}/messages", response_model=MessageList)
async def list_messages(
    session_id: str,
    limit: int = Query(100, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """
    Messages in reading order.

    Args:
        session_id: Session to read
        limit: Maximum number of messages (oldest first)
    """
    messages = await services.messages.list_messages(session_id, user_id, limit=limit)
    return MessageList(
        session_id=session_id,
        messages=messages,
        # Reflects the whole session, not just the returned page
        is_streaming=await services.messages.has_streaming_messages(session_id, user_id),
    )


@router.post("/sessions/{session_id}/messages", response_model=ChatReply)
async def send_message(
    session_id: str,
    body: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """
    Send a message and wait for the assistant's reply.

    A provider failure still answers 200 with ``failed: true`` and the partial
    reply; insufficient credits answer 402 before anything is stored.
    """
    return await services.chat.send_chat_message(
        user_id, session_id, body.content, include_context=body.include_context
    )
