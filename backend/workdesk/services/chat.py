"""
Chat Service - the "send message" action.

One call runs a whole chat turn:

1. check session ownership and credits (nothing is written if either fails)
2. persist the user's message
3. optionally gather the user's project/task context
4. create the streaming assistant placeholder
5. stream the provider reply into it chunk by chunk
6. finalize the message
7. debit the credits actually used

A provider failure does not abort the turn: the placeholder is finalized with
whatever content arrived plus an error marker, and the turn costs nothing.
Store errors (ownership, state, storage) propagate unchanged.
"""

import logging
from typing import List, Optional, Tuple

from ..core.errors import (
    InsufficientCreditsError, ProviderFailureError, UnauthenticatedError, WorkdeskError
)
from ..core.logging_config import LoggerAdapter
from ..llm.base import LLMMessage, LLMProvider
from ..models.chat import ChatMessage, ChatReply, MessageRole
from .chat_context import ContextAssembler
from .chat_messages import ChatMessageStore
from .chat_sessions import ChatSessionStore
from .credits import CHAT_MESSAGE_COST, CreditLedger

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI assistant for a task and project management application. "
    "You can help users with their projects, tasks, contacts, and general questions.\n\n"
    "Be concise, helpful, and professional. When referencing specific items, "
    "use their display IDs (e.g., TD-000001, PR-000001)."
)

PROVIDER_FAILURE_MARKER = "The AI response was interrupted. Please try again."
PROVIDER_NOT_CONFIGURED_MARKER = "The AI assistant is not configured."
EMPTY_RESPONSE_MARKER = "The AI returned an empty response. Please try again."
INSUFFICIENT_CREDITS_MARKER = "Not enough credits to complete this reply."


class ChatService:
    """Runs chat turns across the session, message, context and credit stores."""

    def __init__(
        self,
        sessions: ChatSessionStore,
        messages: ChatMessageStore,
        ledger: CreditLedger,
        context: ContextAssembler,
        llm_provider: Optional[LLMProvider] = None,
        history_limit: int = 10,
    ):
        self.sessions = sessions
        self.messages = messages
        self.ledger = ledger
        self.context = context
        self.llm_provider = llm_provider
        self.history_limit = history_limit

    @staticmethod
    def build_prompt(
        history: List[ChatMessage],
        user_message: str,
        user_context: str = ""
    ) -> List[LLMMessage]:
        """System prompt (with optional context), prior turns, then the new message."""
        system = SYSTEM_PROMPT
        if user_context:
            system = f"{SYSTEM_PROMPT}\n\n{user_context}"

        prompt = [LLMMessage.text("system", system)]
        for message in history:
            # Skip empty placeholders left by failed or orphaned turns
            if message.content:
                prompt.append(LLMMessage.text(message.role.value, message.content))
        prompt.append(LLMMessage.text("user", user_message))
        return prompt

    async def send_chat_message(
        self,
        user_id: Optional[str],
        session_id: str,
        message: str,
        include_context: bool = False,
    ) -> ChatReply:
        """
        Send a user message and stream the assistant's reply.

        Args:
            user_id: Authenticated caller
            session_id: Target session, must be owned by the caller
            message: User's text
            include_context: Add the user's projects/tasks to the prompt

        Returns:
            ChatReply: Finalized assistant message and credit accounting

        Raises:
            UnauthenticatedError: No caller identity
            NotFoundError / UnauthorizedError: Session lookup failed
            InsufficientCreditsError: Balance too low, before any write
        """
        if not user_id:
            raise UnauthenticatedError()

        log = LoggerAdapter(logger, {"user_id": user_id, "session_id": session_id})

        # Ownership check before any write
        await self.sessions.get_session(session_id, user_id)

        # Credit pre-check
        check = await self.ledger.check_credits(user_id, CHAT_MESSAGE_COST)
        if not check.has_enough:
            log.info(f"Chat turn rejected: {check.credits_remaining} credits left")
            raise InsufficientCreditsError(
                required=CHAT_MESSAGE_COST, available=check.credits_remaining or 0
            )

        # History is read before the new message is stored
        history = await self.messages.recent_messages(session_id, user_id, self.history_limit)
        await self.messages.save_message(session_id, user_id, MessageRole.USER, message)

        user_context = ""
        if include_context:
            context = await self.context.build_context(user_id)
            user_context = context.text
            log.debug(
                "Context attached to prompt",
                extra={"extra_fields": {
                    "project_count": context.project_count,
                    "task_count": context.task_count,
                }}
            )

        # Placeholder that clients see while the reply streams
        prompt = self.build_prompt(history, message, user_context)
        assistant = await self.messages.start(session_id, user_id)
        tokens, error = await self._stream_reply(assistant.id, user_id, prompt, log)

        # Only a complete reply is charged
        credits_used = CHAT_MESSAGE_COST if error is None else 0
        final = await self.messages.finalize(assistant.id, user_id, tokens, credits_used, error)

        if credits_used:
            try:
                balance = await self.ledger.debit(
                    user_id, credits_used, reason=f"Chat message in session {session_id}"
                )
            except InsufficientCreditsError as e:
                # Balance drained by a concurrent spend after the pre-check
                log.warning(f"Chat turn not charged: {e.message}")
                credits_used = 0
                error = INSUFFICIENT_CREDITS_MARKER
                final = await self.messages.finalize(assistant.id, user_id, tokens, credits_used, error)
                balance = await self.ledger.get_balance(user_id)
        else:
            balance = await self.ledger.get_balance(user_id)

        log.info(
            "Chat turn completed" if error is None else "Chat turn finished with failure",
            extra={"extra_fields": {
                "message_id": final.id,
                "tokens": tokens,
                "credits_used": credits_used,
                "failed": error is not None,
            }}
        )

        return ChatReply(
            session_id=session_id,
            message=final,
            tokens_used=tokens,
            credits_used=credits_used,
            credits_remaining=balance.credits_remaining,
            failed=error is not None,
            error=error,
        )

    async def _stream_reply(
        self,
        message_id: str,
        user_id: str,
        prompt: List[LLMMessage],
        log: LoggerAdapter,
    ) -> Tuple[int, Optional[str]]:
        """
        Pipe the provider stream into the placeholder message.

        Returns:
            (tokens reported by the provider, failure marker or None)
        """
        if self.llm_provider is None:
            log.error("No LLM provider configured, finalizing empty reply")
            return 0, PROVIDER_NOT_CONFIGURED_MARKER

        tokens = 0
        received = False
        try:
            async for chunk in self.llm_provider.chat_completion_stream(prompt):
                if chunk.content:
                    await self.messages.append_chunk(message_id, user_id, chunk.content)
                    received = True
                if chunk.usage is not None:
                    tokens = chunk.total_tokens
        except ProviderFailureError as e:
            log.error(f"AI provider failed mid-stream: {e.message}")
            return tokens, PROVIDER_FAILURE_MARKER
        except WorkdeskError:
            raise
        except Exception as e:
            log.error(f"AI provider failed mid-stream: {e}", exc_info=True)
            return tokens, PROVIDER_FAILURE_MARKER

        if not received:
            log.error("AI provider returned no content")
            return tokens, EMPTY_RESPONSE_MARKER
        return tokens, None
