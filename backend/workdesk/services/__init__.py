"""Services module - chat, credits and context business logic."""

from .credits import CreditLedger, CREDIT_COSTS, CHAT_MESSAGE_COST
from .chat_sessions import ChatSessionStore
from .chat_messages import ChatMessageStore
from .chat_context import ContextAssembler, UserContext
from .chat import ChatService
from .registry import Services, init_services, get_services, set_llm_provider

__all__ = [
    'CreditLedger', 'CREDIT_COSTS', 'CHAT_MESSAGE_COST',
    'ChatSessionStore', 'ChatMessageStore',
    'ContextAssembler', 'UserContext',
    'ChatService',
    'Services', 'init_services', 'get_services', 'set_llm_provider',
]
