"""
Service Registry - process-wide instances of the stores and the chat service.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings, settings
from ..llm.base import LLMProvider
from ..llm.factory import create_llm_provider_from_settings
from ..storage import DocumentStore, LocalStorage, StorageInterface
from .chat import ChatService
from .chat_context import ContextAssembler
from .chat_messages import ChatMessageStore
from .chat_sessions import ChatSessionStore
from .credits import CreditLedger

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class Services:
    store: DocumentStore
    ledger: CreditLedger
    sessions: ChatSessionStore
    messages: ChatMessageStore
    context: ContextAssembler
    chat: ChatService


_services: Optional[Services] = None


def init_services(
    storage: Optional[StorageInterface] = None,
    llm_provider=_UNSET,
    config: Settings = settings,
) -> Services:
    """
    Initialize the global service instances.

    Args:
        storage: Optional storage backend. If None, creates LocalStorage.
        llm_provider: Provider to use; if omitted, built from settings
            (None when no API key is configured)
        config: Settings to read defaults from

    Returns:
        Services: The initialized services
    """
    global _services
    if storage is None:
        storage = LocalStorage(config.local_storage_path)
    if llm_provider is _UNSET:
        llm_provider = create_llm_provider_from_settings(config)
    if llm_provider is None:
        logger.warning("LLM provider not configured, chat replies will be marked as failed")

    store = DocumentStore(storage)
    ledger = CreditLedger(store, free_tier_credits=config.free_tier_credits)
    sessions = ChatSessionStore(store)
    messages = ChatMessageStore(store, sessions)
    context = ContextAssembler(store)
    chat = ChatService(
        sessions, messages, ledger, context,
        llm_provider=llm_provider,
        history_limit=config.chat_history_limit,
    )
    _services = Services(store, ledger, sessions, messages, context, chat)
    return _services


def get_services() -> Services:
    """
    Get the global service instances.

    Raises:
        RuntimeError: If services have not been initialized
    """
    if _services is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services


def set_llm_provider(provider: Optional[LLMProvider]) -> None:
    """Swap the provider used by the chat service."""
    get_services().chat.llm_provider = provider
