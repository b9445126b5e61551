"""LLM module - provides unified interface for LLM API providers."""

from .base import LLMProvider, LLMMessage, LLMStreamChunk
from .openai_provider import OpenAIProvider
from .azure_provider import AzureOpenAIProvider
from .factory import create_llm_provider, create_llm_provider_from_settings

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMStreamChunk',
    'OpenAIProvider',
    'AzureOpenAIProvider',
    'create_llm_provider',
    'create_llm_provider_from_settings',
]
