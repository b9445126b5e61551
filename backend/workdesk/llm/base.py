"""
LLM Provider Base - Abstract base for all LLM API providers.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, AsyncGenerator
from dataclasses import dataclass


@dataclass
class LLMMessage:
    """A message in a conversation sent to the model."""
    role: str  # "system", "user", "assistant"
    content: str

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text message."""
        return LLMMessage(role=role, content=text)


@dataclass
class LLMStreamChunk:
    """
    One item of a streamed completion.

    Content chunks carry text. The last item of a successful stream carries
    the token usage reported by the provider (and usually no text).
    """
    content: str = ""
    usage: Optional[Dict[str, int]] = None

    @property
    def total_tokens(self) -> int:
        if not self.usage:
            return 0
        if "total_tokens" in self.usage:
            return int(self.usage["total_tokens"])
        return int(self.usage.get("prompt_tokens", 0)) + int(self.usage.get("completion_tokens", 0))


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 2000):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[LLMStreamChunk, None]:
        """
        Stream a chat completion.

        Yields:
            LLMStreamChunk: text chunks in emission order, then a final chunk
            with token usage. May raise at any point.
        """
        pass

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to API-compatible format."""
        return [{"role": m.role, "content": m.content} for m in messages]
