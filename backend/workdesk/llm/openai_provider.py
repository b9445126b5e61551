"""
OpenAI-compatible LLM Provider.
Talks to any Chat Completions endpoint (OpenAI, or a gateway speaking the same API)
through httpx, including Server-Sent Events streaming.
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any, AsyncGenerator

from ..core.errors import ProviderFailureError
from .base import LLMProvider, LLMMessage, LLMStreamChunk

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    Provider for the OpenAI Chat Completions API.
    """

    provider_name = "openai"
    # Request field carrying the output token limit
    max_tokens_field = "max_tokens"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2000,
        timeout: float = 120.0,
        log_calls: bool = True,
    ):
        super().__init__(api_key, model, base_url.rstrip("/"), default_temperature, default_max_tokens)
        self.timeout = timeout
        # Request start/completion lines; failures are always logged
        self.log_calls = log_calls

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _build_payload(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float],
        max_tokens: Optional[int],
        **kwargs
    ) -> Dict[str, Any]:
        return {
            "model": kwargs.get("model", self.model),
            "messages": self._format_messages(messages),
            "temperature": temperature if temperature is not None else self.default_temperature,
            self.max_tokens_field: max_tokens or self.default_max_tokens,
        }

    def _log_request(self, payload: Dict[str, Any], messages: List[LLMMessage]) -> None:
        if self.log_calls and logger.isEnabledFor(logging.DEBUG):
            first = str(messages[0].content)[:200] if messages else ""
            logger.debug(
                f"LLM API stream starting: provider={self.provider_name}, "
                f"model={payload['model']}, {len(messages)} messages, first: {first}"
            )

    def _log_failure(self, error: Exception, payload: Dict[str, Any], start_time: float) -> None:
        logger.error(
            f"LLM API call failed: {str(error)}",
            exc_info=True,
            extra={"extra_fields": {
                "provider": self.provider_name,
                "model": payload.get("model"),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
                "error": str(error),
            }}
        )

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[LLMStreamChunk, None]:
        """Stream chat completion chunks, ending with a usage chunk."""
        start_time = time.time()
        payload = self._build_payload(messages, temperature, max_tokens, **kwargs)
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}
        self._log_request(payload, messages)

        content_length = 0
        usage_data: Dict[str, int] = {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST", self._completions_url(), json=payload, headers=self._get_headers()
                ) as response:
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        # SSE format: "data: {json}" or "data: [DONE]"
                        if not line.startswith("data: "):
                            continue
                        data_str = line[6:].strip()
                        if data_str == "[DONE]":
                            break

                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            logger.warning(f"Skipping malformed stream chunk: {data_str[:200]}")
                            continue

                        choices = chunk.get("choices") or []
                        if choices:
                            content = (choices[0].get("delta") or {}).get("content")
                            if content:
                                content_length += len(content)
                                yield LLMStreamChunk(content=content)

                        # Usage arrives in the last chunk
                        if chunk.get("usage"):
                            usage_data = chunk["usage"]

            if self.log_calls:
                logger.info(
                    "LLM API stream completed",
                    extra={"extra_fields": {
                        "provider": self.provider_name,
                        "model": payload.get("model", self.model),
                        "prompt_tokens": usage_data.get("prompt_tokens", 0),
                        "completion_tokens": usage_data.get("completion_tokens", 0),
                        "total_tokens": usage_data.get("total_tokens", 0),
                        "duration_ms": round((time.time() - start_time) * 1000, 2),
                        "content_length": content_length,
                    }}
                )
            yield LLMStreamChunk(usage=usage_data)

        except httpx.HTTPError as e:
            self._log_failure(e, payload, start_time)
            raise ProviderFailureError(f"{self.provider_name} request failed: {e}") from e
        except Exception as e:
            self._log_failure(e, payload, start_time)
            raise
