"""
Azure OpenAI LLM Provider.
Same wire format as OpenAI; the model is addressed through a deployment URL
and authenticated with an ``api-key`` header.
"""

from typing import Dict

from .openai_provider import OpenAIProvider


class AzureOpenAIProvider(OpenAIProvider):
    """
    Provider for an Azure OpenAI deployment.

    ``base_url`` is the resource endpoint (https://<name>.openai.azure.com)
    and ``model`` the deployment name.
    """

    provider_name = "azure"
    # Reasoning deployments (o1/o3 family) reject max_tokens
    max_tokens_field = "max_completion_tokens"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        api_version: str = "2024-08-01-preview",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2000,
        timeout: float = 120.0,
        log_calls: bool = True,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens, timeout, log_calls)
        self.api_version = api_version

    def _get_headers(self) -> Dict[str, str]:
        return {
            "api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _completions_url(self) -> str:
        return (
            f"{self.base_url}/openai/deployments/{self.model}/chat/completions"
            f"?api-version={self.api_version}"
        )
