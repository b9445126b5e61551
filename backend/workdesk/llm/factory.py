"""
LLM Provider Factory - Creates the configured LLM provider instance.
"""

from typing import Optional
from .base import LLMProvider
from .openai_provider import OpenAIProvider
from .azure_provider import AzureOpenAIProvider


def create_llm_provider(
    provider: str = "openai",
    api_key: str = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance based on configuration.

    Args:
        provider: Provider name ("openai" or "azure")
        api_key: API key for the provider
        model: Model name, or deployment name for azure
        base_url: Custom base URL, or resource endpoint for azure
        **kwargs: Additional provider-specific parameters

    Returns:
        LLMProvider instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    params = {"api_key": api_key}
    if model:
        params["model"] = model
    if base_url:
        params["base_url"] = base_url
    params.update(kwargs)

    if provider == "openai":
        params.pop("api_version", None)
        return OpenAIProvider(**params)

    elif provider == "azure":
        if not model or not base_url:
            raise ValueError("Azure provider requires a deployment (model) and endpoint (base_url)")
        return AzureOpenAIProvider(**params)

    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def create_llm_provider_from_settings(config) -> Optional[LLMProvider]:
    """Build the provider described by the application settings, or None."""
    return create_llm_provider(
        provider=config.llm_provider,
        api_key=config.llm_api_key or "",
        model=config.llm_model,
        base_url=config.llm_base_url,
        api_version=config.llm_api_version,
        default_max_tokens=config.llm_max_tokens,
        timeout=config.llm_timeout,
        log_calls=config.log_llm_calls,
    )
