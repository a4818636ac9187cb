# src/llm/client_factory.py - v3
"""Factory: instantiate the reasoning LLM client from settings."""

from __future__ import annotations

import importlib
import logging

from paygent.config.settings import ConfigurationError, Settings
from paygent.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "paygent.llm.adapters.openai_adapter.OpenAIAdapter",
    "anthropic": "paygent.llm.adapters.anthropic_adapter.AnthropicAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(settings: Settings, **kwargs: object) -> BaseLLMClient:
    """Instantiate the configured LLM adapter.

    Args:
        settings: Application settings (provider, model and API keys).
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If the provider is not registered.
        ConfigurationError: If the provider's API key is missing.
    """
    provider = settings.llm_provider
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = settings.llm_model
    if provider == "openai":
        init_kwargs.setdefault("api_key", settings.openai_api_key)
    elif provider == "anthropic":
        init_kwargs.setdefault("api_key", settings.anthropic_api_key)

    if not init_kwargs.get("api_key"):
        raise ConfigurationError(f"API key for LLM provider {provider!r} is required")

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    logger.debug("Creating LLM client: provider=%s, model=%s", provider, settings.llm_model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter (fully qualified class path)."""
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
