# src/rag/embeddings/embedder_factory.py - v2
"""Factory: instantiate the embedding provider from configuration."""

from __future__ import annotations

import importlib
import logging

from paygent.config.settings import ConfigurationError, Settings
from paygent.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

_PROVIDER_REGISTRY: dict[str, str] = {
    "voyage": "paygent.rag.embeddings.voyage_embedder.VoyageEmbedder",
    "openai": "paygent.rag.embeddings.openai_embedder.OpenAIEmbedder",
}


class UnsupportedEmbeddingProviderError(ValueError):
    """Raised when an embedding provider is not registered."""


def create_embedder(settings: Settings) -> BaseEmbedder:
    """Instantiate the configured embedding provider.

    Args:
        settings: Application settings. Uses EMBEDDING_PROVIDER, EMBEDDING_MODEL
            and EMBEDDING_DIMENSIONS.

    Returns:
        Configured BaseEmbedder instance.

    Raises:
        UnsupportedEmbeddingProviderError: Unknown provider name.
        ConfigurationError: The provider's API key is missing.
    """
    provider = settings.embedding_provider
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedEmbeddingProviderError(
            f"Unsupported embedding provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    kwargs: dict = {
        "model": settings.embedding_model,
        "dimensions": settings.embedding_dimensions,
    }
    if provider == "voyage":
        kwargs["api_key"] = settings.voyage_api_key
    elif provider == "openai":
        kwargs["api_key"] = settings.openai_api_key

    if not kwargs.get("api_key"):
        raise ConfigurationError(f"API key for embedding provider {provider!r} is required")

    cls = _import_class(_PROVIDER_REGISTRY[provider])
    logger.debug("Creating embedder: provider=%s, model=%s", provider, settings.embedding_model)
    return cls(**kwargs)


def register_embedding_provider(name: str, class_path: str) -> None:
    """Register a custom embedding provider."""
    _PROVIDER_REGISTRY[name] = class_path


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
