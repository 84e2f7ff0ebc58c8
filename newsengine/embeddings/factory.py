"""
Factory for embedding providers.
"""

from enum import Enum

from .base import EmbeddingProvider
from .openai import LocalEmbeddingProvider, OpenAIEmbeddingProvider


class EmbeddingProviderType(Enum):
    """Available embedding backends."""
    OPENAI = "openai"
    LOCAL = "local"


def create_embedding_provider(
    provider_type: EmbeddingProviderType | str,
    model: str,
    api_key: str | None = None,
    base_url: str | None = None,
) -> EmbeddingProvider:
    """
    Create an embedding provider instance.

    Raises:
        ValueError: If the provider type is unknown or missing its credentials
    """
    if isinstance(provider_type, str):
        try:
            provider_type = EmbeddingProviderType(provider_type.lower())
        except ValueError:
            raise ValueError(
                f"Unknown embedding provider: {provider_type}. "
                f"Available: {[p.value for p in EmbeddingProviderType]}"
            )

    if provider_type == EmbeddingProviderType.OPENAI:
        if not api_key:
            raise ValueError("OpenAI embeddings require OPENAI_API_KEY")
        return OpenAIEmbeddingProvider(api_key=api_key, model=model, base_url=base_url)
    if not base_url:
        raise ValueError("Local embeddings require EMBEDDING_BASE_URL")
    return LocalEmbeddingProvider(base_url=base_url, model=model)


def get_embedding_provider_from_env(
    provider: str | None,
    model: str,
    openai_key: str | None = None,
    base_url: str | None = None,
) -> EmbeddingProvider | None:
    """
    Build the configured provider, or None when it lacks credentials.
    """
    try:
        return create_embedding_provider(
            provider or EmbeddingProviderType.OPENAI.value,
            model=model,
            api_key=openai_key,
            base_url=base_url,
        )
    except ValueError:
        return None
