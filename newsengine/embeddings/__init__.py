"""
Embedding backends.

Supports the OpenAI API and self-hosted OpenAI-compatible servers behind one interface.
"""

from .base import EmbeddingBatch, EmbeddingProvider, EmbeddingResult
from .openai import LocalEmbeddingProvider, OpenAIEmbeddingProvider
from .factory import (
    EmbeddingProviderType,
    create_embedding_provider,
    get_embedding_provider_from_env,
)

__all__ = [
    "EmbeddingBatch",
    "EmbeddingProvider",
    "EmbeddingResult",
    "LocalEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "EmbeddingProviderType",
    "create_embedding_provider",
    "get_embedding_provider_from_env",
]
