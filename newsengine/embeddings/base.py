"""
Base embedding provider interface.

The pipeline treats vector computation as a black box: text in, a
fixed-length vector and a token count out.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class EmbeddingResult:
    """A single text's embedding."""
    embedding: list[float]
    tokens: int
    model: str


@dataclass
class EmbeddingBatch:
    """Embeddings for several texts, in input order."""
    embeddings: list[list[float]]
    total_tokens: int
    model: str


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding backends.

    Implementations provide a blocking `embed`; the async entry points run
    it in the default executor so SDK calls never block the event loop.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'openai', 'local')."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Return the embedding model identifier."""
        pass

    @property
    def is_local(self) -> bool:
        """Self-hosted backends cost nothing per token."""
        return False

    @abstractmethod
    def embed(self, texts: list[str]) -> EmbeddingBatch:
        """Compute embeddings for a batch of texts."""
        pass

    async def generate_embeddings(self, texts: list[str]) -> EmbeddingBatch:
        """Async batch embedding."""
        if not texts:
            return EmbeddingBatch(embeddings=[], total_tokens=0, model=self.model)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.embed, texts)

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Async single-text embedding."""
        batch = await self.generate_embeddings([text])
        return EmbeddingResult(
            embedding=batch.embeddings[0],
            tokens=batch.total_tokens,
            model=batch.model,
        )
