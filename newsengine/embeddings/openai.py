"""
OpenAI embedding provider, plus a local variant for OpenAI-compatible servers.
"""

from openai import OpenAI, OpenAIError

from ..exceptions import EmbeddingError
from .base import EmbeddingBatch, EmbeddingProvider


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings from the OpenAI API."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        client: OpenAI | None = None,
    ):
        self.client = client or OpenAI(api_key=api_key, base_url=base_url or None)
        self._model = model

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    def embed(self, texts: list[str]) -> EmbeddingBatch:
        try:
            response = self.client.embeddings.create(model=self._model, input=texts)
        except OpenAIError as e:
            raise EmbeddingError(f"{self.name} embedding request failed: {e}") from e

        # The API may return items out of order; index restores input order
        data = sorted(response.data, key=lambda item: item.index)
        usage = getattr(response, "usage", None)
        return EmbeddingBatch(
            embeddings=[[float(v) for v in item.embedding] for item in data],
            total_tokens=usage.total_tokens if usage else 0,
            model=getattr(response, "model", None) or self._model,
        )


class LocalEmbeddingProvider(OpenAIEmbeddingProvider):
    """
    Self-hosted embeddings through an OpenAI-compatible endpoint
    (Ollama, LM Studio, text-embeddings-inference).
    """

    def __init__(
        self,
        base_url: str,
        model: str = "nomic-embed-text",
        api_key: str = "local",
        client: OpenAI | None = None,
    ):
        super().__init__(api_key=api_key, model=model, base_url=base_url, client=client)

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_local(self) -> bool:
        return True
