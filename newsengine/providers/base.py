"""
Base LLM provider interface.

Summarization talks to every backend through this interface.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class ModelTier(Enum):
    """Model capability tiers for automatic selection."""
    FAST = "fast"          # Haiku, GPT-4o-mini
    STANDARD = "standard"  # Sonnet, GPT-4o


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    metadata: dict = field(default_factory=dict)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Subclasses set TIER_MODELS and MODEL_ALIASES and implement `complete`.
    """

    TIER_MODELS: dict[ModelTier, str] = {}
    MODEL_ALIASES: dict[str, str] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name as recorded in the cost ledger."""
        pass

    def get_model_for_tier(self, tier: ModelTier) -> str:
        return self.TIER_MODELS[tier]

    def _resolve_model(self, model: str) -> str:
        """Resolve model alias to full model ID."""
        return self.MODEL_ALIASES.get(model, model)

    @abstractmethod
    def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """
        Generate a completion from the model.

        Args:
            user_prompt: The user message/prompt
            system_prompt: Optional system prompt for context
            model: Specific model to use (defaults to provider's default)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (0.0 = deterministic)

        Returns:
            LLMResponse with the generated text and token usage
        """
        pass

    async def complete_async(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Async version of complete; runs the blocking SDK call in an executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.complete(
                user_prompt=user_prompt,
                system_prompt=system_prompt,
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        )
