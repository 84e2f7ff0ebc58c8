"""
Anthropic Claude provider implementation.
"""

import anthropic

from .base import LLMProvider, LLMResponse, ModelTier


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider. The system prompt is marked cacheable."""

    TIER_MODELS = {
        ModelTier.FAST: "claude-haiku-4-5-20251001",
        ModelTier.STANDARD: "claude-sonnet-4-5-20250929",
    }

    MODEL_ALIASES = {
        "haiku": "claude-haiku-4-5-20251001",
        "sonnet": "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5": "claude-haiku-4-5-20251001",
        "claude-sonnet-4-5": "claude-sonnet-4-5-20250929",
    }

    def __init__(self, api_key: str, default_model: str = "claude-haiku-4-5", client=None):
        self.client = client or anthropic.Anthropic(api_key=api_key)
        self._default_model = self._resolve_model(default_model)

    @property
    def name(self) -> str:
        return "anthropic"

    def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> LLMResponse:
        resolved_model = self._resolve_model(model) if model else self._default_model

        kwargs = {
            "model": resolved_model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if temperature > 0:
            kwargs["temperature"] = temperature
        if system_prompt:
            kwargs["system"] = [{
                "type": "text",
                "text": system_prompt,
                "cache_control": {"type": "ephemeral"}
            }]

        response = self.client.messages.create(**kwargs)
        usage = response.usage

        return LLMResponse(
            text=response.content[0].text,
            model=resolved_model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            metadata={
                "stop_reason": response.stop_reason,
                "provider": "anthropic",
            }
        )
