"""
OpenAI provider implementation.
"""

from openai import OpenAI

from .base import LLMProvider, LLMResponse, ModelTier


class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider."""

    TIER_MODELS = {
        ModelTier.FAST: "gpt-4o-mini",
        ModelTier.STANDARD: "gpt-4o",
    }

    MODEL_ALIASES = {
        "fast": "gpt-4o-mini",
        "standard": "gpt-4o",
        "gpt4": "gpt-4o",
        "gpt4-mini": "gpt-4o-mini",
    }

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o-mini",
        organization: str | None = None,
        client=None,
    ):
        self.client = client or OpenAI(api_key=api_key, organization=organization)
        self._default_model = self._resolve_model(default_model)

    @property
    def name(self) -> str:
        return "openai"

    def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> LLMResponse:
        resolved_model = self._resolve_model(model) if model else self._default_model

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        response = self.client.chat.completions.create(
            model=resolved_model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        choice = response.choices[0]
        usage = response.usage

        return LLMResponse(
            text=choice.message.content or "",
            model=resolved_model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            metadata={
                "finish_reason": choice.finish_reason,
                "provider": "openai",
            }
        )
