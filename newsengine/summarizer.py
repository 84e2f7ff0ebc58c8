"""
Summarizer - LLM-powered article summaries for the ingestion pipeline.

Produces a short summary plus optional key points and topic tags, and
reports token usage so callers can record it in the cost ledger.
"""

import re
from dataclasses import dataclass, field

from .providers import LLMProvider
from .providers.base import ModelTier

_BULLET = re.compile(r"^(?:[-•·*]|\d+[.)])\s*")


@dataclass
class Summary:
    """Structured article summary."""
    summary: str
    key_points: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


class Summarizer:
    """Article summarizer backed by any LLMProvider."""

    # Maximum content length to send to API
    MAX_CONTENT_LENGTH = 15000
    MAX_KEY_POINTS = 5
    MAX_TOPICS = 5

    # Long or technical articles go to the standard tier
    LONG_ARTICLE_WORDS = 2000
    TECHNICAL_TERMS = [
        "algorithm", "neural", "quantum", "protocol", "cryptographic",
        "machine learning", "infrastructure", "distributed", "encryption",
        "semiconductor", "genomic", "theorem",
    ]

    SYSTEM_PROMPT = """You are an expert news editor. Write for a general educated audience.

- Use clear, plain language in active voice
- State what happened, why it matters and what comes next
- Never use meta-language such as 'This article explains...'"""

    def __init__(self, provider: LLMProvider, default_tier: ModelTier = ModelTier.FAST):
        self.provider = provider
        self.default_tier = default_tier

    def build_prompt(
        self,
        content: str,
        title: str = "",
        include_key_points: bool = True,
        include_topics: bool = True,
    ) -> str:
        """Instructions plus the article, truncated to MAX_CONTENT_LENGTH."""
        sections = ["SUMMARY:\n[Three to five sentences of prose]"]
        if include_key_points:
            sections.append("KEY POINTS:\n- [Specific fact or implication]\n- [...]")
        if include_topics:
            sections.append("TOPICS:\n[Comma-separated list of one to five short topic tags]")

        truncated = content[:self.MAX_CONTENT_LENGTH]
        if len(content) > self.MAX_CONTENT_LENGTH:
            truncated += "\n\n[Content truncated...]"

        title_line = f"Original title: {title}\n" if title else ""
        return (
            "Summarize the article below. Respond in exactly this format:\n\n"
            + "\n\n".join(sections)
            + f"\n\n{title_line}Article:\n{truncated}"
        )

    def select_tier(self, content: str) -> ModelTier:
        if len(content.split()) > self.LONG_ARTICLE_WORDS:
            return ModelTier.STANDARD
        lowered = content.lower()
        if sum(1 for term in self.TECHNICAL_TERMS if term in lowered) > 2:
            return ModelTier.STANDARD
        return self.default_tier

    async def summarize_async(
        self,
        content: str,
        title: str = "",
        include_key_points: bool = True,
        include_topics: bool = True,
    ) -> Summary:
        """Summarize one article through the provider."""
        tier = self.select_tier(content)
        response = await self.provider.complete_async(
            user_prompt=self.build_prompt(content, title, include_key_points, include_topics),
            system_prompt=self.SYSTEM_PROMPT,
            model=self.provider.get_model_for_tier(tier),
            max_tokens=1024,
        )

        summary = self.parse_response(response.text)
        if not include_key_points:
            summary.key_points = []
        if not include_topics:
            summary.topics = []
        summary.model = response.model
        summary.input_tokens = response.input_tokens
        summary.output_tokens = response.output_tokens
        return summary

    def parse_response(self, text: str) -> Summary:
        """Parse the sectioned LLM response into a Summary."""
        sections: dict[str, list[str]] = {"summary": [], "key points": [], "topics": []}
        current: str | None = None

        for line in text.strip().split("\n"):
            stripped = _strip_markdown(line)
            if not stripped:
                continue

            header = stripped.lower()
            matched = next((name for name in sections if header.startswith(f"{name}:")), None)
            if matched:
                current = matched
                rest = stripped.split(":", 1)[1].strip()
                if rest:
                    sections[current].append(rest)
                continue

            if current:
                sections[current].append(stripped)

        summary_text = " ".join(sections["summary"]).strip() or _strip_markdown(text)

        key_points = []
        for line in sections["key points"]:
            point = _BULLET.sub("", line).strip()
            if point:
                key_points.append(point)

        topics = []
        for line in sections["topics"]:
            for tag in line.lstrip("-• ").split(","):
                tag = tag.strip().strip(".")
                if tag and tag.lower() not in (t.lower() for t in topics):
                    topics.append(tag)

        return Summary(
            summary=summary_text,
            key_points=key_points[:self.MAX_KEY_POINTS],
            topics=topics[:self.MAX_TOPICS],
        )


def _strip_markdown(s: str) -> str:
    """Remove markdown headers and bold markers."""
    s = s.strip()
    while s.startswith("#"):
        s = s[1:].strip()
    return s.replace("**", "").strip()


def create_summarizer(provider: LLMProvider) -> Summarizer:
    """Factory function to create a Summarizer instance."""
    return Summarizer(provider=provider)
