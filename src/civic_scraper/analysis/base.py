# ABOUTME: Protocol interface for LLM providers used by structural analysis
# ABOUTME: Defines the provider response model and the analysis error type

from typing import Protocol

from pydantic import BaseModel

from civic_scraper.extraction.base import ExtractionError


class AnalysisError(ExtractionError):
    """Raised when structural analysis cannot produce a usable ruleset.

    Covers LLM failures and timeouts, malformed JSON, and rulesets missing
    required selectors. A manifest is never saved from a failed analysis.
    """

    pass


class LLMResponse(BaseModel):
    text: str
    tokens_used: int | None = None


class LLMProvider(Protocol):
    """Protocol for a text-completion LLM backend."""

    @property
    def name(self) -> str: ...

    @property
    def model_name(self) -> str: ...

    async def generate(
        self, prompt: str, *, max_tokens: int = 2048, temperature: float = 0.1, top_p: float = 0.95
    ) -> LLMResponse:
        """Complete the prompt.

        Raises:
            LLMAPIError: If the provider call fails
        """
        ...
