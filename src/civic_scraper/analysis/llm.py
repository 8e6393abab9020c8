# ABOUTME: DSPy-backed LLM provider for structural analysis
# ABOUTME: Wraps dspy.LM (LiteLLM model strings) with tenacity retries and token accounting

from typing import Any

import dspy

from civic_scraper.analysis.base import LLMResponse
from civic_scraper.config import get_config
from civic_scraper.utils.logging import get_logger, log_api_call
from civic_scraper.utils.retry import LLMAPIError, llm_retry


def _output_text(output: Any) -> str:
    # Newer dspy releases return dicts when extra fields such as logprobs are present
    if isinstance(output, dict):
        return str(output.get("text") or "")
    return str(output or "")


class DSPyLLMProvider:
    """LLMProvider implementation on top of a dedicated dspy.LM instance.

    The LM is held by the provider rather than installed with dspy.configure,
    so several providers with different models can coexist in one process.
    """

    def __init__(self, model: str | None = None, api_key: str | None = None, lm: dspy.LM | None = None):
        config = get_config()
        self.logger = get_logger(__name__)
        self._model = model or config.llm_model
        key = api_key if api_key is not None else config.llm_api_key

        if lm is None and not key:
            self.logger.warning("No LLM API key configured - structural analysis calls may fail", model=self._model)

        self.lm = lm or dspy.LM(self._model, api_key=key or None, cache=False)

    @property
    def name(self) -> str:
        return self._model.split("/", 1)[0] if "/" in self._model else "litellm"

    @property
    def model_name(self) -> str:
        return self._model

    @llm_retry(max_attempts=3)
    @log_api_call("llm")
    async def generate(
        self, prompt: str, *, max_tokens: int = 2048, temperature: float = 0.1, top_p: float = 0.95
    ) -> LLMResponse:
        outputs = await self.lm.acall(prompt=prompt, max_tokens=max_tokens, temperature=temperature, top_p=top_p)
        if not outputs:
            raise LLMAPIError(f"LLM {self._model} returned no completions")

        return LLMResponse(text=_output_text(outputs[0]), tokens_used=self._last_tokens_used())

    def _last_tokens_used(self) -> int | None:
        if not self.lm.history:
            return None
        usage = self.lm.history[-1].get("usage") or {}
        total = usage.get("total_tokens")
        return int(total) if total is not None else None
