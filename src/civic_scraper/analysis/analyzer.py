# ABOUTME: LLM-assisted structural analysis that derives a new extraction manifest from a page
# ABOUTME: Simplifies and truncates HTML, prompts the LLM, parses and scores the returned ruleset

import json
import re
import time
import uuid

from bs4 import BeautifulSoup, Comment
from pydantic import ValidationError

from civic_scraper.analysis.base import AnalysisError, LLMProvider
from civic_scraper.analysis.hasher import NOISE_ELEMENTS, compute_structure_hash
from civic_scraper.analysis.prompts import PromptClient
from civic_scraper.config import get_config
from civic_scraper.core.models import DataType, ExtractionRuleSet, StructuralManifest
from civic_scraper.utils.logging import get_logger
from civic_scraper.utils.retry import LLMAPIError

MAIN_CONTENT_SELECTORS = ["main", "#content", "#main-content", ".content", "article", "[role=main]"]
CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

LLM_MAX_TOKENS = 2048
LLM_TEMPERATURE = 0.1
LLM_TOP_P = 0.95


def simplify_html(html: str) -> str:
    """Drop scripts, styles, comments and presentation attributes to shrink the prompt."""
    soup = BeautifulSoup(html, "html.parser")

    for element in soup.find_all(NOISE_ELEMENTS):
        if not element.decomposed:
            element.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for element in soup.find_all(True):
        for attr in list(element.attrs):
            if attr.startswith(("data-", "on")) or attr == "style":
                del element.attrs[attr]

    root = soup.body or soup
    return root.decode_contents().strip()


def smart_truncate(html: str, max_size: int) -> str:
    """Cut HTML to max_size characters, preferring the page's main content region."""
    if len(html) <= max_size:
        return html

    soup = BeautifulSoup(html, "html.parser")
    for selector in MAIN_CONTENT_SELECTORS:
        region = soup.select_one(selector)
        if region is None:
            continue
        content = str(region)
        if len(content) <= max_size:
            return content
        return content[:max_size]

    return html[:max_size]


def parse_extraction_rules(text: str) -> ExtractionRuleSet:
    """Parse the LLM's answer into a ruleset, tolerating markdown fences and surrounding prose."""
    candidate = text.strip()
    if fenced := CODE_FENCE_RE.search(candidate):
        candidate = fenced.group(1).strip()

    start, end = candidate.find("{"), candidate.rfind("}")
    if start == -1 or end <= start:
        raise AnalysisError("LLM response contained no JSON object")

    try:
        payload = json.loads(candidate[start : end + 1])
    except json.JSONDecodeError as e:
        raise AnalysisError(f"LLM response was not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise AnalysisError("LLM response JSON was not an object")
    if not payload.get("containerSelector"):
        raise AnalysisError("Missing containerSelector in extraction rules")
    if not payload.get("itemSelector"):
        raise AnalysisError("Missing itemSelector in extraction rules")
    if not payload.get("fieldMappings"):
        raise AnalysisError("Missing or empty fieldMappings in extraction rules")

    try:
        return ExtractionRuleSet.model_validate(payload)
    except ValidationError as e:
        raise AnalysisError(f"Invalid extraction rules: {e}") from e


def estimate_confidence(rules: ExtractionRuleSet) -> float:
    confidence = 0.5
    mappings = rules.field_mappings

    if len(mappings) >= 3:
        confidence += 0.1
    if len(mappings) >= 5:
        confidence += 0.1
    if any(mapping.required for mapping in mappings):
        confidence += 0.1
    if "." in rules.container_selector or "." in rules.item_selector:
        confidence += 0.1
    if rules.analysis_notes and len(rules.analysis_notes) > 20:
        confidence += 0.1

    return min(round(confidence, 2), 1.0)


class StructuralAnalyzer:
    """Derives an unsaved StructuralManifest for a page with one LLM call."""

    def __init__(
        self,
        llm: LLMProvider,
        prompt_client: PromptClient | None = None,
        max_html_size: int | None = None,
    ):
        self.llm = llm
        self.prompt_client = prompt_client or PromptClient()
        self.max_html_size = max_html_size or get_config().max_html_size
        self.logger = get_logger(__name__)

    def current_prompt_hash(self, data_type: DataType) -> str | None:
        return self.prompt_client.current_prompt_hash(data_type)

    async def analyze(
        self,
        html: str,
        *,
        region_id: str,
        source_url: str,
        data_type: DataType,
        content_goal: str,
        version: int,
        hints: list[str] | None = None,
        category: str | None = None,
        structure_hash: str | None = None,
    ) -> StructuralManifest:
        """Run structural analysis and return the manifest it implies.

        Raises:
            AnalysisError: If the prompt, the LLM call, or the returned ruleset is unusable
        """
        start = time.perf_counter()
        simplified = smart_truncate(simplify_html(html), self.max_html_size)

        prompt = await self.prompt_client.get_structural_analysis_prompt(
            data_type=data_type, content_goal=content_goal, html=simplified, hints=hints, category=category
        )

        self.logger.info(
            "Requesting structural analysis",
            source_url=source_url,
            data_type=data_type.value,
            html_chars=len(simplified),
            prompt_version=prompt.prompt_version,
            model=self.llm.model_name,
        )

        try:
            response = await self.llm.generate(
                prompt.prompt_text, max_tokens=LLM_MAX_TOKENS, temperature=LLM_TEMPERATURE, top_p=LLM_TOP_P
            )
        except LLMAPIError as e:
            raise AnalysisError(f"LLM call failed: {e}") from e

        rules = parse_extraction_rules(response.text)
        confidence = estimate_confidence(rules)
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        self.logger.info(
            "Structural analysis complete",
            source_url=source_url,
            container_selector=rules.container_selector,
            item_selector=rules.item_selector,
            field_count=len(rules.field_mappings),
            confidence=confidence,
            tokens_used=response.tokens_used,
            analysis_time_ms=elapsed_ms,
        )

        return StructuralManifest(
            id=str(uuid.uuid4()),
            region_id=region_id,
            source_url=source_url,
            data_type=data_type,
            version=version,
            structure_hash=structure_hash or compute_structure_hash(html),
            prompt_hash=prompt.prompt_hash,
            prompt_version=prompt.prompt_version,
            extraction_rules=rules,
            confidence=confidence,
            llm_provider=self.llm.name,
            llm_model=self.llm.model_name,
            llm_tokens_used=response.tokens_used,
            analysis_time_ms=elapsed_ms,
        )
