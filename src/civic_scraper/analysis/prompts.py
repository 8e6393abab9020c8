# ABOUTME: Prompt templates for structural analysis with local and remote sources
# ABOUTME: Interpolates {{VARIABLE}} placeholders and hashes templates for manifest invalidation

from __future__ import annotations

import hashlib
from collections.abc import Mapping

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from civic_scraper.analysis.base import AnalysisError
from civic_scraper.config import get_config
from civic_scraper.core.models import DataType
from civic_scraper.utils.logging import get_logger, log_api_call

BASE_TEMPLATE_NAME = "structural-analysis"
DEFAULT_SCHEMA_TEMPLATE_NAME = "structural-schema-default"


class PromptTemplate(BaseModel):
    name: str
    template_text: str
    version: int = 1


class PromptResponse(BaseModel):
    """A rendered prompt plus the identity of the template that produced it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt_text: str
    prompt_hash: str
    prompt_version: str


BUILTIN_TEMPLATES: dict[str, PromptTemplate] = {
    template.name: template
    for template in [
        PromptTemplate(
            name=BASE_TEMPLATE_NAME,
            template_text="""You are a web scraping expert. Analyze the following HTML and produce extraction rules as JSON.

## Task
Given the HTML from a web page, derive CSS selectors and extraction rules to extract {{DATA_TYPE}} data.

## Content Goal
{{CONTENT_GOAL}}

{{HINTS_SECTION}}
## Target Schema
The extracted data must conform to this structure:
{{SCHEMA_DESCRIPTION}}

## Required Output Format
Respond with ONLY valid JSON matching this exact structure (no markdown, no explanation):
{
  "containerSelector": "CSS selector for the element containing all items",
  "itemSelector": "CSS selector for each individual item (relative to container)",
  "fieldMappings": [
    {
      "fieldName": "the target field name",
      "selector": "CSS selector relative to the item",
      "extractionMethod": "text|attribute|html|regex",
      "attribute": "only if extractionMethod is 'attribute'",
      "regexPattern": "only if extractionMethod is 'regex'",
      "regexGroup": 1,
      "transform": { "type": "trim|lowercase|uppercase|strip_html|url_resolve|regex_replace|name_format|date_parse", "params": {} },
      "required": true,
      "defaultValue": "fallback if empty"
    }
  ],
  "preprocessing": [{ "type": "remove_elements|unwrap_elements|merge_tables", "selector": "CSS selector" }],
  "analysisNotes": "Brief notes about the page structure"
}

## Rules
1. Use the MOST SPECIFIC CSS selectors available (prefer classes over tag names)
2. Field selectors are RELATIVE to each item element
3. Required fields MUST have selectors that match elements in the HTML
4. Use "regex" extractionMethod when text needs pattern extraction
5. Use transforms for date parsing, name formatting, URL resolution
6. If the page has multiple formats (e.g., table AND heading-based), choose the PRIMARY format
7. The containerSelector should match exactly ONE element
8. The itemSelector should match MULTIPLE elements within the container

## HTML to Analyze
```html
{{HTML}}
```""",
        ),
        PromptTemplate(
            name="structural-schema-propositions",
            template_text="""Each proposition/ballot measure has:
- externalId (required): Unique measure identifier (e.g., "ACA-13", "SB-42", "PROP-36")
- title (required): Measure title or description
- summary (optional): Longer summary or full description text
- status (optional): Current status (default: "pending")
- electionDate (optional): Date of the election (use date_parse transform)
- sourceUrl (optional): URL to source document or PDF (use url_resolve transform)""",
        ),
        PromptTemplate(
            name="structural-schema-meetings",
            template_text="""Each meeting/hearing has:
- externalId (required): Unique meeting identifier
- title (required): Committee name or meeting title
- body (optional): Legislative body (e.g., "Assembly", "Senate")
- scheduledAt (required): Date and time of the meeting (use date_parse transform)
- location (optional): Physical location
- agendaUrl (optional): URL to the meeting agenda (use url_resolve transform)""",
        ),
        PromptTemplate(
            name="structural-schema-representatives",
            template_text="""Each representative/legislator has:
- externalId (required): Unique identifier (e.g., "ca-assembly-30")
- name (required): Full name of the representative (use name_format transform if "Last, First")
- chamber (optional): Legislative chamber (e.g., "Assembly", "Senate")
- district (required): District identifier (e.g., "District 30")
- party (required): Political party (Democratic, Republican, Independent)
- photoUrl (optional): URL to profile photo (attribute extraction on img src)
- website (optional): Profile page URL (attribute extraction on anchor href)""",
        ),
        PromptTemplate(
            name=DEFAULT_SCHEMA_TEMPLATE_NAME,
            template_text="Extract all relevant structured data fields from each item.",
        ),
    ]
}


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def interpolate(template: str, variables: Mapping[str, str]) -> str:
    result = template
    for key, value in variables.items():
        result = result.replace("{{" + key + "}}", value)
    return result


def build_hints_section(hints: list[str] | None) -> str:
    if not hints:
        return ""
    return "## Hints from the region author\n" + "\n".join(f"- {hint}" for hint in hints) + "\n"


class PromptClient:
    """Builds structural analysis prompts.

    Templates are looked up in the caller-supplied mapping first and then in
    the built-in set, so deployments can override any template by name. When
    ``service_url`` is set, prompts are rendered by a remote prompt service
    instead.
    """

    def __init__(
        self,
        templates: Mapping[str, PromptTemplate] | None = None,
        service_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        config = get_config()
        self.templates = dict(templates or {})
        self.service_url = (service_url if service_url is not None else config.prompt_service_url) or None
        self.api_key = api_key if api_key is not None else config.prompt_service_api_key
        self.timeout = timeout or config.prompt_service_timeout_seconds
        self._http_client = http_client
        self.logger = get_logger(__name__)

    @property
    def is_remote(self) -> bool:
        return self.service_url is not None

    def get_template(self, name: str, fallback_name: str | None = None) -> PromptTemplate:
        for candidate in (name, fallback_name):
            if candidate is None:
                continue
            if candidate in self.templates:
                return self.templates[candidate]
        for candidate in (name, fallback_name):
            if candidate is not None and candidate in BUILTIN_TEMPLATES:
                return BUILTIN_TEMPLATES[candidate]
        raise AnalysisError(f'Prompt template "{name}" not found')

    def _schema_template(self, data_type: DataType | str) -> PromptTemplate:
        value = data_type.value if isinstance(data_type, DataType) else data_type
        return self.get_template(f"structural-schema-{value}", DEFAULT_SCHEMA_TEMPLATE_NAME)

    def _local_prompt_hash(self, data_type: DataType | str) -> str:
        base = self.get_template(BASE_TEMPLATE_NAME)
        schema = self._schema_template(data_type)
        return hash_text(base.template_text + "\n" + schema.template_text)

    def current_prompt_hash(self, data_type: DataType | str) -> str | None:
        """Hash of the templates a fresh analysis would use, or None when prompts are remote."""
        if self.is_remote:
            return None
        return self._local_prompt_hash(data_type)

    async def get_structural_analysis_prompt(
        self,
        *,
        data_type: DataType | str,
        content_goal: str,
        html: str,
        hints: list[str] | None = None,
        category: str | None = None,
    ) -> PromptResponse:
        value = data_type.value if isinstance(data_type, DataType) else data_type

        if self.is_remote:
            return await self._fetch_remote_prompt(
                BASE_TEMPLATE_NAME,
                {
                    "dataType": value,
                    "contentGoal": content_goal,
                    "html": html,
                    "hints": hints or [],
                    "category": category,
                },
            )

        base = self.get_template(BASE_TEMPLATE_NAME)
        schema = self._schema_template(value)
        prompt_text = interpolate(
            base.template_text,
            {
                "DATA_TYPE": value,
                "CONTENT_GOAL": content_goal,
                "CATEGORY": category or "",
                "HINTS_SECTION": build_hints_section(hints),
                "SCHEMA_DESCRIPTION": schema.template_text,
                "HTML": html,
            },
        )
        return PromptResponse(
            prompt_text=prompt_text,
            prompt_hash=self._local_prompt_hash(value),
            prompt_version=f"v{base.version}",
        )

    @log_api_call("prompt_service")
    async def _fetch_remote_prompt(self, endpoint: str, payload: dict) -> PromptResponse:
        if not self.api_key:
            raise AnalysisError("API key is required when a prompt service URL is configured")

        url = f"{self.service_url.rstrip('/')}/prompts/{endpoint}"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            return PromptResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise AnalysisError(f"Prompt service request failed: {e}") from e
