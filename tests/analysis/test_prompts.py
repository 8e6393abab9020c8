# ABOUTME: Tests for structural analysis prompt building
# ABOUTME: Local template interpolation, overrides, prompt hashing and the remote prompt service

import json

import httpx
import pytest

from civic_scraper.analysis.base import AnalysisError
from civic_scraper.analysis.prompts import (
    BASE_TEMPLATE_NAME,
    PromptClient,
    PromptTemplate,
    build_hints_section,
    interpolate,
)
from civic_scraper.core.models import DataType


@pytest.fixture
def client() -> PromptClient:
    return PromptClient(service_url="")


def test_interpolate_replaces_all_occurrences():
    assert interpolate("{{A}} and {{A}} but {{B}}", {"A": "x"}) == "x and x but {{B}}"


def test_hints_section():
    assert build_hints_section(None) == ""
    assert build_hints_section(["Use the table", "Skip archived"]) == (
        "## Hints from the region author\n- Use the table\n- Skip archived\n"
    )


class TestLocalPrompts:
    @pytest.mark.asyncio
    async def test_prompt_includes_goal_schema_hints_and_html(self, client):
        response = await client.get_structural_analysis_prompt(
            data_type=DataType.PROPOSITIONS,
            content_goal="Extract ballot measures",
            html="<div id='measures'></div>",
            hints=["Measures are cards"],
        )

        assert "Extract ballot measures" in response.prompt_text
        assert "externalId (required)" in response.prompt_text
        assert "- Measures are cards" in response.prompt_text
        assert "<div id='measures'></div>" in response.prompt_text
        assert "{{" not in response.prompt_text
        assert response.prompt_version == "v1"
        assert response.prompt_hash == client.current_prompt_hash(DataType.PROPOSITIONS)

    @pytest.mark.asyncio
    async def test_unknown_data_type_uses_default_schema(self, client):
        response = await client.get_structural_analysis_prompt(
            data_type=DataType.LOBBYING, content_goal="Extract lobbyists", html="<ul></ul>"
        )

        assert "Extract all relevant structured data fields" in response.prompt_text

    def test_prompt_hash_depends_on_data_type(self, client):
        assert client.current_prompt_hash(DataType.PROPOSITIONS) != client.current_prompt_hash(DataType.MEETINGS)
        assert client.current_prompt_hash(DataType.LOBBYING) == client.current_prompt_hash(DataType.CAMPAIGN_FINANCE)

    def test_template_override_changes_hash(self, client):
        override = PromptTemplate(name=BASE_TEMPLATE_NAME, template_text="Analyze {{HTML}}", version=2)
        custom = PromptClient(templates={BASE_TEMPLATE_NAME: override}, service_url="")

        assert custom.get_template(BASE_TEMPLATE_NAME) is override
        assert custom.current_prompt_hash(DataType.MEETINGS) != client.current_prompt_hash(DataType.MEETINGS)

    def test_missing_template(self, client):
        with pytest.raises(AnalysisError, match='Prompt template "nope" not found'):
            client.get_template("nope")


class TestRemotePrompts:
    @pytest.mark.asyncio
    async def test_remote_prompt(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["payload"] = json.loads(request.content)
            return httpx.Response(
                200, json={"promptText": "remote prompt", "promptHash": "abc", "promptVersion": "v7"}
            )

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = PromptClient(service_url="https://prompts.example.com/", api_key="secret", http_client=http_client)

        response = await client.get_structural_analysis_prompt(
            data_type=DataType.MEETINGS, content_goal="Extract meetings", html="<table></table>", category="Senate"
        )

        assert client.current_prompt_hash(DataType.MEETINGS) is None
        assert response.prompt_text == "remote prompt"
        assert response.prompt_hash == "abc"
        assert response.prompt_version == "v7"
        assert captured["url"] == "https://prompts.example.com/prompts/structural-analysis"
        assert captured["auth"] == "Bearer secret"
        assert captured["payload"]["dataType"] == "meetings"
        assert captured["payload"]["category"] == "Senate"
        await http_client.aclose()

    @pytest.mark.asyncio
    async def test_remote_requires_api_key(self):
        client = PromptClient(service_url="https://prompts.example.com", api_key="")

        with pytest.raises(AnalysisError, match="API key is required"):
            await client.get_structural_analysis_prompt(data_type="meetings", content_goal="x" * 12, html="")

    @pytest.mark.asyncio
    async def test_remote_http_error(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        client = PromptClient(service_url="https://prompts.example.com", api_key="secret", http_client=http_client)

        with pytest.raises(AnalysisError, match="Prompt service request failed"):
            await client.get_structural_analysis_prompt(data_type="meetings", content_goal="x" * 12, html="")
        await http_client.aclose()
