# ABOUTME: Shared fixtures for manifest, page, and in-memory repository setup
# ABOUTME: Keeps test modules focused on behaviour rather than object construction

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from civic_scraper.core.models import DataType, ExtractionRuleSet, FieldMapping, StructuralManifest
from civic_scraper.persistence.repository import SQLModelManifestRepository

PROPOSITIONS_HTML = """
<html>
  <head><title>Ballot Measures</title><script>var tracking = true;</script></head>
  <body>
    <nav class="site-nav"><a href="/">Home</a></nav>
    <div id="measures" class="measure-list">
      <div class="measure">
        <span class="measure-id">ACA-13</span>
        <h3 class="title">Protect and Retain the Majority Vote Act</h3>
        <span class="date">November 3, 2026</span>
        <a class="pdf" href="/docs/aca13.pdf">Full text</a>
      </div>
      <div class="measure">
        <span class="measure-id">SB-42</span>
        <h3 class="title">Public Financing of Campaigns</h3>
        <span class="date">11/03/2026</span>
        <a class="pdf" href="https://example.gov/docs/sb42.pdf">Full text</a>
      </div>
      <div class="measure">
        <span class="measure-id">PROP-36</span>
        <h3 class="title">   Drug and Theft Crime Penalties   </h3>
        <span class="date">2026-11-03</span>
      </div>
    </div>
  </body>
</html>
"""


def make_rules(**overrides) -> ExtractionRuleSet:
    data = {
        "container_selector": "#measures",
        "item_selector": ".measure",
        "field_mappings": [
            FieldMapping(field_name="externalId", selector=".measure-id", required=True),
            FieldMapping(field_name="title", selector=".title", required=True),
            FieldMapping(field_name="electionDate", selector=".date", transform={"type": "date_parse"}),
            FieldMapping(
                field_name="sourceUrl",
                selector="a.pdf",
                extraction_method="attribute",
                attribute="href",
                transform={"type": "url_resolve"},
            ),
        ],
    }
    data.update(overrides)
    return ExtractionRuleSet(**data)


def make_manifest(**overrides) -> StructuralManifest:
    data = {
        "id": "manifest-1",
        "region_id": "california",
        "source_url": "https://example.gov/measures",
        "data_type": DataType.PROPOSITIONS,
        "version": 1,
        "structure_hash": "structure-hash",
        "prompt_hash": "prompt-hash",
        "prompt_version": "v1",
        "extraction_rules": make_rules(),
        "confidence": 0.8,
    }
    data.update(overrides)
    return StructuralManifest(**data)


@pytest.fixture
def propositions_html() -> str:
    return PROPOSITIONS_HTML


@pytest.fixture
def manifest() -> StructuralManifest:
    return make_manifest()


@pytest.fixture
def manifest_factory():
    return make_manifest


@pytest.fixture
def rules_factory():
    return make_rules


@pytest_asyncio.fixture
async def repository() -> SQLModelManifestRepository:
    """Provide an in-memory manifest repository for async tests."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlmodel.ext.asyncio.session import AsyncSession

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    repo = SQLModelManifestRepository("sqlite+aiosqlite:///:memory:")
    repo.engine = engine
    repo.async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await repo.create_tables()
    yield repo
    await repo.close()
