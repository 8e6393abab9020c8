# ABOUTME: Persistence model for versioned structural manifests
# ABOUTME: One row per manifest version, with a partial unique index keeping one active row per key

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, text
from sqlmodel import Column, Field, SQLModel

from civic_scraper.core.models import ExtractionRuleSet, utcnow
from civic_scraper.persistence.json_types import PydanticJson


class ManifestRecord(SQLModel, table=True):
    """Stored version of a structural manifest for a (region, source URL, data type) key."""

    __tablename__ = "structural_manifest"  # type: ignore[assignment]
    __table_args__ = (
        Index("ix_structural_manifest_key_version", "region_id", "source_url", "data_type", "version"),
        # At most one active manifest per key, enforced by the database
        Index(
            "ux_structural_manifest_active_key",
            "region_id",
            "source_url",
            "data_type",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: str = Field(primary_key=True, description="Manifest identifier (uuid4)")
    region_id: str = Field(description="Region that owns the source")
    source_url: str = Field(description="URL of the source page")
    data_type: str = Field(description="Kind of civic data extracted from the page")
    version: int = Field(description="Monotonically increasing version per key")
    structure_hash: str = Field(description="SHA-256 of the page's structural skeleton at analysis time")
    prompt_hash: str = Field(description="SHA-256 of the prompt template used for analysis")
    prompt_version: str | None = Field(default=None, description="Version label of the prompt template")
    extraction_rules: ExtractionRuleSet = Field(
        sa_column=Column(PydanticJson(ExtractionRuleSet), nullable=False),
        description="Selectors and field mappings used for extraction",
    )
    confidence: float = Field(default=0.0, description="Analysis confidence estimate (0.0-1.0)")
    success_count: int = Field(default=0, description="Runs that passed validation with this manifest")
    failure_count: int = Field(default=0, description="Runs that failed validation with this manifest")
    is_active: bool = Field(default=True, description="Whether this is the current manifest for its key")
    llm_provider: str | None = Field(default=None, description="LLM provider used for analysis")
    llm_model: str | None = Field(default=None, description="LLM model used for analysis")
    llm_tokens_used: int | None = Field(default=None, description="Tokens consumed by the analysis call")
    analysis_time_ms: int | None = Field(default=None, description="Wall time of the analysis call")
    last_item_count: int | None = Field(default=None, description="Item count of the last successful run")
    last_used_at: datetime | None = Field(default=None, description="Last successful use")
    last_checked_at: datetime | None = Field(default=None, description="Last time the manifest was confirmed healthy")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last modification timestamp")
