# ABOUTME: Domain models shared by every pipeline stage
# ABOUTME: Manifests, extraction rules, extraction/validation results, and pipeline outcomes

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Returns the current UTC timestamp."""

    return datetime.now(UTC)


class DataType(str, Enum):
    """Kinds of civic data a source page can hold."""

    PROPOSITIONS = "propositions"
    MEETINGS = "meetings"
    REPRESENTATIVES = "representatives"
    CAMPAIGN_FINANCE = "campaign_finance"
    LOBBYING = "lobbying"


DEFAULT_CONTENT_GOALS: dict[DataType, str] = {
    DataType.PROPOSITIONS: "Extract ballot measures and propositions with their identifiers, titles and status",
    DataType.MEETINGS: "Extract public meetings with their titles, dates, locations and agenda links",
    DataType.REPRESENTATIVES: "Extract elected representatives with their names, offices, districts and contact details",
    DataType.CAMPAIGN_FINANCE: "Extract campaign committees and contributions with names, amounts and dates",
    DataType.LOBBYING: "Extract registered lobbyists and their clients with registration dates",
}


class TransformType(str, Enum):
    """Post-extraction value transforms."""

    TRIM = "trim"
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    STRIP_HTML = "strip_html"
    URL_RESOLVE = "url_resolve"
    REGEX_REPLACE = "regex_replace"
    NAME_FORMAT = "name_format"
    DATE_PARSE = "date_parse"


class CamelModel(BaseModel):
    """Base for rule models exchanged with the LLM in camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldTransform(CamelModel):
    type: TransformType = Field(description="Transform to apply to the extracted value")
    params: dict[str, str] | None = Field(default=None, description="Transform parameters")


class FieldMapping(CamelModel):
    """How to extract one named field from an item element."""

    field_name: str = Field(description="Output key in the extracted item")
    selector: str = Field(default="", description="CSS selector relative to the item; empty means the item itself")
    extraction_method: Literal["text", "attribute", "html", "regex"] = Field(
        default="text", description="How the value is read from the matched element"
    )
    attribute: str | None = Field(default=None, description="Attribute name for the attribute method")
    regex_pattern: str | None = Field(default=None, description="Pattern for the regex method")
    regex_group: int | None = Field(default=0, description="Capture group for the regex method")
    required: bool = Field(default=False, description="Items missing this field are skipped")
    default_value: str | None = Field(default=None, description="Value used when extraction yields nothing")
    transform: FieldTransform | None = Field(default=None, description="Optional post-extraction transform")

    @field_validator("transform", mode="before")
    @classmethod
    def _transform_shorthand(cls, value: Any) -> Any:
        # LLMs sometimes emit "trim" instead of {"type": "trim"}
        if isinstance(value, str):
            return {"type": value}
        return value


class PreprocessingStep(CamelModel):
    type: Literal["remove_elements", "unwrap_elements", "merge_tables"]
    selector: str


class ExtractionRuleSet(CamelModel):
    """Deterministic extraction rules produced by structural analysis."""

    container_selector: str = Field(min_length=1, description="CSS selector for the element holding all items")
    item_selector: str = Field(min_length=1, description="CSS selector for each item within the container")
    field_mappings: list[FieldMapping] = Field(min_length=1, description="Per-field extraction rules")
    preprocessing: list[PreprocessingStep] = Field(default_factory=list, description="DOM cleanup before extraction")
    analysis_notes: str | None = Field(default=None, description="Free-form notes from the analysis")


class StructuralManifest(BaseModel):
    """A versioned extraction ruleset for one (region, source URL, data type) key."""

    id: str
    region_id: str
    source_url: str
    data_type: DataType
    version: int = Field(ge=1)
    structure_hash: str
    prompt_hash: str
    prompt_version: str | None = None
    extraction_rules: ExtractionRuleSet
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    success_count: int = 0
    failure_count: int = 0
    is_active: bool = True
    llm_provider: str | None = None
    llm_model: str | None = None
    llm_tokens_used: int | None = None
    analysis_time_ms: int | None = None
    last_item_count: int | None = None
    last_used_at: datetime | None = None
    last_checked_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class RawExtractionResult(BaseModel):
    """Output of one deterministic extraction run. Never persisted."""

    items: list[dict[str, str]] = Field(default_factory=list)
    success: bool = False
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    severity: Literal["warning", "error"]
    message: str


class ValidationResult(BaseModel):
    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


class ValidationThresholds(BaseModel):
    """Numeric limits used by the extraction validator."""

    missing_field_error_ratio: float = 0.5
    missing_field_warning_ratio: float = 0.1
    drift_error_ratio: float = 0.5
    drift_warning_ratio: float = 0.8
    warning_density_ratio: float = 2.0


class HealingDecision(BaseModel):
    should_heal: bool
    reason: str
    validation: ValidationResult


class PipelineState(str, Enum):
    """States a single pipeline run moves through."""

    NO_MANIFEST = "no_manifest"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    HEALTHY = "healthy"
    HEALING = "healing"
    FINALIZING = "finalizing"


class PipelineResult(BaseModel):
    """Terminal outcome of one pipeline run."""

    region_id: str
    source_url: str
    data_type: DataType
    items: list[dict[str, str]] = Field(default_factory=list)
    success: bool = False
    healed: bool = False
    from_cache: bool = False
    manifest_id: str | None = None
    manifest_version: int | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    states: list[PipelineState] = Field(default_factory=list, description="States visited, in order")

    @property
    def item_count(self) -> int:
        return len(self.items)
