# ABOUTME: Declarative region configuration: which pages to scrape and what to extract from them
# ABOUTME: Pydantic schema validation plus semantic checks (duplicates, non-HTTPS sources)

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from civic_scraper.core.models import DEFAULT_CONTENT_GOALS, DataType


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class DataSourceConfig(_ConfigModel):
    """One page a region author wants scraped."""

    url: str = Field(description="Source page URL")
    data_type: DataType = Field(description="Kind of civic data on the page")
    content_goal: str = Field(min_length=10, description="Natural-language description of what to extract")
    category: str | None = Field(default=None, description="Optional sub-category, e.g. Assembly or Senate")
    hints: list[str] = Field(default_factory=list, description="Hints passed to structural analysis")

    @field_validator("url")
    @classmethod
    def _valid_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid URL format")
        return value

    @classmethod
    def for_data_type(cls, url: str, data_type: DataType, **kwargs: Any) -> "DataSourceConfig":
        """Build a source using the data type's default content goal."""
        kwargs.setdefault("content_goal", DEFAULT_CONTENT_GOALS[data_type])
        return cls(url=url, data_type=data_type, **kwargs)


class RegionConfig(_ConfigModel):
    region_id: str = Field(pattern=r"^[a-z][a-z0-9-]*$", description="Lowercase identifier, e.g. california")
    region_name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    timezone: str = Field(min_length=1)
    data_sources: list[DataSourceConfig] = Field(min_length=1)
    request_timeout_seconds: float | None = Field(default=None, gt=0)


class ConfigIssue(BaseModel):
    path: str
    message: str


class ConfigValidationResult(BaseModel):
    valid: bool
    errors: list[ConfigIssue] = Field(default_factory=list)
    config: RegionConfig | None = None


def _semantic_issues(config: RegionConfig) -> list[ConfigIssue]:
    issues: list[ConfigIssue] = []

    seen: set[tuple[str, str, str]] = set()
    for index, source in enumerate(config.data_sources):
        key = (source.url, source.data_type.value, source.category or "")
        if key in seen:
            suffix = f" ({source.category})" if source.category else ""
            issues.append(
                ConfigIssue(
                    path=f"dataSources[{index}]",
                    message=f"Duplicate data source: {source.url} for {source.data_type.value}{suffix}",
                )
            )
        seen.add(key)

    for index, source in enumerate(config.data_sources):
        if source.url.startswith("http://"):
            issues.append(
                ConfigIssue(path=f"dataSources[{index}].url", message="URL should use HTTPS for government websites")
            )

    return issues


def validate_region_config(data: Any) -> ConfigValidationResult:
    """Validate a region config mapping (camelCase or snake_case keys)."""
    try:
        config = RegionConfig.model_validate(data)
    except ValidationError as e:
        return ConfigValidationResult(
            valid=False,
            errors=[
                ConfigIssue(path=".".join(str(part) for part in error["loc"]), message=error["msg"])
                for error in e.errors()
            ],
        )

    issues = _semantic_issues(config)
    return ConfigValidationResult(valid=not issues, errors=issues, config=config)
