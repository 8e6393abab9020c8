# ABOUTME: Application configuration using Pydantic Settings for environment variables
# ABOUTME: Provides type-safe access to LLM credentials, timeouts, thresholds, and logging config

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="CIVIC_SCRAPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown environment variables
    )

    # LLM Configuration
    llm_api_key: str = Field(default="", description="API key for the structural analysis LLM")
    llm_model: str = Field(
        default="gemini/gemini-2.5-flash", description="LiteLLM model identifier used for structural analysis"
    )

    # Prompt service (optional, local templates are used when unset)
    prompt_service_url: str | None = Field(default=None, description="Base URL of a remote prompt service")
    prompt_service_api_key: str = Field(default="", description="API key for the remote prompt service")
    prompt_service_timeout_seconds: float = Field(default=10.0, description="Timeout for prompt service requests")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./civic_scraper.db", description="Database URL for async manifest storage"
    )

    # Logging Configuration
    log_mode: Literal["interactive", "production"] = Field(default="interactive", description="Logging output mode")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging verbosity level"
    )

    log_file: Path | None = Field(default=None, description="Custom log file path (overrides default)")

    # Fetching
    fetch_timeout_seconds: float = Field(default=30.0, description="HTTP timeout for page fetches")
    fetch_max_attempts: int = Field(default=3, description="Attempts for a page fetch on transport errors")
    user_agent: str = Field(
        default="civic-scraper/0.1 (+https://github.com/civic-scraper)", description="User-Agent sent with fetches"
    )

    # Pipeline
    analysis_timeout_seconds: float = Field(default=120.0, description="Timeout for one structural analysis call")
    repository_timeout_seconds: float = Field(default=15.0, description="Timeout for one manifest store call")
    max_html_size: int = Field(default=12000, description="Maximum characters of HTML sent to the LLM")
    self_healing_enabled: bool = Field(default=True, description="Re-analyze once when validation fails")
    pipeline_concurrency: int = Field(default=4, description="Concurrent sources processed by run-region")

    # Validation Thresholds
    missing_field_error_ratio: float = Field(
        default=0.5, description="Missing ratio of a required field above which validation errors (0.0-1.0)"
    )
    missing_field_warning_ratio: float = Field(
        default=0.1, description="Missing ratio of a required field above which validation warns (0.0-1.0)"
    )
    drift_error_ratio: float = Field(
        default=0.5, description="Current/previous item ratio below which validation errors"
    )
    drift_warning_ratio: float = Field(
        default=0.8, description="Current/previous item ratio below which validation warns"
    )
    warning_density_ratio: float = Field(
        default=2.0, description="Warnings per item above which validation warns"
    )


# Global config instance - lazy loaded when first accessed
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Creates the config on first access, subsequent calls return the same instance.

    Returns:
        Config: The application configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reload_config() -> Config:
    """Reload configuration from environment variables.

    Returns:
        Config: A fresh configuration instance
    """
    global _config_instance
    _config_instance = Config()
    return _config_instance
