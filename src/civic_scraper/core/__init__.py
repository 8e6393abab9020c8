# ABOUTME: Business logic and orchestration layer
# ABOUTME: Domain models, manifest reuse decisions, source configs, and the pipeline orchestrator

"""
Core Layer: Business logic and workflow orchestration

This layer handles:
- Domain models shared across layers
- Manifest reuse decisions and region source configuration
- Pipeline orchestration and run state tracking

Data Flow: extraction/ + analysis/ + persistence/ → ScrapingPipelineService → PipelineResult
"""

from .models import (
    DataType,
    ExtractionRuleSet,
    FieldMapping,
    PipelineResult,
    PipelineState,
    StructuralManifest,
)

# Import the orchestrator on demand to avoid circular imports
# Use: from civic_scraper.core.pipeline import ScrapingPipelineService

__all__ = [
    "DataType",
    "ExtractionRuleSet",
    "FieldMapping",
    "PipelineResult",
    "PipelineState",
    "StructuralManifest",
]
