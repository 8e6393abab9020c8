# ABOUTME: Structural analysis layer: LLM-derived extraction manifests
# ABOUTME: Pipeline Stage 0: page HTML → prompt → LLM → validated ruleset with confidence

"""
Analysis Layer: Derive extraction rules from page structure

This layer handles:
- Structural fingerprints of pages for change detection
- Prompt templates and their hashes
- LLM provider integration through DSPy
- Parsing and scoring of LLM-proposed rulesets

Data Flow: HTML → StructuralAnalyzer → StructuralManifest → persistence/
"""

from .analyzer import StructuralAnalyzer
from .base import AnalysisError, LLMProvider, LLMResponse
from .hasher import compute_structure_hash, extract_html_skeleton
from .prompts import PromptClient, PromptResponse, PromptTemplate

__all__ = [
    "AnalysisError",
    "LLMProvider",
    "LLMResponse",
    "PromptClient",
    "PromptResponse",
    "PromptTemplate",
    "StructuralAnalyzer",
    "compute_structure_hash",
    "extract_html_skeleton",
]
