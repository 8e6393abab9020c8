# ABOUTME: Deterministic extraction layer: fetching pages and applying manifests
# ABOUTME: Pipeline Stage 1: HTML + manifest → raw items → validation result

"""
Extraction Layer: Fetch pages and run manifests against them

This layer handles:
- Fetching source HTML over HTTP
- Applying extraction rules with CSS selectors
- Field value transforms
- Quality validation of extraction results

Data Flow: source URL → HTML → raw items → core/ orchestration
"""

from .base import ExtractionError, FetchError, HtmlFetcher
from .extractor import ManifestExtractor
from .transformer import FieldTransformer
from .validator import ExtractionValidator

__all__ = [
    "ExtractionError",
    "ExtractionValidator",
    "FetchError",
    "FieldTransformer",
    "HtmlFetcher",
    "ManifestExtractor",
]
