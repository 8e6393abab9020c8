# ABOUTME: Manifest persistence layer
# ABOUTME: Versioned manifest rows, repository interface, and the manifest store

"""
Persistence Layer: Versioned manifest storage

This layer handles:
- SQLModel table for manifest versions
- A narrow repository interface with an async SQLAlchemy implementation
- The manifest store: activation, counters, history

Data Flow: analysis/ manifests → Database → core/ orchestration
"""

from .json_types import PydanticJson
from .models import ManifestRecord
from .repository import ManifestRepository, RecordNotFoundError, SQLModelManifestRepository
from .store import ManifestStore

__all__ = [
    "ManifestRecord",
    "ManifestRepository",
    "ManifestStore",
    "PydanticJson",
    "RecordNotFoundError",
    "SQLModelManifestRepository",
]
