# ABOUTME: Manifest store keeping versioned extraction manifests per (region, source URL, data type)
# ABOUTME: Atomic save-and-activate, success/failure counters, history and health-check timestamps

from __future__ import annotations

from civic_scraper.core.models import DataType, StructuralManifest, utcnow
from civic_scraper.persistence.models import ManifestRecord
from civic_scraper.persistence.repository import ManifestRepository
from civic_scraper.utils.logging import get_logger

# Counter and timestamp columns are owned by the store and never copied from callers
STORE_MANAGED_FIELDS = {
    "success_count",
    "failure_count",
    "is_active",
    "last_used_at",
    "last_checked_at",
    "last_item_count",
}


def _key(region_id: str, source_url: str, data_type: DataType | str) -> dict[str, str]:
    return {
        "region_id": region_id,
        "source_url": source_url,
        "data_type": data_type.value if isinstance(data_type, DataType) else data_type,
    }


def to_manifest(record: ManifestRecord) -> StructuralManifest:
    return StructuralManifest.model_validate(record, from_attributes=True)


class ManifestStore:
    """Versioned manifest persistence on top of a ManifestRepository.

    Repository errors are not caught here; they reach the caller unchanged.
    """

    def __init__(self, repository: ManifestRepository):
        self.repository = repository
        self.logger = get_logger(__name__)

    async def find_latest(
        self, region_id: str, source_url: str, data_type: DataType | str
    ) -> StructuralManifest | None:
        record = await self.repository.find_first(
            {**_key(region_id, source_url, data_type), "is_active": True},
            order_by={"version": "desc"},
        )
        return to_manifest(record) if record else None

    async def save(self, manifest: StructuralManifest) -> StructuralManifest:
        """Store a new manifest version and make it the only active one for its key."""
        key = _key(manifest.region_id, manifest.source_url, manifest.data_type)
        data = manifest.model_dump(exclude=STORE_MANAGED_FIELDS)
        data.update(
            extraction_rules=manifest.extraction_rules,
            data_type=key["data_type"],
            success_count=0,
            failure_count=0,
            is_active=True,
        )

        async with self.repository.transaction():
            deactivated = await self.repository.update_many({**key, "is_active": True}, {"is_active": False})
            record = await self.repository.create(data)

        self.logger.info(
            "Saved manifest",
            manifest_id=record.id,
            version=record.version,
            deactivated=deactivated,
            **key,
        )
        return to_manifest(record)

    async def increment_success(self, manifest_id: str, item_count: int | None = None) -> None:
        record = await self.repository.find_first({"id": manifest_id})
        if record is None:
            return

        data: dict[str, object] = {"success_count": record.success_count + 1, "last_used_at": utcnow()}
        if item_count is not None:
            data["last_item_count"] = item_count
        await self.repository.update(manifest_id, data)

    async def increment_failure(self, manifest_id: str) -> None:
        record = await self.repository.find_first({"id": manifest_id})
        if record is None:
            return

        await self.repository.update(manifest_id, {"failure_count": record.failure_count + 1})

    async def get_history(
        self, region_id: str, source_url: str, data_type: DataType | str, limit: int = 10
    ) -> list[StructuralManifest]:
        records = await self.repository.find_many(
            _key(region_id, source_url, data_type), order_by={"version": "desc"}, take=limit
        )
        return [to_manifest(record) for record in records]

    async def mark_checked(self, manifest_id: str) -> None:
        await self.repository.update(manifest_id, {"last_checked_at": utcnow()})
