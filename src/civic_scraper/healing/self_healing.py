# ABOUTME: Decides whether a failed extraction should trigger one structural re-analysis
# ABOUTME: Pure decision service on top of the extraction validator, bounded to one heal per run

from civic_scraper.core.models import HealingDecision, RawExtractionResult, StructuralManifest
from civic_scraper.extraction.validator import ExtractionValidator
from civic_scraper.utils.logging import get_logger


class SelfHealingService:
    """Turns a validation outcome into a heal / don't-heal decision.

    The service never touches the manifest store. The caller passes
    ``heal_attempted=True`` on the retry so a run can heal at most once.
    """

    def __init__(self, validator: ExtractionValidator | None = None):
        self.validator = validator or ExtractionValidator()
        self.logger = get_logger(__name__)

    def evaluate(
        self,
        result: RawExtractionResult,
        manifest: StructuralManifest,
        previous_item_count: int | None = None,
        heal_attempted: bool = False,
    ) -> HealingDecision:
        validation = self.validator.validate(result, manifest, previous_item_count)

        if heal_attempted:
            return HealingDecision(
                should_heal=False,
                reason="Healing already attempted this run, not retrying again",
                validation=validation,
            )

        if validation.valid:
            return HealingDecision(should_heal=False, reason="Extraction passed validation", validation=validation)

        self.logger.info(
            "Extraction failed validation, healing recommended",
            manifest_id=manifest.id,
            manifest_version=manifest.version,
            errors=validation.errors,
        )
        return HealingDecision(
            should_heal=True,
            reason="Extraction validation failed: " + "; ".join(validation.errors),
            validation=validation,
        )
