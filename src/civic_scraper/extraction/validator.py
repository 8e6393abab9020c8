# ABOUTME: Quality scoring of raw extraction results against numeric thresholds
# ABOUTME: Completeness, required-field coverage, item-count drift and warning density checks

from civic_scraper.core.models import (
    RawExtractionResult,
    StructuralManifest,
    ValidationIssue,
    ValidationResult,
    ValidationThresholds,
)


def _percent(ratio: float) -> int:
    return int(ratio * 100 + 0.5)


class ExtractionValidator:
    """Decides whether an extraction result is healthy enough to accept."""

    def __init__(self, thresholds: ValidationThresholds | None = None):
        self.thresholds = thresholds or ValidationThresholds()

    def validate(
        self,
        result: RawExtractionResult,
        manifest: StructuralManifest,
        previous_item_count: int | None = None,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        item_count = len(result.items)

        if not result.success:
            issues.append(ValidationIssue(severity="error", message="Extraction failed: no items extracted"))
        if item_count == 0:
            issues.append(ValidationIssue(severity="error", message="Zero items extracted"))

        issues.extend(self._check_required_coverage(result, manifest))
        issues.extend(self._check_drift(item_count, previous_item_count))

        if len(result.warnings) > self.thresholds.warning_density_ratio * item_count:
            issues.append(
                ValidationIssue(
                    severity="warning",
                    message=f"High warning count: {len(result.warnings)} warnings for {item_count} items",
                )
            )

        return ValidationResult(valid=not any(issue.severity == "error" for issue in issues), issues=issues)

    def _check_required_coverage(
        self, result: RawExtractionResult, manifest: StructuralManifest
    ) -> list[ValidationIssue]:
        required = [m.field_name for m in manifest.extraction_rules.field_mappings if m.required]
        total = len(result.items)
        if total == 0 or not required:
            return []

        issues = []
        for field_name in required:
            missing = sum(1 for item in result.items if not item.get(field_name))
            ratio = missing / total
            message = f'Required field "{field_name}" missing in {_percent(ratio)}% of items ({missing}/{total})'

            if ratio > self.thresholds.missing_field_error_ratio:
                issues.append(ValidationIssue(severity="error", message=message))
            elif ratio > self.thresholds.missing_field_warning_ratio:
                issues.append(ValidationIssue(severity="warning", message=message))
        return issues

    def _check_drift(self, item_count: int, previous_item_count: int | None) -> list[ValidationIssue]:
        if not previous_item_count or item_count == 0:
            return []

        ratio = item_count / previous_item_count
        if ratio < self.thresholds.drift_error_ratio:
            return [
                ValidationIssue(
                    severity="error",
                    message=(
                        f"Item count dropped dramatically: {item_count} vs previous "
                        f"{previous_item_count} ({_percent(ratio)}%)"
                    ),
                )
            ]
        if ratio < self.thresholds.drift_warning_ratio:
            return [
                ValidationIssue(
                    severity="warning",
                    message=f"Item count decreased: {item_count} vs previous {previous_item_count}",
                )
            ]
        return []
