# ABOUTME: Deterministic extraction of repeating items from HTML using a structural manifest
# ABOUTME: BeautifulSoup/soupsieve CSS selection, preprocessing, field mappings and transforms

import re

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from civic_scraper.core.models import FieldMapping, PreprocessingStep, RawExtractionResult, StructuralManifest
from civic_scraper.extraction.transformer import FieldTransformer
from civic_scraper.utils.logging import get_logger


class ManifestExtractor:
    """Applies a manifest's extraction rules to a page.

    This is the cheap, repeatable step of the pipeline: no LLM calls and no
    exceptions for extraction misses. Selector misses and skipped items are
    reported through the result's ``errors`` and ``warnings``.
    """

    def __init__(self, transformer: FieldTransformer | None = None):
        self.transformer = transformer or FieldTransformer()
        self.logger = get_logger(__name__)

    def extract(self, html: str, manifest: StructuralManifest, base_url: str | None = None) -> RawExtractionResult:
        rules = manifest.extraction_rules
        warnings: list[str] = []
        soup = BeautifulSoup(html, "html.parser")

        try:
            containers = soup.select(rules.container_selector)
        except SelectorSyntaxError as e:
            return RawExtractionResult(success=False, errors=[f"Invalid container selector: {e}"])

        if not containers:
            self.logger.warning(
                "Container not found", selector=rules.container_selector, source_url=manifest.source_url
            )
            return RawExtractionResult(success=False, errors=[f"Container not found: {rules.container_selector}"])

        if len(containers) > 1:
            warnings.append(
                f'Multiple containers found ({len(containers)}) for "{rules.container_selector}", using first'
            )
        container = containers[0]

        for step in rules.preprocessing:
            self._apply_preprocessing(container, step, warnings)

        try:
            elements = container.select(rules.item_selector)
        except SelectorSyntaxError as e:
            return RawExtractionResult(success=False, warnings=warnings, errors=[f"Invalid item selector: {e}"])

        if not elements:
            self.logger.warning(
                "No items found",
                item_selector=rules.item_selector,
                container_selector=rules.container_selector,
                source_url=manifest.source_url,
            )
            return RawExtractionResult(
                success=False,
                warnings=warnings,
                errors=[f"No items found: {rules.item_selector} within {rules.container_selector}"],
            )

        items: list[dict[str, str]] = []
        for index, element in enumerate(elements):
            item, missing = self._extract_item(element, rules.field_mappings, base_url)
            if missing:
                quoted = ", ".join(f'"{name}"' for name in missing)
                warnings.append(f"Skipped item {index + 1}: required field {quoted} missing")
                continue
            items.append(item)

        self.logger.debug(
            "Extracted items",
            source_url=manifest.source_url,
            matched=len(elements),
            item_count=len(items),
            warning_count=len(warnings),
        )
        return RawExtractionResult(items=items, success=True, warnings=warnings)

    def _extract_item(
        self, element: Tag, mappings: list[FieldMapping], base_url: str | None
    ) -> tuple[dict[str, str], list[str]]:
        """Extract one item, returning it with the names of unresolved required fields."""
        item: dict[str, str] = {}
        missing: list[str] = []

        for mapping in mappings:
            value = self._read_value(element, mapping)
            if value and mapping.transform:
                value = self.transformer.apply(value, mapping.transform, base_url)
            if not value and not mapping.required and mapping.default_value is not None:
                value = mapping.default_value

            if value:
                item[mapping.field_name] = value
            elif mapping.required:
                missing.append(mapping.field_name)

        return item, missing

    def _read_value(self, element: Tag, mapping: FieldMapping) -> str | None:
        if mapping.selector.strip():
            try:
                target = element.select_one(mapping.selector)
            except SelectorSyntaxError:
                return None
        else:
            target = element

        if target is None:
            return None

        match mapping.extraction_method:
            case "text":
                return target.get_text().strip() or None
            case "attribute":
                if not mapping.attribute:
                    return None
                raw = target.get(mapping.attribute)
                # Multi-valued attributes such as class come back as lists
                if isinstance(raw, list):
                    raw = " ".join(raw)
                return raw or None
            case "html":
                return target.decode_contents().strip() or None
            case "regex":
                return self._read_regex(target.get_text(), mapping)
        return None

    @staticmethod
    def _read_regex(text: str, mapping: FieldMapping) -> str | None:
        if not mapping.regex_pattern:
            return None
        try:
            match = re.search(mapping.regex_pattern, text)
        except re.error:
            return None
        if match is None:
            return None
        group = mapping.regex_group or 0
        if group > (match.re.groups or 0):
            return None
        return match.group(group) or None

    def _apply_preprocessing(self, container: Tag, step: PreprocessingStep, warnings: list[str]) -> None:
        try:
            matched = container.select(step.selector)
        except SelectorSyntaxError:
            warnings.append(f"Invalid preprocessing selector skipped: {step.selector}")
            return

        match step.type:
            case "remove_elements":
                for node in matched:
                    # Nested matches are already gone with their ancestor
                    if not node.decomposed:
                        node.decompose()
            case "unwrap_elements":
                for node in matched:
                    node.unwrap()
            case "merge_tables":
                self._merge_tables(matched)

    @staticmethod
    def _merge_tables(tables: list[Tag]) -> None:
        """Move the rows of every matched table into the first one."""
        if len(tables) < 2:
            return

        first = tables[0]
        target = first.find("tbody") or first
        for table in tables[1:]:
            for row in table.find_all("tr"):
                target.append(row.extract())
            table.decompose()
