# ABOUTME: Tests for deterministic manifest-driven extraction
# ABOUTME: Container/item matching, field methods, transforms, defaults, required fields and preprocessing

import pytest

from civic_scraper.core.models import FieldMapping, PreprocessingStep
from civic_scraper.extraction.extractor import ManifestExtractor

BASE_URL = "https://example.gov/measures"


@pytest.fixture
def extractor() -> ManifestExtractor:
    return ManifestExtractor()


class TestContainerAndItems:
    """Test container and item selection outcomes."""

    def test_extracts_all_items(self, extractor, propositions_html, manifest):
        result = extractor.extract(propositions_html, manifest, base_url=BASE_URL)

        assert result.success is True
        assert result.errors == []
        assert [item["externalId"] for item in result.items] == ["ACA-13", "SB-42", "PROP-36"]

    def test_missing_container_is_reported_as_data(self, extractor, propositions_html, manifest_factory, rules_factory):
        manifest = manifest_factory(extraction_rules=rules_factory(container_selector="#nope"))

        result = extractor.extract(propositions_html, manifest)

        assert result.success is False
        assert result.items == []
        assert result.warnings == []
        assert result.errors == ["Container not found: #nope"]

    def test_missing_items_is_reported_as_data(self, extractor, propositions_html, manifest_factory, rules_factory):
        manifest = manifest_factory(extraction_rules=rules_factory(item_selector=".ballot"))

        result = extractor.extract(propositions_html, manifest)

        assert result.success is False
        assert result.items == []
        assert result.errors == ["No items found: .ballot within #measures"]

    def test_multiple_containers_use_first_with_warning(self, extractor, manifest_factory, rules_factory):
        html = """
        <div class="list"><p class="row"><b>A</b></p></div>
        <div class="list"><p class="row"><b>B</b></p></div>
        """
        rules = rules_factory(
            container_selector=".list",
            item_selector=".row",
            field_mappings=[FieldMapping(field_name="name", selector="b", required=True)],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.items == [{"name": "A"}]
        assert result.warnings == ['Multiple containers found (2) for ".list", using first']


class TestFieldExtraction:
    def test_transforms_are_applied(self, extractor, propositions_html, manifest):
        result = extractor.extract(propositions_html, manifest, base_url=BASE_URL)

        first, second, third = result.items
        assert first["electionDate"] == "2026-11-03"
        assert second["electionDate"] == "2026-11-03"
        assert third["electionDate"] == "2026-11-03"
        assert first["sourceUrl"] == "https://example.gov/docs/aca13.pdf"
        assert second["sourceUrl"] == "https://example.gov/docs/sb42.pdf"

    def test_text_is_trimmed(self, extractor, propositions_html, manifest):
        result = extractor.extract(propositions_html, manifest)
        assert result.items[2]["title"] == "Drug and Theft Crime Penalties"

    def test_missing_optional_field_is_omitted(self, extractor, propositions_html, manifest):
        result = extractor.extract(propositions_html, manifest)
        assert "sourceUrl" not in result.items[2]

    def test_default_value_for_optional_field(self, extractor, propositions_html, manifest_factory, rules_factory):
        rules = rules_factory(
            field_mappings=[
                FieldMapping(field_name="externalId", selector=".measure-id", required=True),
                FieldMapping(field_name="status", selector=".status", default_value="pending"),
            ]
        )

        result = extractor.extract(propositions_html, manifest_factory(extraction_rules=rules))

        assert all(item["status"] == "pending" for item in result.items)

    def test_regex_method_defaults_to_whole_match(self, extractor, propositions_html, manifest_factory, rules_factory):
        rules = rules_factory(
            field_mappings=[
                FieldMapping(field_name="number", selector=".measure-id", extraction_method="regex", regex_pattern=r"\d+"),
                FieldMapping(
                    field_name="prefix",
                    selector=".measure-id",
                    extraction_method="regex",
                    regex_pattern=r"([A-Z]+)-(\d+)",
                    regex_group=1,
                ),
            ]
        )

        result = extractor.extract(propositions_html, manifest_factory(extraction_rules=rules))

        assert result.items[0] == {"number": "13", "prefix": "ACA"}
        assert result.items[1] == {"number": "42", "prefix": "SB"}

    def test_empty_selector_reads_item_itself(self, extractor, manifest_factory, rules_factory):
        html = '<ul id="reps"><li data-id="30">Smith, John</li><li data-id="31">Doe, Jane</li></ul>'
        rules = rules_factory(
            container_selector="#reps",
            item_selector="li",
            field_mappings=[
                FieldMapping(field_name="name", selector="", transform={"type": "name_format"}, required=True),
                FieldMapping(field_name="district", selector="", extraction_method="attribute", attribute="data-id"),
            ],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.items == [{"name": "John Smith", "district": "30"}, {"name": "Jane Doe", "district": "31"}]

    def test_html_method_returns_inner_markup(self, extractor, manifest_factory, rules_factory):
        html = '<div id="c"><div class="i"><p class="body"><b>Bold</b> text</p></div></div>'
        rules = rules_factory(
            container_selector="#c",
            item_selector=".i",
            field_mappings=[FieldMapping(field_name="body", selector=".body", extraction_method="html")],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.items == [{"body": "<b>Bold</b> text"}]


class TestRequiredFields:
    def test_item_missing_required_field_is_skipped_not_failed(self, extractor, manifest_factory, rules_factory):
        html = """
        <table id="t">
          <tr class="r"><td class="name">Alpha</td><td class="id">1</td></tr>
          <tr class="r"><td class="name">Beta</td><td class="id"></td></tr>
          <tr class="r"><td class="name">Gamma</td><td class="id">3</td></tr>
        </table>
        """
        rules = rules_factory(
            container_selector="#t",
            item_selector="tr.r",
            field_mappings=[
                FieldMapping(field_name="name", selector=".name", required=True),
                FieldMapping(field_name="id", selector=".id", required=True),
            ],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.success is True
        assert result.errors == []
        assert [item["name"] for item in result.items] == ["Alpha", "Gamma"]
        assert result.warnings == ['Skipped item 2: required field "id" missing']

    def test_default_value_does_not_satisfy_required_field(self, extractor, manifest_factory, rules_factory):
        html = '<div id="c"><p class="i"></p></div>'
        rules = rules_factory(
            container_selector="#c",
            item_selector=".i",
            field_mappings=[FieldMapping(field_name="title", selector="", required=True, default_value="x")],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.success is True
        assert result.items == []


class TestPreprocessing:
    def test_remove_elements_before_extraction(self, extractor, manifest_factory, rules_factory):
        html = """
        <div id="c">
          <div class="i"><span class="t">Keep</span></div>
          <div class="i ad"><span class="t">Sponsored</span></div>
        </div>
        """
        rules = rules_factory(
            container_selector="#c",
            item_selector=".i",
            field_mappings=[FieldMapping(field_name="t", selector=".t", required=True)],
            preprocessing=[PreprocessingStep(type="remove_elements", selector=".ad")],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.items == [{"t": "Keep"}]

    def test_unwrap_elements_keeps_children(self, extractor, manifest_factory, rules_factory):
        html = '<div id="c"><section class="wrap"><p class="i">One</p></section><p class="i">Two</p></div>'
        rules = rules_factory(
            container_selector="#c",
            item_selector="#c > p.i",
            field_mappings=[FieldMapping(field_name="t", selector="")],
            preprocessing=[PreprocessingStep(type="unwrap_elements", selector="section.wrap")],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.items == [{"t": "One"}, {"t": "Two"}]

    def test_merge_tables_moves_rows_into_first_table(self, extractor, manifest_factory, rules_factory):
        html = """
        <div id="c">
          <table class="part"><tbody><tr><td>A</td></tr></tbody></table>
          <table class="part"><tbody><tr><td>B</td></tr><tr><td>C</td></tr></tbody></table>
        </div>
        """
        rules = rules_factory(
            container_selector="#c",
            item_selector="table.part tr",
            field_mappings=[FieldMapping(field_name="cell", selector="td")],
            preprocessing=[PreprocessingStep(type="merge_tables", selector="table.part")],
        )

        result = extractor.extract(html, manifest_factory(extraction_rules=rules))

        assert result.items == [{"cell": "A"}, {"cell": "B"}, {"cell": "C"}]
        assert result.warnings == []
