# ABOUTME: Tests for field value transforms
# ABOUTME: Covers casing, markup stripping, URL resolution, regex replace, names and date parsing

import pytest

from civic_scraper.core.models import FieldTransform, TransformType
from civic_scraper.extraction.transformer import FieldTransformer, format_name, parse_date


@pytest.fixture
def transformer() -> FieldTransformer:
    return FieldTransformer()


def _apply(transformer, value, type_, params=None, base_url=None):
    return transformer.apply(value, FieldTransform(type=type_, params=params), base_url=base_url)


class TestSimpleTransforms:
    """Test trim and casing transforms."""

    def test_trim(self, transformer):
        assert _apply(transformer, "  hello \n", TransformType.TRIM) == "hello"

    def test_lowercase_and_uppercase(self, transformer):
        assert _apply(transformer, "Assembly", "lowercase") == "assembly"
        assert _apply(transformer, "Assembly", "uppercase") == "ASSEMBLY"


class TestStripHtml:
    def test_strips_nested_tags(self, transformer):
        assert _apply(transformer, "<b>Bold</b> and <i>italic</i>", "strip_html") == "Bold and italic"

    def test_keeps_innermost_text_and_trims(self, transformer):
        assert _apply(transformer, "  <div><p><span>Deep</span></p></div> ", "strip_html") == "Deep"


class TestUrlResolve:
    def test_relative_url_with_base(self, transformer):
        result = _apply(transformer, "/docs/aca13.pdf", "url_resolve", base_url="https://example.gov/measures")
        assert result == "https://example.gov/docs/aca13.pdf"

    def test_absolute_url_unchanged(self, transformer):
        url = "https://other.gov/file.pdf"
        assert _apply(transformer, url, "url_resolve", base_url="https://example.gov/") == url

    def test_relative_url_without_base_unchanged(self, transformer):
        assert _apply(transformer, "/docs/a.pdf", "url_resolve") == "/docs/a.pdf"


class TestRegexReplace:
    def test_global_replace_by_default(self, transformer):
        result = _apply(transformer, "a-b-c", "regex_replace", {"pattern": "-", "replacement": " "})
        assert result == "a b c"

    def test_first_match_only_without_global_flag(self, transformer):
        result = _apply(transformer, "a-b-c", "regex_replace", {"pattern": "-", "replacement": "", "flags": ""})
        assert result == "ab-c"

    def test_group_references(self, transformer):
        params = {"pattern": r"(\w+)-(\d+)", "replacement": "$1 $2"}
        assert _apply(transformer, "SB-42", "regex_replace", params) == "SB 42"

    def test_case_insensitive_flag(self, transformer):
        params = {"pattern": "district", "replacement": "D", "flags": "gi"}
        assert _apply(transformer, "District 30", "regex_replace", params) == "D 30"

    def test_missing_pattern_returns_input(self, transformer):
        assert _apply(transformer, "keep", "regex_replace", {"replacement": "x"}) == "keep"

    def test_invalid_pattern_returns_input(self, transformer):
        assert _apply(transformer, "keep", "regex_replace", {"pattern": "(", "replacement": "x"}) == "keep"


class TestNameFormat:
    def test_last_first_is_reordered(self):
        assert format_name("Smith, John") == "John Smith"

    def test_whitespace_is_collapsed(self):
        assert format_name("  Smith ,   John   Paul ") == "John Paul Smith"

    def test_name_without_comma_is_normalized(self):
        assert format_name("John    Smith") == "John Smith"

    def test_dangling_comma_keeps_name(self):
        assert format_name("Smith,") == "Smith,"


class TestDateParse:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("November 3, 2026", "2026-11-03"),
            ("Feb 17, 2026", "2026-02-17"),
            ("Sept. 9, 2025", "2025-09-09"),
            ("02/17/26", "2026-02-17"),
            ("11/03/2026", "2026-11-03"),
            ("2026-03-15", "2026-03-15"),
            ("Hearing on 2026-03-15 at 10am", "2026-03-15"),
            ("2026-03-15T10:00:00", "2026-03-15"),
        ],
    )
    def test_supported_formats(self, value, expected):
        assert parse_date(value) == expected

    def test_unparseable_value_returned_unchanged(self):
        assert parse_date("not a date") == "not a date"

    def test_impossible_date_returned_unchanged(self):
        assert parse_date("02/30/2026") == "02/30/2026"

    def test_via_transformer(self, transformer):
        assert _apply(transformer, "November 3, 2026", "date_parse") == "2026-11-03"
