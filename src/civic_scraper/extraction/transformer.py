# ABOUTME: Pure value transforms applied to extracted field strings
# ABOUTME: Trimming, casing, markup stripping, URL resolution, regex replace, names and dates

import re
from datetime import date, datetime
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from civic_scraper.core.models import FieldTransform, TransformType

MONTHS = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "sept": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

LONG_DATE_RE = re.compile(r"\b([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})\b")
US_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b")
ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
JS_REPLACEMENT_RE = re.compile(r"\$(\$|&|\d{1,2})")
WHITESPACE_RE = re.compile(r"\s+")

REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


class FieldTransformer:
    """Applies a FieldTransform to a single string value.

    Transforms never raise: any input that cannot be transformed is returned
    unchanged so that one bad value never aborts an extraction run.
    """

    def apply(self, value: str, transform: FieldTransform, base_url: str | None = None) -> str:
        params = transform.params or {}

        match transform.type:
            case TransformType.TRIM:
                return value.strip()
            case TransformType.LOWERCASE:
                return value.lower()
            case TransformType.UPPERCASE:
                return value.upper()
            case TransformType.STRIP_HTML:
                return strip_html(value)
            case TransformType.URL_RESOLVE:
                return resolve_url(value, base_url)
            case TransformType.REGEX_REPLACE:
                return regex_replace(value, params)
            case TransformType.NAME_FORMAT:
                return format_name(value)
            case TransformType.DATE_PARSE:
                return parse_date(value)
        return value


def strip_html(value: str) -> str:
    return BeautifulSoup(value, "html.parser").get_text().strip()


def resolve_url(value: str, base_url: str | None) -> str:
    if not value or not base_url or urlparse(value).scheme:
        return value
    return urljoin(base_url, value)


def _expand_js_replacement(replacement: str, match: re.Match[str]) -> str:
    """Expand `$1`, `$&` and `$$` references the way JavaScript replace() does."""

    def expand(ref: re.Match[str]) -> str:
        token = ref.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return match.group(0)
        index = int(token)
        if index > (match.re.groups or 0):
            return ref.group(0)
        return match.group(index) or ""

    return JS_REPLACEMENT_RE.sub(expand, replacement)


def regex_replace(value: str, params: dict[str, str]) -> str:
    pattern = params.get("pattern")
    if not pattern:
        return value

    replacement = params.get("replacement", "")
    flag_chars = params.get("flags", "g")
    flags = 0
    for char in flag_chars:
        flags |= REGEX_FLAGS.get(char, 0)

    try:
        compiled = re.compile(pattern, flags)
    except re.error:
        return value

    count = 0 if "g" in flag_chars else 1
    return compiled.sub(lambda m: _expand_js_replacement(replacement, m), value, count=count)


def format_name(value: str) -> str:
    """Turn "Last, First" into "First Last" and collapse whitespace runs."""
    name = value.strip()
    if "," in name:
        last, _, first = name.partition(",")
        last, first = last.strip(), first.strip()
        if last and first:
            name = f"{first} {last}"
    return WHITESPACE_RE.sub(" ", name).strip()


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: str) -> str:
    """Normalize a human-written date to ISO `YYYY-MM-DD`, or return the input unchanged."""
    text = value.strip()

    for match in LONG_DATE_RE.finditer(text):
        month = MONTHS.get(match.group(1).lower())
        if month is not None:
            parsed = _safe_date(int(match.group(3)), month, int(match.group(2)))
            if parsed:
                return parsed.isoformat()

    if match := US_DATE_RE.search(text):
        year = int(match.group(3))
        if year < 100:
            year += 2000
        parsed = _safe_date(year, int(match.group(1)), int(match.group(2)))
        if parsed:
            return parsed.isoformat()

    if match := ISO_DATE_RE.search(text):
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed.isoformat()

    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        return value
