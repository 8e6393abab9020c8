# ABOUTME: Structural fingerprinting of HTML pages
# ABOUTME: Reduces a page to its tag/class/id/role skeleton and hashes it to detect layout changes

import hashlib

from bs4 import BeautifulSoup, Comment, Tag

# Elements that carry no layout information for extraction
NOISE_ELEMENTS = ["script", "style", "noscript", "svg", "iframe", "link", "meta"]
SKELETON_ATTRIBUTES = ("class", "id", "role")


def _strip_noise(soup: BeautifulSoup) -> None:
    for element in soup.find_all(NOISE_ELEMENTS):
        if not element.decomposed:
            element.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


def _skeleton(element: Tag) -> str:
    attrs = []
    for name in SKELETON_ATTRIBUTES:
        value = element.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        if value:
            attrs.append(f' {name}="{value}"')

    children = "".join(_skeleton(child) for child in element.children if isinstance(child, Tag))
    return f"<{element.name}{''.join(attrs)}>{children}</{element.name}>"


def extract_html_skeleton(html: str) -> str:
    """Return the page's element tree with text and non-structural attributes removed."""
    soup = BeautifulSoup(html, "html.parser")
    _strip_noise(soup)

    root = soup.body or soup
    return "".join(_skeleton(child) for child in root.children if isinstance(child, Tag))


def compute_structure_hash(html: str) -> str:
    """SHA-256 hex digest of the page skeleton; unchanged by text-only edits."""
    return hashlib.sha256(extract_html_skeleton(html).encode("utf-8")).hexdigest()
