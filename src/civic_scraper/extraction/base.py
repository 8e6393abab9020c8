# ABOUTME: Protocol interface for fetching raw HTML from civic data sources
# ABOUTME: Also defines the extraction error hierarchy shared by the pipeline

from typing import Protocol


class HtmlFetcher(Protocol):
    """Protocol for fetching the HTML of a source page."""

    async def fetch_html(self, url: str) -> str:
        """Fetch the page at the given URL.

        Args:
            url: Absolute URL of the source page

        Returns:
            The response body as text

        Raises:
            FetchError: If the page cannot be retrieved
        """
        ...


class ExtractionError(Exception):
    """Base class for faults raised by the scraping pipeline."""

    pass


class FetchError(ExtractionError):
    """Raised when a source page cannot be fetched."""

    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
