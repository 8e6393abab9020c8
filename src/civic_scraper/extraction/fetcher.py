# ABOUTME: HTTP fetcher for source pages built on httpx with tenacity retries
# ABOUTME: Retries transport errors and 5xx responses, raises FetchError for anything else

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from civic_scraper.config import get_config
from civic_scraper.extraction.base import FetchError
from civic_scraper.utils.logging import get_logger, log_api_call


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    return isinstance(error, FetchError) and error.status_code is not None and error.status_code >= 500


class HttpHtmlFetcher:
    """Fetches source pages over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        user_agent: str | None = None,
    ):
        config = get_config()
        self.max_attempts = max_attempts or config.fetch_max_attempts
        self.http_client = client or httpx.AsyncClient(  # Allow for dependency injection
            headers={"User-Agent": user_agent or config.user_agent},
            timeout=timeout or config.fetch_timeout_seconds,
            follow_redirects=True,
        )
        self.logger = get_logger(__name__)

    async def fetch_html(self, url: str) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5.0),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._get(url)
        except httpx.TransportError as e:
            raise FetchError(f"Failed to fetch {url}: {e}", url=url) from e
        raise FetchError(f"Failed to fetch {url}", url=url)

    @log_api_call("source_page")
    async def _get(self, url: str) -> str:
        response = await self.http_client.get(url)
        if response.is_error:
            raise FetchError(
                f"Fetching {url} returned HTTP {response.status_code}", url=url, status_code=response.status_code
            )
        return response.text

    async def close(self) -> None:
        await self.http_client.aclose()
