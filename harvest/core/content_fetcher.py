"""Content fetchers for harvest sources.

- ContentFetcher: direct HTTP fetch + trafilatura extraction
- RoutingFetcher: picks Reddit / Firecrawl / direct per source
- fetch_with_retry(): bounded retries on transient failures

Fetchers never raise for expected failures; they return a FetchResult.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import httpx
import trafilatura
from trafilatura.settings import use_config

from harvest.core.sources import Source

logger = logging.getLogger(__name__)


class FetchErrorType(str, Enum):
    """Classification of fetch errors for retry strategy."""

    TIMEOUT = "timeout"  # Retriable
    HTTP_4XX = "http_4xx"  # Not retriable (404, 403, etc.)
    HTTP_5XX = "http_5xx"  # Retriable (server error)
    CONNECTION_ERROR = "connection_error"  # Retriable
    AUTH_MISSING = "auth_missing"  # Not retriable (no API key configured)
    BACKEND_ERROR = "backend_error"  # Not retriable (API reported failure)
    MALFORMED_RESPONSE = "malformed_response"  # Not retriable
    UNSUPPORTED_LOCATOR = "unsupported_locator"  # Not retriable


# Error types that can be retried
RETRIABLE_ERRORS = {FetchErrorType.TIMEOUT, FetchErrorType.HTTP_5XX, FetchErrorType.CONNECTION_ERROR}


def empty_placeholder(source: Source) -> str:
    """Marker text stored when a backend returns a valid but empty body."""
    return f"[No content found for {source.locator}]"


@dataclass
class FetchResult:
    """Result of a content fetch operation."""

    source: Source
    success: bool
    text: str | None = None
    char_count: int = 0
    placeholder: bool = False
    error_type: FetchErrorType | None = None
    error_message: str | None = None
    http_status: int | None = None

    @property
    def retriable(self) -> bool:
        """Whether this error can be retried."""
        return self.error_type in RETRIABLE_ERRORS if self.error_type else False

    @classmethod
    def ok(cls, source: Source, text: str | None, http_status: int | None = None) -> FetchResult:
        """Successful fetch; empty text becomes an explicit placeholder."""
        if not text or not text.strip():
            marker = empty_placeholder(source)
            return cls(
                source=source,
                success=True,
                text=marker,
                char_count=len(marker),
                placeholder=True,
                http_status=http_status,
            )
        return cls(
            source=source,
            success=True,
            text=text,
            char_count=len(text),
            http_status=http_status,
        )

    @classmethod
    def failed(
        cls,
        source: Source,
        error_type: FetchErrorType,
        error_message: str,
        http_status: int | None = None,
    ) -> FetchResult:
        return cls(
            source=source,
            success=False,
            error_type=error_type,
            error_message=error_message,
            http_status=http_status,
        )


def classify_status(status_code: int) -> FetchErrorType | None:
    """Map an HTTP status to an error type, or None for 2xx/3xx."""
    if status_code >= 500:
        return FetchErrorType.HTTP_5XX
    if status_code >= 400:
        return FetchErrorType.HTTP_4XX
    return None


def classify_exception(source: Source, e: Exception, timeout: float) -> FetchResult:
    """Convert an httpx/transport exception into a failed FetchResult."""
    if isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError)):
        return FetchResult.failed(source, FetchErrorType.TIMEOUT, f"Request timed out after {timeout}s")
    if isinstance(e, (httpx.ConnectError, httpx.NetworkError)):
        return FetchResult.failed(source, FetchErrorType.CONNECTION_ERROR, f"Connection error: {e}")
    if isinstance(e, ValueError):
        return FetchResult.failed(source, FetchErrorType.MALFORMED_RESPONSE, f"Malformed response: {e}")
    return FetchResult.failed(
        source,
        FetchErrorType.BACKEND_ERROR,
        f"Unexpected error: {type(e).__name__}: {e}",
    )


# Maximum content size to fetch (10MB)
MAX_CONTENT_SIZE = 10 * 1024 * 1024

# HTTP timeout
FETCH_TIMEOUT = 30.0

USER_AGENT = "Mozilla/5.0 (compatible; KnowledgeHarvest/1.0)"


class BaseFetcher(ABC):
    """A backend that turns a Source into raw text."""

    name: str = "base"

    @abstractmethod
    async def fetch(self, source: Source) -> FetchResult:
        """Fetch raw text for a source. Must not raise for backend failures."""
        ...

    async def close(self) -> None:
        """Release network resources."""


class ContentFetcher(BaseFetcher):
    """Fetches a page over HTTP and extracts its main text with trafilatura."""

    name = "direct"

    def __init__(
        self,
        timeout: float = FETCH_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout

        # Configure trafilatura for better extraction
        self._config = use_config()
        self._config.set("DEFAULT", "EXTRACTION_TIMEOUT", "30")

        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": USER_AGENT,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.9",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def extract(self, html: str) -> str | None:
        """Extract readable text from an HTML document."""
        return trafilatura.extract(
            html,
            config=self._config,
            include_comments=False,
            include_tables=True,
            no_fallback=False,
            favor_recall=True,
        )

    async def fetch(self, source: Source) -> FetchResult:
        """Fetch and extract content from a URL source."""
        url = source.locator
        if not url.startswith(("http://", "https://")):
            return FetchResult.failed(
                source,
                FetchErrorType.UNSUPPORTED_LOCATOR,
                f"Not an http(s) URL: {url}",
            )

        try:
            client = await self._get_client()
            response = await client.get(url)

            error_type = classify_status(response.status_code)
            if error_type is not None:
                return FetchResult.failed(
                    source,
                    error_type,
                    f"HTTP {response.status_code} from {url}",
                    http_status=response.status_code,
                )

            content_length = response.headers.get("content-length")
            if content_length and int(content_length) > MAX_CONTENT_SIZE:
                return FetchResult.failed(
                    source,
                    FetchErrorType.MALFORMED_RESPONSE,
                    f"Content too large: {content_length} bytes",
                    http_status=response.status_code,
                )

            html = response.text

            # trafilatura is CPU-bound
            fulltext = await asyncio.get_running_loop().run_in_executor(None, self.extract, html)
            return FetchResult.ok(source, fulltext, http_status=response.status_code)

        except Exception as e:
            if not isinstance(e, httpx.HTTPError):
                logger.exception(f"Unexpected error fetching {url}")
            return classify_exception(source, e, self.timeout)


class RoutingFetcher(BaseFetcher):
    """Dispatches each source to the backend that understands its locator.

    - ``r/<name>`` -> Reddit JSON API
    - URLs -> Firecrawl when configured, else direct extraction
    """

    name = "routing"

    def __init__(
        self,
        direct: BaseFetcher,
        reddit: BaseFetcher | None = None,
        firecrawl: BaseFetcher | None = None,
    ) -> None:
        self.direct = direct
        self.reddit = reddit
        self.firecrawl = firecrawl

    def backend_for(self, source: Source) -> BaseFetcher | None:
        if source.is_reddit:
            return self.reddit
        if self.firecrawl is not None:
            return self.firecrawl
        return self.direct

    async def fetch(self, source: Source) -> FetchResult:
        backend = self.backend_for(source)
        if backend is None:
            return FetchResult.failed(
                source,
                FetchErrorType.UNSUPPORTED_LOCATOR,
                f"No fetch backend configured for {source.locator}",
            )
        logger.debug(f"Fetching {source.locator} via {backend.name}")
        return await backend.fetch(source)

    async def close(self) -> None:
        for backend in (self.direct, self.reddit, self.firecrawl):
            if backend is not None:
                await backend.close()


async def fetch_with_retry(
    fetcher: BaseFetcher,
    source: Source,
    *,
    retries: int = 2,
    timeout: float = FETCH_TIMEOUT,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> FetchResult:
    """Fetch with a hard timeout and exponential backoff on retriable errors.

    Args:
        fetcher: Backend to call
        source: Source to fetch
        retries: Extra attempts after the first one
        timeout: Seconds allowed per attempt
        base_delay: Initial backoff delay in seconds
        max_delay: Maximum delay between attempts

    Returns:
        The first successful or non-retriable result, else the last failure.
    """
    delay = base_delay
    attempts = max(retries, 0) + 1

    for attempt in range(attempts):
        try:
            result = await asyncio.wait_for(fetcher.fetch(source), timeout=timeout)
        except asyncio.TimeoutError as e:
            result = classify_exception(source, e, timeout)

        if result.success or not result.retriable or attempt == attempts - 1:
            return result

        logger.warning(
            f"Retrying fetch for {source.locator} in {delay:.1f}s "
            f"(attempt {attempt + 1}/{attempts})",
            extra={"meta": {"error_type": result.error_type.value}},
        )
        await asyncio.sleep(delay)
        delay = min(delay * 2, max_delay)

    return result
