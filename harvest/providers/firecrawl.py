"""Firecrawl scrape API client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from harvest.core.content_fetcher import (
    BaseFetcher,
    FetchErrorType,
    FetchResult,
    classify_exception,
    classify_status,
)
from harvest.core.sources import Source

logger = logging.getLogger(__name__)

FIRECRAWL_BASE_URL = "https://api.firecrawl.dev"


class FirecrawlFetcher(BaseFetcher):
    """Scrapes a URL through Firecrawl's ``/v1/scrape`` endpoint as markdown."""

    name = "firecrawl"

    def __init__(
        self,
        api_key: str,
        base_url: str = FIRECRAWL_BASE_URL,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, source: Source) -> FetchResult:
        if not self._api_key:
            return FetchResult.failed(
                source,
                FetchErrorType.AUTH_MISSING,
                "FIRECRAWL_API_KEY not set",
            )

        try:
            client = await self._get_client()
            response = await client.post(
                f"{self.base_url}/v1/scrape",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "url": source.locator,
                    "formats": ["markdown"],
                    "onlyMainContent": True,
                },
            )

            error_type = classify_status(response.status_code)
            if error_type is not None:
                return FetchResult.failed(
                    source,
                    error_type,
                    f"Firecrawl HTTP {response.status_code}: {response.text[:200]}",
                    http_status=response.status_code,
                )

            payload = response.json()
            return self._parse(source, payload, response.status_code)

        except Exception as e:
            if not isinstance(e, (httpx.HTTPError, ValueError)):
                logger.exception(f"Unexpected error scraping {source.locator} via Firecrawl")
            return classify_exception(source, e, self.timeout)

    def _parse(self, source: Source, payload: Any, http_status: int) -> FetchResult:
        """Pull page text out of a scrape response.

        Expected shape: ``{"success": true, "data": {"markdown": "..."}}``.
        Older deployments return ``content`` instead of ``markdown``.
        """
        if not isinstance(payload, dict):
            return FetchResult.failed(
                source,
                FetchErrorType.MALFORMED_RESPONSE,
                f"Expected JSON object, got {type(payload).__name__}",
                http_status=http_status,
            )

        if payload.get("success") is False:
            return FetchResult.failed(
                source,
                FetchErrorType.BACKEND_ERROR,
                f"Firecrawl error: {payload.get('error', 'unknown error')}",
                http_status=http_status,
            )

        data = payload.get("data")
        if not isinstance(data, dict):
            return FetchResult.failed(
                source,
                FetchErrorType.MALFORMED_RESPONSE,
                "Response has no 'data' object",
                http_status=http_status,
            )

        text = data.get("markdown") or data.get("content") or ""
        return FetchResult.ok(source, text, http_status=http_status)
