"""Reddit JSON API client.

Reads the day's top posts of a subreddit and renders each post with its
body and top comments as a plain-text block.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
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

REDDIT_BASE_URL = "https://www.reddit.com"
REDDIT_USER_AGENT = "Mozilla/5.0 (compatible; LocalScraper/1.0)"

NO_BODY = "[No text content — link/image post]"
NO_COMMENTS = "No comments"
POST_SEPARATOR = "-----------------------------"

_NEWLINES = re.compile(r"\n+")


@dataclass(frozen=True)
class RedditPost:
    """A subreddit post with its top comments."""

    title: str
    author: str
    upvotes: int
    link: str
    body: str
    comments: tuple[str, ...] = ()

    def render(self) -> str:
        comments = "\n".join(self.comments) or NO_COMMENTS
        return (
            f"# {self.title}\n"
            f"Author: {self.author}\n"
            f"Upvotes: {self.upvotes}\n"
            f"Link: {self.link}\n\n"
            f"Post:\n{self.body}\n\n"
            f"Top Comments:\n{comments}\n\n"
            f"{POST_SEPARATOR}\n"
        )


class RedditFetcher(BaseFetcher):
    """Fetches ``r/<subreddit>`` sources from Reddit's public JSON endpoints."""

    name = "reddit"

    def __init__(
        self,
        timeout: float = 30.0,
        post_limit: int = 5,
        comment_limit: int = 3,
        base_url: str = REDDIT_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.post_limit = post_limit
        self.comment_limit = comment_limit
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"User-Agent": REDDIT_USER_AGENT},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, source: Source) -> FetchResult:
        subreddit = source.subreddit
        if not subreddit:
            return FetchResult.failed(
                source,
                FetchErrorType.UNSUPPORTED_LOCATOR,
                f"Not a subreddit locator: {source.locator}",
            )

        try:
            client = await self._get_client()
            response = await client.get(
                f"{self.base_url}/r/{subreddit}/top.json",
                params={"t": "day", "limit": str(self.post_limit)},
            )

            error_type = classify_status(response.status_code)
            if error_type is not None:
                return FetchResult.failed(
                    source,
                    error_type,
                    f"Reddit HTTP {response.status_code} for r/{subreddit}",
                    http_status=response.status_code,
                )

            children = response.json()["data"]["children"][: self.post_limit]
            permalinks = [child["data"]["permalink"] for child in children]

        except (KeyError, TypeError) as e:
            return FetchResult.failed(
                source,
                FetchErrorType.MALFORMED_RESPONSE,
                f"Unexpected listing shape for r/{subreddit}: {e}",
            )
        except Exception as e:
            if not isinstance(e, (httpx.HTTPError, ValueError)):
                logger.exception(f"Unexpected error listing r/{subreddit}")
            return classify_exception(source, e, self.timeout)

        blocks = []
        for permalink in permalinks:
            post = await self.fetch_post(permalink)
            if post is not None:
                blocks.append(post.render())

        return FetchResult.ok(source, "\n".join(blocks), http_status=response.status_code)

    async def fetch_post(self, permalink: str) -> RedditPost | None:
        """Fetch one post with its top comments. Returns None on any failure."""
        if not isinstance(permalink, str) or not permalink:
            return None
        url = f"{self.base_url}{permalink.rstrip('/')}.json"
        try:
            client = await self._get_client()
            response = await client.get(url)
            response.raise_for_status()
            return self._parse_post(response.json())
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.warning(f"Error fetching post details: {url}", extra={"meta": {"error": str(e)}})
            return None

    def _parse_post(self, data: Any) -> RedditPost:
        """Convert a ``<permalink>.json`` payload (post listing + comment listing)."""
        post = data[0]["data"]["children"][0]["data"]

        comments = []
        for child in data[1]["data"]["children"]:
            if len(comments) >= self.comment_limit:
                break
            comment = child.get("data") if isinstance(child, dict) else None
            # "more" placeholders carry no body
            if not isinstance(comment, dict) or not comment.get("body"):
                continue
            body = str(comment["body"])
            comments.append(f"- {comment.get('author', '[deleted]')}: {_NEWLINES.sub(' ', body).strip()}")

        return RedditPost(
            title=post.get("title", ""),
            author=post.get("author", "[deleted]"),
            upvotes=int(post.get("ups", 0)),
            link=f"{self.base_url}{post.get('permalink', '')}",
            body=post.get("selftext") or NO_BODY,
            comments=tuple(comments),
        )
