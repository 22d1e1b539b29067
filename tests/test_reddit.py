"""Tests for the Reddit fetch backend."""

import httpx
import pytest

from harvest.core.content_fetcher import FetchErrorType
from harvest.core.sources import Source
from harvest.providers.reddit import NO_BODY, NO_COMMENTS, RedditFetcher, RedditPost

SOURCE = Source("r/LocalLLaMA", "reddit")


def listing(*permalinks):
    return {"data": {"children": [{"data": {"permalink": p}} for p in permalinks]}}


def post_payload(title, selftext="", comments=()):
    return [
        {
            "data": {
                "children": [
                    {
                        "data": {
                            "title": title,
                            "author": "alice",
                            "ups": 42,
                            "permalink": f"/r/LocalLLaMA/comments/{title}/",
                            "selftext": selftext,
                        }
                    }
                ]
            }
        },
        {"data": {"children": [{"kind": "t1", "data": c} for c in comments]}},
    ]


def make_fetcher(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RedditFetcher(client=client)


class TestRedditPost:
    """Tests for post rendering."""

    def test_render(self):
        post = RedditPost(
            title="New model",
            author="alice",
            upvotes=10,
            link="https://www.reddit.com/r/x/comments/1/",
            body="Body text",
            comments=("- bob: nice",),
        )
        text = post.render()
        assert text.startswith("# New model\nAuthor: alice\nUpvotes: 10\n")
        assert "Post:\nBody text" in text
        assert "Top Comments:\n- bob: nice" in text

    def test_render_without_comments(self):
        post = RedditPost(title="t", author="a", upvotes=0, link="l", body="b")
        assert f"Top Comments:\n{NO_COMMENTS}" in post.render()


class TestRedditFetcher:
    """Tests for RedditFetcher."""

    @pytest.mark.asyncio
    async def test_top_posts_with_comments(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path == "/r/LocalLLaMA/top.json":
                return httpx.Response(200, json=listing("/r/LocalLLaMA/comments/one/"))
            comments = [
                {"author": "bob", "body": "first\n\nline"},
                {"author": "carol", "body": "second"},
                {"author": "dave", "body": "third"},
                {"author": "erin", "body": "fourth"},
            ]
            return httpx.Response(200, json=post_payload("one", "Self text", comments))

        result = await make_fetcher(handler).fetch(SOURCE)

        assert result.success is True
        assert seen[0].url.params["t"] == "day"
        assert seen[0].url.params["limit"] == "5"
        assert seen[1].url.path == "/r/LocalLLaMA/comments/one.json"
        assert "# one" in result.text
        assert "Self text" in result.text
        assert "- bob: first line" in result.text
        assert "- dave: third" in result.text
        assert "erin" not in result.text

    @pytest.mark.asyncio
    async def test_link_post_placeholder_and_more_stub(self):
        def handler(request):
            if request.url.path.endswith("top.json"):
                return httpx.Response(200, json=listing("/r/LocalLLaMA/comments/two/"))
            return httpx.Response(200, json=post_payload("two", "", [{"count": 12}]))

        result = await make_fetcher(handler).fetch(SOURCE)

        assert NO_BODY in result.text
        assert NO_COMMENTS in result.text

    @pytest.mark.asyncio
    async def test_failed_post_is_skipped(self):
        def handler(request):
            if request.url.path.endswith("top.json"):
                return httpx.Response(
                    200,
                    json=listing("/r/LocalLLaMA/comments/bad/", "/r/LocalLLaMA/comments/good/"),
                )
            if "bad" in request.url.path:
                return httpx.Response(500)
            return httpx.Response(200, json=post_payload("good"))

        result = await make_fetcher(handler).fetch(SOURCE)

        assert result.success is True
        assert "# good" in result.text
        assert "# bad" not in result.text

    @pytest.mark.asyncio
    async def test_null_comment_payload_skips_only_that_post(self):
        def handler(request):
            if request.url.path.endswith("top.json"):
                return httpx.Response(
                    200,
                    json=listing("/r/LocalLLaMA/comments/broken/", "/r/LocalLLaMA/comments/fine/"),
                )
            if "broken" in request.url.path:
                payload = post_payload("broken")
                payload[1] = {"data": {"children": [{"data": None}, "junk"]}}
                return httpx.Response(200, json=payload)
            return httpx.Response(200, json=post_payload("fine", comments=[{"author": "bob", "body": "hi"}]))

        result = await make_fetcher(handler).fetch(SOURCE)

        assert result.success is True
        assert "# fine" in result.text
        assert "- bob: hi" in result.text
        assert "# broken" in result.text
        assert NO_COMMENTS in result.text

    @pytest.mark.asyncio
    async def test_non_dict_post_payload_is_skipped(self):
        def handler(request):
            if request.url.path.endswith("top.json"):
                return httpx.Response(
                    200,
                    json=listing("/r/LocalLLaMA/comments/odd/", "/r/LocalLLaMA/comments/fine/"),
                )
            if "odd" in request.url.path:
                return httpx.Response(200, json=[{"data": {"children": [None]}}, None])
            return httpx.Response(200, json=post_payload("fine"))

        result = await make_fetcher(handler).fetch(SOURCE)

        assert result.success is True
        assert "# fine" in result.text
        assert "odd" not in result.text

    @pytest.mark.asyncio
    async def test_no_posts_is_placeholder(self):
        def handler(request):
            return httpx.Response(200, json=listing())

        result = await make_fetcher(handler).fetch(SOURCE)
        assert result.success is True
        assert result.placeholder is True

    @pytest.mark.asyncio
    async def test_listing_error(self):
        def handler(request):
            return httpx.Response(429)

        result = await make_fetcher(handler).fetch(SOURCE)
        assert result.error_type == FetchErrorType.HTTP_4XX

    @pytest.mark.asyncio
    async def test_malformed_listing(self):
        def handler(request):
            return httpx.Response(200, json={"kind": "Listing"})

        result = await make_fetcher(handler).fetch(SOURCE)
        assert result.error_type == FetchErrorType.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_url_source_rejected(self):
        result = await RedditFetcher().fetch(Source("https://example.com"))
        assert result.error_type == FetchErrorType.UNSUPPORTED_LOCATOR
