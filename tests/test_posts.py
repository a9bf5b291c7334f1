"""
Tests for post URL recognition and oEmbed lookup.
"""
import asyncio

import httpx
import pytest

from engine.sources.posts import (
    FetchError,
    UnsupportedURLError,
    extract_post_id,
    fetch_post,
    looks_like_post_url,
)

_OEMBED_HTML = (
    '<blockquote class="twitter-tweet"><p lang="en" dir="ltr">Just launched my new project! '
    '&amp; more<br>second line <a href="https://twitter.com/hashtag/startup">#startup</a></p>'
    '&mdash; John Developer (@johndev) <a href="https://twitter.com/johndev/status/1234567890">'
    'January 15, 2024</a></blockquote>'
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _run(coro_factory):
    """Run an async test body that needs a client bound to the running loop."""
    return asyncio.run(coro_factory())


class TestExtractPostId:

    @pytest.mark.parametrize("url", [
        "https://twitter.com/johndev/status/1234567890",
        "https://x.com/johndev/status/1234567890",
        "https://mobile.twitter.com/johndev/status/1234567890",
        "x.com/johndev/status/1234567890?s=20",
        "https://www.twitter.com/johndev/status/1234567890/photo/1",
    ])
    def test_recognised(self, url):
        assert extract_post_id(url) == "1234567890"

    @pytest.mark.parametrize("url", [
        "https://fox.com/johndev/status/1234567890",
        "https://twitter.com/johndev",
        "https://x.com/johndev/status/abc",
        "https://example.com/status/1",
        "https://evil.com/x.com/a/status/1",
        "https://notx.com/a/status/1",
        "",
    ])
    def test_rejected(self, url):
        assert extract_post_id(url) is None

    def test_looks_like_post_url_needs_single_token(self):
        assert looks_like_post_url("  https://x.com/a/status/1 ")
        assert not looks_like_post_url("see https://x.com/a/status/1")


class TestFetchPost:

    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url.params["url"]
            return httpx.Response(200, json={"author_name": "John Developer", "html": _OEMBED_HTML})

        async def body():
            async with _client(handler) as client:
                return await fetch_post("https://x.com/johndev/status/1234567890", client=client)

        post = _run(body)
        assert seen["url"] == "https://x.com/johndev/status/1234567890"
        assert post.id == "1234567890"
        assert post.author_name == "John Developer"
        assert post.text == "Just launched my new project! & more\nsecond line #startup"

    def test_unsupported_url_makes_no_request(self):
        def handler(request):
            raise AssertionError("should not be called")

        async def body():
            async with _client(handler) as client:
                await fetch_post("https://example.com/post/1", client=client)

        with pytest.raises(UnsupportedURLError):
            _run(body)

    def test_http_error(self):
        async def body():
            async with _client(lambda r: httpx.Response(404)) as client:
                await fetch_post("https://x.com/a/status/1", client=client)

        with pytest.raises(FetchError, match="HTTP 404"):
            _run(body)

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        async def body():
            async with _client(handler) as client:
                await fetch_post("https://x.com/a/status/1", client=client)

        with pytest.raises(FetchError, match="network"):
            _run(body)

    def test_bad_json(self):
        async def body():
            async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
                await fetch_post("https://x.com/a/status/1", client=client)

        with pytest.raises(FetchError):
            _run(body)

    def test_non_object_json(self):
        async def body():
            async with _client(lambda r: httpx.Response(200, json=["html"])) as client:
                await fetch_post("https://x.com/a/status/1", client=client)

        with pytest.raises(FetchError, match="unreadable"):
            _run(body)

    def test_no_text(self):
        async def body():
            async with _client(lambda r: httpx.Response(200, json={"html": ""})) as client:
                await fetch_post("https://x.com/a/status/1", client=client)

        with pytest.raises(FetchError, match="no text"):
            _run(body)
