"""
Tests for background image URL generation.
"""
import asyncio

import httpx
import pytest

from engine.sources.images import (
    ImageDownloadError,
    ImageService,
    download_image,
    picsum_seed,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_picsum_is_deterministic():
    service = ImageService()
    url = asyncio.run(service.generate_image_url("abc"))
    assert url == f"https://picsum.photos/1080/1080?random={picsum_seed('abc')}"
    assert picsum_seed("abc") == (97 + 98 + 99) % 1000


def test_unknown_service():
    with pytest.raises(ValueError):
        ImageService(preferred_service="flickr")


def test_unsplash_with_key():
    service = ImageService(preferred_service="unsplash", unsplash_access_key="KEY")
    url = asyncio.run(service.generate_image_url("quiet mountain lake"))
    assert url.startswith("https://api.unsplash.com/photos/random?query=mountain%20quiet")
    assert url.endswith("client_id=KEY")


def test_unsplash_without_key_falls_back():
    service = ImageService(preferred_service="unsplash")
    url = asyncio.run(service.generate_image_url("quiet mountain lake"))
    assert url.startswith("https://picsum.photos/")


def test_pexels_returns_first_photo():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "PKEY"
        assert request.url.params["query"] == "mountain quiet"
        return httpx.Response(200, json={"photos": [{"src": {"large": "https://img/1.jpg"}}]})

    async def body():
        async with _client(handler) as client:
            service = ImageService(preferred_service="pexels", pexels_api_key="PKEY")
            return await service.generate_image_url("quiet mountain lake", client=client)

    assert asyncio.run(body()) == "https://img/1.jpg"


@pytest.mark.parametrize("response", [
    httpx.Response(500),
    httpx.Response(200, json={"photos": []}),
    httpx.Response(200, json={"photos": [{"src": {}}]}),
])
def test_pexels_failures_fall_back_to_picsum(response):
    async def body():
        async with _client(lambda r: response) as client:
            service = ImageService(preferred_service="pexels", pexels_api_key="PKEY")
            return await service.generate_image_url("quiet mountain lake", client=client)

    assert asyncio.run(body()).startswith("https://picsum.photos/")


def test_download_image_rejects_non_images():
    async def body():
        async with _client(lambda r: httpx.Response(200, json={"a": 1})) as client:
            await download_image("https://api.example/x", client=client)

    with pytest.raises(ImageDownloadError):
        asyncio.run(body())


def test_download_image_returns_bytes():
    async def body():
        handler = lambda r: httpx.Response(200, content=b"PNGDATA", headers={"content-type": "image/png"})
        async with _client(handler) as client:
            return await download_image("https://img/1.png", client=client)

    assert asyncio.run(body()) == b"PNGDATA"
