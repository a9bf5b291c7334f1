"""Background image URLs from free photo services.

picsum needs no key and is always available; unsplash and pexels need
credentials and fall back to picsum when they are missing or fail.
"""
import logging
from urllib.parse import quote

import httpx

from engine.modules.keywords import build_query

logger = logging.getLogger(__name__)

SERVICES = ("picsum", "unsplash", "pexels")

_PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"


def picsum_seed(text: str) -> int:
    return sum(ord(ch) for ch in text) % 1000


class ImageService:
    def __init__(
        self,
        preferred_service: str = "picsum",
        unsplash_access_key: str = "",
        pexels_api_key: str = "",
        timeout: float = 10.0,
    ):
        if preferred_service not in SERVICES:
            raise ValueError(f"Unknown image service: {preferred_service!r}")
        self._service = preferred_service
        self._unsplash_key = unsplash_access_key
        self._pexels_key = pexels_api_key
        self._timeout = timeout

    async def generate_image_url(
        self, text: str, client: httpx.AsyncClient | None = None
    ) -> str:
        query = build_query(text)
        if self._service == "unsplash":
            return self._unsplash_url(query)
        if self._service == "pexels":
            return await self._pexels_url(query, client)
        return self._picsum_url(text)

    # ── providers ─────────────────────────────────────────────────────────────

    def _picsum_url(self, text: str) -> str:
        seed = picsum_seed(text)
        logger.debug("picsum seed %d", seed)
        return f"https://picsum.photos/1080/1080?random={seed}"

    def _unsplash_url(self, query: str) -> str:
        if not self._unsplash_key:
            logger.warning("Unsplash access key not set, falling back to picsum")
            return self._picsum_url(query)
        return (
            f"https://api.unsplash.com/photos/random?query={quote(query)}"
            f"&w=1080&h=1080&client_id={self._unsplash_key}"
        )

    async def _pexels_url(self, query: str, client: httpx.AsyncClient | None) -> str:
        if not self._pexels_key:
            logger.warning("Pexels API key not set, falling back to picsum")
            return self._picsum_url(query)

        params = {"query": query, "per_page": 1, "orientation": "square"}
        headers = {"Authorization": self._pexels_key}
        try:
            if client is None:
                async with httpx.AsyncClient(timeout=self._timeout) as own_client:
                    r = await own_client.get(_PEXELS_SEARCH_URL, params=params, headers=headers)
            else:
                r = await client.get(_PEXELS_SEARCH_URL, params=params, headers=headers)
            r.raise_for_status()
            photos = r.json().get("photos") or []
            if photos:
                return photos[0]["src"]["large"]
            logger.info("Pexels returned no photos for %r", query)
        except (httpx.HTTPError, ValueError, KeyError, TypeError):
            logger.exception("Pexels lookup failed")
        return self._picsum_url(query)


def get_image_service() -> ImageService:
    from config import settings

    return ImageService(
        preferred_service=settings.image_service.lower(),
        unsplash_access_key=settings.unsplash_access_key,
        pexels_api_key=settings.pexels_api_key,
        timeout=settings.fetch_timeout_seconds,
    )


class ImageDownloadError(Exception):
    """The background image could not be downloaded."""


async def download_image(
    url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None
) -> bytes:
    """Fetch raw image bytes, following redirects (picsum redirects)."""
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
                r = await own_client.get(url)
        else:
            r = await client.get(url, follow_redirects=True)
        r.raise_for_status()
    except httpx.HTTPError as e:
        raise ImageDownloadError(f"Image download failed: {e}") from e

    content_type = r.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise ImageDownloadError(f"URL did not return an image ({content_type or 'no content type'}).")
    return r.content
