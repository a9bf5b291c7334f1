"""Fetch the text and author of a public post from its URL.

Uses the public oEmbed endpoint, which needs no API credentials. Only
status URLs on twitter.com / x.com (including mobile.twitter.com) are
recognised.
"""
import logging
import re
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

OEMBED_URL = "https://publish.twitter.com/oembed"

_POST_URL_RE = re.compile(
    r"^(?:https?://)?(?:www\.|mobile\.)?(?:twitter|x)\.com/\w+/status/(\d+)", re.IGNORECASE
)


class FetchError(Exception):
    """The post could not be retrieved."""


class UnsupportedURLError(FetchError):
    """The URL is not a recognised post URL."""


@dataclass
class FetchedPost:
    id: str
    text: str
    author_name: str
    url: str


def extract_post_id(url: str) -> str | None:
    match = _POST_URL_RE.search(url.strip())
    return match.group(1) if match else None


def looks_like_post_url(text: str) -> bool:
    stripped = text.strip()
    return " " not in stripped and extract_post_id(stripped) is not None


def _post_text_from_html(html: str) -> str:
    """Pull the post body out of the oEmbed blockquote markup."""
    soup = BeautifulSoup(html, "html.parser")
    paragraph = soup.find("p")
    if paragraph is None:
        return ""
    for br in paragraph.find_all("br"):
        br.replace_with("\n")
    return paragraph.get_text().strip()


async def fetch_post(
    url: str,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> FetchedPost:
    """Look up a post by URL.

    Raises UnsupportedURLError for URLs that are not post links and
    FetchError for network, HTTP or payload problems.
    """
    post_id = extract_post_id(url)
    if post_id is None:
        raise UnsupportedURLError(
            "Not a post URL. Expected twitter.com/<user>/status/<id> or x.com/<user>/status/<id>."
        )

    params = {"url": url.strip(), "omit_script": "true", "dnt": "true"}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                r = await own_client.get(OEMBED_URL, params=params)
        else:
            r = await client.get(OEMBED_URL, params=params)
        r.raise_for_status()
        data = r.json()
    except httpx.HTTPStatusError as e:
        logger.warning("oEmbed lookup for %s returned %s", post_id, e.response.status_code)
        raise FetchError(f"Post lookup failed (HTTP {e.response.status_code}).") from e
    except httpx.HTTPError as e:
        logger.warning("oEmbed lookup for %s failed: %s", post_id, e)
        raise FetchError("Post lookup failed (network error).") from e
    except ValueError as e:
        raise FetchError("Post lookup returned an unreadable response.") from e

    if not isinstance(data, dict):
        raise FetchError("Post lookup returned an unreadable response.")

    text = _post_text_from_html(data.get("html") or "")
    if not text:
        raise FetchError("Post lookup returned no text.")

    return FetchedPost(
        id=post_id,
        text=text,
        author_name=data.get("author_name") or "",
        url=url.strip(),
    )
