from __future__ import annotations

import logging
import random
from typing import Sequence

import httpx

from cookai.app.domain.models import FALLBACK_FOOD_IMAGES

logger = logging.getLogger(__name__)

CUSTOM_SEARCH_API_URL = "https://customsearch.googleapis.com/customsearch/v1"
DEFAULT_TIMEOUT_SECONDS = 5.0
QUERY_SUFFIX = "finished dish food photography professional"
IMAGE_RIGHTS = "cc_publicdomain,cc_attribute,cc_sharealike"


class ImageLookupFailed(Exception):
    pass


def _build_search_params(api_key: str, engine_id: str, query: str) -> dict[str, str]:
    return {
        "key": api_key,
        "cx": engine_id,
        "q": f"{query} {QUERY_SUFFIX}",
        "searchType": "image",
        "num": "1",
        "imgType": "photo",
        "safe": "active",
        "imgSize": "LARGE",
        "rights": IMAGE_RIGHTS,
    }


def _first_link(data: object) -> str | None:
    if not isinstance(data, dict):
        return None
    items = data.get("items")
    if not isinstance(items, list) or not items:
        return None
    first = items[0]
    if not isinstance(first, dict):
        return None
    link = first.get("link")
    if not isinstance(link, str) or not link.strip():
        return None
    try:
        url = httpx.URL(link.strip())
    except httpx.InvalidURL:
        logger.warning("Image search returned a malformed link: %r", link)
        return None
    if url.scheme not in ("http", "https") or not url.host:
        logger.warning("Image search returned a non-web link: %r", link)
        return None
    return str(url)


class ImageResolver:
    """Turns a dish description into a displayable image URL, never raising."""

    def __init__(
        self,
        api_key: str = "",
        search_engine_id: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        fallback_images: Sequence[str] = FALLBACK_FOOD_IMAGES,
        rng: random.Random | None = None,
    ) -> None:
        if not fallback_images:
            raise ValueError("At least one fallback image is required")
        self.api_key = api_key
        self.search_engine_id = search_engine_id
        self.timeout_seconds = timeout_seconds
        self.fallback_images = tuple(fallback_images)
        self._http_client = http_client
        self._rng = rng or random.Random()

    def fallback_image(self) -> str:
        return self._rng.choice(self.fallback_images)

    async def resolve(self, query: str) -> str:
        if not self.api_key or not self.search_engine_id:
            logger.warning("Image search credentials not set, using fallback image")
            return self.fallback_image()

        try:
            if self._http_client is not None:
                return await self._lookup(self._http_client, query)
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                return await self._lookup(client, query)
        except ImageLookupFailed as err:
            logger.warning("No usable image for %r: %s", query, err)
        except httpx.TimeoutException:
            logger.warning("Image search timed out after %.1fs for %r", self.timeout_seconds, query)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as err:
            logger.warning("Image search failed for %r: %s", query, err)

        return self.fallback_image()

    async def _lookup(self, client: httpx.AsyncClient, query: str) -> str:
        response = await client.get(
            CUSTOM_SEARCH_API_URL,
            params=_build_search_params(self.api_key, self.search_engine_id, query),
            timeout=self.timeout_seconds,
        )
        if not response.is_success:
            raise ImageLookupFailed(f"search returned HTTP {response.status_code}")

        link = _first_link(response.json())
        if link is None:
            raise ImageLookupFailed("search returned no results")

        await self._ensure_reachable(client, link)
        return link

    async def _ensure_reachable(self, client: httpx.AsyncClient, url: str) -> None:
        response = await client.head(url, timeout=self.timeout_seconds, follow_redirects=False)
        if response.status_code >= 400:
            raise ImageLookupFailed(f"image {url} is unreachable (HTTP {response.status_code})")
