"""
Image caching and remote image fetch.

The caches belong to one NodeRepository:
- url -> Image, kept across calls so a URL is fetched once per engine
- hash -> base64, reset at the start of every export call
"""

import base64
import logging
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from config import EngineConfig

logger = logging.getLogger(__name__)


class ImageCache:
    def __init__(self):
        self._url_images: Dict[str, object] = {}
        self._export_data: Dict[str, str] = {}

    def get_url(self, url: str) -> Optional[object]:
        return self._url_images.get(url)

    def put_url(self, url: str, image: object) -> None:
        self._url_images[url] = image

    def clear_urls(self) -> int:
        """Drop every cached URL image; returns how many were cached."""
        count = len(self._url_images)
        self._url_images.clear()
        return count

    def begin_export(self) -> None:
        """Forget bitmap bytes memoized by a previous export call."""
        self._export_data.clear()

    async def export_data(self, image) -> str:
        """Base64 of an image's bytes, read once per hash per export call."""
        cached = self._export_data.get(image.hash)
        if cached is None:
            raw = await image.get_bytes()
            cached = base64.b64encode(raw).decode("ascii")
            self._export_data[image.hash] = cached
            logger.debug(f"🖼️ Encoded image {image.hash} ({len(raw)} bytes)")
        return cached

    @property
    def export_size(self) -> int:
        return len(self._export_data)


def is_svg_url(url: str) -> bool:
    return url.endswith(".svg") or "/svg/" in url or "api.iconify.design" in url


class ImageFetcher:
    """
    Downloads bitmap bytes for image fills.

    SVG sources are routed through a rasterizing proxy since the canvas only
    accepts PNG, JPEG, GIF and WEBP.

    Args:
        config: Engine configuration (proxy URL and size, timeout)
        client: Optional shared httpx.AsyncClient; a short-lived one is used otherwise
    """

    def __init__(self, config: EngineConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client

    def proxy_url(self, url: str) -> str:
        size = self.config.svg_proxy_size
        return f"{self.config.svg_proxy_url}?url={quote(url, safe='')}&output=png&w={size}&h={size}"

    async def fetch(self, url: str) -> bytes:
        """
        Fetch the bytes behind `url`.

        Raises:
            httpx.HTTPError: on transport failures and non-2xx responses
            ValueError: when the response body is empty
        """
        fetch_url = url
        if is_svg_url(url):
            fetch_url = self.proxy_url(url)
            logger.info(f"🔄 SVG detected, converting through proxy: {fetch_url}")

        if self.client is not None:
            response = await self.client.get(fetch_url, timeout=self.config.image_fetch_timeout)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(fetch_url, timeout=self.config.image_fetch_timeout)
        response.raise_for_status()

        content = response.content
        if not content:
            raise ValueError(f"Received empty image data from {fetch_url}")
        content_type = response.headers.get("content-type", "unknown")
        logger.debug(f"📥 Image fetched: {len(content)} bytes, type: {content_type}")
        return content
