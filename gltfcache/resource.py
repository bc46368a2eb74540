# gltfcache/resource.py
from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote_to_bytes, urljoin, urlsplit
from urllib.request import url2pathname

import httpx

from gltfcache.errors import FetchError
from gltfcache.settings import DEFAULT_HTTP_TIMEOUT

if TYPE_CHECKING:
    from gltfcache.decoders.base import ImageDecoder
    from gltfcache.types import TextureData

logger = logging.getLogger(__name__)


class Resource:
    """
    Locator for something fetchable: an http(s) URL, a file path or URL,
    or a data URI. Relative references resolve against `url`.
    """

    def __init__(self, url: str, *, timeout: float = DEFAULT_HTTP_TIMEOUT):
        if not isinstance(url, str) or not url:
            raise ValueError("Resource url must be a non-empty string")
        self.url = url
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"Resource({self.url!r})"

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def is_data_uri(self) -> bool:
        return self.scheme == "data"

    def get_derived_resource(self, url: str) -> Resource:
        """Resolve `url` relative to this resource."""
        if self.is_data_uri:
            return Resource(url, timeout=self.timeout)
        return Resource(urljoin(self.url, url), timeout=self.timeout)

    async def fetch_bytes(self) -> bytes:
        scheme = self.scheme
        try:
            if scheme == "data":
                return _decode_data_uri(self.url)
            if scheme in ("http", "https"):
                return await self._fetch_http()
            return await asyncio.to_thread(self._local_path().read_bytes)
        except FetchError:
            raise
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise FetchError.wrap(e, f"Failed to fetch {self._display_url()}")

    async def fetch_image(self, decoder: ImageDecoder | None = None) -> TextureData:
        """Fetch and decode a raster image."""
        if decoder is None:
            from gltfcache.decoders.raster import RasterDecoder

            decoder = RasterDecoder()
        return await decoder.decode_resource(self)

    async def _fetch_http(self) -> bytes:
        logger.debug("GET %s", self.url)
        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True
        ) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.content

    def _local_path(self) -> Path:
        parts = urlsplit(self.url)
        if parts.scheme == "file":
            return Path(url2pathname(parts.path))
        return Path(self.url)

    def _display_url(self) -> str:
        # Data URIs can be megabytes long
        if self.is_data_uri:
            return self.url[:48] + "..." if len(self.url) > 48 else self.url
        return self.url


def _decode_data_uri(url: str) -> bytes:
    """
    data:[<mediatype>][;base64],<data>
    """
    header, sep, payload = url.partition(",")
    if not sep:
        raise ValueError("Malformed data URI: missing ','")

    if header.lower().endswith(";base64"):
        return base64.b64decode(payload)
    return unquote_to_bytes(payload)
