# gltfcache/decoders/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from gltfcache.types import DecodedImage

if TYPE_CHECKING:
    from gltfcache.resource import Resource


class ImageDecoder(ABC):
    @abstractmethod
    async def decode_bytes(
        self, data: bytes, mime_type: str | None = None, flip_y: bool = False
    ) -> DecodedImage:
        """
        Decode in-memory image bytes.
        Must not block the event loop; heavy work goes to a thread.
        """
        pass

    async def decode_resource(self, resource: Resource) -> DecodedImage:
        """Fetch `resource` and decode its bytes."""
        data = await resource.fetch_bytes()
        return await self.decode_bytes(data)
