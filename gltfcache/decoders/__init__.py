# gltfcache/decoders/__init__.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gltfcache.decoders.base import ImageDecoder
from gltfcache.decoders.raster import RasterDecoder
from gltfcache.errors import DecodeError
from gltfcache.types import CompressedTextureBuffer

if TYPE_CHECKING:
    from gltfcache.resource import Resource


class UnavailableDecoder(ImageDecoder):
    """Stands in for a compressed-texture transcoder that was not supplied."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def decode_bytes(
        self, data: bytes, mime_type: str | None = None, flip_y: bool = False
    ) -> CompressedTextureBuffer:
        raise DecodeError(f"No {self.name} decoder configured")

    async def decode_resource(self, resource: Resource) -> CompressedTextureBuffer:
        raise DecodeError(f"No {self.name} decoder configured for {resource.url}")


@dataclass(frozen=True, slots=True)
class DecoderSet:
    """The decoders an image entry dispatches to."""

    raster: ImageDecoder = field(default_factory=RasterDecoder)
    ktx: ImageDecoder = field(default_factory=lambda: UnavailableDecoder("KTX"))
    crn: ImageDecoder = field(default_factory=lambda: UnavailableDecoder("CRN"))


__all__ = [
    "DecoderSet",
    "ImageDecoder",
    "RasterDecoder",
    "UnavailableDecoder",
]
