# gltfcache/decoders/raster.py
from __future__ import annotations

import asyncio
import io

from PIL import Image, UnidentifiedImageError

from gltfcache.decoders.base import ImageDecoder
from gltfcache.errors import DecodeError
from gltfcache.sniff import MIME_BMP, MIME_GIF, MIME_JPEG, MIME_PNG, MIME_WEBP
from gltfcache.types import TextureData

_PIL_FORMATS = {
    MIME_BMP: "BMP",
    MIME_GIF: "GIF",
    MIME_JPEG: "JPEG",
    MIME_PNG: "PNG",
    MIME_WEBP: "WEBP",
}


class RasterDecoder(ImageDecoder):
    """Decodes BMP/GIF/JPEG/PNG/WebP into RGBA TextureData with Pillow."""

    async def decode_bytes(
        self, data: bytes, mime_type: str | None = None, flip_y: bool = False
    ) -> TextureData:
        return await asyncio.to_thread(self._decode, bytes(data), mime_type, flip_y)

    def _decode(self, data: bytes, mime_type: str | None, flip_y: bool) -> TextureData:
        pil_format = _PIL_FORMATS.get(mime_type) if mime_type else None
        formats = [pil_format] if pil_format else None

        try:
            with Image.open(io.BytesIO(data), formats=formats) as img:
                converted = img.convert("RGBA")
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodeError.wrap(e, f"Cannot decode {mime_type or 'image'} data")

        if flip_y:
            converted = converted.transpose(Image.Transpose.FLIP_TOP_BOTTOM)

        width, height = converted.size
        return TextureData(
            data=converted.tobytes(), width=width, height=height, components=4
        )
