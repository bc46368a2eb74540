# gltfcache/types.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias


class CacheEntryState(str, Enum):
    """Lifecycle of a cache entry."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TextureData:
    """Decoded raster image, tightly packed rows."""

    data: bytes
    width: int
    height: int
    components: int  # 3 (RGB) or 4 (RGBA)


@dataclass(frozen=True, slots=True)
class CompressedTextureBuffer:
    """GPU-ready compressed texture payload (level 0)."""

    internal_format: int
    width: int
    height: int
    buffer: bytes


DecodedImage: TypeAlias = TextureData | CompressedTextureBuffer


@dataclass(frozen=True, slots=True)
class SupportedImageFormats:
    """
    Runtime support flags for alternate image formats.

    `webp` is validated and carried along, but source selection never reads
    it: WebP has no compressed variant, and embedded WebP bytes are sniffed
    and decoded like any other raster image.
    """

    webp: bool = False
    s3tc: bool = False
    pvrtc: bool = False
    etc1: bool = False
    crunch: bool = False  # a CRN transcoder is available (output is s3tc)


@dataclass(frozen=True, slots=True)
class BufferViewSource:
    """Image bytes live in a buffer view of the document."""

    buffer_view_id: int


@dataclass(frozen=True, slots=True)
class UriSource:
    """Image bytes are fetched from a URI (possibly a data URI)."""

    uri: str


ImageSource: TypeAlias = BufferViewSource | UriSource
