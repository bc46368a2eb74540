# gltfcache/__init__.py
import logging

from gltfcache.cache import ResourceCache
from gltfcache.decoders import DecoderSet, ImageDecoder, RasterDecoder
from gltfcache.entries import BufferViewCacheEntry, CacheEntry, ImageCacheEntry
from gltfcache.errors import (
    CacheError,
    ConfigurationError,
    DecodeError,
    DependencyError,
    FetchError,
    FormatError,
)
from gltfcache.glb import GlbContainer, GlbReader
from gltfcache.resource import Resource
from gltfcache.settings import CacheSettings
from gltfcache.types import (
    BufferViewSource,
    CacheEntryState,
    CompressedTextureBuffer,
    SupportedImageFormats,
    TextureData,
    UriSource,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ResourceCache",
    "CacheEntry",
    "ImageCacheEntry",
    "BufferViewCacheEntry",
    "CacheEntryState",
    "CacheSettings",
    "Resource",
    "DecoderSet",
    "ImageDecoder",
    "RasterDecoder",
    "TextureData",
    "CompressedTextureBuffer",
    "SupportedImageFormats",
    "BufferViewSource",
    "UriSource",
    "GlbContainer",
    "GlbReader",
    "CacheError",
    "ConfigurationError",
    "FormatError",
    "DependencyError",
    "DecodeError",
    "FetchError",
]
