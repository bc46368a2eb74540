# gltfcache/entries/__init__.py
from gltfcache.entries.base import CacheEntry
from gltfcache.entries.buffer_view import BufferViewCacheEntry
from gltfcache.entries.image import ImageCacheEntry

__all__ = [
    "CacheEntry",
    "BufferViewCacheEntry",
    "ImageCacheEntry",
]
