# gltfcache/cache.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from gltfcache.decoders import DecoderSet
from gltfcache.entries.base import CacheEntry
from gltfcache.entries.buffer_view import BufferViewCacheEntry
from gltfcache.entries.image import ImageCacheEntry, validate_image_arguments
from gltfcache.errors import ConfigurationError
from gltfcache.keys import (
    get_buffer_view_cache_key,
    get_embedded_buffer_key,
    get_image_cache_key,
)
from gltfcache.resource import Resource
from gltfcache.settings import CacheSettings
from gltfcache.types import SupportedImageFormats

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Record:
    entry: CacheEntry
    reference_count: int
    keep_resident: bool


class ResourceCache:
    """
    Shares cache entries by key and counts references to them.

    Every load_* call adds a reference that must be given back with
    unload(). An entry is unloaded and dropped when its last reference goes,
    unless it was requested with keep_resident=True; those stay until clear().

    load_* start loading immediately, so they must run inside an event loop.
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        decoders: DecoderSet | None = None,
    ) -> None:
        self.settings = settings or CacheSettings()
        self.decoders = decoders or DecoderSet()

        self._records: Dict[str, _Record] = {}
        self._embedded_buffers: Dict[str, bytes] = {}

    def resource(self, url: str) -> Resource:
        """A Resource using this cache's fetch settings."""
        return Resource(url, timeout=self.settings.http_timeout)

    def add_embedded_buffer(
        self, gltf_resource: Resource, buffer_id: int, data: bytes
    ) -> None:
        """Register the GLB binary chunk backing a buffer without a uri."""
        key = get_embedded_buffer_key(gltf_resource, buffer_id)
        self._embedded_buffers[key] = bytes(data)

    def get_embedded_buffer(
        self, gltf_resource: Resource, buffer_id: int
    ) -> bytes | None:
        key = get_embedded_buffer_key(gltf_resource, buffer_id)
        return self._embedded_buffers.get(key)

    def load_buffer_view(
        self,
        *,
        gltf: Mapping[str, Any],
        buffer_view_id: int,
        gltf_resource: Resource,
        base_resource: Resource,
        keep_resident: bool = False,
    ) -> BufferViewCacheEntry:
        try:
            cache_key = get_buffer_view_cache_key(
                gltf, buffer_view_id, gltf_resource, base_resource
            )
        except (LookupError, TypeError, AttributeError) as e:
            raise ConfigurationError.wrap(
                e, f"Buffer view {buffer_view_id} is missing or malformed"
            )
        entry = self._acquire(cache_key, keep_resident)
        if entry is not None:
            return entry

        entry = BufferViewCacheEntry(
            resource_cache=self,
            gltf=gltf,
            buffer_view_id=buffer_view_id,
            gltf_resource=gltf_resource,
            base_resource=base_resource,
            cache_key=cache_key,
        )
        self._insert(entry, keep_resident)
        return entry

    def load_image(
        self,
        *,
        gltf: Mapping[str, Any],
        image_id: int,
        gltf_resource: Resource,
        base_resource: Resource,
        supported_image_formats: SupportedImageFormats | None = None,
        keep_resident: bool = False,
    ) -> ImageCacheEntry:
        formats = supported_image_formats or self.settings.default_formats
        validate_image_arguments(
            self, gltf, image_id, gltf_resource, base_resource, formats
        )
        try:
            cache_key = get_image_cache_key(
                gltf, image_id, gltf_resource, base_resource, formats
            )
        except (LookupError, TypeError, AttributeError) as e:
            raise ConfigurationError.wrap(
                e, f"Image {image_id} references a missing or malformed buffer view"
            )
        entry = self._acquire(cache_key, keep_resident)
        if entry is not None:
            return entry

        entry = ImageCacheEntry(
            resource_cache=self,
            gltf=gltf,
            image_id=image_id,
            gltf_resource=gltf_resource,
            base_resource=base_resource,
            supported_image_formats=formats,
            cache_key=cache_key,
            decoders=self.decoders,
        )
        self._insert(entry, keep_resident)
        return entry

    def unload(self, entry: CacheEntry) -> None:
        """Give back one reference to `entry`."""
        record = self._records.get(entry.cache_key)
        if record is None or record.entry is not entry:
            raise KeyError(f"Entry '{entry.cache_key}' is not in the cache")

        record.reference_count -= 1
        if record.reference_count > 0 or record.keep_resident:
            return

        logger.debug("Dropping %s", entry.cache_key)
        del self._records[entry.cache_key]
        entry.unload()

    def get(self, cache_key: str) -> CacheEntry | None:
        record = self._records.get(cache_key)
        return record.entry if record else None

    def reference_count(self, cache_key: str) -> int:
        record = self._records.get(cache_key)
        return record.reference_count if record else 0

    def __contains__(self, cache_key: str) -> bool:
        return cache_key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Unload every entry, resident or not."""
        # Images first so they hand their buffer views back normally
        for record in list(self._records.values()):
            if isinstance(record.entry, ImageCacheEntry):
                record.entry.unload()

        records = list(self._records.values())
        self._records.clear()
        self._embedded_buffers.clear()
        for record in records:
            record.entry.unload()

    def _acquire(self, cache_key: str, keep_resident: bool) -> Any:
        record = self._records.get(cache_key)
        if record is None:
            return None
        record.reference_count += 1
        record.keep_resident = record.keep_resident or keep_resident
        return record.entry

    def _insert(self, entry: CacheEntry, keep_resident: bool) -> None:
        self._records[entry.cache_key] = _Record(
            entry=entry, reference_count=1, keep_resident=keep_resident
        )
        logger.debug("Loading %s", entry.cache_key)
        try:
            entry.load()
        except Exception:
            del self._records[entry.cache_key]
            raise

