# gltfcache/entries/buffer_view.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

import numpy as np

from gltfcache.entries.base import CacheEntry
from gltfcache.errors import DependencyError
from gltfcache.resource import Resource
from gltfcache.types import CacheEntryState

if TYPE_CHECKING:
    from gltfcache.cache import ResourceCache

logger = logging.getLogger(__name__)


class BufferViewCacheEntry(CacheEntry):
    """
    A byte range of a glTF buffer, exposed as a uint8 numpy array.
    The buffer is either fetched from its uri or taken from the GLB binary
    chunk registered with the cache.
    """

    def __init__(
        self,
        *,
        resource_cache: ResourceCache,
        gltf: Mapping[str, Any],
        buffer_view_id: int,
        gltf_resource: Resource,
        base_resource: Resource,
        cache_key: str,
    ) -> None:
        super().__init__(cache_key)
        buffer_view = gltf["bufferViews"][buffer_view_id]

        self._resource_cache = resource_cache
        self._buffer_id: int = buffer_view["buffer"]
        self._buffer = gltf["buffers"][self._buffer_id]
        self._byte_offset: int = buffer_view.get("byteOffset", 0)
        self._byte_length: int = buffer_view["byteLength"]
        self._gltf_resource = gltf_resource
        self._base_resource = base_resource
        self._typed_array: np.ndarray | None = None

    @property
    def typed_array(self) -> np.ndarray | None:
        return self._typed_array

    def load(self) -> None:
        self._begin_loading()
        self._start(self._load())

    async def _load(self) -> None:
        try:
            data = await self._fetch_buffer()
            typed_array = self._slice(data)
        except Exception as e:
            if self._state is CacheEntryState.UNLOADED:
                return
            self._release()
            self._state = CacheEntryState.FAILED
            logger.warning("Buffer view %s failed: %s", self._cache_key, e)
            self._reject(DependencyError.wrap(e, "Failed to load buffer view"))
            return

        if self._state is CacheEntryState.UNLOADED:
            return

        self._typed_array = typed_array
        self._state = CacheEntryState.READY
        self._resolve()

    async def _fetch_buffer(self) -> bytes:
        uri = self._buffer.get("uri")
        if uri is not None:
            return await self._base_resource.get_derived_resource(uri).fetch_bytes()

        data = self._resource_cache.get_embedded_buffer(
            self._gltf_resource, self._buffer_id
        )
        if data is None:
            raise ValueError(
                f"Buffer {self._buffer_id} has no uri and no binary chunk was provided"
            )
        return data

    def _slice(self, data: bytes) -> np.ndarray:
        end = self._byte_offset + self._byte_length
        if self._byte_offset < 0 or end > len(data):
            raise ValueError(
                f"Range {self._byte_offset}..{end} exceeds buffer of {len(data)} bytes"
            )
        return np.frombuffer(
            data, dtype=np.uint8, count=self._byte_length, offset=self._byte_offset
        )

    def unload(self) -> None:
        if self._state is CacheEntryState.LOADING:
            self._cancel_pending()
        self._release()
        self._state = CacheEntryState.UNLOADED

    def _release(self) -> None:
        self._typed_array = None
        self._buffer = {}
