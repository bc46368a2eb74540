# gltfcache/entries/image.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import fields
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

import numpy as np

from gltfcache.decoders import DecoderSet
from gltfcache.entries.base import CacheEntry
from gltfcache.errors import CacheError, ConfigurationError, DecodeError, DependencyError
from gltfcache.resource import Resource
from gltfcache.sniff import MIME_CRN, MIME_KTX, detect_mime_type, is_crn_uri, is_ktx_uri
from gltfcache.source import select_image_source
from gltfcache.types import (
    BufferViewSource,
    CacheEntryState,
    DecodedImage,
    ImageSource,
    SupportedImageFormats,
    UriSource,
)

if TYPE_CHECKING:
    from gltfcache.entries.buffer_view import BufferViewCacheEntry

logger = logging.getLogger(__name__)

EMBEDDED_IMAGE_ERROR = "Failed to load embedded image"


class BufferViewProvider(Protocol):
    """The part of the resource cache an image entry depends on."""

    def load_buffer_view(
        self,
        *,
        gltf: Mapping[str, Any],
        buffer_view_id: int,
        gltf_resource: Resource,
        base_resource: Resource,
        keep_resident: bool = False,
    ) -> BufferViewCacheEntry: ...

    def unload(self, entry: CacheEntry) -> None: ...


class ImageCacheEntry(CacheEntry):
    """
    Loads one glTF image into a TextureData or CompressedTextureBuffer.

    Embedded images are read through a buffer view entry obtained from the
    resource cache; the entry owns that reference and gives it back exactly
    once. External images are fetched from their uri.

    unload() never interrupts an in-flight fetch or decode. The pending
    continuation sees the UNLOADED state when it resumes and drops its
    result, and the pending `completion` is cancelled.
    """

    def __init__(
        self,
        *,
        resource_cache: BufferViewProvider,
        gltf: Mapping[str, Any],
        image_id: int,
        gltf_resource: Resource,
        base_resource: Resource,
        supported_image_formats: SupportedImageFormats,
        cache_key: str,
        decoders: DecoderSet | None = None,
    ) -> None:
        validate_image_arguments(
            resource_cache,
            gltf,
            image_id,
            gltf_resource,
            base_resource,
            supported_image_formats,
        )
        if not isinstance(cache_key, str) or not cache_key:
            raise ConfigurationError("cache_key must be a non-empty string")
        super().__init__(cache_key)

        self._resource_cache = resource_cache
        self._gltf: Mapping[str, Any] | None = gltf
        self._gltf_resource = gltf_resource
        self._base_resource = base_resource
        self._decoders = decoders or DecoderSet()
        self._source: ImageSource | None = select_image_source(
            gltf["images"][image_id], supported_image_formats
        )
        self._buffer_view_entry: BufferViewCacheEntry | None = None
        self._image: DecodedImage | None = None

    @property
    def source(self) -> ImageSource | None:
        """Where the bytes come from. Cleared for uri sources once released."""
        return self._source

    @property
    def image(self) -> DecodedImage | None:
        return self._image

    def load(self) -> None:
        if not self._started and (self._source is None or self._gltf is None):
            raise RuntimeError(f"Image '{self._cache_key}' was unloaded")
        self._begin_loading()

        source = self._source
        if isinstance(source, BufferViewSource):
            self._load_from_buffer_view(source)
        else:
            self._load_from_uri(source)

    # Embedded images

    def _load_from_buffer_view(self, source: BufferViewSource) -> None:
        try:
            buffer_view_entry = self._resource_cache.load_buffer_view(
                gltf=self._gltf,
                buffer_view_id=source.buffer_view_id,
                gltf_resource=self._gltf_resource,
                base_resource=self._base_resource,
                keep_resident=False,
            )
        except Exception as e:
            self._fail(DependencyError.wrap(e, EMBEDDED_IMAGE_ERROR))
            return
        self._buffer_view_entry = buffer_view_entry
        self._start(self._resolve_buffer_view(buffer_view_entry))

    async def _resolve_buffer_view(self, buffer_view_entry: BufferViewCacheEntry) -> None:
        completion = buffer_view_entry.completion
        await asyncio.wait([completion])
        error = None if completion.cancelled() else completion.exception()

        if self._state is CacheEntryState.UNLOADED:
            self._release()
            return

        if completion.cancelled():
            self._fail(
                DependencyError(f"{EMBEDDED_IMAGE_ERROR}\nBuffer view load was cancelled")
            )
            return
        if error is not None:
            self._fail(DependencyError.wrap(error, EMBEDDED_IMAGE_ERROR))
            return

        try:
            image = await self._decode_typed_array(buffer_view_entry.typed_array)
        except Exception as e:
            error_type = type(e) if isinstance(e, CacheError) else DecodeError
            self._fail(error_type.wrap(e, EMBEDDED_IMAGE_ERROR))
            return

        if self._state is CacheEntryState.UNLOADED:
            self._release()
            return

        self._release()
        self._succeed(image)

    async def _decode_typed_array(self, typed_array: np.ndarray) -> DecodedImage:
        data = np.frombuffer(typed_array, dtype=np.uint8).tobytes()
        mime_type = detect_mime_type(data)

        if mime_type == MIME_KTX:
            return await self._decoders.ktx.decode_bytes(data, mime_type)
        if mime_type == MIME_CRN:
            return await self._decoders.crn.decode_bytes(data, mime_type)
        return await self._decoders.raster.decode_bytes(data, mime_type, flip_y=False)

    # External images

    def _load_from_uri(self, source: UriSource) -> None:
        resource = self._base_resource.get_derived_resource(source.uri)
        self._start(self._resolve_uri(resource, source.uri))

    async def _resolve_uri(self, resource: Resource, uri: str) -> None:
        try:
            image = await self._load_image_from_resource(resource)
        except Exception as e:
            self._fail(DecodeError.wrap(e, f"Failed to load image: {uri}"))
            return

        if self._state is CacheEntryState.UNLOADED:
            self._release()
            return

        self._release()
        self._succeed(image)

    async def _load_image_from_resource(self, resource: Resource) -> DecodedImage:
        url = resource.url
        if is_ktx_uri(url):
            return await self._decoders.ktx.decode_resource(resource)
        if is_crn_uri(url):
            return await self._decoders.crn.decode_resource(resource)
        return await resource.fetch_image(self._decoders.raster)

    # Outcomes

    def _succeed(self, image: DecodedImage) -> None:
        self._image = image
        self._state = CacheEntryState.READY
        logger.debug("Image %s ready", self._cache_key)
        self._resolve()

    def _fail(self, error: CacheError) -> None:
        self._release()
        if self._state is CacheEntryState.UNLOADED:
            # completion was cancelled by unload()
            return
        self._state = CacheEntryState.FAILED
        logger.warning("%s", error)
        self._reject(error)

    def _release(self) -> None:
        buffer_view_entry = self._buffer_view_entry
        self._buffer_view_entry = None
        if buffer_view_entry is not None:
            logger.debug("Releasing buffer view %s", buffer_view_entry.cache_key)
            self._resource_cache.unload(buffer_view_entry)

        if isinstance(self._source, UriSource):
            # May be a large data uri
            self._source = None
        self._image = None
        self._gltf = None

    def unload(self) -> None:
        was_loading = self._state is CacheEntryState.LOADING
        self._release()
        self._state = CacheEntryState.UNLOADED
        if was_loading:
            self._cancel_pending()


def validate_image_arguments(
    resource_cache: Any,
    gltf: Any,
    image_id: Any,
    gltf_resource: Any,
    base_resource: Any,
    supported_image_formats: Any,
) -> None:
    """Raise ConfigurationError for anything an image entry cannot load from."""
    for method in ("load_buffer_view", "unload"):
        if not callable(getattr(resource_cache, method, None)):
            raise ConfigurationError(f"resource_cache must provide {method}()")

    if not isinstance(gltf, Mapping):
        raise ConfigurationError("gltf must be a mapping")

    if isinstance(image_id, bool) or not isinstance(image_id, int) or image_id < 0:
        raise ConfigurationError(
            f"image_id must be a non-negative integer, got {image_id!r}"
        )
    images = gltf.get("images") or []
    if not isinstance(images, Sequence) or isinstance(images, str):
        raise ConfigurationError("gltf.images must be a list")
    if image_id >= len(images):
        raise ConfigurationError(f"Image {image_id} not found in glTF")
    if not isinstance(images[image_id], Mapping):
        raise ConfigurationError(f"Image {image_id} must be an object")

    if not isinstance(gltf_resource, Resource):
        raise ConfigurationError("gltf_resource must be a Resource")
    if not isinstance(base_resource, Resource):
        raise ConfigurationError("base_resource must be a Resource")

    if not isinstance(supported_image_formats, SupportedImageFormats):
        raise ConfigurationError(
            "supported_image_formats must be a SupportedImageFormats"
        )
    for flag in fields(SupportedImageFormats):
        if not isinstance(getattr(supported_image_formats, flag.name), bool):
            raise ConfigurationError(f"supported_image_formats.{flag.name} must be a bool")

