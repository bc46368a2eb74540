# gltfcache/keys.py
"""
Cache keys. Two requests for the same bytes produce the same key, so the
cache can hand out one shared entry.
"""

from __future__ import annotations

from typing import Any, Mapping

from gltfcache.resource import Resource
from gltfcache.source import select_image_source
from gltfcache.types import BufferViewSource, SupportedImageFormats


def get_buffer_cache_key(
    gltf: Mapping[str, Any],
    buffer_id: int,
    gltf_resource: Resource,
    base_resource: Resource,
) -> str:
    buffer = gltf["buffers"][buffer_id]
    uri = buffer.get("uri")
    if uri is not None:
        return base_resource.get_derived_resource(uri).url
    return get_embedded_buffer_key(gltf_resource, buffer_id)


def get_embedded_buffer_key(gltf_resource: Resource, buffer_id: int) -> str:
    """Key of a buffer stored in the GLB binary chunk."""
    return f"{gltf_resource.url}-buffer-id-{buffer_id}"


def get_buffer_view_cache_key(
    gltf: Mapping[str, Any],
    buffer_view_id: int,
    gltf_resource: Resource,
    base_resource: Resource,
) -> str:
    buffer_view = gltf["bufferViews"][buffer_view_id]
    buffer_key = get_buffer_cache_key(
        gltf, buffer_view["buffer"], gltf_resource, base_resource
    )
    start = buffer_view.get("byteOffset", 0)
    end = start + buffer_view["byteLength"]
    return f"{buffer_key}-range-{start}-{end}"


def get_image_cache_key(
    gltf: Mapping[str, Any],
    image_id: int,
    gltf_resource: Resource,
    base_resource: Resource,
    supported_image_formats: SupportedImageFormats,
) -> str:
    source = select_image_source(gltf["images"][image_id], supported_image_formats)
    if isinstance(source, BufferViewSource):
        return get_buffer_view_cache_key(
            gltf, source.buffer_view_id, gltf_resource, base_resource
        )
    return base_resource.get_derived_resource(source.uri).url
