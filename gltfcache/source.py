# gltfcache/source.py
from __future__ import annotations

from typing import Any, Mapping, Tuple

from gltfcache.errors import ConfigurationError
from gltfcache.types import (
    BufferViewSource,
    ImageSource,
    SupportedImageFormats,
    UriSource,
)

# (variant key, capability flags it needs), highest priority first.
# Crunch transcodes to s3tc, so it needs both.
COMPRESSED_VARIANTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("crunch", ("crunch", "s3tc")),
    ("s3tc", ("s3tc",)),
    ("pvrtc1", ("pvrtc",)),
    ("etc1", ("etc1",)),
)


def select_image_source(
    image: Mapping[str, Any], formats: SupportedImageFormats
) -> ImageSource:
    """
    Pick where the bytes of a glTF image come from.

    The image's own bufferView/uri is the default. When the image lists
    compressed variants under extras.compressedImage3DTiles, the first
    variant that is present and supported replaces it.

    The crunch variant needs both `formats.crunch` and `formats.s3tc`.
    Supporting s3tc alone does not select it, since decoding CRN takes a
    transcoder on top of s3tc support.
    """
    if not isinstance(image, Mapping):
        raise ConfigurationError("Image must be an object")
    record: Mapping[str, Any] = image

    extras = image.get("extras") or {}
    if not isinstance(extras, Mapping):
        raise ConfigurationError("Image extras must be an object")
    variants = extras.get("compressedImage3DTiles")
    if variants is not None and not isinstance(variants, Mapping):
        raise ConfigurationError("compressedImage3DTiles must be an object")
    if variants:
        for key, flags in COMPRESSED_VARIANTS:
            variant = variants.get(key)
            if variant is None:
                continue
            if not isinstance(variant, Mapping):
                raise ConfigurationError(f"Compressed variant '{key}' must be an object")
            if all(getattr(formats, flag) for flag in flags):
                record = variant
                break

    buffer_view_id = record.get("bufferView")
    if buffer_view_id is not None:
        if isinstance(buffer_view_id, bool) or not isinstance(buffer_view_id, int):
            raise ConfigurationError(
                f"Image bufferView must be an integer, got {buffer_view_id!r}"
            )
        return BufferViewSource(buffer_view_id)

    uri = record.get("uri")
    if uri is not None:
        if not isinstance(uri, str) or not uri:
            raise ConfigurationError("Image uri must be a non-empty string")
        return UriSource(uri)

    raise ConfigurationError("Image has neither a bufferView nor a uri")
