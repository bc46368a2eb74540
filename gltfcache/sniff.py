# gltfcache/sniff.py
"""
Image format detection.

Embedded images are identified by their leading bytes; images referenced by
URI are identified by scheme or file suffix.
"""

from __future__ import annotations

import re
from typing import Dict, Tuple

from gltfcache.errors import FormatError

MIME_BMP = "image/bmp"
MIME_GIF = "image/gif"
MIME_JPEG = "image/jpeg"
MIME_PNG = "image/png"
MIME_KTX = "image/ktx"
MIME_CRN = "image/crn"
MIME_BASIS = "image/basis"
MIME_WEBP = "image/webp"

_HEADERS: Dict[Tuple[int, int], str] = {
    (0x42, 0x49): MIME_BMP,
    (0x47, 0x49): MIME_GIF,
    (0xFF, 0xD8): MIME_JPEG,
    (0x89, 0x50): MIME_PNG,
    (0xAB, 0x4B): MIME_KTX,
    (0x48, 0x78): MIME_CRN,
    (0x73, 0x42): MIME_BASIS,
}

_KTX_URI = re.compile(r"(^data:image/ktx)|(\.ktx$)", re.IGNORECASE)
_CRN_URI = re.compile(r"(^data:image/crn)|(\.crn$)", re.IGNORECASE)


def detect_mime_type(data: bytes | bytearray | memoryview) -> str:
    """
    Return the MIME type implied by the first 12 bytes of `data`.
    Raises FormatError when no known header matches.
    """
    header = bytes(data[:12])

    if len(header) >= 2:
        mime_type = _HEADERS.get((header[0], header[1]))
        if mime_type is not None:
            return mime_type

    if header[0:4] == b"RIFF" and header[8:12] == b"WEBP":
        return MIME_WEBP

    raise FormatError("Image data does not have valid header")


def is_ktx_uri(uri: str) -> bool:
    return _KTX_URI.search(uri) is not None


def is_crn_uri(uri: str) -> bool:
    return _CRN_URI.search(uri) is not None
