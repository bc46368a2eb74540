# gltfcache/glb.py
import json
import struct
from dataclasses import dataclass
from typing import Any, Dict

from gltfcache.errors import FormatError

GLB_MAGIC = 0x46546C67  # "glTF"
CHUNK_JSON = 0x4E4F534A  # "JSON"
CHUNK_BIN = 0x004E4942  # "BIN\0"


@dataclass(frozen=True, slots=True)
class GlbContainer:
    """The JSON document and optional binary chunk of a .glb file."""

    gltf: Dict[str, Any]
    binary: bytes | None


class GlbReader:
    """
    Splits binary glTF 2.0 into its chunks.
    Layout: 12-byte header, then [length, type, payload] chunks.
    """

    _header = struct.Struct("<III")
    _chunk_header = struct.Struct("<II")

    @classmethod
    def read(cls, data: bytes) -> GlbContainer:
        if len(data) < cls._header.size:
            raise FormatError("GLB data is shorter than its header")

        magic, version, length = cls._header.unpack_from(data, 0)
        if magic != GLB_MAGIC:
            raise FormatError("Not a GLB file")
        if version != 2:
            raise FormatError(f"Unsupported GLB version {version}")
        if length > len(data):
            raise FormatError(f"GLB declares {length} bytes but has {len(data)}")

        gltf: Dict[str, Any] | None = None
        binary: bytes | None = None

        offset = cls._header.size
        while offset + cls._chunk_header.size <= length:
            chunk_length, chunk_type = cls._chunk_header.unpack_from(data, offset)
            start = offset + cls._chunk_header.size
            end = start + chunk_length
            if end > length:
                raise FormatError("GLB chunk runs past end of file")

            if chunk_type == CHUNK_JSON and gltf is None:
                try:
                    gltf = json.loads(data[start:end].decode("utf-8"))
                except ValueError as e:
                    raise FormatError.wrap(e, "GLB JSON chunk is malformed")
            elif chunk_type == CHUNK_BIN and binary is None:
                binary = bytes(data[start:end])
            # Unknown chunk types are skipped

            offset = end

        if gltf is None:
            raise FormatError("GLB has no JSON chunk")
        return GlbContainer(gltf=gltf, binary=binary)
