import asyncio
import io
from typing import Any, Dict, List

import numpy as np
import pytest
from PIL import Image

from gltfcache.decoders import DecoderSet, ImageDecoder
from gltfcache.entries.image import ImageCacheEntry
from gltfcache.resource import Resource
from gltfcache.types import CompressedTextureBuffer, SupportedImageFormats, TextureData


class FakeBufferViewEntry:
    """Stands in for a BufferViewCacheEntry; the test decides when it settles."""

    def __init__(self, cache_key: str) -> None:
        self.cache_key = cache_key
        self.typed_array: np.ndarray | None = None
        self._completion: asyncio.Future | None = None

    @property
    def completion(self) -> asyncio.Future:
        if self._completion is None:
            self._completion = asyncio.get_running_loop().create_future()
        return self._completion

    def succeed(self, data: bytes) -> None:
        self.typed_array = np.frombuffer(data, dtype=np.uint8)
        self.completion.set_result(self)

    def fail(self, error: Exception) -> None:
        self.completion.set_exception(error)


class FakeResourceCache:
    """Records buffer view requests and releases."""

    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []
        self.entries: List[FakeBufferViewEntry] = []
        self.released: List[FakeBufferViewEntry] = []

    def load_buffer_view(self, **kwargs: Any) -> FakeBufferViewEntry:
        self.requests.append(kwargs)
        entry = FakeBufferViewEntry(f"buffer-view-{kwargs['buffer_view_id']}")
        self.entries.append(entry)
        return entry

    def unload(self, entry: Any) -> None:
        self.released.append(entry)


class RecordingDecoder(ImageDecoder):
    """Returns `result` (or raises `error`) and remembers what it was given."""

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.bytes_calls: List[tuple] = []
        self.resource_calls: List[Resource] = []
        self.gate: asyncio.Event | None = None

    async def decode_bytes(self, data, mime_type=None, flip_y=False):
        self.bytes_calls.append((data, mime_type, flip_y))
        return await self._finish()

    async def decode_resource(self, resource):
        self.resource_calls.append(resource)
        return await self._finish()

    async def _finish(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


async def _settle(steps: int = 10) -> None:
    for _ in range(steps):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Coroutine that lets scheduled tasks run a few steps."""
    return _settle


@pytest.fixture
def fake_cache():
    return FakeResourceCache()


@pytest.fixture
def decoders():
    return DecoderSet(
        raster=RecordingDecoder(TextureData(b"\x00" * 4, 1, 1, 4)),
        ktx=RecordingDecoder(CompressedTextureBuffer(0x83F0, 4, 4, b"\x00" * 8)),
        crn=RecordingDecoder(CompressedTextureBuffer(0x83F1, 4, 4, b"\x00" * 16)),
    )


@pytest.fixture
def gltf_resource():
    return Resource("https://example.com/models/scene.gltf")


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (2, 3), color="red").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_entry(fake_cache, decoders, gltf_resource):
    """Build an ImageCacheEntry for a single image record."""

    def _make(image: Dict[str, Any], formats=None, **overrides) -> ImageCacheEntry:
        options = dict(
            resource_cache=fake_cache,
            gltf={"images": [image]},
            image_id=0,
            gltf_resource=gltf_resource,
            base_resource=gltf_resource,
            supported_image_formats=formats or SupportedImageFormats(),
            cache_key="image-0",
            decoders=decoders,
        )
        options.update(overrides)
        return ImageCacheEntry(**options)

    return _make
