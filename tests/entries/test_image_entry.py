import asyncio

import pytest

from gltfcache.decoders import DecoderSet, RasterDecoder
from gltfcache.errors import ConfigurationError, DecodeError, DependencyError, FormatError
from gltfcache.resource import Resource
from gltfcache.types import (
    BufferViewSource,
    CacheEntryState,
    SupportedImageFormats,
    TextureData,
    UriSource,
)

# --- Construction ---


def test_construction_derives_source(make_entry):
    entry = make_entry({"uri": "texture.png"})

    assert entry.source == UriSource("texture.png")
    assert entry.state is CacheEntryState.UNLOADED
    assert entry.cache_key == "image-0"
    assert entry.image is None


@pytest.mark.parametrize(
    "override",
    [
        {"resource_cache": object()},
        {"gltf": ["not", "a", "mapping"]},
        {"image_id": -1},
        {"image_id": 3},
        {"image_id": True},
        {"gltf_resource": "https://example.com/scene.gltf"},
        {"base_resource": None},
        {"supported_image_formats": {"webp": True}},
        {"supported_image_formats": SupportedImageFormats(s3tc=1)},
        {"cache_key": ""},
    ],
)
def test_construction_rejects_bad_arguments(make_entry, override):
    with pytest.raises(ConfigurationError):
        make_entry({"uri": "texture.png"}, **override)


def test_construction_rejects_image_without_source(make_entry):
    with pytest.raises(ConfigurationError, match="neither a bufferView nor a uri"):
        make_entry({"name": "orphan"})


# --- Unload before load ---


def test_unload_before_load_rejects_nothing(make_entry):
    async def run():
        entry = make_entry({"uri": "texture.png"})
        entry.unload()
        entry.unload()  # Idempotent

        assert entry.state is CacheEntryState.UNLOADED
        assert not entry.completion.done()

    asyncio.run(run())


@pytest.mark.parametrize("image", [{"bufferView": 0}, {"uri": "texture.png"}])
def test_load_after_unload_is_an_error(fake_cache, make_entry, image):
    async def run():
        entry = make_entry(image)
        entry.unload()

        with pytest.raises(RuntimeError, match="was unloaded"):
            entry.load()
        assert entry.state is CacheEntryState.UNLOADED
        assert not fake_cache.requests

    asyncio.run(run())


# --- Embedded images ---


def test_embedded_png_end_to_end(fake_cache, make_entry, png_bytes):
    async def run():
        entry = make_entry({"bufferView": 4}, decoders=DecoderSet())
        entry.load()

        assert entry.state is CacheEntryState.LOADING
        assert len(fake_cache.requests) == 1
        request = fake_cache.requests[0]
        assert request["buffer_view_id"] == 4
        assert request["keep_resident"] is False

        dependent = fake_cache.entries[0]
        dependent.succeed(png_bytes)

        result = await entry.completion

        assert result is entry
        assert entry.state is CacheEntryState.READY
        assert isinstance(entry.image, TextureData)
        assert (entry.image.width, entry.image.height) == (2, 3)
        assert entry.image.data[:4] == b"\xff\x00\x00\xff"
        assert fake_cache.released == [dependent]

    asyncio.run(run())


def test_embedded_image_passes_mime_type_and_no_flip(
    fake_cache, make_entry, decoders, png_bytes, settle
):
    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].succeed(png_bytes)
        await settle()

        data, mime_type, flip_y = decoders.raster.bytes_calls[0]
        assert data == png_bytes
        assert mime_type == "image/png"
        assert flip_y is False
        assert entry.image is decoders.raster.result

    asyncio.run(run())


@pytest.mark.parametrize(
    "header, route",
    [
        (b"\xabKTX 11\xbb\r\n\x1a\n", "ktx"),
        (b"Hx\x00\x00\x00\x00\x00\x00\x00\x00\x00\x00", "crn"),
        (b"BI\x00\x00\x00\x00\x00\x00\x00\x00\x00\x00", "raster"),
        (b"sB\x00\x00\x00\x00\x00\x00\x00\x00\x00\x00", "raster"),
        (b"RIFF\x10\x00\x00\x00WEBPVP8 ", "raster"),
    ],
)
def test_embedded_image_routes_by_header(
    fake_cache, make_entry, decoders, settle, header, route
):
    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].succeed(header)
        await settle()

        decoder = getattr(decoders, route)
        assert len(decoder.bytes_calls) == 1
        assert entry.image is decoder.result
        assert entry.state is CacheEntryState.READY

        for name in ("raster", "ktx", "crn"):
            if name != route:
                assert not getattr(decoders, name).bytes_calls

    asyncio.run(run())


def test_embedded_image_with_unknown_header_fails(fake_cache, make_entry, settle):
    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].succeed(b"\x00\x01" + b"\x00" * 10)
        await settle()

        assert entry.state is CacheEntryState.FAILED
        with pytest.raises(FormatError) as exc:
            await entry.completion
        assert "Failed to load embedded image" in str(exc.value)
        assert "valid header" in str(exc.value)
        assert fake_cache.released == fake_cache.entries

    asyncio.run(run())


def test_embedded_image_dependency_failure(fake_cache, make_entry, settle):
    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].fail(OSError("disk on fire"))
        await settle()

        assert entry.state is CacheEntryState.FAILED
        assert entry.image is None
        with pytest.raises(DependencyError) as exc:
            await entry.completion
        assert str(exc.value).startswith("Failed to load embedded image")
        assert "disk on fire" in str(exc.value)
        assert isinstance(exc.value.__cause__, OSError)
        assert len(fake_cache.released) == 1

    asyncio.run(run())


def test_embedded_image_decode_failure(
    fake_cache, make_entry, decoders, png_bytes, settle
):
    decoders.raster.error = DecodeError("truncated")

    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].succeed(png_bytes)
        await settle()

        assert entry.state is CacheEntryState.FAILED
        with pytest.raises(DecodeError, match="Failed to load embedded image\ntruncated"):
            await entry.completion
        assert len(fake_cache.released) == 1

    asyncio.run(run())


def test_acquire_failure_rejects_completion(fake_cache, make_entry):
    def broken_load_buffer_view(**kwargs):
        raise IndexError("bufferView 9 out of range")

    fake_cache.load_buffer_view = broken_load_buffer_view

    async def run():
        entry = make_entry({"bufferView": 9})
        entry.load()

        assert entry.state is CacheEntryState.FAILED
        with pytest.raises(DependencyError, match="out of range"):
            await entry.completion

    asyncio.run(run())


def test_unload_while_waiting_for_buffer_view(
    fake_cache, make_entry, decoders, png_bytes, settle
):
    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        await settle()

        entry.unload()
        assert entry.state is CacheEntryState.UNLOADED
        assert fake_cache.released == fake_cache.entries

        # Bytes arriving late are discarded
        fake_cache.entries[0].succeed(png_bytes)
        await settle()

        assert entry.state is CacheEntryState.UNLOADED
        assert entry.image is None
        assert not decoders.raster.bytes_calls
        assert entry.completion.cancelled()
        assert len(fake_cache.released) == 1

    asyncio.run(run())


def test_unload_while_decoding_releases_once(
    fake_cache, make_entry, decoders, png_bytes, settle
):
    async def run():
        decoders.raster.gate = asyncio.Event()
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].succeed(png_bytes)
        await settle()
        assert len(decoders.raster.bytes_calls) == 1

        entry.unload()
        decoders.raster.gate.set()
        await settle()

        assert entry.state is CacheEntryState.UNLOADED
        assert entry.image is None
        assert entry.completion.cancelled()
        assert len(fake_cache.released) == 1

    asyncio.run(run())


def test_unload_after_ready_clears_image(fake_cache, make_entry, png_bytes, settle):
    async def run():
        entry = make_entry({"bufferView": 0})
        entry.load()
        fake_cache.entries[0].succeed(png_bytes)
        await entry.completion

        entry.unload()
        entry.unload()

        assert entry.state is CacheEntryState.UNLOADED
        assert entry.image is None
        assert entry.source == BufferViewSource(0)
        # Still resolved exactly once
        assert entry.completion.result() is entry
        assert len(fake_cache.released) == 1

    asyncio.run(run())


def test_load_twice_is_an_error(make_entry):
    async def run():
        entry = make_entry({"uri": "texture.png"})
        entry.load()
        with pytest.raises(RuntimeError, match="only be loaded once"):
            entry.load()
        entry.unload()

    asyncio.run(run())


def test_completion_settles_once(make_entry, settle):
    async def run():
        entry = make_entry({"uri": "texture.png"})
        entry.load()
        await settle()

        assert entry.completion.result() is entry
        entry._reject(DecodeError("late"))
        entry._resolve()
        assert entry.completion.result() is entry

    asyncio.run(run())


# --- External images ---


@pytest.mark.parametrize(
    "uri, route",
    [
        ("texture.ktx", "ktx"),
        ("TEXTURE.KTX", "ktx"),
        ("data:image/ktx;base64,q0tUWCAxMbs=", "ktx"),
        ("texture.crn", "crn"),
        ("data:image/crn;base64,SHg=", "crn"),
        ("texture.png", "raster"),
        ("texture.ktx.png", "raster"),
    ],
)
def test_uri_routes_by_pattern(make_entry, decoders, settle, uri, route):
    async def run():
        entry = make_entry({"uri": uri})
        entry.load()
        await settle()

        decoder = getattr(decoders, route)
        assert len(decoder.resource_calls) == 1
        assert entry.image is decoder.result
        assert entry.state is CacheEntryState.READY

    asyncio.run(run())


def test_uri_is_resolved_against_base_resource(make_entry, decoders, settle):
    async def run():
        entry = make_entry(
            {"uri": "textures/wood.png"},
            base_resource=Resource("https://cdn.example.com/tiles/0/"),
        )
        entry.load()
        await settle()

        (resource,) = decoders.raster.resource_calls
        assert resource.url == "https://cdn.example.com/tiles/0/textures/wood.png"

    asyncio.run(run())


def test_uri_success_clears_stored_uri(make_entry, settle):
    async def run():
        entry = make_entry({"uri": "data:image/png;base64,iVBORw0KGgo="})
        entry.load()
        await settle()

        assert entry.state is CacheEntryState.READY
        assert entry.source is None

    asyncio.run(run())


def test_uri_failure_reports_uri(make_entry, decoders, settle):
    decoders.raster.error = OSError("404 Not Found")

    async def run():
        entry = make_entry({"uri": "missing.png"})
        entry.load()
        await settle()

        assert entry.state is CacheEntryState.FAILED
        assert entry.image is None
        assert entry.source is None
        with pytest.raises(DecodeError) as exc:
            await entry.completion
        assert "Failed to load image: missing.png" in str(exc.value)
        assert "404 Not Found" in str(exc.value)

    asyncio.run(run())


def test_uri_without_ktx_decoder_fails(make_entry, settle):
    async def run():
        entry = make_entry({"uri": "texture.ktx"}, decoders=DecoderSet(raster=RasterDecoder()))
        entry.load()
        await settle()

        with pytest.raises(DecodeError, match="No KTX decoder configured"):
            await entry.completion

    asyncio.run(run())


def test_unload_during_uri_load_discards_result(make_entry, decoders, settle):
    async def run():
        decoders.raster.gate = asyncio.Event()
        entry = make_entry({"uri": "texture.png"})
        entry.load()
        await settle()

        entry.unload()
        decoders.raster.gate.set()
        await settle()

        assert entry.state is CacheEntryState.UNLOADED
        assert entry.image is None
        assert entry.completion.cancelled()

    asyncio.run(run())


def test_unload_during_failing_uri_load_rejects_nothing(make_entry, decoders, settle):
    async def run():
        decoders.raster.gate = asyncio.Event()
        decoders.raster.error = OSError("connection reset")
        entry = make_entry({"uri": "texture.png"})
        entry.load()
        await settle()

        entry.unload()
        decoders.raster.gate.set()
        await settle()

        assert entry.state is CacheEntryState.UNLOADED
        assert entry.completion.cancelled()

    asyncio.run(run())
