import asyncio
import base64
import io

import httpx
import pytest
from PIL import Image

from atelier.common.errors import DecodeFailure
from atelier.compositor.decoder import ImageDecoder, payload_key
from atelier.compositor.effects import apply_filters
from atelier.design_elements.models import ImageFilters


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _png_bytes(color=(0, 128, 255, 255), size=(8, 6)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.anyio
async def test_decodes_data_uri_and_caches() -> None:
    decoder = ImageDecoder(cache_size=4)
    payload = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode()
    img = await decoder.decode(payload)
    assert img.mode == "RGBA"
    assert img.size == (8, 6)
    assert decoder.cached(payload) is img
    assert await decoder.decode(payload) is img


@pytest.mark.anyio
async def test_decodes_bare_base64_and_file_path(tmp_path) -> None:
    decoder = ImageDecoder(cache_size=4, allow_paths=True)
    raw = _png_bytes(size=(3, 3))
    img = await decoder.decode(base64.b64encode(raw).decode())
    assert img.size == (3, 3)

    path = tmp_path / "logo.png"
    path.write_bytes(_png_bytes(size=(5, 4)))
    img = await decoder.decode(str(path))
    assert img.size == (5, 4)


@pytest.mark.anyio
async def test_fetches_remote_payloads() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/logo.png":
            return httpx.Response(200, content=_png_bytes(size=(7, 7)))
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        decoder = ImageDecoder(cache_size=4, http_client=client, allow_remote=True)
        img = await decoder.decode("https://cdn.example.test/logo.png")
        assert img.size == (7, 7)
        with pytest.raises(DecodeFailure):
            await decoder.decode("https://cdn.example.test/missing.png")
        assert decoder.is_known_failure("https://cdn.example.test/missing.png")


@pytest.mark.anyio
async def test_paths_and_urls_are_refused_unless_enabled(tmp_path) -> None:
    path = tmp_path / "private.png"
    path.write_bytes(_png_bytes(size=(5, 4)))
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        return httpx.Response(200, content=_png_bytes())

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        decoder = ImageDecoder(cache_size=4, http_client=client)
        with pytest.raises(DecodeFailure):
            await decoder.decode(str(path))
        with pytest.raises(DecodeFailure):
            await decoder.decode("http://169.254.169.254/latest.png")
    assert calls == []
    assert decoder.is_known_failure(str(path))


@pytest.mark.anyio
async def test_failed_payload_is_remembered_until_forgotten() -> None:
    decoder = ImageDecoder(cache_size=4)
    payload = "data:image/png;base64," + base64.b64encode(b"definitely not png").decode()
    with pytest.raises(DecodeFailure) as exc:
        await decoder.decode(payload)
    assert exc.value.details["payload_key"] == payload_key(payload)
    assert decoder.is_known_failure(payload)
    with pytest.raises(DecodeFailure):
        await decoder.decode(payload)
    decoder.forget(payload)
    assert not decoder.is_known_failure(payload)


@pytest.mark.anyio
async def test_cache_evicts_least_recently_used() -> None:
    decoder = ImageDecoder(cache_size=2)
    payloads = [base64.b64encode(_png_bytes(size=(i + 1, 1))).decode() for i in range(3)]
    for p in payloads:
        await decoder.decode(p)
    assert decoder.cached(payloads[0]) is None
    assert decoder.cached(payloads[2]) is not None


def test_malformed_data_uri_fails() -> None:
    decoder = ImageDecoder(cache_size=1)

    with pytest.raises(DecodeFailure):
        asyncio.run(decoder.decode("data:image/png;base64"))


def test_identity_filters_return_input() -> None:
    img = Image.new("RGBA", (4, 4), (10, 20, 30, 255))
    assert apply_filters(img, ImageFilters()) is img


def test_sepia_and_brightness_keep_alpha() -> None:
    img = Image.new("RGBA", (4, 4), (100, 150, 200, 90))
    out = apply_filters(img, ImageFilters(sepia=True))
    r, g, b, a = out.getpixel((1, 1))
    assert a == 90
    assert r >= g >= b

    darker = apply_filters(img, ImageFilters(brightness=0.5))
    assert darker.getpixel((0, 0))[0] < 100
    assert darker.getpixel((0, 0))[3] == 90
