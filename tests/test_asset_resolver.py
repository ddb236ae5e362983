"""Tests for asset resolution, image generation and QR codes."""

import io
from pathlib import Path

import httpx
import pytest
from PIL import Image

from studio_render.exceptions import AssetUnavailableError
from studio_render.render import image_assets
from studio_render.schemas.project import EndScreen, QRCode, Slide
from studio_render.services.asset_resolver import AssetResolver, is_svg
from studio_render.services.qr_generator import QRGenerator


def _png_bytes(size=(40, 30), color=(0, 128, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


def _transport(routes: dict[str, httpx.Response]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(str(request.url), httpx.Response(404))

    return httpx.MockTransport(handler)


@pytest.fixture
def resolver_factory(temp_output_dir: Path):
    def _make(routes: dict[str, httpx.Response] | None = None) -> AssetResolver:
        return AssetResolver(
            temp_output_dir / "work",
            width=320,
            height=180,
            transport=_transport(routes or {}),
        )

    return _make


class TestResolve:
    """Tests for AssetResolver.resolve."""

    @pytest.mark.asyncio
    async def test_downloads_remote(self, resolver_factory, temp_output_dir):
        resolver = resolver_factory({"https://cdn.example/a.png": httpx.Response(200, content=b"data")})
        path = await resolver.resolve("https://cdn.example/a.png", temp_output_dir / "dl" / "a")
        assert path.read_bytes() == b"data"

    @pytest.mark.asyncio
    async def test_remote_404_raises(self, resolver_factory, temp_output_dir):
        resolver = resolver_factory()
        with pytest.raises(AssetUnavailableError) as exc_info:
            await resolver.resolve("https://cdn.example/missing.png", temp_output_dir / "x")
        assert exc_info.value.ref == "https://cdn.example/missing.png"

    @pytest.mark.asyncio
    async def test_local_missing_raises(self, resolver_factory, temp_output_dir):
        with pytest.raises(AssetUnavailableError):
            await resolver_factory().resolve(str(temp_output_dir / "nope.png"), temp_output_dir / "x")

    @pytest.mark.asyncio
    async def test_upload_reference_copied(self, resolver_factory, temp_output_dir, monkeypatch):
        upload_root = temp_output_dir / "public"
        (upload_root / "studio" / "images").mkdir(parents=True)
        (upload_root / "studio" / "images" / "up.png").write_bytes(b"uploaded")
        resolver = resolver_factory()
        monkeypatch.setattr(resolver, "upload_root", upload_root)

        path = await resolver.resolve("/studio/images/up.png", temp_output_dir / "copy.png")
        assert path.read_bytes() == b"uploaded"


class TestPrepareSlides:
    """Tests for slide image preparation."""

    @pytest.mark.asyncio
    async def test_slides_converted_in_order(self, resolver_factory, image_file):
        resolver = resolver_factory({"https://cdn.example/b.png": httpx.Response(200, content=_png_bytes())})
        slides = [
            Slide(id="a", image_source=str(image_file), start_time=0, end_time=3),
            Slide(id="b", image_source="https://cdn.example/b.png", start_time=3, end_time=6),
        ]
        paths = await resolver.prepare_slide_images(slides, EndScreen())
        assert [p.name for p in paths] == ["slide_0.jpg", "slide_1.jpg"]
        for path in paths:
            with Image.open(path) as img:
                assert img.format == "JPEG"

    @pytest.mark.asyncio
    async def test_failed_download_uses_placeholder(self, resolver_factory):
        resolver = resolver_factory()
        slides = [Slide(id="a", image_source="https://cdn.example/gone.png", start_time=0, end_time=3)]
        [path] = await resolver.prepare_slide_images(slides, EndScreen())
        with Image.open(path) as img:
            assert img.size == (320, 180)

    @pytest.mark.asyncio
    async def test_end_screen_slide_is_blank(self, resolver_factory):
        resolver = resolver_factory()
        slides = [Slide(id="end", start_time=0, end_time=3, is_end_screen=True)]
        [path] = await resolver.prepare_slide_images(slides, EndScreen(background_color="#102030"))
        with Image.open(path) as img:
            r, g, b = img.convert("RGB").getpixel((5, 5))
        assert abs(r - 0x10) < 8 and abs(g - 0x20) < 8 and abs(b - 0x30) < 8


class TestOptionalAssets:
    """Tests for logo, audio, QR and link icon preparation."""

    @pytest.mark.asyncio
    async def test_logo_thumbnail(self, resolver_factory, temp_output_dir):
        logo = temp_output_dir / "logo.png"
        Image.new("RGBA", (800, 400), (255, 0, 0, 255)).save(logo)
        path = await resolver_factory().prepare_logo(str(logo))
        with Image.open(path) as img:
            assert img.size == (200, 100)

    @pytest.mark.asyncio
    async def test_svg_logo_skipped(self, resolver_factory, temp_output_dir):
        logo = temp_output_dir / "logo.svg"
        logo.write_text("<svg xmlns='http://www.w3.org/2000/svg'></svg>")
        assert await resolver_factory().prepare_logo(str(logo)) is None

    @pytest.mark.asyncio
    async def test_missing_logo_degrades(self, resolver_factory):
        assert await resolver_factory().prepare_logo("https://cdn.example/logo.png") is None
        assert await resolver_factory().prepare_logo(None) is None

    @pytest.mark.asyncio
    async def test_missing_audio_degrades(self, resolver_factory):
        assert await resolver_factory().prepare_audio("https://cdn.example/music.mp3", "music") is None

    @pytest.mark.asyncio
    async def test_remote_audio_keeps_suffix(self, resolver_factory):
        resolver = resolver_factory({"https://cdn.example/voice.wav": httpx.Response(200, content=b"RIFF")})
        path = await resolver.prepare_audio("https://cdn.example/voice.wav", "voice")
        assert path.name == "voice.wav"

    @pytest.mark.asyncio
    async def test_qr_generated_at_size(self, resolver_factory):
        path = await resolver_factory().prepare_qr(QRCode(enabled=True, target_url="https://example.com", size_pixels=150))
        with Image.open(path) as img:
            assert img.size == (150, 150)

    @pytest.mark.asyncio
    async def test_qr_disabled(self, resolver_factory):
        assert await resolver_factory().prepare_qr(QRCode(enabled=False, target_url="https://example.com")) is None

    @pytest.mark.asyncio
    async def test_link_icon(self, resolver_factory):
        path = await resolver_factory().prepare_link_icon("example.com", "#FFFFFF")
        with Image.open(path) as img:
            assert img.mode == "RGBA"
            assert img.width > img.height


class TestHelpers:
    """Tests for standalone helpers."""

    def test_is_svg_by_content(self, temp_output_dir):
        path = temp_output_dir / "logo"
        path.write_bytes(b"<?xml version='1.0'?><svg></svg>")
        assert is_svg(path)

    def test_png_is_not_svg(self, image_file):
        assert not is_svg(image_file)

    def test_hex_to_rgba(self):
        assert image_assets.hex_to_rgba("#1a1a2e") == (0x1A, 0x1A, 0x2E, 255)
        assert image_assets.hex_to_rgba("#fff") == (255, 255, 255, 255)
        assert image_assets.hex_to_rgba("#00000080") == (0, 0, 0, 128)

    def test_qr_generator_rejects_empty_url(self, temp_output_dir):
        with pytest.raises(ValueError):
            QRGenerator().generate("", 100, temp_output_dir / "qr.png")
