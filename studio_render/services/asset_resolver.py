"""
Asset resolution: turns slide, logo, audio and QR references into local files.

Slide images never fail a render. A slide whose image cannot be fetched is
rendered from a generated placeholder. Logos, QR codes and audio degrade to
"absent" with a warning. Only resolve() itself raises AssetUnavailableError.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from urllib.parse import urlparse

import httpx
from qrcode.exceptions import DataOverflowError

from studio_render.config import get_settings
from studio_render.exceptions import AssetUnavailableError
from studio_render.render import image_assets
from studio_render.schemas.project import EndScreen, QRCode, Slide
from studio_render.services.qr_generator import QRGenerator

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def is_remote(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def is_svg(path: Path, ref: str = "") -> bool:
    if urlparse(ref).path.lower().endswith(".svg") or path.suffix.lower() == ".svg":
        return True
    with open(path, "rb") as f:
        head = f.read(256).lstrip().lower()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head)


class AssetResolver:
    """Resolves a project's asset references into one job's working directory."""

    def __init__(
        self,
        work_dir: Path,
        *,
        width: int,
        height: int,
        transport: httpx.AsyncBaseTransport | None = None,
        qr_generator: QRGenerator | None = None,
    ):
        settings = get_settings()
        self.work_dir = Path(work_dir)
        self.images_dir = self.work_dir / "images"
        self.audio_dir = self.work_dir / "audio"
        self.width = width
        self.height = height
        self.upload_root = Path(settings.upload_root)
        self.upload_url_prefix = settings.upload_url_prefix
        self.timeout = settings.asset_download_timeout_s
        self._transport = transport
        self.qr_generator = qr_generator or QRGenerator()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            transport=self._transport,
        )

    async def resolve(self, ref: str, dest: Path) -> Path:
        """
        Make `ref` available as a local file.

        Args:
            ref: Remote URL, upload reference (/studio/images/...), or local path
            dest: Where to place downloaded or copied content

        Returns:
            Local path to the asset (dest, or ref itself for a plain local path)

        Raises:
            AssetUnavailableError: The asset does not exist or could not be fetched
        """
        if not ref:
            raise AssetUnavailableError(ref, "empty reference")

        if is_remote(ref):
            try:
                async with self._client() as client:
                    response = await client.get(ref)
                    response.raise_for_status()
            except httpx.HTTPError as e:
                raise AssetUnavailableError(ref, str(e) or type(e).__name__) from e
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(response.content)
            logger.info(f"[ASSETS] Downloaded {ref} ({len(response.content)} bytes)")
            return dest

        if ref.startswith(self.upload_url_prefix):
            source = self.upload_root / ref.lstrip("/")
            if not source.is_file():
                raise AssetUnavailableError(ref, "uploaded file not found")
            dest.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, source, dest)
            return dest

        local = Path(ref)
        if not local.is_file():
            raise AssetUnavailableError(ref, "file not found")
        return local

    async def prepare_slide_images(self, slides: list[Slide], end_screen: EndScreen) -> list[Path]:
        """One JPEG per slide, in slide order. Never raises for a bad image."""
        self.images_dir.mkdir(parents=True, exist_ok=True)
        return list(
            await asyncio.gather(*(self._prepare_slide(i, s, end_screen) for i, s in enumerate(slides)))
        )

    async def _prepare_slide(self, index: int, slide: Slide, end_screen: EndScreen) -> Path:
        output = self.images_dir / f"slide_{index}.jpg"

        if not slide.image_source:
            color = end_screen.background_color if slide.is_end_screen else None
            return await asyncio.to_thread(
                image_assets.create_blank_image, output, self.width, self.height, color
            )

        try:
            source = await self.resolve(slide.image_source, self.images_dir / f"slide_{index}_source")
            return await asyncio.to_thread(image_assets.convert_to_jpeg, source, output)
        except AssetUnavailableError as e:
            logger.warning(f"[ASSETS] Slide {index}: {e.message}, using placeholder")
        except OSError as e:
            logger.warning(f"[ASSETS] Slide {index}: unreadable image ({e}), using placeholder")
        return await asyncio.to_thread(
            image_assets.create_placeholder_image, output, self.width, self.height, index + 1
        )

    async def prepare_logo(self, ref: str | None, name: str = "logo") -> Path | None:
        """PNG thumbnail of the logo, or None when absent, SVG or unreadable."""
        if not ref:
            return None
        self.images_dir.mkdir(parents=True, exist_ok=True)
        try:
            source = await self.resolve(ref, self.images_dir / f"{name}_source")
            if is_svg(source, ref):
                logger.warning(f"[ASSETS] SVG logos are not supported, skipping {ref}")
                return None
            return await asyncio.to_thread(
                image_assets.make_logo_thumbnail, source, self.images_dir / f"{name}.png"
            )
        except AssetUnavailableError as e:
            logger.warning(f"[ASSETS] Logo unavailable: {e.message}")
        except OSError as e:
            logger.warning(f"[ASSETS] Logo unreadable: {e}")
        return None

    async def prepare_audio(self, ref: str | None, name: str) -> Path | None:
        if not ref:
            return None
        suffix = Path(urlparse(ref).path).suffix or ".mp3"
        try:
            return await self.resolve(ref, self.audio_dir / f"{name}{suffix}")
        except AssetUnavailableError as e:
            logger.warning(f"[ASSETS] {name} audio unavailable, rendering without it: {e.message}")
            return None

    async def prepare_qr(self, qr: QRCode) -> Path | None:
        if not qr.enabled or not qr.target_url:
            return None
        self.images_dir.mkdir(parents=True, exist_ok=True)
        try:
            return await asyncio.to_thread(
                self.qr_generator.generate, qr.target_url, qr.size_pixels, self.images_dir / "qr.png"
            )
        except (ValueError, OSError, DataOverflowError) as e:
            logger.warning(f"[ASSETS] QR code generation failed, rendering without it: {e}")
            return None

    async def prepare_link_icon(self, link: str | None, color: str) -> Path | None:
        if not link:
            return None
        self.images_dir.mkdir(parents=True, exist_ok=True)
        try:
            return await asyncio.to_thread(
                image_assets.create_link_icon, self.images_dir / "link_icon.png", link, color
            )
        except OSError as e:
            logger.warning(f"[ASSETS] Link icon generation failed, falling back to text: {e}")
            return None
