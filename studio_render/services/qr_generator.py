import logging
from pathlib import Path

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

logger = logging.getLogger(__name__)


class QRGenerator:
    """Renders a URL as a black-on-white QR code PNG of a fixed pixel size."""

    def __init__(self, margin: int = 1):
        self.margin = margin

    def generate(self, url: str, size: int, output_path: Path) -> Path:
        if not url:
            raise ValueError("QR code target URL is empty")

        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=self.margin)
        qr.add_data(url)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white").convert("RGB")
        image = image.resize((size, size), Image.NEAREST)
        image.save(output_path, "PNG")
        logger.info(f"[QR] Generated {size}x{size} QR code for {url}")
        return output_path
