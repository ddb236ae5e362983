"""Generated still images used by a render (Pillow).

- Blank background for the end-screen slide
- "Image Unavailable" placeholder when a slide image cannot be fetched
- Link icon with the website address for the end screen
- JPEG normalization of slide images and PNG thumbnails of logos
"""

import logging
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from studio_render.config import get_settings

logger = logging.getLogger(__name__)

FONT_CANDIDATES = [
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
]

PLACEHOLDER_BACKGROUND = "#2a2a3e"
PLACEHOLDER_TEXT_COLOR = "#cccccc"
LOGO_MAX_SIZE = 200
LINK_ICON_FONT_SIZE = 48
JPEG_QUALITY = 95


def hex_to_rgba(hex_color: str, alpha: int = 255) -> tuple[int, int, int, int]:
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = "".join([c * 2 for c in hex_color])
    r = int(hex_color[0:2], 16)
    g = int(hex_color[2:4], 16)
    b = int(hex_color[4:6], 16)
    # Support 8-char hex (RRGGBBAA): embedded alpha overrides the parameter
    if len(hex_color) == 8:
        alpha = int(hex_color[6:8], 16)
    return (r, g, b, alpha)


def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    candidates = [get_settings().font_path] if get_settings().font_path else []
    for candidate_path in [*candidates, *FONT_CANDIDATES]:
        try:
            return ImageFont.truetype(candidate_path, size)
        except OSError:
            continue
    logger.warning("[IMAGES] No suitable font found, using PIL default")
    return ImageFont.load_default()


def _draw_centered(draw: ImageDraw.ImageDraw, text: str, font, center: tuple[int, int], fill) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = center[0] - (right - left) // 2 - left
    y = center[1] - (bottom - top) // 2 - top
    draw.text((x, y), text, font=font, fill=fill)


def create_blank_image(
    output_path: Path,
    width: int,
    height: int,
    color: str | None = None,
    text: str | None = None,
) -> Path:
    """Solid background image, optionally with centred text."""
    color = color or get_settings().blank_slide_color
    image = Image.new("RGB", (width, height), hex_to_rgba(color)[:3])
    if text:
        draw = ImageDraw.Draw(image)
        _draw_centered(draw, text, load_font(height // 8), (width // 2, height // 2), (255, 255, 255))
    image.save(output_path, "JPEG", quality=JPEG_QUALITY)
    return output_path


def create_placeholder_image(output_path: Path, width: int, height: int, slide_number: int) -> Path:
    """Stand-in for a slide image that could not be fetched."""
    image = Image.new("RGB", (width, height), hex_to_rgba(PLACEHOLDER_BACKGROUND)[:3])
    draw = ImageDraw.Draw(image)
    fill = hex_to_rgba(PLACEHOLDER_TEXT_COLOR)[:3]
    _draw_centered(draw, "Image Unavailable", load_font(height // 12), (width // 2, height // 2 - height // 16), fill)
    _draw_centered(draw, f"Slide {slide_number}", load_font(height // 20), (width // 2, height // 2 + height // 16), fill)
    image.save(output_path, "JPEG", quality=JPEG_QUALITY)
    return output_path


def create_link_icon(output_path: Path, link: str, color: str = "#FFFFFF") -> Path:
    """Transparent PNG with a chain-link glyph followed by the website address."""
    font = load_font(LINK_ICON_FONT_SIZE)
    probe = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    left, top, right, bottom = probe.textbbox((0, 0), link, font=font)
    text_w, text_h = right - left, bottom - top

    icon = LINK_ICON_FONT_SIZE
    gap = LINK_ICON_FONT_SIZE // 3
    pad = 10
    width = pad + icon + gap + text_w + pad
    height = max(icon, text_h) + pad * 2

    image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    fill = hex_to_rgba(color)
    stroke = max(icon // 10, 2)
    cy = height // 2
    # Two interlocking rounded links, drawn at 45 degrees
    link_w, link_h = int(icon * 0.6), int(icon * 0.34)
    for dx, dy in ((0, link_h // 2), (icon - link_w, -link_h // 2)):
        x0 = pad + dx
        y0 = cy - link_h // 2 + dy
        draw.rounded_rectangle([x0, y0, x0 + link_w, y0 + link_h], radius=link_h // 2, outline=fill, width=stroke)

    draw.text((pad + icon + gap - left, cy - text_h // 2 - top), link, font=font, fill=fill)
    image.save(output_path, "PNG")
    return output_path


def convert_to_jpeg(source: Path, output_path: Path) -> Path:
    """Normalize any Pillow-readable image to RGB JPEG."""
    with Image.open(source) as image:
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            background = Image.new("RGB", image.size, (0, 0, 0))
            rgba = image.convert("RGBA")
            background.paste(rgba, mask=rgba.split()[-1])
            rgb = background
        else:
            rgb = image.convert("RGB")
        rgb.save(output_path, "JPEG", quality=JPEG_QUALITY)
    return output_path


def make_logo_thumbnail(source: Path, output_path: Path) -> Path:
    """Shrink a logo to fit inside LOGO_MAX_SIZE square, keeping transparency."""
    with Image.open(source) as image:
        logo = image.convert("RGBA")
        logo.thumbnail((LOGO_MAX_SIZE, LOGO_MAX_SIZE))
        logo.save(output_path, "PNG")
    return output_path
