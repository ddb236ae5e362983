"""
Overlay filter builders: bottom/top banner, QR code and the text end screen.

Text is never inlined into drawtext. Each string is written to its own file
under the job's working directory and referenced with `textfile=`, which keeps
quotes, colons and non-ASCII company names out of filter-graph escaping.
"""

from dataclasses import dataclass
from pathlib import Path

from studio_render.config import get_settings
from studio_render.schemas.project import BottomBanner, EndScreen, QRCode


BANNER_HEIGHT = 80
BANNER_OPACITY = 0.6
BANNER_SLIDE_IN_S = 0.5
BANNER_LOGO_HEIGHT = 60
BANNER_LOGO_X = 20
BANNER_TEXT_X_WITH_LOGO = 280
BANNER_HOST_FONT_SIZE = 24

QR_PADDING = 20

END_LOGO_HEIGHT = 100
END_LOGO_POS = 60
END_COMPANY_FONT_SIZE = 72
END_COMPANY_Y = 120
END_PHONE_FONT_SIZE = 140
END_LINK_FONT_SIZE = 48
END_LINK_ICON_MARGIN = 180
END_FALLBACK_FONT_SIZE = 200
END_FALLBACK_TEXT = "END"


def ffmpeg_color(hex_color: str, opacity: float | None = None) -> str:
    """Convert #RRGGBB to FFmpeg's 0xRRGGBB[@opacity] form."""
    color = "0x" + hex_color.lstrip("#")
    if opacity is not None:
        color = f"{color}@{opacity:g}"
    return color


def escape_filter_path(path: Path | str) -> str:
    """Quote a file path for use as a filter option value."""
    value = str(path).replace("\\", "/").replace("'", "\\'").replace(":", "\\:")
    return f"'{value}'"


class TextFiles:
    """Writes drawtext strings to numbered files inside the job's working directory."""

    def __init__(self, work_dir: Path):
        self.directory = work_dir / "text"
        self._count = 0

    def write(self, name: str, text: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{self._count:02d}_{name}.txt"
        path.write_text(text, encoding="utf-8")
        self._count += 1
        return path


def drawtext(
    textfile: Path,
    *,
    font_size: int,
    color: str,
    x: str,
    y: str,
) -> str:
    parts = [f"textfile={escape_filter_path(textfile)}"]
    font_path = get_settings().font_path
    if font_path:
        parts.append(f"fontfile={escape_filter_path(font_path)}")
    parts.extend([f"fontsize={font_size}", f"fontcolor={ffmpeg_color(color)}", f"x='{x}'", f"y='{y}'"])
    return "drawtext=" + ":".join(parts)


@dataclass
class BannerLayout:
    top: int  # Resting y of the banner box
    y_expr: str  # Animated y, slides in from outside the frame


def banner_layout(position: str, height: int) -> BannerLayout:
    if position == "top":
        top = 0
        y_expr = f"if(lt(t,{BANNER_SLIDE_IN_S}),{top}-{BANNER_HEIGHT}*(1-t/{BANNER_SLIDE_IN_S}),{top})"
    else:
        top = height - BANNER_HEIGHT
        y_expr = f"if(lt(t,{BANNER_SLIDE_IN_S}),{top}+{BANNER_HEIGHT}*(1-t/{BANNER_SLIDE_IN_S}),{top})"
    return BannerLayout(top=top, y_expr=y_expr)


def build_banner_filters(
    input_label: str,
    output_label: str,
    banner: BottomBanner,
    *,
    height: int,
    text_files: TextFiles,
    logo_label: str | None = None,
    website_host: str | None = None,
) -> list[str]:
    """Semi-opaque banner strip with optional logo, centred text and website host."""
    layout = banner_layout(banner.position, height)
    y = layout.y_expr
    filters: list[str] = []

    box = (
        f"drawbox=x=0:y='{y}':w=iw:h={BANNER_HEIGHT}:"
        f"color={ffmpeg_color(banner.background_color, BANNER_OPACITY)}:t=fill"
    )
    chain = [box]

    if banner.text:
        text_path = text_files.write("banner", banner.text)
        x = "(w-text_w)/2" if logo_label is None else f"max((w-text_w)/2,{BANNER_TEXT_X_WITH_LOGO})"
        chain.append(
            drawtext(
                text_path,
                font_size=banner.font_size,
                color=banner.text_color,
                x=x,
                y=f"{y}+({BANNER_HEIGHT}-text_h)/2",
            )
        )

    if website_host:
        host_path = text_files.write("banner_host", website_host)
        chain.append(
            drawtext(
                host_path,
                font_size=BANNER_HOST_FONT_SIZE,
                color=banner.text_color,
                x="w-text_w-20",
                y=f"{y}+({BANNER_HEIGHT}-text_h)/2",
            )
        )

    if logo_label is None:
        filters.append(f"[{input_label}]{','.join(chain)}[{output_label}]")
        return filters

    filters.append(f"[{input_label}]{','.join(chain)}[banner_base]")
    filters.append(f"[{logo_label}]scale=-1:{BANNER_LOGO_HEIGHT}[banner_logo]")
    filters.append(
        f"[banner_base][banner_logo]overlay=x={BANNER_LOGO_X}:"
        f"y='{y}+{(BANNER_HEIGHT - BANNER_LOGO_HEIGHT) // 2}'[{output_label}]"
    )
    return filters


def qr_position(position: str, size: int, width: int, height: int) -> tuple[int, int]:
    right = width - size - QR_PADDING
    bottom = height - size - QR_PADDING
    return {
        "top-left": (QR_PADDING, QR_PADDING),
        "top-right": (right, QR_PADDING),
        "bottom-left": (QR_PADDING, bottom),
        "bottom-right": (right, bottom),
    }[position]


def build_qr_filters(
    input_label: str,
    output_label: str,
    qr: QRCode,
    *,
    qr_label: str,
    width: int,
    height: int,
) -> list[str]:
    x, y = qr_position(qr.position, qr.size_pixels, width, height)
    return [
        f"[{qr_label}]scale={qr.size_pixels}:{qr.size_pixels}[qr_scaled]",
        f"[{input_label}][qr_scaled]overlay=x={x}:y={y}[{output_label}]",
    ]


def build_end_screen_filters(
    input_label: str,
    output_label: str,
    end_screen: EndScreen,
    *,
    text_files: TextFiles,
    logo_label: str | None = None,
    link_icon_label: str | None = None,
) -> list[str]:
    """Background fill, logo, company name, phone number (largest) and website link."""
    chain = [f"drawbox=x=0:y=0:w=iw:h=ih:color={ffmpeg_color(end_screen.background_color)}:t=fill"]
    has_fields = any([end_screen.company_name, end_screen.phone_number, end_screen.website_link])

    if end_screen.company_name:
        chain.append(
            drawtext(
                text_files.write("company", end_screen.company_name),
                font_size=END_COMPANY_FONT_SIZE,
                color=end_screen.text_color,
                x="(w-text_w)/2",
                y=str(END_COMPANY_Y),
            )
        )

    if end_screen.phone_number:
        chain.append(
            drawtext(
                text_files.write("phone", end_screen.phone_number),
                font_size=END_PHONE_FONT_SIZE,
                color=end_screen.phone_number_color or end_screen.text_color,
                x="(w-text_w)/2",
                y="(h-text_h)/2",
            )
        )

    if end_screen.website_link and link_icon_label is None:
        chain.append(
            drawtext(
                text_files.write("website", end_screen.website_link),
                font_size=END_LINK_FONT_SIZE,
                color=end_screen.text_color,
                x="(w-text_w)/2",
                y=f"h-{END_LINK_ICON_MARGIN}",
            )
        )

    if not has_fields:
        chain.append(
            drawtext(
                text_files.write("end", END_FALLBACK_TEXT),
                font_size=END_FALLBACK_FONT_SIZE,
                color=end_screen.text_color,
                x="(w-text_w)/2",
                y="(h-text_h)/2",
            )
        )

    filters: list[str] = []
    current = "es_text"
    filters.append(f"[{input_label}]{','.join(chain)}[{current}]")

    if end_screen.website_link and link_icon_label is not None:
        filters.append(
            f"[{current}][{link_icon_label}]overlay=x=(W-w)/2:y=H-{END_LINK_ICON_MARGIN}[es_link]"
        )
        current = "es_link"

    if logo_label is not None:
        filters.append(f"[{logo_label}]scale=-1:{END_LOGO_HEIGHT}[es_logo_scaled]")
        filters.append(f"[{current}][es_logo_scaled]overlay=x={END_LOGO_POS}:y={END_LOGO_POS}[es_logo]")
        current = "es_logo"

    filters.append(f"[{current}]null[{output_label}]")
    return filters
