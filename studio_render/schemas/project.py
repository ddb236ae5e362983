from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TransitionType = Literal[
    "fade",
    "slide-up",
    "slide-down",
    "slide-left",
    "slide-right",
    "wipe-left",
    "wipe-right",
    "circle-crop",
]
MotionKind = Literal["zoom-in", "zoom-out", "pan-left", "pan-right", "pan-up", "pan-down", "none"]
BannerPosition = Literal["top", "bottom"]
QRPosition = Literal["top-left", "top-right", "bottom-left", "bottom-right"]
EndScreenType = Literal["text", "image"]


def _validate_hex_color(v: str) -> str:
    value = v.lstrip("#")
    if len(value) not in (6, 8) or any(c not in "0123456789abcdefABCDEF" for c in value):
        raise ValueError(f"color must be #RRGGBB or #RRGGBBAA (got {v})")
    return f"#{value}"


class FrozenModel(BaseModel):
    """Immutable value type: a render works on a snapshot, never on live state."""

    model_config = ConfigDict(frozen=True)


class Motion(FrozenModel):
    kind: MotionKind = "none"
    intensity: int = Field(default=5, ge=1, le=10)


class Crop(FrozenModel):
    """Normalized crop rectangle, every value a fraction of the source image."""

    x: float = Field(default=0.0, ge=0.0, le=1.0)
    y: float = Field(default=0.0, ge=0.0, le=1.0)
    width: float = Field(default=1.0, ge=0.0, le=1.0)
    height: float = Field(default=1.0, ge=0.0, le=1.0)


class Slide(FrozenModel):
    id: str
    # Local path, remote URL, upload reference, or empty for a generated blank image
    image_source: str = ""
    start_time: float
    end_time: float
    transition: TransitionType = "fade"
    motion: Motion | None = None
    crop: Crop | None = None
    is_end_screen: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class BottomBanner(FrozenModel):
    enabled: bool = False
    text: str = ""
    logo_path: str | None = None
    background_color: str = "#000000"
    text_color: str = "#FFFFFF"
    font_size: int = Field(default=32, ge=8, le=200)
    position: BannerPosition = "bottom"

    @field_validator("background_color", "text_color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        return _validate_hex_color(v)


class QRCode(FrozenModel):
    enabled: bool = False
    target_url: str = ""
    position: QRPosition = "top-right"
    size_pixels: int = Field(default=150, ge=32, le=1080)


class Music(FrozenModel):
    enabled: bool = False
    file_path: str | None = None
    volume_percent: int = Field(default=70, ge=0, le=100)
    loop: bool = True
    fade_in: bool = True
    fade_out: bool = True


class Voice(FrozenModel):
    """Pre-synthesized narration. The engine never performs text-to-speech."""

    enabled: bool = False
    script: str = ""
    audio_path: str | None = None
    volume_percent: int = Field(default=80, ge=0, le=100)


class EndScreen(FrozenModel):
    enabled: bool = False
    type: EndScreenType = "text"
    content: str = ""  # Image reference for image end screens
    duration_seconds: float = Field(default=3.0, gt=0.0)
    background_color: str = "#1a1a2e"
    text_color: str = "#FFFFFF"
    company_name: str | None = None
    phone_number: str | None = None
    phone_number_color: str | None = None
    website_link: str | None = None
    logo_path: str | None = None

    @field_validator("background_color", "text_color", "phone_number_color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return _validate_hex_color(v) if v else v


class Project(FrozenModel):
    project_id: str
    name: str = ""
    business_name: str | None = None
    website_url: str | None = None
    slides: tuple[Slide, ...] = ()
    bottom_banner: BottomBanner = BottomBanner()
    qr_code: QRCode = QRCode()
    music: Music = Music()
    voice: Voice = Voice()
    end_screen: EndScreen = EndScreen()


class TimelineIssue(FrozenModel):
    """One validator finding, tied to the offending slide index when there is one."""

    index: int | None = None
    message: str

    def __str__(self) -> str:
        if self.index is None:
            return self.message
        return f"Slide {self.index}: {self.message}"
