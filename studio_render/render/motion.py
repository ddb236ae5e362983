"""Ken Burns motion curves.

Each curve is a pure function of the output frame index, so the zoompan
expression handed to FFmpeg and the Python evaluation below always agree.
"""

from dataclasses import dataclass

from studio_render.schemas.project import Motion

ZOOM_STEP = 0.0015  # Magnification gained per frame at intensity 10
ZOOM_IN_CEILING = 1.05
ZOOM_OUT_START = 1.10
PAN_ZOOM = 1.10
PAN_PIXELS_PER_FRAME = 2.0  # At intensity 10


@dataclass(frozen=True)
class MotionCurve:
    kind: str
    intensity: float  # Scaled to 0.1..1.0

    @classmethod
    def from_motion(cls, motion: Motion) -> "MotionCurve":
        return cls(kind=motion.kind, intensity=motion.intensity / 10)

    @property
    def is_static(self) -> bool:
        return self.kind == "none"

    def zoom_at(self, frame: int) -> float:
        k = self.intensity
        if self.kind == "zoom-in":
            return min(1.0 + frame * ZOOM_STEP * k, ZOOM_IN_CEILING)
        if self.kind == "zoom-out":
            return max(ZOOM_OUT_START - frame * ZOOM_STEP * k, 1.0)
        if self.kind.startswith("pan-"):
            return PAN_ZOOM
        return 1.0

    def origin_at(self, frame: int, width: float, height: float) -> tuple[float, float]:
        """Top-left corner of the visible window inside a `width` x `height` source."""
        zoom = self.zoom_at(frame)
        max_x = width - width / zoom
        max_y = height - height / zoom
        step = PAN_PIXELS_PER_FRAME * self.intensity * frame
        x = max_x / 2
        y = max_y / 2
        if self.kind == "pan-left":
            x = max_x - step
        elif self.kind == "pan-right":
            x = step
        elif self.kind == "pan-up":
            y = max_y - step
        elif self.kind == "pan-down":
            y = step
        return min(max(x, 0.0), max_x), min(max(y, 0.0), max_y)

    def zoompan_filter(self, width: int, height: int, fps: int) -> str | None:
        """FFmpeg zoompan filter emitting one output frame per input frame."""
        if self.is_static:
            return None

        k = f"{self.intensity:g}"
        step = f"{PAN_PIXELS_PER_FRAME * self.intensity:g}"
        center_x = "iw/2-(iw/zoom/2)"
        center_y = "ih/2-(ih/zoom/2)"
        max_x = "(iw-iw/zoom)"
        max_y = "(ih-ih/zoom)"

        if self.kind == "zoom-in":
            z = f"min(1+on*{ZOOM_STEP}*{k},{ZOOM_IN_CEILING})"
            x, y = center_x, center_y
        elif self.kind == "zoom-out":
            z = f"max({ZOOM_OUT_START}-on*{ZOOM_STEP}*{k},1)"
            x, y = center_x, center_y
        else:
            z = f"{PAN_ZOOM}"
            x, y = center_x, center_y
            if self.kind == "pan-left":
                x = f"max(0,{max_x}-{step}*on)"
            elif self.kind == "pan-right":
                x = f"min({max_x},{step}*on)"
            elif self.kind == "pan-up":
                y = f"max(0,{max_y}-{step}*on)"
            elif self.kind == "pan-down":
                y = f"min({max_y},{step}*on)"

        return f"zoompan=z='{z}':x='{x}':y='{y}':d=1:s={width}x{height}:fps={fps}"


def motion_filter(motion: Motion | None, width: int, height: int, fps: int) -> str | None:
    """Zoompan filter for a slide's motion, or None when the slide is static."""
    if motion is None:
        return None
    return MotionCurve.from_motion(motion).zoompan_filter(width, height, fps)
