"""FFmpeg input list assembly.

Slides always occupy inputs 0..n-1. Optional inputs follow in a fixed slot
order, and each present slot takes the next free index in a single pass, so
the filter graph can look indices up by slot instead of recomputing them.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class InputSlot(str, Enum):
    MUSIC = "music"
    VOICE = "voice"
    LOGO = "logo"  # Banner logo
    END_LOGO = "end_logo"
    QR = "qr"
    LINK_ICON = "link_icon"


SLOT_ORDER: tuple[InputSlot, ...] = (
    InputSlot.MUSIC,
    InputSlot.VOICE,
    InputSlot.LOGO,
    InputSlot.END_LOGO,
    InputSlot.QR,
    InputSlot.LINK_ICON,
)


@dataclass
class SlideInput:
    path: Path
    duration: float  # Seconds of looped still image to feed


@dataclass
class InputPlan:
    slides: list[SlideInput]
    optional: dict[InputSlot, Path] = field(default_factory=dict)
    indices: dict[InputSlot, int] = field(default_factory=dict)

    def has(self, slot: InputSlot) -> bool:
        return slot in self.indices

    def index_of(self, slot: InputSlot) -> int | None:
        return self.indices.get(slot)

    def to_args(self, fps: int) -> list[str]:
        args: list[str] = []
        for slide in self.slides:
            args.extend(
                ["-loop", "1", "-framerate", str(fps), "-t", f"{slide.duration:.3f}", "-i", str(slide.path)]
            )
        for slot in SLOT_ORDER:
            if slot in self.optional:
                args.extend(["-i", str(self.optional[slot])])
        return args


def build_input_plan(
    slides: list[SlideInput],
    *,
    music: Path | None = None,
    voice: Path | None = None,
    logo: Path | None = None,
    end_logo: Path | None = None,
    qr: Path | None = None,
    link_icon: Path | None = None,
) -> InputPlan:
    """Assign input indices: slides first, then each present optional slot in order."""
    provided = {
        InputSlot.MUSIC: music,
        InputSlot.VOICE: voice,
        InputSlot.LOGO: logo,
        InputSlot.END_LOGO: end_logo,
        InputSlot.QR: qr,
        InputSlot.LINK_ICON: link_icon,
    }
    plan = InputPlan(slides=list(slides))
    next_index = len(slides)
    for slot in SLOT_ORDER:
        path = provided[slot]
        if path is None:
            continue
        plan.optional[slot] = path
        plan.indices[slot] = next_index
        next_index += 1
    return plan
