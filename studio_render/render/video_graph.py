"""
Visual filter graph builder.

Builds the video half of the filter_complex:
1. Per slide: motion -> crop -> scale to fit + letterbox -> format normalization
2. Crossfade chain across slides, offsets from the TransitionPlan
3. End-screen splice: split, trim, decorate the tail, concat
4. Banner overlay
5. QR overlay, always last so it sits on top
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

from studio_render.render.inputs import InputPlan, InputSlot
from studio_render.render.motion import motion_filter
from studio_render.render.overlays import (
    TextFiles,
    build_banner_filters,
    build_end_screen_filters,
    build_qr_filters,
)
from studio_render.render.timeline import CompositionPlan, TransitionPlan
from studio_render.schemas.project import Project, Slide

logger = logging.getLogger(__name__)

XFADE_TRANSITIONS: dict[str, str] = {
    "fade": "fade",
    "slide-up": "slideup",
    "slide-down": "slidedown",
    "slide-left": "slideleft",
    "slide-right": "slideright",
    "wipe-left": "wipeleft",
    "wipe-right": "wiperight",
    "circle-crop": "circlecrop",
}

VIDEO_OUTPUT_LABEL = "vout"


@dataclass
class VisualGraph:
    filters: list[str] = field(default_factory=list)
    output_label: str = VIDEO_OUTPUT_LABEL
    duration: float = 0.0


def _seconds(value: float) -> str:
    return f"{value:.3f}"


def build_slide_chain(
    index: int,
    slide: Slide,
    *,
    width: int,
    height: int,
    fps: int,
) -> str:
    """Filter chain turning input `index` into normalized stream [v{index}]."""
    filters: list[str] = []

    if not slide.is_end_screen:
        zoompan = motion_filter(slide.motion, width, height, fps)
        if zoompan:
            filters.append(zoompan)

    if slide.crop is not None:
        c = slide.crop
        filters.append(f"crop=iw*{c.width:g}:ih*{c.height:g}:iw*{c.x:g}:ih*{c.y:g}")

    filters.append(f"scale={width}:{height}:force_original_aspect_ratio=decrease")
    filters.append(f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:black")
    filters.append("format=yuv420p")
    filters.append("setsar=1")
    filters.append(f"fps={fps}")
    return f"[{index}:v]{','.join(filters)}[v{index}]"


def build_xfade_chain(
    labels: list[str],
    slides: list[Slide],
    plan: TransitionPlan,
    output_label: str,
) -> list[str]:
    """Chain normalized slide streams with crossfades at the planned offsets."""
    if len(labels) == 1:
        return [f"[{labels[0]}]copy[{output_label}]"]

    filters: list[str] = []
    current = labels[0]
    for i in range(1, len(labels)):
        out = output_label if i == len(labels) - 1 else f"vx{i}"
        transition = XFADE_TRANSITIONS[slides[i].transition]
        offset = plan.offsets[i - 1]
        filters.append(
            f"[{current}][{labels[i]}]xfade=transition={transition}:"
            f"duration={plan.transition_duration:g}:offset={_seconds(offset)}[{out}]"
        )
        current = out
    return filters


def _website_host(url: str | None) -> str | None:
    if not url:
        return None
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return parsed.hostname or None


def build_visual_graph(
    project: Project,
    slides: list[Slide],
    composition: CompositionPlan,
    inputs: InputPlan,
    *,
    width: int,
    height: int,
    fps: int,
    text_files: TextFiles,
) -> VisualGraph:
    """Build every video filter for a render, ending in [vout]."""
    graph = VisualGraph()
    filters = graph.filters

    for i, slide in enumerate(slides):
        filters.append(build_slide_chain(i, slide, width=width, height=height, fps=fps))

    banner = project.bottom_banner
    # Each overlay draws only the logo it was configured with, from its own input
    banner_logo_index = inputs.index_of(InputSlot.LOGO) if banner.enabled and banner.logo_path else None
    end_logo_index = (
        inputs.index_of(InputSlot.END_LOGO)
        if composition.splices_end_screen and project.end_screen.logo_path
        else None
    )
    banner_active = banner.enabled and bool(banner.text or banner_logo_index is not None)

    content_count = len(composition.content.base_durations)
    content_labels = [f"v{i}" for i in range(content_count)]

    if composition.splices_end_screen:
        end_label = f"v{len(slides) - 1}"
        content_duration = composition.content_duration
        es_duration = composition.end_screen_duration
        link_index = inputs.index_of(InputSlot.LINK_ICON)

        if content_count > 0:
            filters.extend(
                build_xfade_chain(content_labels, slides[:content_count], composition.content, "vcontent")
            )
            filters.append(f"[vcontent][{end_label}]concat=n=2:v=1:a=0[vjoined]")
            filters.append("[vjoined]split=2[vpart_a_src][vpart_b_src]")
            filters.append(
                f"[vpart_a_src]trim=start=0:end={_seconds(content_duration)},setpts=PTS-STARTPTS[vpart_a]"
            )
            filters.append(
                f"[vpart_b_src]trim=start={_seconds(content_duration)}:duration={_seconds(es_duration)},"
                f"setpts=PTS-STARTPTS[vpart_b]"
            )
        else:
            filters.append(f"[{end_label}]trim=duration={_seconds(es_duration)},setpts=PTS-STARTPTS[vpart_b]")

        filters.extend(
            build_end_screen_filters(
                "vpart_b",
                "vend",
                project.end_screen,
                text_files=text_files,
                logo_label=f"{end_logo_index}:v" if end_logo_index is not None else None,
                link_icon_label=f"{link_index}:v" if link_index is not None else None,
            )
        )

        if content_count > 0:
            filters.append("[vpart_a][vend]concat=n=2:v=1:a=0[vbase]")
        else:
            filters.append("[vend]null[vbase]")
        graph.duration = composition.total_duration
    else:
        filters.extend(build_xfade_chain(content_labels, slides, composition.content, "vchain"))
        filters.append(
            f"[vchain]trim=duration={_seconds(composition.content_duration)},setpts=PTS-STARTPTS[vbase]"
        )
        graph.duration = composition.content_duration

    current = "vbase"

    if banner_active:
        filters.extend(
            build_banner_filters(
                current,
                "vbanner",
                banner,
                height=height,
                text_files=text_files,
                logo_label=f"{banner_logo_index}:v" if banner_logo_index is not None else None,
                website_host=_website_host(project.qr_code.target_url or project.website_url),
            )
        )
        current = "vbanner"

    qr_index = inputs.index_of(InputSlot.QR)
    if project.qr_code.enabled and qr_index is not None:
        filters.extend(
            build_qr_filters(
                current,
                "vqr",
                project.qr_code,
                qr_label=f"{qr_index}:v",
                width=width,
                height=height,
            )
        )
        current = "vqr"

    filters.append(f"[{current}]null[{graph.output_label}]")
    logger.info(
        f"[VIDEO GRAPH] {len(slides)} slides, {composition.content.transition_count} transitions, "
        f"duration {graph.duration:.2f}s"
    )
    return graph
