"""
Render pipeline for slide-based promotional videos.

This module orchestrates one render invocation:
1. Validate and plan the timeline
2. Resolve slide images, logo, QR code, link icon and audio
3. Build the visual and audio filter graphs and the FFmpeg input list
4. Encode, tracking progress and stalls
5. Move the finished file into place and schedule working-directory cleanup

States only move forward:
    validating -> resolving-assets -> building-graph -> encoding -> completed
and any state can drop to failed. A pipeline instance renders once.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from studio_render.config import RESOLUTION_PRESETS, get_settings
from studio_render.exceptions import PipelineStateError
from studio_render.render.audio_mixer import AudioGraph, AudioMixer, AudioTrackData
from studio_render.render.cleanup import CleanupScheduler
from studio_render.render.ffmpeg_runner import FFmpegRunner, verify_ffmpeg
from studio_render.render.inputs import InputPlan, InputSlot, SlideInput, build_input_plan
from studio_render.render.overlays import TextFiles
from studio_render.render.progress import (
    ENCODE_END,
    PRE_ENCODE_END,
    ProgressCallback,
    ProgressReporter,
    encode_percent,
)
from studio_render.render.timeline import (
    CompositionPlan,
    add_end_screen,
    plan_composition,
    validate_timeline,
)
from studio_render.render.video_graph import VisualGraph, build_visual_graph
from studio_render.schemas.project import Project, Slide
from studio_render.services.asset_resolver import AssetResolver

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[Path, int, int], AssetResolver]


class PipelineState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    RESOLVING_ASSETS = "resolving-assets"
    BUILDING_GRAPH = "building-graph"
    ENCODING = "encoding"
    COMPLETED = "completed"
    FAILED = "failed"


STATE_SEQUENCE: list[PipelineState] = [
    PipelineState.PENDING,
    PipelineState.VALIDATING,
    PipelineState.RESOLVING_ASSETS,
    PipelineState.BUILDING_GRAPH,
    PipelineState.ENCODING,
    PipelineState.COMPLETED,
]


@dataclass
class RenderResult:
    output_path: Path
    duration: float
    ffmpeg_log_tail: str = ""


@dataclass
class ResolvedAssets:
    slide_images: list[Path]
    music: Path | None = None
    voice: Path | None = None
    logo: Path | None = None
    end_logo: Path | None = None
    qr: Path | None = None
    link_icon: Path | None = None


def _default_resolver(work_dir: Path, width: int, height: int) -> AssetResolver:
    return AssetResolver(work_dir, width=width, height=height)


def partial_output_path(output_path: Path) -> Path:
    """Temporary path next to the destination; FFmpeg still sees the real extension."""
    return output_path.with_name(f"{output_path.stem}.partial{output_path.suffix}")


class RenderPipeline:
    """
    Single-use render supervisor for one project snapshot.

    Handles:
    - Timeline validation and crossfade planning
    - Asset resolution into an isolated working directory
    - Filter graph and argument assembly
    - FFmpeg supervision with a stall watchdog
    - Deferred deletion of the working directory on success and failure
    """

    def __init__(
        self,
        job_id: str,
        project_id: str,
        resolution: str = "1080p",
        *,
        work_root: Path | None = None,
        runner: FFmpegRunner | None = None,
        cleanup: CleanupScheduler | None = None,
        resolver_factory: ResolverFactory | None = None,
        check_ffmpeg: bool = True,
    ):
        settings = get_settings()
        if resolution not in RESOLUTION_PRESETS:
            raise ValueError(f"Unknown resolution '{resolution}', expected one of {sorted(RESOLUTION_PRESETS)}")
        self.job_id = job_id
        self.project_id = project_id
        self.preset = RESOLUTION_PRESETS[resolution]
        self.width = self.preset.width
        self.height = self.preset.height
        self.fps = settings.render_fps
        self.transition_duration = settings.render_transition_duration_s
        self.audio_bitrate = settings.render_audio_bitrate
        self.audio_sample_rate = settings.render_audio_sample_rate
        self.max_muxing_queue = settings.render_max_muxing_queue

        self.work_dir = Path(work_root or settings.work_root) / project_id / job_id
        self.runner = runner or FFmpegRunner()
        self.cleanup = cleanup or CleanupScheduler()
        self._resolver_factory = resolver_factory or _default_resolver
        self._check_ffmpeg = check_ffmpeg

        self.state = PipelineState.PENDING
        self._reporter = ProgressReporter()

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        """Set callback for progress updates: callback(percent, stage)."""
        self._reporter = ProgressReporter(callback)

    def _update_progress(self, progress: int, stage: str) -> None:
        self._reporter.report(progress, stage)

    def _enter(self, state: PipelineState) -> None:
        if self.state in (PipelineState.COMPLETED, PipelineState.FAILED):
            raise PipelineStateError(f"Pipeline already {self.state.value}, cannot enter {state.value}")
        if state != PipelineState.FAILED:
            if STATE_SEQUENCE.index(state) <= STATE_SEQUENCE.index(self.state):
                raise PipelineStateError(f"Cannot move from {self.state.value} back to {state.value}")
        logger.info(f"[RENDER] Job {self.job_id}: {self.state.value} -> {state.value}")
        self.state = state

    async def render(self, project: Project, output_path: str | Path) -> RenderResult:
        """
        Execute the full render pipeline.

        Args:
            project: Immutable project snapshot
            output_path: Final location of the encoded video

        Returns:
            RenderResult with the output path and rendered duration

        Raises:
            InvalidTimelineError, SpawnFailureError, EncoderFailureError,
            EncoderTimeoutError, PipelineStateError
        """
        if self.state != PipelineState.PENDING:
            raise PipelineStateError(f"Pipeline for job {self.job_id} has already run")

        output_path = Path(output_path)
        partial_path = partial_output_path(output_path)
        # A retried job reuses its working directory; do not let an old deletion fire mid-render
        self.cleanup.cancel(self.work_dir)

        try:
            self._enter(PipelineState.VALIDATING)
            self._update_progress(5, "Validating timeline")
            if self._check_ffmpeg:
                verify_ffmpeg(self.runner.ffmpeg_path)
            slides = add_end_screen(list(project.slides), project.end_screen)
            validate_timeline(slides).raise_for_errors()
            composition = plan_composition(slides, project.end_screen, self.transition_duration)

            self._enter(PipelineState.RESOLVING_ASSETS)
            assets = await self._resolve_assets(project, slides, composition)

            self._enter(PipelineState.BUILDING_GRAPH)
            self._update_progress(45, "Building filter graph")
            inputs = self._build_inputs(slides, composition, assets)
            text_files = TextFiles(self.work_dir)
            visual = build_visual_graph(
                project,
                slides,
                composition,
                inputs,
                width=self.width,
                height=self.height,
                fps=self.fps,
                text_files=text_files,
            )
            audio = self._build_audio(project, inputs, visual.duration)
            args = self._build_command(inputs, visual, audio, partial_path)

            self._enter(PipelineState.ENCODING)
            self._update_progress(PRE_ENCODE_END, "Rendering video")
            output_path.parent.mkdir(parents=True, exist_ok=True)
            tail = await self.runner.run(
                args,
                on_elapsed=lambda s: self._update_progress(encode_percent(s, visual.duration), "Rendering video"),
            )

            self._update_progress(ENCODE_END, "Cleaning up")
            os.replace(partial_path, output_path)
            self._enter(PipelineState.COMPLETED)
            self._reporter.finish("Complete")
            logger.info(f"[RENDER] Job {self.job_id} complete: {output_path} ({visual.duration:.2f}s)")
            return RenderResult(output_path=output_path, duration=visual.duration, ffmpeg_log_tail=tail)
        except (Exception, asyncio.CancelledError) as e:
            logger.error(f"[RENDER] Job {self.job_id} failed in {self.state.value}: {e}")
            if self.state not in (PipelineState.COMPLETED, PipelineState.FAILED):
                self._enter(PipelineState.FAILED)
            self._reporter.close()
            partial_path.unlink(missing_ok=True)
            raise
        finally:
            if self.work_dir.exists():
                self.cleanup.schedule(self.work_dir)

    async def _resolve_assets(
        self,
        project: Project,
        slides: list[Slide],
        composition: CompositionPlan,
    ) -> ResolvedAssets:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        resolver = self._resolver_factory(self.work_dir, self.width, self.height)

        self._update_progress(10, "Downloading images")
        images = await resolver.prepare_slide_images(slides, project.end_screen)
        assets = ResolvedAssets(slide_images=images)

        self._update_progress(30, "Generating QR code")
        assets.qr = await resolver.prepare_qr(project.qr_code)

        self._update_progress(35, "Preparing logo")
        banner = project.bottom_banner
        end_screen = project.end_screen
        banner_ref = banner.logo_path if banner.enabled else None
        end_ref = end_screen.logo_path if composition.splices_end_screen else None
        assets.logo = await resolver.prepare_logo(banner_ref)
        if end_ref == banner_ref:
            assets.end_logo = assets.logo
        else:
            assets.end_logo = await resolver.prepare_logo(end_ref, name="end_logo")
        if composition.splices_end_screen and end_screen.website_link:
            assets.link_icon = await resolver.prepare_link_icon(end_screen.website_link, end_screen.text_color)

        self._update_progress(40, "Preparing audio")
        if project.music.enabled:
            assets.music = await resolver.prepare_audio(project.music.file_path, "music")
        if project.voice.enabled:
            assets.voice = await resolver.prepare_audio(project.voice.audio_path, "voice")
        return assets

    def _build_inputs(self, slides: list[Slide], composition: CompositionPlan, assets: ResolvedAssets) -> InputPlan:
        slide_inputs: list[SlideInput] = []
        content_count = len(composition.content.base_durations)
        for i, (slide, image) in enumerate(zip(slides, assets.slide_images)):
            if i < content_count:
                duration = composition.content.input_duration(i)
            else:
                duration = slide.duration
            slide_inputs.append(SlideInput(path=image, duration=duration))
        return build_input_plan(
            slide_inputs,
            music=assets.music,
            voice=assets.voice,
            logo=assets.logo,
            end_logo=assets.end_logo,
            qr=assets.qr,
            link_icon=assets.link_icon,
        )

    def _build_audio(self, project: Project, inputs: InputPlan, duration: float) -> AudioGraph:
        voice = None
        music = None
        if inputs.has(InputSlot.VOICE):
            voice = AudioTrackData(
                input_index=inputs.index_of(InputSlot.VOICE),
                volume=project.voice.volume_percent / 100,
            )
        if inputs.has(InputSlot.MUSIC):
            fade = get_settings().render_music_fade_s
            music = AudioTrackData(
                input_index=inputs.index_of(InputSlot.MUSIC),
                volume=project.music.volume_percent / 100,
                loop=project.music.loop,
                fade_in_s=fade if project.music.fade_in else 0.0,
                fade_out_s=fade if project.music.fade_out else 0.0,
            )
        return AudioMixer(sample_rate=self.audio_sample_rate).build_filter(duration, voice=voice, music=music)

    def _build_command(
        self,
        inputs: InputPlan,
        visual: VisualGraph,
        audio: AudioGraph,
        output_path: Path,
    ) -> list[str]:
        """FFmpeg arguments after the binary name."""
        filter_complex = ";\n".join([*visual.filters, *audio.filters])
        return [
            "-y",
            "-hide_banner",
            *inputs.to_args(self.fps),
            "-filter_complex",
            filter_complex,
            "-map",
            f"[{visual.output_label}]",
            "-map",
            f"[{audio.output_label}]",
            "-c:v",
            "libx264",
            "-preset",
            self.preset.preset,
            "-crf",
            str(self.preset.crf),
            "-pix_fmt",
            "yuv420p",
            "-r",
            str(self.fps),
            "-c:a",
            "aac",
            "-b:a",
            self.audio_bitrate,
            "-ar",
            str(self.audio_sample_rate),
            "-max_muxing_queue_size",
            str(self.max_muxing_queue),
            "-movflags",
            "+faststart",
            "-t",
            f"{visual.duration:.3f}",
            str(output_path),
        ]
