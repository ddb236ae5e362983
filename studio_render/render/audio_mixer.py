"""
Audio graph builder with music ducking under narration.

This module handles:
- Voice volume
- Music looping, volume and fade in/out
- Music ducking (sidechain compression keyed on the voice)
- A silent fallback track when no audio is enabled

Every branch ends padded and trimmed to the video duration, so the audio
stream is always exactly as long as the rendered video.
"""

import logging
from dataclasses import dataclass, field

from studio_render.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

AUDIO_OUTPUT_LABEL = "aout"


@dataclass
class AudioTrackData:
    """One audio input feeding the mix."""

    input_index: int
    volume: float = 1.0  # 0.0 - 1.0
    loop: bool = False
    fade_in_s: float = 0.0
    fade_out_s: float = 0.0


@dataclass
class AudioGraph:
    filters: list[str] = field(default_factory=list)
    output_label: str = AUDIO_OUTPUT_LABEL
    duration: float = 0.0


class AudioMixer:
    """
    FFmpeg filter-graph builder for voice and background music.

    Supports:
    - Voice only, music only, or both with ducking
    - Looping music to cover the whole video
    - Silence when neither track is present
    """

    def __init__(
        self,
        sample_rate: int | None = None,
        duck_to: float | None = None,
        attack_ms: int = 200,
        release_ms: int = 1000,
    ):
        self.sample_rate = sample_rate or settings.render_audio_sample_rate
        self.duck_to = duck_to if duck_to is not None else settings.render_duck_to
        self.attack_ms = attack_ms
        self.release_ms = release_ms

    def build_filter(
        self,
        duration: float,
        voice: AudioTrackData | None = None,
        music: AudioTrackData | None = None,
    ) -> AudioGraph:
        """
        Build the audio half of the filter_complex.

        Args:
            duration: Final video duration in seconds
            voice: Narration input, already synthesized
            music: Background music input

        Returns:
            AudioGraph whose output label is [aout]
        """
        graph = AudioGraph(duration=duration)
        filters = graph.filters

        if voice is None and music is None:
            logger.info(f"[AUDIO MIX] No audio tracks, emitting {duration:.2f}s of silence")
            filters.append(self._generate_silence(duration))
            return graph

        if voice is not None:
            filters.append(f"[{voice.input_index}:a]volume={voice.volume:g}[voice]")

        if music is not None:
            filters.append(self._build_music_filter(music, duration, "music"))

        if voice is not None and music is not None:
            logger.info(f"[AUDIO MIX] Mixing voice and music with ducking to {self.duck_to:g}")
            # The voice feeds both the sidechain key and the mix
            filters.append("[voice]asplit=2[voice_key][voice_mix]")
            filters.append(
                self._build_ducking_filter("music", "voice_key", self.duck_to, self.attack_ms, self.release_ms)
            )
            filters.append(
                "[voice_mix][music_ducked]amix=inputs=2:duration=longest:dropout_transition=2:normalize=0[mixed]"
            )
            final = "mixed"
        elif voice is not None:
            logger.info("[AUDIO MIX] Voice only")
            final = "voice"
        else:
            logger.info("[AUDIO MIX] Music only")
            final = "music"

        filters.append(
            f"[{final}]aresample={self.sample_rate}:async=1:first_pts=0,"
            f"apad,atrim=duration={duration:.3f}[{graph.output_label}]"
        )
        return graph

    def _build_music_filter(self, music: AudioTrackData, duration: float, output: str) -> str:
        parts: list[str] = []
        if music.loop:
            parts.append("aloop=loop=-1:size=2e9")
        parts.append(f"atrim=0:{duration:.3f}")
        parts.append("asetpts=PTS-STARTPTS")
        parts.append(f"volume={music.volume:g}")
        if music.fade_in_s > 0 and duration > music.fade_in_s:
            parts.append(f"afade=t=in:st=0:d={music.fade_in_s:g}")
        if music.fade_out_s > 0 and duration > music.fade_out_s:
            fade_start = duration - music.fade_out_s
            parts.append(f"afade=t=out:st={fade_start:.3f}:d={music.fade_out_s:g}")
        return f"[{music.input_index}:a]{','.join(parts)}[{output}]"

    def _build_ducking_filter(
        self,
        music_stream: str,
        voice_stream: str,
        duck_to: float,
        attack_ms: int,
        release_ms: int,
    ) -> str:
        """Build FFmpeg sidechain compression filter for ducking."""
        ratio = min(20, max(1, round(1 / duck_to))) if duck_to > 0 else 20
        return (
            f"[{music_stream}][{voice_stream}]sidechaincompress="
            f"threshold=0.02:"
            f"ratio={ratio}:"
            f"attack={attack_ms}:"
            f"release={release_ms}:"
            f"makeup=1"
            f"[music_ducked]"
        )

    def _generate_silence(self, duration: float) -> str:
        """Silent stereo source trimmed to the video duration."""
        return (
            f"anullsrc=channel_layout=stereo:sample_rate={self.sample_rate},"
            f"atrim=duration={duration:.3f}[{AUDIO_OUTPUT_LABEL}]"
        )
