from studio_render.render.audio_mixer import AudioMixer
from studio_render.render.ffmpeg_runner import FFmpegRunner
from studio_render.render.pipeline import RenderPipeline, RenderResult

__all__ = [
    "RenderPipeline",
    "RenderResult",
    "AudioMixer",
    "FFmpegRunner",
]
