from functools import lru_cache
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResolutionPreset(BaseModel):
    """Output dimensions and x264 quality knobs for one resolution profile."""

    width: int
    height: int
    preset: str
    crf: int


RESOLUTION_PRESETS: dict[str, ResolutionPreset] = {
    "1080p": ResolutionPreset(width=1920, height=1080, preset="fast", crf=23),
    "720p": ResolutionPreset(width=1280, height=720, preset="ultrafast", crf=28),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Studio Render"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"

    # Render settings
    render_fps: int = 25
    render_transition_duration_s: float = 0.8
    render_stall_timeout_s: float = 60.0
    render_audio_sample_rate: int = 44100
    render_audio_bitrate: str = "128k"
    render_max_muxing_queue: int = 9999
    render_duck_to: float = 0.3  # Music level while the voice is speaking
    render_music_fade_s: float = 2.0

    # Working storage
    work_root: str = "/tmp/studio"
    output_root: str = "/tmp/studio/output"
    upload_root: str = "public"
    upload_url_prefix: str = "/studio/images/"
    font_path: str | None = None
    blank_slide_color: str = "#1a1a2e"

    # Asset download
    asset_download_timeout_s: float = 60.0

    # Deferred cleanup of per-job working directories
    cleanup_delay_s: float = 300.0
    cleanup_retry_delay_s: float = 600.0

    # Render job store
    job_max_age_s: float = 3600.0
    job_purge_interval_s: float = 300.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
