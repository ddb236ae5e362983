"""
Pytest fixtures for studio_render tests.

Most tests build filter graphs and run the pipeline against a fake encoder.
Tests that need a real FFmpeg binary are marked with @pytest.mark.requires_ffmpeg
and skipped when it is not installed.
"""

import shutil
import tempfile
from pathlib import Path

import pytest
from PIL import Image

from studio_render.schemas.project import Project, Slide


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring an ffmpeg binary on PATH",
    )


requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None,
    reason="ffmpeg not installed",
)


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="studio_test_") as tmpdir:
        yield Path(tmpdir)


def build_slides(durations: list[float], **overrides) -> list[Slide]:
    """Back-to-back slides starting at 0 with the given durations."""
    slides = []
    cursor = 0.0
    for i, duration in enumerate(durations):
        slides.append(
            Slide(id=f"s{i}", start_time=cursor, end_time=cursor + duration, **overrides)
        )
        cursor += duration
    return slides


@pytest.fixture
def image_file(temp_output_dir: Path) -> Path:
    """A small real PNG on disk."""
    path = temp_output_dir / "source.png"
    Image.new("RGB", (64, 36), (200, 40, 40)).save(path, "PNG")
    return path


@pytest.fixture
def sample_project(image_file: Path) -> Project:
    """Four 3 second slides using a local image, no overlays."""
    slides = [s.model_copy(update={"image_source": str(image_file)}) for s in build_slides([3, 3, 3, 3])]
    return Project(project_id="proj-1", name="Sample", slides=tuple(slides))
