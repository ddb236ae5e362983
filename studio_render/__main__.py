#!/usr/bin/env python3
"""Command-line entry point.

Usage:
    python -m studio_render validate project.json
    python -m studio_render render project.json out.mp4 --resolution 720p
"""

import argparse
import asyncio
import shutil
import sys
from pathlib import Path

from studio_render.exceptions import StudioRenderError
from studio_render.logging_config import configure_logging
from studio_render.render.cleanup import CleanupScheduler
from studio_render.render.pipeline import RenderPipeline
from studio_render.render.timeline import add_end_screen, validate_timeline
from studio_render.schemas.project import Project


def load_project(path: Path) -> Project:
    return Project.model_validate_json(path.read_text(encoding="utf-8"))


def cmd_validate(args: argparse.Namespace) -> int:
    project = load_project(args.project)
    result = validate_timeline(add_end_screen(list(project.slides), project.end_screen))
    if result.valid:
        print("Timeline OK")
        return 0
    for issue in result.errors:
        print(f"  - {issue}", file=sys.stderr)
    return 1


async def _render(args: argparse.Namespace) -> int:
    project = load_project(args.project)
    cleanup = CleanupScheduler()
    pipeline = RenderPipeline("cli", project.project_id, args.resolution, cleanup=cleanup)
    pipeline.set_progress_callback(lambda percent, stage: print(f"[{percent:3d}%] {stage}", flush=True))
    try:
        result = await pipeline.render(project, args.output)
    except StudioRenderError as e:
        print(f"Render failed: {e.message}", file=sys.stderr)
        return 1
    finally:
        # Nothing outlives a one-shot process, so delete now instead of later
        if cleanup.cancel(pipeline.work_dir):
            shutil.rmtree(pipeline.work_dir, ignore_errors=True)
    print(f"Rendered {result.duration:.2f}s to {result.output_path}")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    return asyncio.run(_render(args))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="studio_render", description="Render slide projects to video")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Check a project's timeline")
    p_validate.add_argument("project", type=Path)
    p_validate.set_defaults(func=cmd_validate)

    p_render = sub.add_parser("render", help="Render a project to a video file")
    p_render.add_argument("project", type=Path)
    p_render.add_argument("output", type=Path)
    p_render.add_argument("--resolution", choices=["1080p", "720p"], default="1080p")
    p_render.set_defaults(func=cmd_render)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
