"""Background render jobs: runs a RenderPipeline and mirrors it into the job store."""

import asyncio
import logging
from pathlib import Path
from typing import Callable

from studio_render.config import get_settings
from studio_render.exceptions import StudioRenderError
from studio_render.render.cleanup import CleanupScheduler
from studio_render.render.pipeline import RenderPipeline
from studio_render.schemas.project import Project
from studio_render.schemas.render import RenderJob, RenderJobStatus, RenderRequest
from studio_render.services.render_job_store import RenderJobStore

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[RenderJob, CleanupScheduler], RenderPipeline]


def job_status_for_progress(progress: int) -> RenderJobStatus:
    """Job status implied by a pipeline progress percentage."""
    if progress < 10:
        return RenderJobStatus.PREPARING
    if progress < 50:
        return RenderJobStatus.DOWNLOADING
    return RenderJobStatus.RENDERING


def _default_pipeline(job: RenderJob, cleanup: CleanupScheduler) -> RenderPipeline:
    return RenderPipeline(job.id, job.project_id, job.resolution, cleanup=cleanup)


class RenderService:
    """Creates render jobs and runs them as tasks on the current event loop."""

    def __init__(
        self,
        store: RenderJobStore,
        *,
        output_root: Path | None = None,
        cleanup: CleanupScheduler | None = None,
        pipeline_factory: PipelineFactory | None = None,
    ):
        self.store = store
        self.output_root = Path(output_root or get_settings().output_root)
        self.cleanup = cleanup or CleanupScheduler()
        self._pipeline_factory = pipeline_factory or _default_pipeline
        self._tasks: dict[str, asyncio.Task] = {}

    def submit(self, project: Project, request: RenderRequest | None = None) -> RenderJob:
        """Queue a render of `project` and return the new job immediately."""
        job = self.store.create(project.project_id, request)
        task = asyncio.create_task(self.run_job(job.id, project))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))
        return job

    async def wait(self, job_id: str) -> RenderJob:
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.store.require(job_id)

    def output_path_for(self, job: RenderJob) -> Path:
        return self.output_root / job.project_id / f"{job.type}_{job.id}.mp4"

    async def run_job(self, job_id: str, project: Project) -> RenderJob:
        """
        Execute one render job.

        Args:
            job_id: ID of a queued job in the store
            project: Project snapshot to render

        Returns:
            The job in its terminal state
        """
        job = self.store.require(job_id)
        pipeline = self._pipeline_factory(job, self.cleanup)
        pipeline.set_progress_callback(lambda progress, stage: self._on_progress(job_id, progress, stage))
        self.store.update(job_id, status=RenderJobStatus.PREPARING, stage="Starting render")

        try:
            result = await pipeline.render(project, self.output_path_for(job))
        except StudioRenderError as e:
            logger.error(f"[JOBS] Render job {job_id} failed: {e.message}")
            return self.store.update(job_id, status=RenderJobStatus.ERROR, stage="Failed", error=e.to_error_info())
        except asyncio.CancelledError:
            self.store.update(
                job_id,
                status=RenderJobStatus.ERROR,
                stage="Cancelled",
                error=StudioRenderError("Render cancelled").to_error_info(),
            )
            raise
        except Exception as e:
            logger.exception(f"[JOBS] Render job {job_id} crashed")
            return self.store.update(
                job_id,
                status=RenderJobStatus.ERROR,
                stage="Failed",
                error=StudioRenderError(f"Unexpected render error: {e}").to_error_info(),
            )

        return self.store.update(
            job_id,
            status=RenderJobStatus.DONE,
            progress=100,
            stage="Complete",
            output_path=str(result.output_path),
        )

    def _on_progress(self, job_id: str, progress: int, stage: str) -> None:
        self.store.update(job_id, status=job_status_for_progress(progress), progress=progress, stage=stage)

    async def aclose(self) -> None:
        """Cancel running renders and any pending directory deletions."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.cleanup.cancel_all()
