from studio_render.render.pipeline import RenderPipeline, RenderResult
from studio_render.schemas.project import Project
from studio_render.services.render_job_store import RenderJobStore
from studio_render.tasks.render_task import RenderService

__all__ = [
    "Project",
    "RenderJobStore",
    "RenderPipeline",
    "RenderResult",
    "RenderService",
]
