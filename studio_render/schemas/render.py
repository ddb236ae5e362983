from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from studio_render.schemas.envelope import ErrorInfo

ResolutionName = Literal["1080p", "720p"]
RenderType = Literal["preview", "final"]


class RenderJobStatus(str, Enum):
    """Externally visible render job lifecycle."""

    QUEUED = "queued"
    PREPARING = "preparing"
    DOWNLOADING = "downloading"
    RENDERING = "rendering"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RenderJobStatus.DONE, RenderJobStatus.ERROR)


# Lifecycle order; a job only ever moves forward through it
JOB_STATUS_ORDER: dict[RenderJobStatus, int] = {
    RenderJobStatus.QUEUED: 0,
    RenderJobStatus.PREPARING: 1,
    RenderJobStatus.DOWNLOADING: 2,
    RenderJobStatus.RENDERING: 3,
    RenderJobStatus.DONE: 4,
    RenderJobStatus.ERROR: 4,
}


class RenderRequest(BaseModel):
    type: RenderType = "final"
    resolution: ResolutionName | None = None  # Defaults from type: preview=720p, final=1080p

    def resolved_resolution(self) -> ResolutionName:
        if self.resolution:
            return self.resolution
        return "720p" if self.type == "preview" else "1080p"


class RenderJob(BaseModel):
    id: str
    project_id: str
    type: RenderType = "final"
    resolution: ResolutionName = "1080p"
    status: RenderJobStatus = RenderJobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    current_stage: str | None = None
    output_path: str | None = None
    error_message: str | None = None
    error: ErrorInfo | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
