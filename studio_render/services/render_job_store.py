"""In-memory render job store with automatic purge of finished jobs.

The store is an injected object with an explicit lifecycle: start() launches
the periodic purge task on the running loop and aclose() stops it. A job only
moves forward through queued -> preparing -> downloading -> rendering ->
done|error, and a terminal job is never updated again.
"""

import asyncio
import contextlib
import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from studio_render.config import get_settings
from studio_render.exceptions import JobNotFoundError, JobTransitionError
from studio_render.schemas.envelope import ErrorInfo
from studio_render.schemas.render import (
    JOB_STATUS_ORDER,
    RenderJob,
    RenderJobStatus,
    RenderRequest,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RenderJobStore:
    """Thread-safe in-memory store of render jobs."""

    def __init__(
        self,
        max_age_s: float | None = None,
        purge_interval_s: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        settings = get_settings()
        self._jobs: dict[str, RenderJob] = {}
        self._lock = threading.Lock()
        self._max_age = timedelta(seconds=max_age_s if max_age_s is not None else settings.job_max_age_s)
        self._purge_interval = (
            purge_interval_s if purge_interval_s is not None else settings.job_purge_interval_s
        )
        self._clock = clock
        self._purge_task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._purge_task is None:
            self._purge_task = asyncio.create_task(self._purge_loop())

    async def aclose(self) -> None:
        if self._purge_task is None:
            return
        self._purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._purge_task
        self._purge_task = None

    async def __aenter__(self) -> "RenderJobStore":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def create(self, project_id: str, request: RenderRequest | None = None) -> RenderJob:
        request = request or RenderRequest()
        now = self._clock()
        job = RenderJob(
            id=str(uuid.uuid4()),
            project_id=project_id,
            type=request.type,
            resolution=request.resolved_resolution(),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
        logger.info(f"[JOBS] Created {job.type} render job {job.id} for project {project_id}")
        return job.model_copy()

    def get(self, job_id: str) -> RenderJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def require(self, job_id: str) -> RenderJob:
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def update(
        self,
        job_id: str,
        *,
        status: RenderJobStatus | None = None,
        progress: int | None = None,
        stage: str | None = None,
        output_path: str | None = None,
        error: ErrorInfo | None = None,
    ) -> RenderJob:
        """Apply a partial update. Progress never decreases."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status.is_terminal:
                raise JobTransitionError(f"Render job {job_id} is already {job.status.value}")

            changes: dict = {"updated_at": self._clock()}
            if status is not None:
                if JOB_STATUS_ORDER[status] < JOB_STATUS_ORDER[job.status]:
                    raise JobTransitionError(
                        f"Render job {job_id} cannot move from {job.status.value} to {status.value}"
                    )
                changes["status"] = status
                if status.is_terminal:
                    changes["completed_at"] = changes["updated_at"]
            if progress is not None:
                changes["progress"] = max(job.progress, min(int(progress), 100))
            if stage is not None:
                changes["current_stage"] = stage
            if output_path is not None:
                changes["output_path"] = output_path
            if error is not None:
                changes["error"] = error
                changes["error_message"] = error.message

            updated = job.model_copy(update=changes)
            self._jobs[job_id] = updated
            return updated.model_copy()

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list_project_jobs(self, project_id: str) -> list[RenderJob]:
        """Jobs of one project, newest first."""
        with self._lock:
            jobs = [j.model_copy() for j in self._jobs.values() if j.project_id == project_id]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def purge_expired(self) -> int:
        """Remove finished jobs older than the max age. Returns how many were removed."""
        cutoff = self._clock() - self._max_age
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.status.is_terminal and (job.completed_at or job.updated_at) < cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info(f"[JOBS] Purged {len(expired)} finished render jobs")
        return len(expired)

    async def _purge_loop(self) -> None:
        while True:
            await asyncio.sleep(self._purge_interval)
            self.purge_expired()
