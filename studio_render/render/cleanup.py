"""Deferred deletion of per-job working directories.

Directories are removed a fixed delay after a render finishes so files still
being read are not pulled out from under a reader. A failed deletion is retried
once after a longer delay. Every scheduled deletion is a cancellable handle.
"""

import asyncio
import logging
import shutil
from pathlib import Path

from studio_render.config import get_settings

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """Schedules rmtree of working directories on the running event loop."""

    def __init__(self, delay: float | None = None, retry_delay: float | None = None):
        settings = get_settings()
        self.delay = delay if delay is not None else settings.cleanup_delay_s
        self.retry_delay = retry_delay if retry_delay is not None else settings.cleanup_retry_delay_s
        self._handles: dict[Path, asyncio.TimerHandle] = {}

    @property
    def pending(self) -> set[Path]:
        return set(self._handles)

    def schedule(self, path: Path) -> asyncio.TimerHandle:
        """Delete `path` after the configured delay, replacing any earlier schedule for it."""
        return self._schedule(Path(path), self.delay, attempt=1)

    def cancel(self, path: Path) -> bool:
        handle = self._handles.pop(Path(path), None)
        if handle is None:
            return False
        handle.cancel()
        logger.info(f"[CLEANUP] Cancelled scheduled deletion of {path}")
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def _schedule(self, path: Path, delay: float, attempt: int) -> asyncio.TimerHandle:
        existing = self._handles.pop(path, None)
        if existing is not None:
            existing.cancel()
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay, self._run, path, attempt)
        self._handles[path] = handle
        logger.info(f"[CLEANUP] Scheduled deletion of {path} in {delay:g}s (attempt {attempt})")
        return handle

    def _run(self, path: Path, attempt: int) -> None:
        self._handles.pop(path, None)
        try:
            shutil.rmtree(path)
            logger.info(f"[CLEANUP] Deleted {path}")
        except FileNotFoundError:
            logger.debug(f"[CLEANUP] {path} already removed")
        except OSError as e:
            if attempt == 1:
                logger.warning(f"[CLEANUP] Could not delete {path} ({e}), retrying in {self.retry_delay:g}s")
                self._schedule(path, self.retry_delay, attempt=2)
            else:
                logger.error(f"[CLEANUP] Giving up on deleting {path}: {e}")
