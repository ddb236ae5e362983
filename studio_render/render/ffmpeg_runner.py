"""
FFmpeg subprocess supervision.

Runs the encoder without blocking the event loop, streams its stderr through
the progress parser, and enforces a stall watchdog: every chunk of diagnostic
output resets the timer, and a silent encoder is killed.
"""

import asyncio
import logging
import shutil
from typing import Any, Awaitable, Callable

from studio_render.config import get_settings
from studio_render.exceptions import EncoderFailureError, EncoderTimeoutError, SpawnFailureError
from studio_render.render.progress import StderrProgressParser

logger = logging.getLogger(__name__)

ProcessFactory = Callable[..., Awaitable[Any]]
ElapsedCallback = Callable[[float], None]

READ_CHUNK_SIZE = 4096


def verify_ffmpeg(ffmpeg_path: str | None = None) -> str:
    """Resolve the FFmpeg binary, failing fast when it is not installed."""
    ffmpeg_path = ffmpeg_path or get_settings().ffmpeg_path
    resolved = shutil.which(ffmpeg_path)
    if resolved is None:
        raise SpawnFailureError(f"'{ffmpeg_path}' not found. Install FFmpeg or set FFMPEG_PATH")
    return resolved


class FFmpegRunner:
    """Launches one FFmpeg invocation and supervises it to completion."""

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        stall_timeout: float | None = None,
        process_factory: ProcessFactory | None = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.stall_timeout = stall_timeout if stall_timeout is not None else settings.render_stall_timeout_s
        self._process_factory = process_factory or asyncio.create_subprocess_exec

    async def run(self, args: list[str], on_elapsed: ElapsedCallback | None = None) -> str:
        """
        Run FFmpeg with `args` and wait for it to exit.

        Args:
            args: Arguments after the binary name
            on_elapsed: Called with encoded seconds each time a time= marker is parsed

        Returns:
            Tail of the diagnostic output

        Raises:
            SpawnFailureError: the process could not be started
            EncoderTimeoutError: no output for the stall timeout; the process was killed
            EncoderFailureError: non-zero exit status
        """
        logger.info(f"[FFMPEG] Starting: {self.ffmpeg_path} {' '.join(args[:12])} ...")
        try:
            proc = await self._process_factory(
                self.ffmpeg_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnFailureError(str(e)) from e

        parser = StderrProgressParser()
        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(proc.stderr.read(READ_CHUNK_SIZE), timeout=self.stall_timeout)
                except asyncio.TimeoutError:
                    logger.error(f"[FFMPEG] No output for {self.stall_timeout:g}s, killing process")
                    await self._kill(proc)
                    raise EncoderTimeoutError(self.stall_timeout, parser.tail())
                if not chunk:
                    break
                elapsed = parser.feed(chunk)
                if elapsed is not None and on_elapsed is not None:
                    on_elapsed(elapsed)
            parser.flush()

            try:
                returncode = await asyncio.wait_for(proc.wait(), timeout=self.stall_timeout)
            except asyncio.TimeoutError:
                logger.error("[FFMPEG] Process closed stderr but did not exit, killing process")
                await self._kill(proc)
                raise EncoderTimeoutError(self.stall_timeout, parser.tail())
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if returncode != 0:
            tail = parser.tail()
            logger.error(f"[FFMPEG] Exited with code {returncode}:\n{tail[-2000:]}")
            raise EncoderFailureError(returncode, tail)

        logger.info("[FFMPEG] Finished successfully")
        return parser.tail()

    async def _kill(self, proc: Any) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
