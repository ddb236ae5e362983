"""Render progress: stage allocation, stderr parsing and monotonic reporting.

Caller-visible percentages are allocated as:
    0-50    pre-encode stages (validation, asset download, graph build)
    50-95   encoding, from the encoder's elapsed-time marker
    95-100  finalize and cleanup
"""

import logging
import math
import re
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

PRE_ENCODE_END = 50
ENCODE_END = 95
COMPLETE = 100

TIME_PATTERN = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
LINE_SPLIT = re.compile(r"[\r\n]+")


def parse_elapsed(text: str) -> float | None:
    """Seconds from the last `time=HH:MM:SS.xx` marker in text, if any."""
    matches = TIME_PATTERN.findall(text)
    if not matches:
        return None
    hours, minutes, seconds = matches[-1]
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def encode_percent(elapsed: float, duration: float) -> int:
    """Map encoded seconds onto the 50-95 band."""
    if duration <= 0:
        return PRE_ENCODE_END
    fraction = min(max(elapsed / duration, 0.0), 1.0)
    return min(ENCODE_END, PRE_ENCODE_END + math.floor(fraction * (ENCODE_END - PRE_ENCODE_END)))


class StderrProgressParser:
    """Incremental parser for the encoder's diagnostic stream.

    FFmpeg rewrites its status line with carriage returns, so chunks are split
    on both \\r and \\n. A partial trailing line is held until the next chunk.
    """

    def __init__(self, tail_lines: int = 40):
        self._buffer = ""
        self._tail: deque[str] = deque(maxlen=tail_lines)
        self.elapsed: float | None = None

    def feed(self, chunk: bytes | str) -> float | None:
        """Consume a chunk; return the newest elapsed time it completed, if any."""
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")
        self._buffer += chunk
        *lines, self._buffer = LINE_SPLIT.split(self._buffer)

        latest = None
        for line in lines:
            if not line.strip():
                continue
            self._tail.append(line)
            elapsed = parse_elapsed(line)
            if elapsed is not None:
                latest = elapsed
        if latest is not None:
            self.elapsed = latest
        return latest

    def flush(self) -> None:
        if self._buffer.strip():
            self._tail.append(self._buffer)
            elapsed = parse_elapsed(self._buffer)
            if elapsed is not None:
                self.elapsed = elapsed
        self._buffer = ""

    def tail(self) -> str:
        return "\n".join(self._tail)


class ProgressReporter:
    """Forwards progress to a callback, never going backwards and never after close."""

    def __init__(self, callback: ProgressCallback | None = None):
        self._callback = callback
        self.percent = 0
        self.stage = ""
        self.closed = False

    def report(self, percent: int, stage: str) -> None:
        if self.closed:
            return
        percent = min(max(int(percent), self.percent), COMPLETE)
        if percent == self.percent and stage == self.stage:
            return
        self.percent = percent
        self.stage = stage
        logger.debug(f"[PROGRESS] {percent}% - {stage}")
        if self._callback:
            self._callback(percent, stage)

    def finish(self, stage: str = "Complete") -> None:
        """Final report at 100%. Nothing is reported afterwards."""
        self.report(COMPLETE, stage)
        self.closed = True

    def close(self) -> None:
        self.closed = True
