"""Async ffmpeg invoker.

Runs one ffmpeg process per call, streams its stderr line by line and keeps
only a bounded tail of it for error reporting. Long high-verbosity jobs
(silencedetect over an hour of audio, big renders) therefore never hold
their whole diagnostic stream in memory.
"""

import asyncio
import logging
import re
import shutil
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

LineHandler = Callable[[str], None]

# ffmpeg rewrites its progress line with \r, so both count as line breaks
_LINE_BREAK = re.compile(rb"[\r\n]+")
_READ_CHUNK = 4096
_MAX_PENDING = 64 * 1024
_PROGRESS_PREFIXES = ("frame=", "size=")


@dataclass
class FFmpegResult:
    """Outcome of a single ffmpeg invocation."""

    success: bool
    returncode: int
    diagnostics_tail: str

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "returncode": self.returncode,
            "diagnostics_tail": self.diagnostics_tail,
        }


class DiagnosticsTail:
    """Keeps the last ``max_chars`` characters of a line stream."""

    def __init__(self, max_chars: int):
        self.max_chars = max_chars
        self._lines: deque[str] = deque()
        self._chars = 0

    def append(self, line: str) -> None:
        if len(line) > self.max_chars:
            line = line[-self.max_chars:]
        self._lines.append(line)
        self._chars += len(line) + 1
        while self._lines and self._chars - (len(self._lines[0]) + 1) >= self.max_chars:
            dropped = self._lines.popleft()
            self._chars -= len(dropped) + 1

    def text(self) -> str:
        return "\n".join(self._lines)[-self.max_chars:]


class FFmpegRunner:
    """Spawns ffmpeg subprocesses without blocking the event loop."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.ffmpeg_path = self.settings.ffmpeg_path

    def is_available(self) -> bool:
        return shutil.which(self.ffmpeg_path) is not None

    async def run(
        self,
        args: Sequence[str],
        *,
        label: str = "ffmpeg",
        line_handler: Optional[LineHandler] = None,
        timeout_s: Optional[float] = None,
        check: bool = True,
    ) -> FFmpegResult:
        """Run ffmpeg with ``args`` (binary and ``-y`` are prepended).

        Args:
            args: ffmpeg arguments, without the executable
            label: Short job name used in log lines
            line_handler: Called with every stderr line, in order
            timeout_s: Kill the process after this many seconds
                (defaults to ``settings.encoder_timeout_s``)
            check: Raise ExternalToolError on a non-zero exit

        Returns:
            FFmpegResult with the exit status and the diagnostic tail

        Raises:
            ExternalToolError: binary missing, timeout, or non-zero exit with check=True
        """
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", *args]
        logger.debug(f"[FFMPEG] {label}: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(f"ffmpeg not found at '{self.ffmpeg_path}'") from e

        tail = DiagnosticsTail(self.settings.encoder_diagnostics_tail_chars)
        timeout = timeout_s if timeout_s is not None else self.settings.encoder_timeout_s

        try:
            await asyncio.wait_for(
                self._drain(proc, label, tail, line_handler),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            logger.error(f"[FFMPEG] {label} timed out after {timeout}s")
            raise ExternalToolError(
                f"{label} timed out after {timeout}s", diagnostics=tail.text()
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        result = FFmpegResult(
            success=proc.returncode == 0,
            returncode=proc.returncode,
            diagnostics_tail=tail.text(),
        )
        if not result.success:
            logger.error(
                f"[FFMPEG] {label} failed (exit {result.returncode}): {result.diagnostics_tail}"
            )
            if check:
                raise ExternalToolError(
                    f"{label} failed",
                    diagnostics=result.diagnostics_tail,
                    returncode=result.returncode,
                )
        else:
            logger.info(f"[FFMPEG] {label} finished")
        return result

    async def _drain(
        self,
        proc: asyncio.subprocess.Process,
        label: str,
        tail: DiagnosticsTail,
        line_handler: Optional[LineHandler],
    ) -> None:
        pending = b""
        while True:
            chunk = await proc.stderr.read(_READ_CHUNK)
            if not chunk:
                break
            pending += chunk
            parts = _LINE_BREAK.split(pending)
            pending = parts.pop()
            if len(pending) > _MAX_PENDING:
                parts.append(pending)
                pending = b""
            for raw in parts:
                self._handle_line(raw, label, tail, line_handler)
        if pending:
            self._handle_line(pending, label, tail, line_handler)
        await proc.wait()

    def _handle_line(
        self,
        raw: bytes,
        label: str,
        tail: DiagnosticsTail,
        line_handler: Optional[LineHandler],
    ) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return
        tail.append(line)
        if line.startswith(_PROGRESS_PREFIXES):
            logger.debug(f"[FFMPEG] {label} progress: {line}")
        if line_handler is not None:
            line_handler(line)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
