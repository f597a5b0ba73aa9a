"""Render a session's timeline to a file in its ``renders/`` directory."""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from hyperedit.exceptions import RenderNotFoundError
from hyperedit.render.compositor import TimelineCompositor
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.schemas.render import RenderKind
from hyperedit.utils.temp_files import TempFileScope, remove_quietly

if TYPE_CHECKING:
    from hyperedit.services.session_manager import Session

logger = logging.getLogger(__name__)

PREVIEW_FILENAME = "preview.mp4"
EXPORT_PREFIX = "export-"


@dataclass
class RenderOutput:
    """Output result from a render."""

    path: Path
    kind: RenderKind
    duration: float
    size: int

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "kind": self.kind,
            "duration": self.duration,
            "size": self.size,
        }


class RenderPipeline:
    """Compiles a timeline and runs the encoder.

    The output is written to a temporary name and moved into place, so
    readers never see a half-written preview or export.
    """

    def __init__(
        self,
        runner: FFmpegRunner,
        compositor: Optional[TimelineCompositor] = None,
    ):
        self.runner = runner
        self.compositor = compositor or TimelineCompositor(runner.settings)

    def output_path(self, renders_dir: Path, preview: bool) -> Path:
        if preview:
            return renders_dir / PREVIEW_FILENAME
        return renders_dir / f"{EXPORT_PREFIX}{int(time.time() * 1000)}.mp4"

    async def render(self, session: "Session", preview: bool = False) -> RenderOutput:
        """Render the session's timeline.

        Only the newest export is kept; older ones are deleted once the new
        file is in place.

        Raises:
            EmptyTimelineError: no clips (before ffmpeg is started)
            ExternalToolError: ffmpeg failed; partial output is removed
        """
        kind: RenderKind = "preview" if preview else "export"
        async with session.lock:
            final_path = self.output_path(session.renders_dir, preview)
            with TempFileScope(session.renders_dir, prefix=f".{kind}") as scope:
                partial = scope.path("partial", ".mp4")
                plan = self.compositor.compile(
                    session.timeline.project,
                    session.assets.as_mapping(),
                    partial,
                    preview=preview,
                )
                logger.info(f"[RENDER] Session {session.id}: starting {kind} render")
                await self.runner.run(plan.args, label=f"render {kind} {session.id}")
                await asyncio.to_thread(os.replace, partial, final_path)
                scope.release(partial)
            if not preview:
                prune_exports(session.renders_dir, keep=final_path)

        size = final_path.stat().st_size
        logger.info(f"[RENDER] Session {session.id}: {kind} ready at {final_path} ({size} bytes)")
        return RenderOutput(
            path=final_path, kind=kind, duration=plan.total_duration, size=size
        )


def prune_exports(renders_dir: Path, keep: Path) -> list[Path]:
    """Delete every export in ``renders_dir`` except ``keep``."""
    stale = [p for p in renders_dir.glob(f"{EXPORT_PREFIX}*.mp4") if p != keep]
    remove_quietly(*stale)
    if stale:
        logger.info(f"[RENDER] Removed {len(stale)} older exports from {renders_dir}")
    return stale


def latest_render(renders_dir: Path, kind: RenderKind) -> Path:
    """Path of the preview, or of the most recent export.

    Raises:
        RenderNotFoundError: nothing rendered yet
    """
    if kind == "preview":
        path = renders_dir / PREVIEW_FILENAME
        if path.exists():
            return path
        raise RenderNotFoundError(kind)

    exports = sorted(renders_dir.glob(f"{EXPORT_PREFIX}*.mp4"))
    if not exports:
        raise RenderNotFoundError(kind)
    return exports[-1]
