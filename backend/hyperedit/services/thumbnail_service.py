"""Asset thumbnails: a single representative frame on a small canvas."""

import logging
from pathlib import Path
from typing import Optional

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import ExternalToolError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.render.filter_graph import FilterStage, format_number

logger = logging.getLogger(__name__)


def thumbnail_seek_time(duration: float) -> float:
    """Sample a video at min(1s, 10% of its duration)."""
    return min(1.0, duration * 0.1) if duration > 0 else 0.0


class ThumbnailService:
    def __init__(self, runner: FFmpegRunner, settings: Optional[Settings] = None):
        self.runner = runner
        self.settings = settings or get_settings()

    def build_args(
        self,
        source_path: str | Path,
        output_path: str | Path,
        asset_type: str,
        duration: float = 0.0,
    ) -> list[str]:
        width = self.settings.thumbnail_width
        height = self.settings.thumbnail_height
        fit = ",".join(
            stage.serialize()
            for stage in (
                FilterStage(
                    "scale",
                    (width, height),
                    {"force_original_aspect_ratio": "decrease"},
                ),
                FilterStage("pad", (width, height, "(ow-iw)/2", "(oh-ih)/2")),
            )
        )

        args: list[str] = []
        if asset_type == "video":
            # -ss before -i enables fast seeking (input seeking)
            args.extend(["-ss", format_number(thumbnail_seek_time(duration))])
        args.extend([
            "-i", str(source_path),
            "-frames:v", "1",
            "-vf", fit,
            "-q:v", "3",
            str(output_path),
        ])
        return args

    async def generate(
        self,
        source_path: str | Path,
        output_path: str | Path,
        asset_type: str,
        duration: float = 0.0,
    ) -> Optional[Path]:
        """Generate a thumbnail, returning None on failure.

        Thumbnails are a convenience; a failure here never fails ingestion.
        """
        if asset_type == "audio":
            return None
        try:
            await self.runner.run(
                self.build_args(source_path, output_path, asset_type, duration),
                label=f"thumbnail {Path(source_path).name}",
            )
        except ExternalToolError as e:
            logger.warning(f"[ASSET] Thumbnail generation failed for {source_path}: {e}")
            return None
        output = Path(output_path)
        return output if output.exists() else None
