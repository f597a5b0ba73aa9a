"""Segment extraction and concatenation.

Provides:
- Frame-accurate segment extraction (re-encode, seek after input)
- Lossless concatenation with the concat demuxer
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hyperedit.config import Settings, get_settings
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.render.filter_graph import format_number

logger = logging.getLogger(__name__)


@dataclass
class TrimConfig:
    """Configuration for segment extraction."""

    start_s: float
    end_s: float
    preset: str = "ultrafast"
    crf: int = 18
    audio_bitrate: str = "192k"

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s


def escape_concat_path(path: str | Path) -> str:
    """Quote a path for an ffmpeg concat list."""
    escaped = str(path).replace("'", "'\\''")
    return f"file '{escaped}'"


class VideoTrimmer:
    """Service for cutting and joining video files."""

    def __init__(self, runner: FFmpegRunner, settings: Optional[Settings] = None):
        self.runner = runner
        self.settings = settings or get_settings()

    def build_extract_args(
        self, input_path: str | Path, output_path: str | Path, config: TrimConfig
    ) -> list[str]:
        # Input first, then seek: slower but frame-accurate
        return [
            "-i", str(input_path),
            "-ss", format_number(config.start_s),
            "-t", format_number(config.duration_s),
            "-c:v", "libx264",
            "-preset", config.preset,
            "-crf", str(config.crf),
            "-c:a", "aac",
            "-b:a", config.audio_bitrate,
            str(output_path),
        ]

    async def extract_segment(
        self, input_path: str | Path, output_path: str | Path, config: TrimConfig
    ) -> Path:
        """Re-encode ``[start_s, end_s)`` of the input into its own file."""
        await self.runner.run(
            self.build_extract_args(input_path, output_path, config),
            label=f"segment {config.start_s:.2f}-{config.end_s:.2f}",
        )
        return Path(output_path)

    def build_concat_args(self, list_path: str | Path, output_path: str | Path) -> list[str]:
        return [
            "-f", "concat",
            "-safe", "0",
            "-i", str(list_path),
            "-c", "copy",
            "-movflags", "+faststart",
            str(output_path),
        ]

    async def write_concat_list(self, segment_paths: list[Path], list_path: Path) -> Path:
        content = "".join(f"{escape_concat_path(p)}\n" for p in segment_paths)
        await asyncio.to_thread(list_path.write_text, content, "utf-8")
        return list_path

    async def concat(
        self,
        segment_paths: list[Path],
        list_path: Path,
        output_path: str | Path,
    ) -> Path:
        """Join segments that share codec parameters without re-encoding.

        Args:
            segment_paths: Segment files in playback order
            list_path: Where to write the concat manifest
            output_path: Joined output file
        """
        await self.write_concat_list(segment_paths, list_path)
        await self.runner.run(
            self.build_concat_args(list_path, output_path),
            label=f"concat {len(segment_paths)} segments",
        )
        logger.info(f"[DEAD AIR] Concatenated {len(segment_paths)} segments into {output_path}")
        return Path(output_path)
