"""Media file information utilities using FFprobe.

Probing is a convenience: every function here returns zero-valued info on
failure instead of raising. Callers treat a duration of 0 as "unknown".
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from hyperedit.config import get_settings

logger = logging.getLogger(__name__)


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


@dataclass
class MediaInfo:
    """Media file information."""

    width: int = 0
    height: int = 0
    duration: float = 0.0
    has_video: bool = False
    has_audio: bool = False

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "duration": self.duration,
            "has_video": self.has_video,
            "has_audio": self.has_audio,
        }


async def _run_ffprobe(file_path: str | Path, *args: str) -> dict:
    """Run ffprobe and return parsed JSON."""
    settings = _get_settings()
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        str(file_path),
    ]

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise RuntimeError(
            f"ffprobe failed ({proc.returncode}): {stderr.decode('utf-8', errors='replace')[-500:]}"
        )

    try:
        return json.loads(stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def _parse_media_info(data: dict) -> MediaInfo:
    info = MediaInfo()

    format_info = data.get("format", {})
    if "duration" in format_info:
        try:
            info.duration = float(format_info["duration"])
        except (TypeError, ValueError):
            pass

    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")
        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = int(stream.get("width") or 0)
            info.height = int(stream.get("height") or 0)
            if not info.duration and "duration" in stream:
                try:
                    info.duration = float(stream["duration"])
                except (TypeError, ValueError):
                    pass
        elif codec_type == "audio":
            info.has_audio = True

    return info


async def probe_media_info(file_path: str | Path) -> MediaInfo:
    """Get width, height and duration of a media file.

    Returns a zero-valued MediaInfo when ffprobe is missing, fails, or the
    file has no usable streams.
    """
    try:
        data = await _run_ffprobe(file_path, "-show_format", "-show_streams")
    except (OSError, RuntimeError) as e:
        logger.warning(f"[PROBE] Could not probe {file_path}: {e}")
        return MediaInfo()
    return _parse_media_info(data)


async def probe_duration(file_path: str | Path) -> float:
    """Get media duration in seconds, or 0.0 when unknown."""
    try:
        data = await _run_ffprobe(file_path, "-show_format")
    except (OSError, RuntimeError) as e:
        logger.warning(f"[PROBE] Could not probe duration of {file_path}: {e}")
        return 0.0

    duration = data.get("format", {}).get("duration")
    try:
        return float(duration) if duration is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
