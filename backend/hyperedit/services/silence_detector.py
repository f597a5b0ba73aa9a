"""Silence detection and keep-segment calculation.

``detect_silence`` runs ffmpeg's silencedetect filter and turns its
``silence_start`` / ``silence_end`` log markers into time ranges.
``calculate_keep_segments`` computes the complement: the parts of the file
worth keeping when dead air is removed.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.render.filter_graph import FilterStage

logger = logging.getLogger(__name__)

_SILENCE_START = re.compile(r"silence_start:\s*(-?[\d.]+(?:e-?\d+)?)")
_SILENCE_END = re.compile(r"silence_end:\s*(-?[\d.]+(?:e-?\d+)?)")


@dataclass(frozen=True)
class TimeRange:
    """A closed-open interval [start, end) in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


class SilenceMarkerParser:
    """Pairs silencedetect markers fed one log line at a time.

    An end without a start, a start that never gets an end, or an
    unparsable number is dropped. A second start replaces a dangling one.
    """

    def __init__(self):
        self.silences: list[TimeRange] = []
        self._pending_start: Optional[float] = None

    def feed(self, line: str) -> None:
        start_match = _SILENCE_START.search(line)
        if start_match:
            try:
                self._pending_start = max(0.0, float(start_match.group(1)))
            except ValueError:
                self._pending_start = None
            return

        end_match = _SILENCE_END.search(line)
        if end_match and self._pending_start is not None:
            try:
                end = float(end_match.group(1))
            except ValueError:
                self._pending_start = None
                return
            if end > self._pending_start:
                self.silences.append(TimeRange(self._pending_start, end))
            self._pending_start = None

    def result(self) -> list[TimeRange]:
        return sorted(self.silences, key=lambda r: r.start)


def parse_silence_output(output: str) -> list[TimeRange]:
    """Parse a whole silencedetect log at once."""
    parser = SilenceMarkerParser()
    for line in output.splitlines():
        parser.feed(line)
    return parser.result()


async def detect_silence(
    runner: FFmpegRunner,
    path: str | Path,
    threshold_db: float,
    min_duration_s: float,
) -> list[TimeRange]:
    """Detect silent ranges in a media file, in chronological order.

    Raises:
        ExternalToolError: ffmpeg could not read the file
    """
    detect = FilterStage(
        "silencedetect",
        kwargs={"noise": f"{threshold_db}dB", "d": min_duration_s},
    )
    parser = SilenceMarkerParser()
    await runner.run(
        ["-i", str(path), "-af", detect.serialize(), "-f", "null", "-"],
        label="silencedetect",
        line_handler=parser.feed,
    )
    silences = parser.result()
    logger.info(f"[DEAD AIR] Found {len(silences)} silent ranges in {Path(path).name}")
    return silences


def calculate_keep_segments(
    silences: list[TimeRange],
    total_duration: float,
    min_segment_s: float = 0.1,
) -> list[TimeRange]:
    """Return the non-silent parts of ``[0, total_duration)``.

    Silences are clipped to the file; overlapping or adjacent silences never
    produce zero-length or negative segments. Segments shorter than
    ``min_segment_s`` are dropped. No silences means one segment covering
    the whole file.
    """
    if not silences:
        return [TimeRange(0.0, total_duration)]

    keep: list[TimeRange] = []
    last_end = 0.0
    for silence in sorted(silences, key=lambda r: r.start):
        start = min(max(silence.start, 0.0), total_duration)
        end = min(max(silence.end, 0.0), total_duration)
        if end <= start:
            continue
        if start - last_end >= min_segment_s:
            keep.append(TimeRange(last_end, start))
        last_end = max(last_end, end)

    if total_duration - last_end >= min_segment_s:
        keep.append(TimeRange(last_end, total_duration))

    return keep


def is_whole_file(segments: list[TimeRange], total_duration: float) -> bool:
    return (
        len(segments) == 1
        and segments[0].start <= 0.0
        and segments[0].end >= total_duration
    )
