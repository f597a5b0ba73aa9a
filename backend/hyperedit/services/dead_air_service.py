"""Dead-air removal on a session's working video.

Silent ranges are detected, the remaining ranges are re-encoded as separate
segments (accurate cuts), then joined with a stream copy and swapped in for
the working video.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import NothingToKeepError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.services.silence_detector import (
    calculate_keep_segments,
    detect_silence,
    is_whole_file,
)
from hyperedit.services.video_trimmer import TrimConfig, VideoTrimmer
from hyperedit.utils.media_info import probe_duration
from hyperedit.utils.temp_files import TempFileScope

if TYPE_CHECKING:
    from hyperedit.services.session_manager import Session

logger = logging.getLogger(__name__)


@dataclass
class DeadAirResult:
    original_duration: float
    new_duration: float
    segments_kept: int
    changed: bool

    @property
    def removed_duration(self) -> float:
        return max(0.0, self.original_duration - self.new_duration)

    @property
    def percent_removed(self) -> float:
        if self.original_duration <= 0:
            return 0.0
        return round(self.removed_duration / self.original_duration * 100, 1)

    def to_dict(self) -> dict:
        return {
            "original_duration": self.original_duration,
            "new_duration": self.new_duration,
            "removed_duration": self.removed_duration,
            "percent_removed": self.percent_removed,
            "segments_kept": self.segments_kept,
            "changed": self.changed,
        }


class DeadAirRemover:
    def __init__(self, runner: FFmpegRunner, settings: Optional[Settings] = None):
        self.runner = runner
        self.settings = settings or get_settings()
        self.trimmer = VideoTrimmer(runner, self.settings)

    async def remove(
        self,
        session: "Session",
        threshold_db: Optional[float] = None,
        min_silence_s: Optional[float] = None,
    ) -> DeadAirResult:
        """Cut silent parts out of the session's working video.

        Raises:
            WorkingVideoNotFoundError: the session has no working video
            NothingToKeepError: the whole file is silent
            ExternalToolError: an ffmpeg step failed (working video unchanged)
        """
        threshold_db = self.settings.silence_threshold_db if threshold_db is None else threshold_db
        min_silence_s = (
            self.settings.min_silence_duration_s if min_silence_s is None else min_silence_s
        )

        async with session.lock:
            source = session.require_working_video()
            original = await probe_duration(source)
            if original <= 0:
                logger.warning(
                    f"[DEAD AIR] Session {session.id}: unknown duration, leaving video unchanged"
                )
                return DeadAirResult(0.0, 0.0, segments_kept=1, changed=False)

            silences = await detect_silence(self.runner, source, threshold_db, min_silence_s)
            keep = calculate_keep_segments(silences, original, self.settings.min_keep_segment_s)

            if is_whole_file(keep, original):
                logger.info(f"[DEAD AIR] Session {session.id}: no silence found, nothing to cut")
                return DeadAirResult(original, original, segments_kept=1, changed=False)
            if not keep:
                raise NothingToKeepError()

            logger.info(
                f"[DEAD AIR] Session {session.id}: keeping {len(keep)} segments of {original:.2f}s"
            )
            with TempFileScope(session.root, prefix=".deadair") as scope:
                segment_paths = []
                for index, segment in enumerate(keep):
                    seg_path = scope.path(f"seg{index:03d}", ".mp4")
                    await self.trimmer.extract_segment(
                        source,
                        seg_path,
                        TrimConfig(
                            start_s=segment.start,
                            end_s=segment.end,
                            preset=self.settings.segment_preset,
                            crf=self.settings.segment_crf,
                            audio_bitrate=self.settings.render_audio_bitrate,
                        ),
                    )
                    segment_paths.append(seg_path)

                joined = scope.path("joined", ".mp4")
                await self.trimmer.concat(segment_paths, scope.path("list", ".txt"), joined)
                await session.replace_working_video(joined)
                scope.release(joined)

            new_duration = await probe_duration(session.working_video)
            if new_duration <= 0:
                new_duration = sum(segment.duration for segment in keep)

        result = DeadAirResult(original, new_duration, segments_kept=len(keep), changed=True)
        logger.info(
            f"[DEAD AIR] Session {session.id}: {original:.2f}s -> {new_duration:.2f}s "
            f"({result.percent_removed}% removed)"
        )
        return result
