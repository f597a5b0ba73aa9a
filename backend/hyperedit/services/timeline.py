"""Timeline model operations and persistence.

The Timeline wraps a Project document and the session's ``project.json``.
``resize_clip`` does not validate its arguments: call sites run
``validate_resize`` first, which knows the asset bounds.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

from hyperedit.exceptions import ClipNotFoundError, InvalidTimeRangeError, TrackNotFoundError
from hyperedit.schemas.asset import Asset
from hyperedit.schemas.project import (
    ClipTransform,
    Project,
    TimelineClip,
    default_project,
)

logger = logging.getLogger(__name__)


class Timeline:
    def __init__(self, project_path: Path, project: Optional[Project] = None):
        self.project_path = Path(project_path)
        self.project = project or default_project()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def clips(self) -> list[TimelineClip]:
        return self.project.clips

    def get_clip(self, clip_id: str) -> TimelineClip:
        for clip in self.project.clips:
            if clip.id == clip_id:
                return clip
        raise ClipNotFoundError(clip_id)

    def has_track(self, track_id: str) -> bool:
        return any(track.id == track_id for track in self.project.tracks)

    def total_duration(self) -> float:
        if not self.project.clips:
            return 0.0
        return max(clip.start + clip.duration for clip in self.project.clips)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_clip(
        self,
        asset: Asset,
        track_id: str,
        start: float = 0.0,
        duration: Optional[float] = None,
        in_point: Optional[float] = None,
        out_point: Optional[float] = None,
        transform: Optional[ClipTransform] = None,
    ) -> TimelineClip:
        """Place an asset on a track.

        ``duration`` overrides ``out_point - in_point`` for fixed-length
        overlays such as GIFs.
        """
        if not self.has_track(track_id):
            raise TrackNotFoundError(track_id)

        in_point = 0.0 if in_point is None else max(0.0, in_point)
        if out_point is None:
            out_point = asset.duration
        if asset.duration > 0 and asset.type != "image":
            if in_point >= asset.duration:
                raise InvalidTimeRangeError(
                    f"inPoint {in_point} is past the end of {asset.filename} ({asset.duration}s)"
                )
            out_point = min(out_point, asset.duration)
        if out_point <= in_point:
            # Unknown (0) asset durations fall back to the requested length
            fallback = duration if duration else 0.1
            out_point = in_point + fallback
        if duration is None:
            duration = out_point - in_point

        clip = TimelineClip(
            asset_id=asset.id,
            track_id=track_id,
            start=max(0.0, start),
            duration=duration,
            in_point=in_point,
            out_point=out_point,
            transform=transform,
        )
        self.project.clips.append(clip)
        logger.info(f"[TIMELINE] Added clip {clip.id} ({asset.filename}) to {track_id} at {clip.start}s")
        return clip

    def move_clip(
        self, clip_id: str, new_start: float, new_track_id: Optional[str] = None
    ) -> TimelineClip:
        clip = self.get_clip(clip_id)
        if new_track_id is not None:
            if not self.has_track(new_track_id):
                raise TrackNotFoundError(new_track_id)
            clip.track_id = new_track_id
        clip.start = max(0.0, new_start)
        return clip

    def resize_clip(
        self,
        clip_id: str,
        new_in_point: float,
        new_out_point: float,
        new_start: Optional[float] = None,
    ) -> TimelineClip:
        clip = self.get_clip(clip_id)
        clip.in_point = new_in_point
        clip.out_point = new_out_point
        clip.duration = new_out_point - new_in_point
        if new_start is not None:
            clip.start = new_start
        return clip

    def set_transform(
        self, clip_id: str, transform: Optional[ClipTransform]
    ) -> TimelineClip:
        clip = self.get_clip(clip_id)
        clip.transform = transform
        return clip

    def delete_clip(self, clip_id: str) -> None:
        clip = self.get_clip(clip_id)
        self.project.clips.remove(clip)

    def remove_clips_for_asset(self, asset_id: str) -> list[str]:
        removed = [clip.id for clip in self.project.clips if clip.asset_id == asset_id]
        if removed:
            self.project.clips = [c for c in self.project.clips if c.asset_id != asset_id]
            logger.info(f"[TIMELINE] Removed {len(removed)} clips referencing asset {asset_id}")
        return removed

    def replace(self, project: Project) -> None:
        self.project = project

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        tmp_path = self.project_path.with_suffix(".json.tmp")
        tmp_path.write_text(
            self.project.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
        os.replace(tmp_path, self.project_path)

    def load(self) -> Project:
        self.project = Project.model_validate_json(
            self.project_path.read_text(encoding="utf-8")
        )
        return self.project

    async def save_async(self) -> None:
        await asyncio.to_thread(self.save)


def validate_resize(
    clip: TimelineClip,
    asset: Optional[Asset],
    new_in_point: float,
    new_out_point: float,
    new_start: Optional[float],
    min_duration: float = 0.1,
) -> tuple[float, float, Optional[float]]:
    """Clamp a resize request to the asset and enforce the duration floor.

    Returns:
        (in_point, out_point, start) safe to pass to ``Timeline.resize_clip``

    Raises:
        InvalidTimeRangeError: the window is still shorter than the floor
    """
    in_point = max(0.0, new_in_point)
    out_point = new_out_point
    if asset is not None and asset.duration > 0 and asset.type != "image":
        out_point = min(out_point, asset.duration)
    if out_point - in_point < min_duration:
        raise InvalidTimeRangeError(
            f"Clip {clip.id} would be shorter than {min_duration}s "
            f"(inPoint={in_point}, outPoint={out_point})"
        )
    start = None if new_start is None else max(0.0, new_start)
    return in_point, out_point, start
