"""Timeline document: tracks, clips and render settings.

This is the structure persisted as ``project.json`` in every session
directory, so field names here are a durable contract.
"""

import uuid
from typing import Literal

from pydantic import Field, model_validator

from hyperedit.schemas.common import CamelModel

TrackType = Literal["video", "audio"]


def new_clip_id() -> str:
    return f"clip-{uuid.uuid4().hex[:12]}"


class ClipTransform(CamelModel):
    """Visual transform. x/y are pixel offsets from the canvas centre."""

    x: float = Field(default=0.0, ge=-7680, le=7680)
    y: float = Field(default=0.0, ge=-4320, le=4320)
    scale: float = Field(default=1.0, gt=0, le=10.0)
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)


class Track(CamelModel):
    id: str = Field(..., min_length=1)
    type: TrackType
    name: str
    order: int = 0


class TimelineClip(CamelModel):
    id: str = Field(default_factory=new_clip_id)
    asset_id: str
    track_id: str
    start: float = Field(default=0.0, ge=0)
    duration: float = Field(..., gt=0)
    in_point: float = Field(default=0.0, ge=0)
    out_point: float = Field(..., gt=0)
    transform: ClipTransform | None = None

    @model_validator(mode="after")
    def check_trim_window(self) -> "TimelineClip":
        if self.in_point >= self.out_point:
            raise ValueError(
                f"inPoint ({self.in_point}) must be less than outPoint ({self.out_point})"
            )
        return self

    @property
    def end(self) -> float:
        return self.start + self.duration


class ProjectSettings(CamelModel):
    width: int = Field(default=1920, ge=16, le=7680)
    height: int = Field(default=1080, ge=16, le=4320)
    fps: int = Field(default=30, ge=1, le=120)


class Project(CamelModel):
    tracks: list[Track] = Field(default_factory=list)
    clips: list[TimelineClip] = Field(default_factory=list)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)


def default_tracks() -> list[Track]:
    return [
        Track(id="V1", type="video", name="Video 1", order=0),
        Track(id="V2", type="video", name="Video 2", order=1),
        Track(id="A1", type="audio", name="Audio 1", order=2),
    ]


def default_project(width: int = 1920, height: int = 1080, fps: int = 30) -> Project:
    return Project(
        tracks=default_tracks(),
        clips=[],
        settings=ProjectSettings(width=width, height=height, fps=fps),
    )


# =============================================================================
# Clip requests
# =============================================================================


class AddClipRequest(CamelModel):
    asset_id: str
    track_id: str
    start: float = Field(default=0.0, ge=0)
    duration: float | None = Field(default=None, gt=0)
    in_point: float | None = Field(default=None, ge=0)
    out_point: float | None = Field(default=None, gt=0)
    transform: ClipTransform | None = None


class MoveClipRequest(CamelModel):
    start: float
    track_id: str | None = None


class ResizeClipRequest(CamelModel):
    in_point: float
    out_point: float
    start: float | None = None


class ClipTransformRequest(CamelModel):
    transform: ClipTransform | None = None


class ClipResponse(CamelModel):
    clip: TimelineClip
    project: Project


class ClipDeleteResponse(CamelModel):
    success: bool = True
    project: Project
