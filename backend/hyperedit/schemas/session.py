from pydantic import Field

from hyperedit.schemas.common import CamelModel


class SessionCreateResponse(CamelModel):
    session_id: str


class SessionUploadResponse(CamelModel):
    session_id: str
    duration: float
    size: int
    name: str


class SessionInfoResponse(CamelModel):
    session_id: str
    duration: float
    size: int
    name: str
    edit_count: int
    created_at: int


class EditResponse(CamelModel):
    duration: float
    size: int
    edit_count: int


class DeadAirRequest(CamelModel):
    silence_threshold: float | None = Field(default=None, ge=-120, le=0)
    min_silence_duration: float | None = Field(default=None, gt=0, le=60)


class DeadAirResponse(CamelModel):
    duration: float
    original_duration: float
    removed_duration: float
    percent_removed: float
    segments_kept: int
    size: int
    edit_count: int


class HealthResponse(CamelModel):
    status: str
    ffmpeg: bool
    sessions: int
