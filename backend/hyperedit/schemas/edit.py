"""Structured in-place edit of a session's working video."""

from typing import Literal

from pydantic import Field, field_validator, model_validator

from hyperedit.schemas.common import CamelModel

# Filters a client may request for an in-place edit. Anything that reads
# or writes files (movie, amovie, subtitles, ...) is left out.
ALLOWED_VIDEO_FILTERS = {
    "scale", "crop", "pad", "hflip", "vflip", "transpose", "rotate", "eq",
    "hue", "boxblur", "gblur", "unsharp", "fade", "setpts", "fps", "format",
    "colorchannelmixer", "negate", "vignette", "curves", "drawbox", "null",
}
ALLOWED_AUDIO_FILTERS = {
    "volume", "atempo", "afade", "highpass", "lowpass", "aecho",
    "loudnorm", "dynaudnorm", "anull", "asetpts", "equalizer",
}


class FilterStageSpec(CamelModel):
    name: str
    args: list[str | int | float] = Field(default_factory=list)
    params: dict[str, str | int | float] = Field(default_factory=dict)


class EditRequest(CamelModel):
    trim_start: float | None = Field(default=None, ge=0)
    trim_end: float | None = Field(default=None, gt=0)
    video_filters: list[FilterStageSpec] = Field(default_factory=list)
    audio_filters: list[FilterStageSpec] = Field(default_factory=list)
    video_codec: Literal["libx264", "libx265", "copy"] = "libx264"
    audio_codec: Literal["aac", "libmp3lame", "copy"] = "aac"
    preset: Literal[
        "ultrafast", "superfast", "veryfast", "faster", "fast", "medium", "slow"
    ] = "fast"
    crf: int = Field(default=23, ge=0, le=51)
    audio_bitrate: str = Field(default="192k", pattern=r"^\d+k$")
    mute: bool = False

    @field_validator("video_filters")
    @classmethod
    def check_video_filters(cls, v: list[FilterStageSpec]) -> list[FilterStageSpec]:
        for spec in v:
            if spec.name not in ALLOWED_VIDEO_FILTERS:
                raise ValueError(f"Video filter not allowed: {spec.name}")
        return v

    @field_validator("audio_filters")
    @classmethod
    def check_audio_filters(cls, v: list[FilterStageSpec]) -> list[FilterStageSpec]:
        for spec in v:
            if spec.name not in ALLOWED_AUDIO_FILTERS:
                raise ValueError(f"Audio filter not allowed: {spec.name}")
        return v

    @model_validator(mode="after")
    def check_consistency(self) -> "EditRequest":
        if (
            self.trim_start is not None
            and self.trim_end is not None
            and self.trim_end <= self.trim_start
        ):
            raise ValueError("trimEnd must be greater than trimStart")
        if self.video_filters and self.video_codec == "copy":
            raise ValueError("Video filters require re-encoding (videoCodec cannot be 'copy')")
        if self.audio_filters and self.audio_codec == "copy":
            raise ValueError("Audio filters require re-encoding (audioCodec cannot be 'copy')")
        return self


class ProcessRequest(CamelModel):
    """Either a structured ``edit`` or a legacy ``command`` template."""

    command: str | None = None
    edit: EditRequest | None = None

    @model_validator(mode="after")
    def check_one_of(self) -> "ProcessRequest":
        if (self.command is None) == (self.edit is None):
            raise ValueError("Provide exactly one of 'command' or 'edit'")
        return self
