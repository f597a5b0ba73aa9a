"""Timeline compositing with FFmpeg filter_complex.

Compiles a project (tracks, clips, settings) plus the session's asset table
into one ffmpeg invocation:

1. A black base layer sized to the canvas covers the whole timeline.
2. Video-bearing clips are trimmed, fitted to the canvas, transformed and
   overlaid one after another onto the running composite. Each overlay is
   only enabled during the clip's window on the global timeline.
3. Audio clips are trimmed, delayed to their start and mixed.

Clips on the same track are layered in list order; when two of them
overlap in time, the later one is drawn on top.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import EmptyTimelineError
from hyperedit.render.audio_mixer import AudioClipData, AudioMixer
from hyperedit.render.filter_graph import FilterGraph, FilterStage, format_number
from hyperedit.schemas.asset import Asset
from hyperedit.schemas.project import Project, TimelineClip

logger = logging.getLogger(__name__)

BASE_LABEL = "base"
VIDEO_OUTPUT_LABEL = "vout"


@dataclass
class EncodeConfig:
    """Encoder settings for one render."""

    preset: str
    crf: int
    audio_bitrate: str = "192k"


@dataclass
class RenderPlan:
    """Everything needed to run a render, built without touching ffmpeg."""

    args: list[str]
    graph: FilterGraph
    total_duration: float
    video_clip_ids: list[str] = field(default_factory=list)
    audio_clip_ids: list[str] = field(default_factory=list)
    skipped_clip_ids: list[str] = field(default_factory=list)

    @property
    def filter_complex(self) -> str:
        return self.graph.serialize()

    def to_dict(self) -> dict:
        return {
            "args": self.args,
            "total_duration": self.total_duration,
            "video_clip_ids": self.video_clip_ids,
            "audio_clip_ids": self.audio_clip_ids,
            "skipped_clip_ids": self.skipped_clip_ids,
        }


class TimelineCompositor:
    """Service for compiling a timeline into an ffmpeg command."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.audio_mixer = AudioMixer()

    def encode_config(self, preview: bool) -> EncodeConfig:
        if preview:
            return EncodeConfig(
                preset=self.settings.render_preview_preset,
                crf=self.settings.render_preview_crf,
                audio_bitrate=self.settings.render_audio_bitrate,
            )
        return EncodeConfig(
            preset=self.settings.render_export_preset,
            crf=self.settings.render_export_crf,
            audio_bitrate=self.settings.render_audio_bitrate,
        )

    def total_duration(self, clips: list[TimelineClip]) -> float:
        if not clips:
            return self.settings.render_min_duration_s
        end = max(clip.start + clip.duration for clip in clips)
        return max(self.settings.render_min_duration_s, end)

    def order_video_clips(
        self, project: Project, clips: list[TimelineClip]
    ) -> list[TimelineClip]:
        """Sort by track order (bottom layer first), list order within a track."""
        track_order = {track.id: track.order for track in project.tracks}
        return sorted(clips, key=lambda clip: track_order.get(clip.track_id, 0))

    def compile(
        self,
        project: Project,
        assets: dict[str, Asset],
        output_path: str | Path,
        preview: bool = False,
    ) -> RenderPlan:
        """Build the ffmpeg arguments for rendering ``project``.

        Args:
            project: Tracks, clips and canvas settings
            assets: Asset table of the session, by id
            output_path: Output video file path
            preview: Fast low-quality encode instead of the export preset

        Returns:
            RenderPlan with args (without the ffmpeg executable)

        Raises:
            EmptyTimelineError: the project has no clips
        """
        if not project.clips:
            raise EmptyTimelineError()

        settings = project.settings
        total = self.total_duration(project.clips)

        video_clips: list[TimelineClip] = []
        audio_clips: list[TimelineClip] = []
        skipped: list[str] = []
        for clip in project.clips:
            asset = assets.get(clip.asset_id)
            if asset is None:
                logger.warning(
                    f"[RENDER] Skipping clip {clip.id}: asset {clip.asset_id} no longer exists"
                )
                skipped.append(clip.id)
                continue
            if asset.type == "audio":
                audio_clips.append(clip)
            else:
                video_clips.append(clip)

        graph = FilterGraph()
        inputs: list[str] = []
        input_index = 0

        graph.add_chain(
            [
                FilterStage(
                    "color",
                    kwargs={
                        "c": "black",
                        "s": f"{settings.width}x{settings.height}",
                        "r": settings.fps,
                        "d": total,
                    },
                )
            ],
            outputs=[BASE_LABEL],
        )
        current = BASE_LABEL

        for clip in self.order_video_clips(project, video_clips):
            asset = assets[clip.asset_id]
            inputs.extend(self._input_args(asset, clip))
            current = self._add_video_clip(graph, input_index, clip, current, project)
            input_index += 1

        graph.add_chain([FilterStage("null")], inputs=[current], outputs=[VIDEO_OUTPUT_LABEL])

        audio_data: list[AudioClipData] = []
        for clip in audio_clips:
            inputs.extend(["-i", str(assets[clip.asset_id].path)])
            audio_data.append(
                AudioClipData(
                    clip_id=clip.id,
                    input_index=input_index,
                    start=clip.start,
                    in_point=clip.in_point,
                    out_point=clip.out_point,
                )
            )
            input_index += 1
        audio_label = self.audio_mixer.build(graph, audio_data)

        graph.validate()

        encode = self.encode_config(preview)
        args = [
            *inputs,
            "-filter_complex", graph.serialize(),
            "-map", f"[{VIDEO_OUTPUT_LABEL}]",
        ]
        if audio_label:
            args.extend(["-map", f"[{audio_label}]"])
        args.extend([
            "-c:v", "libx264",
            "-preset", encode.preset,
            "-crf", str(encode.crf),
            "-pix_fmt", "yuv420p",
            "-r", str(settings.fps),
        ])
        if audio_label:
            args.extend(["-c:a", "aac", "-b:a", encode.audio_bitrate])
        args.extend([
            "-movflags", "+faststart",
            "-t", format_number(total),
            str(output_path),
        ])

        logger.info(
            f"[RENDER] Compiled {len(video_clips)} video and {len(audio_clips)} audio clips "
            f"({len(skipped)} skipped), duration={total:.2f}s, preview={preview}"
        )
        return RenderPlan(
            args=args,
            graph=graph,
            total_duration=total,
            video_clip_ids=[c.id for c in video_clips],
            audio_clip_ids=[c.id for c in audio_clips],
            skipped_clip_ids=skipped,
        )

    def _input_args(self, asset: Asset, clip: TimelineClip) -> list[str]:
        path = str(asset.path)
        if asset.type == "image":
            # Still images need a looping input to last the whole window
            length = format_number(clip.out_point)
            if Path(path).suffix.lower() == ".gif":
                return ["-ignore_loop", "0", "-t", length, "-i", path]
            return ["-loop", "1", "-t", length, "-i", path]
        return ["-i", path]

    def _add_video_clip(
        self,
        graph: FilterGraph,
        input_index: int,
        clip: TimelineClip,
        background: str,
        project: Project,
    ) -> str:
        """Trim, fit and transform one clip, then overlay it on ``background``.

        Returns:
            Label of the new running composite
        """
        width = project.settings.width
        height = project.settings.height
        transform = clip.transform
        trimmed = clip.out_point - clip.in_point
        window_start = clip.start
        window_end = clip.start + trimmed

        stages = [
            FilterStage("trim", kwargs={"start": clip.in_point, "end": clip.out_point}),
            FilterStage("setpts", ("PTS-STARTPTS",)),
            FilterStage("scale", (width, height), {"force_original_aspect_ratio": "decrease"}),
            # Transparent letterbox so lower layers stay visible around the clip
            FilterStage("format", ("rgba",)),
            FilterStage("pad", (width, height, "(ow-iw)/2", "(oh-ih)/2"), {"color": "black@0"}),
        ]
        if transform is not None and transform.scale != 1.0:
            s = format_number(transform.scale)
            stages.append(FilterStage("scale", (f"iw*{s}", f"ih*{s}")))
        if transform is not None and transform.opacity < 1.0:
            stages.append(FilterStage("colorchannelmixer", kwargs={"aa": transform.opacity}))
        # Place the first frame at the clip's timeline position
        stages.append(FilterStage("setpts", (f"PTS+{format_number(window_start)}/TB",)))

        clip_label = graph.label("v")
        graph.add_chain(stages, inputs=[f"{input_index}:v"], outputs=[clip_label])

        x = format_number(transform.x) if transform else "0"
        y = format_number(transform.y) if transform else "0"
        overlay_label = graph.label("ov")
        graph.add_chain(
            [
                FilterStage(
                    "overlay",
                    kwargs={
                        "x": f"(main_w/2)+({x})-(overlay_w/2)",
                        "y": f"(main_h/2)+({y})-(overlay_h/2)",
                        # Visible on [start, end)
                        "enable": f"gte(t,{format_number(window_start)})*lt(t,{format_number(window_end)})",
                        "eof_action": "pass",
                    },
                )
            ],
            inputs=[background, clip_label],
            outputs=[overlay_label],
        )
        logger.debug(
            f"[RENDER] Clip {clip.id}: source [{clip.in_point}, {clip.out_point}) "
            f"visible [{window_start}, {window_end})"
        )
        return overlay_label
