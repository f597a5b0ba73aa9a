from hyperedit.render.audio_mixer import AudioMixer
from hyperedit.render.compositor import RenderPlan, TimelineCompositor
from hyperedit.render.ffmpeg_runner import FFmpegResult, FFmpegRunner
from hyperedit.render.filter_graph import FilterGraph, FilterStage
from hyperedit.render.pipeline import RenderOutput, RenderPipeline, latest_render

__all__ = [
    "AudioMixer",
    "RenderPlan",
    "TimelineCompositor",
    "FFmpegResult",
    "FFmpegRunner",
    "FilterGraph",
    "FilterStage",
    "RenderOutput",
    "RenderPipeline",
    "latest_render",
]
