"""Animated GIFs generated from still-image assets."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from hyperedit.exceptions import ValidationError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.render.filter_graph import FilterGraph, FilterStage, format_number
from hyperedit.schemas.asset import Asset
from hyperedit.schemas.media import CreateGifRequest
from hyperedit.utils.temp_files import TempFileScope

if TYPE_CHECKING:
    from hyperedit.services.session_manager import Session

logger = logging.getLogger(__name__)

GIF_EFFECTS = ("pulse", "zoom", "rotate", "bounce", "fade", "shake")


def _fit(width: int, height: int) -> list[FilterStage]:
    return [
        FilterStage("scale", (width, height), {"force_original_aspect_ratio": "decrease"}),
        FilterStage("pad", (width, height, "(ow-iw)/2", "(oh-ih)/2")),
    ]


def effect_stages(
    effect: str, duration: float, fps: int, width: int, height: int
) -> list[FilterStage]:
    """Filter stages animating a still image. Unknown effects just resize."""
    frames = max(1, int(round(duration * fps)))
    size = f"{width}x{height}"
    center = {"x": "iw/2-(iw/zoom/2)", "y": "ih/2-(ih/zoom/2)"}

    if effect == "pulse":
        return _fit(width, height) + [
            FilterStage(
                "zoompan",
                kwargs={"z": f"1+0.1*sin(on*PI*2/{frames})", **center,
                        "d": frames, "s": size, "fps": fps},
            )
        ]
    if effect == "zoom":
        return [
            FilterStage("scale", (width * 2, height * 2), {"force_original_aspect_ratio": "decrease"}),
            FilterStage(
                "zoompan",
                kwargs={"z": "min(zoom+0.002,1.5)", **center, "d": frames, "s": size, "fps": fps},
            ),
        ]
    if effect == "rotate":
        return _fit(width, height) + [
            FilterStage("rotate", ("t*PI/8",), {"c": "none", "ow": width, "oh": height}),
            FilterStage("fps", (fps,)),
        ]
    if effect == "bounce":
        return [
            FilterStage("scale", (width, max(1, height - 40)), {"force_original_aspect_ratio": "decrease"}),
            FilterStage(
                "pad",
                (width, height, "(ow-iw)/2", "(oh-ih)/2+20*sin(t*PI*2)"),
                {"color": "black@0"},
            ),
            FilterStage("fps", (fps,)),
        ]
    if effect == "fade":
        quarter = format_number(duration / 4)
        return _fit(width, height) + [
            FilterStage("fade", kwargs={"t": "in", "st": 0, "d": quarter}),
            FilterStage("fade", kwargs={"t": "out", "st": format_number(duration * 3 / 4), "d": quarter}),
            FilterStage("fps", (fps,)),
        ]
    if effect == "shake":
        return [
            FilterStage("scale", (width, height), {"force_original_aspect_ratio": "decrease"}),
            FilterStage("pad", (width + 20, height + 20, "(ow-iw)/2", "(oh-ih)/2")),
            FilterStage("crop", (width, height, "10+5*sin(t*30)", "10+5*cos(t*25)")),
            FilterStage("fps", (fps,)),
        ]
    return _fit(width, height) + [FilterStage("fps", (fps,))]


def gif_filter(request: CreateGifRequest) -> FilterGraph:
    """Effect stages followed by a two-pass palette for clean GIF colours."""
    graph = FilterGraph()
    stages = effect_stages(
        request.effect, request.duration, request.fps, request.width, request.height
    )
    stages.append(
        FilterStage("scale", (request.width, request.height), {"flags": "lanczos"})
    )
    stages.append(FilterStage("split", outputs=["s0", "s1"]))
    graph.add_chain(stages)
    graph.add_chain([FilterStage("palettegen")], inputs=["s0"], outputs=["p"])
    graph.add_chain([FilterStage("paletteuse")], inputs=["s1", "p"])
    graph.validate()
    return graph


def build_gif_args(source: Path, output: Path, request: CreateGifRequest) -> list[str]:
    vf = gif_filter(request).serialize()
    return [
        "-loop", "1",
        "-i", str(source),
        "-t", format_number(request.duration),
        "-vf", vf,
        "-gifflags", "+transdiff",
        str(output),
    ]


class GifService:
    def __init__(self, runner: FFmpegRunner):
        self.runner = runner

    async def create(self, session: "Session", request: CreateGifRequest) -> Asset:
        """Animate an image asset into a new GIF asset.

        Raises:
            AssetNotFoundError: unknown source asset
            ValidationError: the source is not an image
        """
        source = session.assets.get(request.source_asset_id)
        if source.type != "image":
            raise ValidationError("GIFs can only be created from image assets")

        async with session.lock:
            with TempFileScope(session.assets_dir, prefix=".gif") as scope:
                output = scope.path("out", ".gif")
                await self.runner.run(
                    build_gif_args(source.path, output, request),
                    label=f"gif {request.effect}",
                )
                asset = await session.assets.register_file(
                    output,
                    f"{Path(source.filename).stem}-{request.effect}.gif",
                    "image",
                    duration=request.duration,
                )
                scope.release(output)
        logger.info(f"[GIF] Session {session.id}: created {asset.filename} ({request.effect})")
        return asset
