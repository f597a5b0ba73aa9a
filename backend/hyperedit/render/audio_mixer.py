"""
Audio mixing stages for the timeline render.

Each audio clip is trimmed to its in/out window, its timestamps are reset,
and it is delayed so its first sample lands on ``clip.start``. All delayed
streams are then mixed into one track.
"""

import logging
from dataclasses import dataclass

from hyperedit.render.filter_graph import FilterGraph, FilterStage

logger = logging.getLogger(__name__)

AUDIO_OUTPUT_LABEL = "aout"


@dataclass
class AudioClipData:
    """Audio clip data for mixing."""

    clip_id: str
    input_index: int
    start: float
    in_point: float
    out_point: float

    @property
    def delay_ms(self) -> int:
        return max(0, int(round(self.start * 1000)))


class AudioMixer:
    """Adds audio stages to a filter graph."""

    def clip_stages(self, clip: AudioClipData) -> list[FilterStage]:
        delay = clip.delay_ms
        return [
            FilterStage("atrim", kwargs={"start": clip.in_point, "end": clip.out_point}),
            FilterStage("asetpts", ("PTS-STARTPTS",)),
            # Same delay on both channels
            FilterStage("adelay", (f"{delay}|{delay}",)),
        ]

    def build(self, graph: FilterGraph, clips: list[AudioClipData]) -> str | None:
        """Add per-clip chains and the final mix to ``graph``.

        Returns:
            The label of the mixed stream, or None when there is no audio
        """
        if not clips:
            return None

        labels: list[str] = []
        for clip in clips:
            label = graph.label("a")
            graph.add_chain(
                self.clip_stages(clip),
                inputs=[f"{clip.input_index}:a"],
                outputs=[label],
            )
            labels.append(label)

        if len(labels) == 1:
            graph.add_chain([FilterStage("anull")], inputs=labels, outputs=[AUDIO_OUTPUT_LABEL])
        else:
            graph.add_chain(
                [
                    FilterStage(
                        "amix",
                        kwargs={
                            "inputs": len(labels),
                            "duration": "longest",
                            "normalize": 0,
                        },
                    )
                ],
                inputs=labels,
                outputs=[AUDIO_OUTPUT_LABEL],
            )
        logger.info(f"[RENDER] Mixing {len(labels)} audio clips")
        return AUDIO_OUTPUT_LABEL
