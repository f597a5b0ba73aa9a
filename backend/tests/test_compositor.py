"""Tests for the timeline compositor (filter graph + ffmpeg args)."""

import pytest

from conftest import make_asset

from hyperedit.exceptions import EmptyTimelineError
from hyperedit.render.compositor import TimelineCompositor
from hyperedit.schemas.project import ClipTransform, Project, TimelineClip, default_project


def _clip(asset_id: str, track_id: str, start: float, in_point: float, out_point: float, **kw):
    return TimelineClip(
        id=kw.pop("id", f"clip-{asset_id}-{track_id}"),
        asset_id=asset_id,
        track_id=track_id,
        start=start,
        duration=out_point - in_point,
        in_point=in_point,
        out_point=out_point,
        **kw,
    )


@pytest.fixture
def compositor(settings) -> TimelineCompositor:
    return TimelineCompositor(settings)


class TestTimeGatedOverlay:
    """A clip placed anywhere on the timeline plays its trimmed window there."""

    def test_clip_window_is_time_gated(self, compositor, tmp_path):
        asset = make_asset(tmp_path, "A", duration=10.0)
        project = default_project()
        project.clips.append(_clip("A", "V1", start=5.0, in_point=2.0, out_point=4.0))

        plan = compositor.compile(project, {"A": asset}, tmp_path / "out.mp4")

        trim = plan.graph.find("trim")[0]
        assert trim.kwargs == {"start": 2.0, "end": 4.0}
        overlay = plan.graph.find("overlay")[0]
        assert overlay.kwargs["enable"] == "gte(t,5)*lt(t,7)"
        assert overlay.kwargs["eof_action"] == "pass"
        # First frame shifted to the clip start
        shifts = [s.args[0] for s in plan.graph.find("setpts")]
        assert shifts == ["PTS-STARTPTS", "PTS+5/TB"]
        assert plan.total_duration == 7.0
        assert plan.args[plan.args.index("-t") + 1] == "7"

    def test_base_layer_covers_timeline(self, compositor, tmp_path):
        asset = make_asset(tmp_path, "A", duration=10.0)
        project = default_project(1280, 720, 25)
        project.clips.append(_clip("A", "V1", start=1.0, in_point=0.0, out_point=3.0))

        plan = compositor.compile(project, {"A": asset}, tmp_path / "out.mp4")

        color = plan.graph.find("color")[0]
        assert color.kwargs == {"c": "black", "s": "1280x720", "r": 25, "d": 4.0}
        assert color.outputs == ["base"]
        assert "[vout]" in plan.filter_complex
        assert plan.args[plan.args.index("-r") + 1] == "25"

    def test_minimum_duration_floor(self, compositor, tmp_path):
        assert compositor.total_duration([]) == pytest.approx(0.1)


class TestOrderingAndSkipping:

    def test_video_clips_ordered_by_track(self, compositor, tmp_path):
        assets = {
            "top": make_asset(tmp_path, "top"),
            "bottom": make_asset(tmp_path, "bottom"),
        }
        project = default_project()
        project.clips.append(_clip("top", "V2", 0.0, 0.0, 2.0))
        project.clips.append(_clip("bottom", "V1", 0.0, 0.0, 2.0))

        plan = compositor.compile(project, assets, tmp_path / "out.mp4")

        inputs = [plan.args[i + 1] for i, a in enumerate(plan.args) if a == "-i"]
        assert inputs == [str(assets["bottom"].path), str(assets["top"].path)]
        overlays = plan.graph.find("overlay")
        # Second overlay composites onto the first overlay's output
        assert overlays[1].inputs[0] == overlays[0].outputs[0]

    def test_same_track_layers_in_list_order(self, compositor, tmp_path):
        """Within a track the later list entry draws on top, even if it starts first."""
        assets = {"a": make_asset(tmp_path, "a"), "b": make_asset(tmp_path, "b")}
        project = default_project()
        project.clips.append(_clip("b", "V1", 2.0, 0.0, 4.0))
        project.clips.append(_clip("a", "V1", 0.0, 0.0, 4.0))
        plan = compositor.compile(project, assets, tmp_path / "out.mp4")
        assert plan.video_clip_ids == ["clip-b-V1", "clip-a-V1"]

    def test_missing_asset_skipped(self, compositor, tmp_path):
        asset = make_asset(tmp_path, "A")
        project = default_project()
        project.clips.append(_clip("A", "V1", 0.0, 0.0, 2.0))
        project.clips.append(_clip("gone", "V2", 0.0, 0.0, 2.0))

        plan = compositor.compile(project, {"A": asset}, tmp_path / "out.mp4")

        assert plan.skipped_clip_ids == ["clip-gone-V2"]
        assert len(plan.graph.find("overlay")) == 1

    def test_empty_timeline_raises(self, compositor, tmp_path):
        with pytest.raises(EmptyTimelineError):
            compositor.compile(Project(), {}, tmp_path / "out.mp4")


class TestTransforms:

    def test_scale_and_opacity_applied(self, compositor, tmp_path):
        asset = make_asset(tmp_path, "A")
        project = default_project()
        project.clips.append(
            _clip(
                "A", "V1", 0.0, 0.0, 2.0,
                transform=ClipTransform(x=100, y=-50, scale=0.5, opacity=0.4),
            )
        )
        plan = compositor.compile(project, {"A": asset}, tmp_path / "out.mp4")

        scales = plan.graph.find("scale")
        assert scales[-1].args == ("iw*0.5", "ih*0.5")
        mixer = plan.graph.find("colorchannelmixer")[0]
        assert mixer.kwargs == {"aa": 0.4}
        overlay = plan.graph.find("overlay")[0]
        assert overlay.kwargs["x"] == "(main_w/2)+(100)-(overlay_w/2)"
        assert overlay.kwargs["y"] == "(main_h/2)+(-50)-(overlay_h/2)"

    def test_letterbox_is_transparent(self, compositor, tmp_path):
        asset = make_asset(tmp_path, "A")
        project = default_project()
        project.clips.append(_clip("A", "V1", 0.0, 0.0, 2.0))
        plan = compositor.compile(project, {"A": asset}, tmp_path / "out.mp4")
        assert plan.graph.find("pad")[0].kwargs == {"color": "black@0"}
        assert plan.graph.find("format")[0].args == ("rgba",)
        assert plan.graph.find("colorchannelmixer") == []


class TestInputsAndEncoding:

    def test_image_and_gif_inputs_loop(self, compositor, tmp_path):
        assets = {
            "png": make_asset(tmp_path, "png", "image", 5.0, ".png"),
            "gif": make_asset(tmp_path, "gif", "image", 3.0, ".gif"),
        }
        project = default_project()
        project.clips.append(_clip("png", "V1", 0.0, 0.0, 5.0))
        project.clips.append(_clip("gif", "V2", 1.0, 0.0, 3.0))
        plan = compositor.compile(project, assets, tmp_path / "out.mp4")

        args = plan.args
        png_at = args.index(str(assets["png"].path))
        assert args[png_at - 5:png_at] == ["-loop", "1", "-t", "5", "-i"]
        gif_at = args.index(str(assets["gif"].path))
        assert args[gif_at - 5:gif_at] == ["-ignore_loop", "0", "-t", "3", "-i"]

    def test_audio_is_delayed_and_mixed(self, compositor, tmp_path):
        assets = {
            "v": make_asset(tmp_path, "v"),
            "m1": make_asset(tmp_path, "m1", "audio", 30.0, ".mp3"),
            "m2": make_asset(tmp_path, "m2", "audio", 30.0, ".mp3"),
        }
        project = default_project()
        project.clips.append(_clip("v", "V1", 0.0, 0.0, 6.0))
        project.clips.append(_clip("m1", "A1", 1.5, 0.0, 4.0))
        project.clips.append(_clip("m2", "A1", 0.0, 10.0, 12.0))

        plan = compositor.compile(project, assets, tmp_path / "out.mp4")

        delays = [s.args[0] for s in plan.graph.find("adelay")]
        assert delays == ["1500|1500", "0|0"]
        amix = plan.graph.find("amix")[0]
        assert amix.kwargs["inputs"] == 2
        assert plan.args.count("-map") == 2
        assert "[aout]" in plan.args
        assert plan.args[plan.args.index("-c:a") + 1] == "aac"

    def test_no_audio_no_audio_map(self, compositor, tmp_path):
        project = default_project()
        project.clips.append(_clip("v", "V1", 0.0, 0.0, 2.0))
        plan = compositor.compile(project, {"v": make_asset(tmp_path, "v")}, tmp_path / "o.mp4")
        assert plan.args.count("-map") == 1
        assert "-c:a" not in plan.args

    def test_preview_and_export_presets(self, compositor, tmp_path):
        project = default_project()
        project.clips.append(_clip("v", "V1", 0.0, 0.0, 2.0))
        assets = {"v": make_asset(tmp_path, "v")}

        preview = compositor.compile(project, assets, tmp_path / "p.mp4", preview=True).args
        export = compositor.compile(project, assets, tmp_path / "e.mp4", preview=False).args

        assert preview[preview.index("-preset") + 1] == "ultrafast"
        assert preview[preview.index("-crf") + 1] == "28"
        assert export[export.index("-preset") + 1] == "medium"
        assert export[export.index("-crf") + 1] == "18"
        for args in (preview, export):
            assert args[args.index("-movflags") + 1] == "+faststart"
            assert args[-1].endswith(".mp4")
