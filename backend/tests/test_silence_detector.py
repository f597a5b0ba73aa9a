"""Tests for silence detection parsing and keep-segment calculation."""

import pytest

from conftest import FakeRunner

from hyperedit.services.silence_detector import (
    SilenceMarkerParser,
    TimeRange,
    calculate_keep_segments,
    detect_silence,
    is_whole_file,
    parse_silence_output,
)

SAMPLE_LOG = """\
[silencedetect @ 0x55d5] silence_start: 1.5
[silencedetect @ 0x55d5] silence_end: 3.25 | silence_duration: 1.75
frame=  100 fps=0.0 q=-0.0 size=N/A time=00:00:04.00
[silencedetect @ 0x55d5] silence_start: 7.8
[silencedetect @ 0x55d5] silence_end: 9.1 | silence_duration: 1.3
"""


def _assert_covers(keep: list[TimeRange], silences: list[TimeRange], total: float):
    """Keep segments and silences together tile [0, total] without overlap."""
    pieces = sorted(keep + silences, key=lambda r: r.start)
    cursor = 0.0
    for piece in pieces:
        assert piece.start == pytest.approx(cursor)
        cursor = piece.end
    assert cursor == pytest.approx(total)


class TestSilenceMarkerParser:
    """Parsing silencedetect log lines."""

    def test_parses_paired_markers(self):
        silences = parse_silence_output(SAMPLE_LOG)
        assert silences == [TimeRange(1.5, 3.25), TimeRange(7.8, 9.1)]

    def test_unpaired_start_dropped(self):
        """A start with no end before EOF is ignored."""
        silences = parse_silence_output(
            "silence_start: 1.0\nsilence_end: 2.0\nsilence_start: 5.0\n"
        )
        assert silences == [TimeRange(1.0, 2.0)]

    def test_end_without_start_dropped(self):
        assert parse_silence_output("silence_end: 2.0 | silence_duration: 2.0") == []

    def test_negative_start_clamped(self):
        """silencedetect can report a slightly negative start at 0."""
        silences = parse_silence_output("silence_start: -0.002\nsilence_end: 1.2\n")
        assert silences == [TimeRange(0.0, 1.2)]

    def test_feed_line_by_line(self):
        parser = SilenceMarkerParser()
        for line in SAMPLE_LOG.splitlines():
            parser.feed(line)
        assert len(parser.result()) == 2


class TestCalculateKeepSegments:
    """Complement of silence intervals."""

    def test_no_silence_returns_whole_file(self):
        keep = calculate_keep_segments([], 12.0)
        assert keep == [TimeRange(0.0, 12.0)]
        assert is_whole_file(keep, 12.0)

    def test_silence_in_middle(self):
        silences = [TimeRange(2.0, 4.0)]
        keep = calculate_keep_segments(silences, 10.0)
        assert keep == [TimeRange(0.0, 2.0), TimeRange(4.0, 10.0)]
        _assert_covers(keep, silences, 10.0)

    def test_leading_and_trailing_silence(self):
        silences = [TimeRange(0.0, 1.0), TimeRange(8.0, 10.0)]
        keep = calculate_keep_segments(silences, 10.0)
        assert keep == [TimeRange(1.0, 8.0)]
        _assert_covers(keep, silences, 10.0)

    def test_multiple_silences(self):
        silences = [TimeRange(1.0, 2.0), TimeRange(4.0, 5.5), TimeRange(7.0, 7.5)]
        keep = calculate_keep_segments(silences, 9.0)
        _assert_covers(keep, silences, 9.0)
        assert all(seg.duration >= 0.1 for seg in keep)

    def test_short_gaps_dropped(self):
        """A 50ms gap between two silences is below the floor."""
        keep = calculate_keep_segments([TimeRange(1.0, 2.0), TimeRange(2.05, 3.0)], 5.0)
        assert keep == [TimeRange(0.0, 1.0), TimeRange(3.0, 5.0)]

    def test_overlapping_silences_never_produce_negative_segments(self):
        keep = calculate_keep_segments([TimeRange(1.0, 4.0), TimeRange(2.0, 3.0)], 6.0)
        assert keep == [TimeRange(0.0, 1.0), TimeRange(4.0, 6.0)]

    def test_silence_past_end_is_clipped(self):
        keep = calculate_keep_segments([TimeRange(8.0, 12.0)], 10.0)
        assert keep == [TimeRange(0.0, 8.0)]

    def test_all_silent(self):
        keep = calculate_keep_segments([TimeRange(0.0, 10.0)], 10.0)
        assert keep == []
        assert not is_whole_file(keep, 10.0)


class TestDetectSilence:
    """detect_silence drives ffmpeg and parses its stderr."""

    @pytest.mark.asyncio
    async def test_detect_silence_uses_silencedetect(self, settings, temp_output_dir):
        runner = FakeRunner(settings, stderr_lines=SAMPLE_LOG.splitlines())
        source = temp_output_dir / "in.mp4"
        silences = await detect_silence(runner, source, -30.0, 0.3)

        assert silences == [TimeRange(1.5, 3.25), TimeRange(7.8, 9.1)]
        _, args = runner.calls[0]
        assert args[args.index("-af") + 1] == "silencedetect=noise=-30.0dB:d=0.3"
        assert args[-3:] == ["-f", "null", "-"]
