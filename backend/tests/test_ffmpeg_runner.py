"""Tests for the async ffmpeg invoker."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import requires_ffmpeg

from hyperedit.config import Settings
from hyperedit.exceptions import ExternalToolError
from hyperedit.render.ffmpeg_runner import DiagnosticsTail, FFmpegRunner


class FakeStderr:
    def __init__(self, chunks: list[bytes], hang: bool = False):
        self.chunks = list(chunks)
        self.hang = hang

    async def read(self, n: int) -> bytes:
        if self.hang:
            await asyncio.sleep(10)
        return self.chunks.pop(0) if self.chunks else b""


class FakeProcess:
    def __init__(self, chunks: list[bytes], returncode: int = 0, hang: bool = False):
        self.stderr = FakeStderr(chunks, hang)
        self.returncode = None
        self._exit_code = returncode
        self.killed = False

    async def wait(self) -> int:
        self.returncode = -9 if self.killed else self._exit_code
        return self.returncode

    def kill(self) -> None:
        self.killed = True


class TestDiagnosticsTail:
    """Bounded stderr tail."""

    def test_tail_is_bounded(self):
        tail = DiagnosticsTail(500)
        for i in range(1000):
            tail.append(f"line {i:04d} " + "x" * 70)
        text = tail.text()
        assert len(text) <= 500
        assert text.endswith("line 0999 " + "x" * 70)

    def test_long_single_line_truncated(self):
        tail = DiagnosticsTail(10)
        tail.append("a" * 50)
        assert tail.text() == "a" * 10


class TestFFmpegRunner:
    """FFmpegRunner with a mocked subprocess."""

    @pytest.mark.asyncio
    async def test_success_streams_lines(self, settings: Settings):
        proc = FakeProcess([b"line one\nline ", b"two\rframe=  10\n"], returncode=0)
        seen: list[str] = []
        runner = FFmpegRunner(settings)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as spawn:
            result = await runner.run(["-i", "in.mp4", "out.mp4"], line_handler=seen.append)

        assert result.success
        assert seen == ["line one", "line two", "frame=  10"]
        cmd = spawn.call_args.args
        assert cmd[0] == settings.ffmpeg_path
        assert list(cmd[1:3]) == ["-y", "-hide_banner"]
        assert list(cmd[-3:]) == ["-i", "in.mp4", "out.mp4"]

    @pytest.mark.asyncio
    async def test_failure_raises_with_tail(self, settings: Settings):
        proc = FakeProcess([b"Invalid data found when processing input\n"], returncode=1)
        runner = FFmpegRunner(settings)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ExternalToolError) as exc_info:
                await runner.run(["-i", "bad.mp4", "out.mp4"], label="probe bad")

        assert exc_info.value.returncode == 1
        assert "Invalid data found" in exc_info.value.diagnostics
        assert "Invalid data found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_failure_without_check_returns_result(self, settings: Settings):
        proc = FakeProcess([b"oops\n"], returncode=2)
        runner = FFmpegRunner(settings)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            result = await runner.run(["-version"], check=False)

        assert not result.success
        assert result.returncode == 2
        assert result.diagnostics_tail == "oops"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, settings: Settings):
        proc = FakeProcess([], hang=True)
        runner = FFmpegRunner(settings)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ExternalToolError, match="timed out"):
                await runner.run(["-i", "in.mp4", "out.mp4"], timeout_s=0.05)

        assert proc.killed

    @pytest.mark.asyncio
    async def test_missing_binary(self, settings: Settings):
        """A missing ffmpeg is an ExternalToolError, not a crash."""
        runner = FFmpegRunner(settings)
        assert not runner.is_available()
        with pytest.raises(ExternalToolError, match="not found"):
            await runner.run(["-version"])

    @requires_ffmpeg
    @pytest.mark.requires_ffmpeg
    @pytest.mark.asyncio
    async def test_real_ffmpeg_version(self, tmp_path):
        runner = FFmpegRunner(Settings(sessions_root=tmp_path))
        result = await runner.run(["-version"], check=False)
        assert result.returncode == 0
