"""
Pytest fixtures for HyperEdit backend tests.

Most tests replace ffmpeg with FakeRunner, which records the arguments it
was given and writes a small placeholder file to the output path.

CI/CD Note:
Tests that run the real ffmpeg binary are marked with @pytest.mark.requires_ffmpeg
and skipped when it is not on PATH.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Optional, Sequence

import pytest

from hyperedit.config import Settings
from hyperedit.render.ffmpeg_runner import FFmpegResult
from hyperedit.schemas.asset import Asset
from hyperedit.services.session_manager import SessionRegistry


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None


requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_available(),
    reason="ffmpeg not available on PATH",
)


class FakeRunner:
    """Records ffmpeg invocations instead of running them."""

    def __init__(self, settings: Settings, stderr_lines: Optional[list[str]] = None):
        self.settings = settings
        self.ffmpeg_path = "ffmpeg"
        self.stderr_lines = stderr_lines or []
        self.calls: list[tuple[str, list[str]]] = []

    def is_available(self) -> bool:
        return True

    async def run(
        self,
        args: Sequence[str],
        *,
        label: str = "ffmpeg",
        line_handler=None,
        timeout_s=None,
        check: bool = True,
    ) -> FFmpegResult:
        self.calls.append((label, list(args)))
        if line_handler is not None:
            for line in self.stderr_lines:
                line_handler(line)
        output = Path(args[-1])
        if str(output) != "-" and output.parent.exists():
            output.write_bytes(b"fake media")
        return FFmpegResult(success=True, returncode=0, diagnostics_tail="")

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.calls]


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="hyperedit_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to a temp sessions root, with unreachable tools."""
    return Settings(
        sessions_root=tmp_path / "sessions",
        ffmpeg_path=str(tmp_path / "no-such-ffmpeg"),
        ffprobe_path=str(tmp_path / "no-such-ffprobe"),
        session_sweep_interval_s=3600,
        upstream_retry_interval_s=0,
        openai_api_key="test-openai-key",
        giphy_api_key="test-giphy-key",
    )


@pytest.fixture
def fake_runner(settings: Settings) -> FakeRunner:
    return FakeRunner(settings)


@pytest.fixture
def registry(settings: Settings, fake_runner: FakeRunner) -> SessionRegistry:
    return SessionRegistry(settings, fake_runner)


def make_asset(
    tmp_path: Path,
    asset_id: str = "asset1",
    asset_type: str = "video",
    duration: float = 10.0,
    suffix: str = ".mp4",
) -> Asset:
    """Build an Asset backed by a placeholder file."""
    path = tmp_path / f"{asset_id}{suffix}"
    path.write_bytes(b"media")
    return Asset(
        id=asset_id,
        type=asset_type,
        filename=f"{asset_id}{suffix}",
        path=path,
        duration=duration,
        size=5,
        width=0 if asset_type == "audio" else 1920,
        height=0 if asset_type == "audio" else 1080,
        created_at=0,
    )
