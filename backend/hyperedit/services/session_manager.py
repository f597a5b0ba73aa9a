"""Session lifecycle and the session registry.

A session owns ``<sessions_root>/<id>/``:

    project.json   timeline document
    assets/        asset files and thumbnails
    renders/       preview.mp4, export-<ms>.mp4
    current.mp4    working video of single-asset flows

The registry is created by the application factory and handed to request
handlers through a dependency; there is no module-level session table.
"""

import asyncio
import logging
import os
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import SessionNotFoundError, WorkingVideoNotFoundError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.schemas.project import default_project
from hyperedit.services.asset_store import AssetStore, copy_stream
from hyperedit.services.thumbnail_service import ThumbnailService
from hyperedit.services.timeline import Timeline
from hyperedit.utils.media_info import probe_duration

logger = logging.getLogger(__name__)

WORKING_VIDEO = "current.mp4"
PROJECT_FILE = "project.json"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Session:
    id: str
    root: Path
    assets: AssetStore
    timeline: Timeline
    created_at: int
    original_name: str = "video.mp4"
    edit_count: int = 0
    # Serializes every operation that replaces files or mutates state
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def assets_dir(self) -> Path:
        return self.root / "assets"

    @property
    def renders_dir(self) -> Path:
        return self.root / "renders"

    @property
    def working_video(self) -> Path:
        return self.root / WORKING_VIDEO

    @property
    def project_path(self) -> Path:
        return self.root / PROJECT_FILE

    def has_working_video(self) -> bool:
        return self.working_video.exists()

    def require_working_video(self) -> Path:
        if not self.working_video.exists():
            raise WorkingVideoNotFoundError()
        return self.working_video

    async def replace_working_video(self, new_file: Path) -> None:
        """Atomically swap in a new working video. Caller holds ``lock``."""
        await asyncio.to_thread(os.replace, new_file, self.working_video)
        self.edit_count += 1

    async def delete_asset(self, asset_id: str) -> list[str]:
        """Delete an asset and every clip that references it."""
        async with self.lock:
            self.assets.delete(asset_id)
            removed = self.timeline.remove_clips_for_asset(asset_id)
            await self.timeline.save_async()
        return removed

    def age_ms(self, now_ms: Optional[int] = None) -> int:
        return (now_ms if now_ms is not None else _now_ms()) - self.created_at


class SessionRegistry:
    """Owns all live sessions and the expiry sweep."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[FFmpegRunner] = None,
    ):
        self.settings = settings or get_settings()
        self.runner = runner or FFmpegRunner(self.settings)
        self.thumbnails = ThumbnailService(self.runner, self.settings)
        self.root = Path(self.settings.sessions_root)
        self._sessions: dict[str, Session] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def create(self, original_name: Optional[str] = None) -> Session:
        session_id = uuid.uuid4().hex
        root = self.root / session_id
        await asyncio.to_thread(_make_session_dirs, root)

        timeline = Timeline(
            root / PROJECT_FILE,
            default_project(
                self.settings.render_width,
                self.settings.render_height,
                self.settings.render_fps,
            ),
        )
        await timeline.save_async()

        session = Session(
            id=session_id,
            root=root,
            assets=AssetStore(root / "assets", self.thumbnails, self.settings),
            timeline=timeline,
            created_at=_now_ms(),
            original_name=original_name or "video.mp4",
        )
        self._sessions[session_id] = session
        logger.info(f"[SESSION] Created session {session_id}")
        return session

    async def create_from_upload(self, source: BinaryIO, filename: str) -> tuple[Session, float]:
        """Create a session whose working video is the uploaded file.

        Returns:
            (session, probed duration in seconds; 0 when unknown)
        """
        session = await self.create(original_name=filename)
        try:
            await asyncio.to_thread(
                copy_stream, source, session.working_video, self.settings.upload_chunk_size
            )
        except OSError:
            await self.destroy(session.id)
            raise
        duration = await probe_duration(session.working_video)
        logger.info(f"[SESSION] Session {session.id} received {filename} ({duration:.2f}s)")
        return session, duration

    async def destroy(self, session_id: str) -> bool:
        """Forget a session and delete its directory. Idempotent."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        try:
            await asyncio.to_thread(shutil.rmtree, session.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[SESSION] Could not remove {session.root}: {e}")
        logger.info(f"[SESSION] Destroyed session {session_id}")
        return True

    async def destroy_all(self) -> None:
        for session_id in list(self._sessions):
            await self.destroy(session_id)

    async def sweep_expired(self, now_ms: Optional[int] = None) -> list[str]:
        """Destroy sessions older than ``session_max_age_s``.

        Age is measured from creation, not last use, so a long editing
        session is expired too.
        """
        now = now_ms if now_ms is not None else _now_ms()
        max_age_ms = self.settings.session_max_age_s * 1000
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.age_ms(now) > max_age_ms
        ]
        for session_id in expired:
            logger.info(f"[SESSION] Expiring session {session_id}")
            await self.destroy(session_id)
        return expired

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        interval = self.settings.session_sweep_interval_s
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_expired()
            except Exception as e:
                logger.exception(f"[SESSION] Expiry sweep failed: {e}")


def _make_session_dirs(root: Path) -> None:
    (root / "assets").mkdir(parents=True, exist_ok=True)
    (root / "renders").mkdir(parents=True, exist_ok=True)


