"""Session endpoints: lifecycle and the single working-video flow."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import FileResponse

from hyperedit.api.deps import CurrentSession, DeadAir, Editor, Registry
from hyperedit.exceptions import MissingUploadError
from hyperedit.schemas.common import SuccessResponse
from hyperedit.schemas.edit import ProcessRequest
from hyperedit.schemas.session import (
    DeadAirRequest,
    DeadAirResponse,
    EditResponse,
    SessionCreateResponse,
    SessionInfoResponse,
    SessionUploadResponse,
)
from hyperedit.services.edit_command import args_builder_for
from hyperedit.utils.media_info import probe_duration

logger = logging.getLogger(__name__)

router = APIRouter()


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return 0


@router.post("/session/create", response_model=SessionCreateResponse)
async def create_session(registry: Registry) -> SessionCreateResponse:
    session = await registry.create()
    return SessionCreateResponse(session_id=session.id)


@router.post("/session/upload", response_model=SessionUploadResponse)
async def upload_session(
    registry: Registry,
    video: Optional[UploadFile] = File(None),
) -> SessionUploadResponse:
    """Create a session whose working video is the uploaded file."""
    if video is None or not video.filename:
        raise MissingUploadError("video")
    try:
        session, duration = await registry.create_from_upload(video.file, video.filename)
    finally:
        await video.close()
    return SessionUploadResponse(
        session_id=session.id,
        duration=duration,
        size=_file_size(session.working_video),
        name=session.original_name,
    )


@router.get("/session/{session_id}/stream")
async def stream_session(session: CurrentSession) -> FileResponse:
    """Working video bytes. Range requests are answered with 206."""
    path = session.require_working_video()
    return FileResponse(path=str(path), media_type="video/mp4")


@router.get("/session/{session_id}/download")
async def download_session(session: CurrentSession) -> FileResponse:
    path = session.require_working_video()
    stem = Path(session.original_name).stem or "video"
    return FileResponse(
        path=str(path), media_type="video/mp4", filename=f"{stem}-edited.mp4"
    )


@router.get("/session/{session_id}/info", response_model=SessionInfoResponse)
async def session_info(session: CurrentSession) -> SessionInfoResponse:
    duration = 0.0
    if session.has_working_video():
        duration = await probe_duration(session.working_video)
    return SessionInfoResponse(
        session_id=session.id,
        duration=duration,
        size=await asyncio.to_thread(_file_size, session.working_video),
        name=session.original_name,
        edit_count=session.edit_count,
        created_at=session.created_at,
    )


@router.post("/session/{session_id}/process", response_model=EditResponse)
async def process_session(
    session: CurrentSession,
    body: ProcessRequest,
    editor: Editor,
) -> EditResponse:
    """Apply an edit to the working video.

    ``edit`` is the structured form. ``command`` is the deprecated template
    form kept for older clients; it is parsed into the same argument list.
    """
    if body.command is not None:
        logger.warning(f"[EDIT] Session {session.id}: legacy command template used")
    duration, size = await editor.apply(session, args_builder_for(body.edit, body.command))
    return EditResponse(duration=duration, size=size, edit_count=session.edit_count)


@router.post("/session/{session_id}/remove-dead-air", response_model=DeadAirResponse)
async def remove_dead_air(
    session: CurrentSession,
    dead_air: DeadAir,
    body: Optional[DeadAirRequest] = None,
) -> DeadAirResponse:
    body = body or DeadAirRequest()
    result = await dead_air.remove(
        session,
        threshold_db=body.silence_threshold,
        min_silence_s=body.min_silence_duration,
    )
    return DeadAirResponse(
        duration=result.new_duration,
        original_duration=result.original_duration,
        removed_duration=result.removed_duration,
        percent_removed=result.percent_removed,
        segments_kept=result.segments_kept,
        size=await asyncio.to_thread(_file_size, session.working_video),
        edit_count=session.edit_count,
    )


@router.delete("/session/{session_id}", response_model=SuccessResponse)
async def delete_session(session_id: str, registry: Registry) -> SuccessResponse:
    """Delete a session. Deleting an unknown or already deleted id succeeds."""
    await registry.destroy(session_id)
    return SuccessResponse()
