"""Project document and clip editing endpoints.

Every mutation runs under the session lock and rewrites project.json.
"""

from fastapi import APIRouter

from hyperedit.api.deps import AppSettings, CurrentSession
from hyperedit.schemas.project import (
    AddClipRequest,
    ClipDeleteResponse,
    ClipResponse,
    ClipTransformRequest,
    MoveClipRequest,
    Project,
    ResizeClipRequest,
)
from hyperedit.services.timeline import validate_resize

router = APIRouter()


@router.get("/session/{session_id}/project", response_model=Project)
async def get_project(session: CurrentSession) -> Project:
    return session.timeline.project


@router.put("/session/{session_id}/project", response_model=Project)
async def put_project(session: CurrentSession, project: Project) -> Project:
    """Replace the whole project document."""
    async with session.lock:
        session.timeline.replace(project)
        await session.timeline.save_async()
    return session.timeline.project


@router.post("/session/{session_id}/clips", response_model=ClipResponse)
async def add_clip(session: CurrentSession, body: AddClipRequest) -> ClipResponse:
    asset = session.assets.get(body.asset_id)
    async with session.lock:
        clip = session.timeline.add_clip(
            asset,
            body.track_id,
            start=body.start,
            duration=body.duration,
            in_point=body.in_point,
            out_point=body.out_point,
            transform=body.transform,
        )
        await session.timeline.save_async()
    return ClipResponse(clip=clip, project=session.timeline.project)


@router.patch("/session/{session_id}/clips/{clip_id}/move", response_model=ClipResponse)
async def move_clip(
    session: CurrentSession, clip_id: str, body: MoveClipRequest
) -> ClipResponse:
    async with session.lock:
        clip = session.timeline.move_clip(clip_id, body.start, body.track_id)
        await session.timeline.save_async()
    return ClipResponse(clip=clip, project=session.timeline.project)


@router.patch("/session/{session_id}/clips/{clip_id}/resize", response_model=ClipResponse)
async def resize_clip(
    session: CurrentSession,
    clip_id: str,
    body: ResizeClipRequest,
    settings: AppSettings,
) -> ClipResponse:
    async with session.lock:
        clip = session.timeline.get_clip(clip_id)
        in_point, out_point, start = validate_resize(
            clip,
            session.assets.find(clip.asset_id),
            body.in_point,
            body.out_point,
            body.start,
            min_duration=settings.min_clip_duration_s,
        )
        clip = session.timeline.resize_clip(clip_id, in_point, out_point, start)
        await session.timeline.save_async()
    return ClipResponse(clip=clip, project=session.timeline.project)


@router.patch("/session/{session_id}/clips/{clip_id}/transform", response_model=ClipResponse)
async def transform_clip(
    session: CurrentSession, clip_id: str, body: ClipTransformRequest
) -> ClipResponse:
    async with session.lock:
        clip = session.timeline.set_transform(clip_id, body.transform)
        await session.timeline.save_async()
    return ClipResponse(clip=clip, project=session.timeline.project)


@router.delete("/session/{session_id}/clips/{clip_id}", response_model=ClipDeleteResponse)
async def delete_clip(session: CurrentSession, clip_id: str) -> ClipDeleteResponse:
    async with session.lock:
        session.timeline.delete_clip(clip_id)
        await session.timeline.save_async()
    return ClipDeleteResponse(project=session.timeline.project)
