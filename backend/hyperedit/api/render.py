"""Render endpoints. Renders run inline; the request returns when ffmpeg is done."""

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import FileResponse

from hyperedit.api.deps import CurrentSession, Renderer
from hyperedit.render.pipeline import latest_render
from hyperedit.schemas.render import RenderKind, RenderRequest, RenderResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/session/{session_id}/render", response_model=RenderResponse)
async def start_render(
    session: CurrentSession,
    renderer: Renderer,
    body: Optional[RenderRequest] = None,
) -> RenderResponse:
    body = body or RenderRequest()
    output = await renderer.render(session, preview=body.preview)
    return RenderResponse(
        path=output.path.name,
        size=output.size,
        duration=output.duration,
        download_url=f"/session/{session.id}/renders/{output.kind}",
    )


@router.get("/session/{session_id}/renders/{kind}")
async def download_render(session: CurrentSession, kind: RenderKind) -> FileResponse:
    path = latest_render(session.renders_dir, kind)
    return FileResponse(path=str(path), media_type="video/mp4", filename=path.name)
