"""Request dependencies.

Everything stateful is created by ``create_app`` and stored on
``app.state``; handlers receive it through these dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from hyperedit.config import Settings
from hyperedit.render.pipeline import RenderPipeline
from hyperedit.services.auto_gif_service import AutoGifService
from hyperedit.services.dead_air_service import DeadAirRemover
from hyperedit.services.edit_command import EditService
from hyperedit.services.gif_service import GifService
from hyperedit.services.session_manager import Session, SessionRegistry
from hyperedit.services.transcription_service import TranscriptionService


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_session(session_id: str, request: Request) -> Session:
    """Resolve the ``{session_id}`` path parameter or raise 404."""
    return get_registry(request).get(session_id)


def get_render_pipeline(request: Request) -> RenderPipeline:
    return request.app.state.render_pipeline


def get_dead_air(request: Request) -> DeadAirRemover:
    return request.app.state.dead_air


def get_edit_service(request: Request) -> EditService:
    return request.app.state.edit_service


def get_gif_service(request: Request) -> GifService:
    return request.app.state.gif_service


def get_transcription(request: Request) -> TranscriptionService:
    return request.app.state.transcription


def get_auto_gif(request: Request) -> AutoGifService:
    return request.app.state.auto_gif


Registry = Annotated[SessionRegistry, Depends(get_registry)]
AppSettings = Annotated[Settings, Depends(get_settings_dep)]
CurrentSession = Annotated[Session, Depends(get_session)]
Renderer = Annotated[RenderPipeline, Depends(get_render_pipeline)]
DeadAir = Annotated[DeadAirRemover, Depends(get_dead_air)]
Editor = Annotated[EditService, Depends(get_edit_service)]
Gifs = Annotated[GifService, Depends(get_gif_service)]
Transcriber = Annotated[TranscriptionService, Depends(get_transcription)]
AutoGifs = Annotated[AutoGifService, Depends(get_auto_gif)]
