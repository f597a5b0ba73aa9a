import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hyperedit.api import assets, media, project, render, sessions
from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import HyperEditError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.render.pipeline import RenderPipeline
from hyperedit.schemas.session import HealthResponse
from hyperedit.services.auto_gif_service import AutoGifService
from hyperedit.services.dead_air_service import DeadAirRemover
from hyperedit.services.edit_command import EditService
from hyperedit.services.gif_service import GifService
from hyperedit.services.giphy_client import GiphyClient
from hyperedit.services.session_manager import SessionRegistry
from hyperedit.services.transcription_service import TranscriptionService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    registry: SessionRegistry = app.state.registry
    registry.start()
    logger.info(f"[SESSION] Session root: {registry.root}")
    yield
    # Shutdown: sessions live in a temp dir and are not resumable
    await registry.stop()
    await registry.destroy_all()
    await app.state.http_client.aclose()


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Request validation failed"
    first_error = errors[0]
    loc = " -> ".join(str(x) for x in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")
    return f"{loc}: {msg}" if loc else msg


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    runner = registry.runner if registry is not None else FFmpegRunner(settings)
    registry = registry or SessionRegistry(settings, runner)
    http_client = httpx.AsyncClient(timeout=settings.upstream_timeout_s)
    transcription = TranscriptionService(runner, settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.http_client = http_client
    app.state.render_pipeline = RenderPipeline(runner)
    app.state.dead_air = DeadAirRemover(runner, settings)
    app.state.edit_service = EditService(runner)
    app.state.gif_service = GifService(runner)
    app.state.transcription = transcription
    app.state.auto_gif = AutoGifService(
        transcription, GiphyClient(http_client, settings), settings
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HyperEditError)
    async def hyperedit_exception_handler(request: Request, exc: HyperEditError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": "HTTP_ERROR"},
        )

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    # Routers
    app.include_router(sessions.router, tags=["sessions"])
    app.include_router(assets.router, tags=["assets"])
    app.include_router(project.router, tags=["project"])
    app.include_router(render.router, tags=["render"])
    app.include_router(media.router, tags=["media"])

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            ffmpeg=runner.is_available(),
            sessions=len(registry),
        )

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting {settings.app_name} on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
