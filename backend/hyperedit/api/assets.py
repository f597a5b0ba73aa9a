"""Asset endpoints."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse

from hyperedit.api.deps import CurrentSession
from hyperedit.exceptions import MissingUploadError, ThumbnailNotFoundError, ValidationError
from hyperedit.schemas.asset import (
    AssetDeleteResponse,
    AssetListResponse,
    AssetResponse,
    AssetType,
    AssetUploadResponse,
)

router = APIRouter()

MEDIA_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".aac": "audio/aac",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def media_type_for(path: Path) -> str:
    return MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream")


@router.post("/session/{session_id}/assets", response_model=AssetUploadResponse)
async def upload_asset(
    session: CurrentSession,
    file: Optional[UploadFile] = File(None),
    video: Optional[UploadFile] = File(None),
    asset_type: Optional[str] = Form(None, alias="type"),
) -> AssetUploadResponse:
    """Upload a media file under the ``file`` or ``video`` field.

    The type is guessed from the extension unless given.
    """
    upload = file if file is not None and file.filename else video
    if upload is None or not upload.filename:
        raise MissingUploadError("file")
    if asset_type is not None and asset_type not in ("video", "image", "audio"):
        raise ValidationError(f"Unknown asset type: {asset_type}")
    declared: Optional[AssetType] = asset_type  # type: ignore[assignment]
    try:
        async with session.lock:
            asset = await session.assets.ingest(upload.file, upload.filename, declared)
    finally:
        await upload.close()
    return AssetUploadResponse(asset=AssetResponse.from_asset(session.id, asset))


@router.get("/session/{session_id}/assets", response_model=AssetListResponse)
async def list_assets(session: CurrentSession) -> AssetListResponse:
    return AssetListResponse(
        assets=[AssetResponse.from_asset(session.id, a) for a in session.assets.list_assets()]
    )


@router.delete("/session/{session_id}/assets/{asset_id}", response_model=AssetDeleteResponse)
async def delete_asset(session: CurrentSession, asset_id: str) -> AssetDeleteResponse:
    """Delete an asset and every clip on the timeline that uses it."""
    removed = await session.delete_asset(asset_id)
    return AssetDeleteResponse(removed_clip_ids=removed)


@router.get("/session/{session_id}/assets/{asset_id}/thumbnail")
async def asset_thumbnail(session: CurrentSession, asset_id: str) -> FileResponse:
    asset = session.assets.get(asset_id)
    if asset.thumbnail_path is None or not asset.thumbnail_path.exists():
        raise ThumbnailNotFoundError()
    return FileResponse(path=str(asset.thumbnail_path), media_type="image/jpeg")


@router.get("/session/{session_id}/assets/{asset_id}/stream")
async def asset_stream(session: CurrentSession, asset_id: str) -> FileResponse:
    asset = session.assets.get(asset_id)
    return FileResponse(path=str(asset.path), media_type=media_type_for(asset.path))
