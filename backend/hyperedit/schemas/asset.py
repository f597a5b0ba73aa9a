from pathlib import Path
from typing import Literal

from pydantic import Field

from hyperedit.schemas.common import CamelModel

AssetType = Literal["video", "image", "audio"]


class Asset(CamelModel):
    """A media file owned by a session. Paths never leave the server."""

    id: str
    type: AssetType
    filename: str
    path: Path
    thumbnail_path: Path | None = None
    duration: float = 0.0
    size: int = 0
    width: int = 0
    height: int = 0
    created_at: int = Field(..., description="Epoch milliseconds")


class AssetResponse(CamelModel):
    id: str
    type: AssetType
    filename: str
    duration: float
    size: int
    width: int
    height: int
    thumbnail_url: str | None = None
    created_at: int

    @classmethod
    def from_asset(cls, session_id: str, asset: Asset) -> "AssetResponse":
        thumbnail_url = (
            f"/session/{session_id}/assets/{asset.id}/thumbnail"
            if asset.thumbnail_path
            else None
        )
        return cls(
            id=asset.id,
            type=asset.type,
            filename=asset.filename,
            duration=asset.duration,
            size=asset.size,
            width=asset.width,
            height=asset.height,
            thumbnail_url=thumbnail_url,
            created_at=asset.created_at,
        )


class AssetUploadResponse(CamelModel):
    asset: AssetResponse


class AssetListResponse(CamelModel):
    assets: list[AssetResponse]


class AssetDeleteResponse(CamelModel):
    success: bool = True
    removed_clip_ids: list[str] = Field(default_factory=list)
