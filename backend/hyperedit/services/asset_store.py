"""Per-session media library.

Each asset exclusively owns ``assets/<id><ext>`` and, optionally,
``assets/<id>_thumb.jpg``. Deleting an asset removes both files; the
session removes the clips that referenced it.
"""

import asyncio
import logging
import shutil
import time
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import AssetNotFoundError, ValidationError
from hyperedit.schemas.asset import Asset, AssetType
from hyperedit.services.thumbnail_service import ThumbnailService
from hyperedit.utils.media_info import probe_media_info
from hyperedit.utils.temp_files import remove_quietly

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".aac", ".m4a", ".ogg"}


def classify_by_extension(filename: str) -> AssetType:
    """Known image/audio extensions win; everything else is video."""
    ext = Path(filename).suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    return "video"


def _now_ms() -> int:
    return int(time.time() * 1000)


def copy_stream(source: BinaryIO, dest: Path, chunk_size: int) -> int:
    with open(dest, "wb") as out:
        shutil.copyfileobj(source, out, chunk_size)
    return dest.stat().st_size


class AssetStore:
    def __init__(
        self,
        assets_dir: Path,
        thumbnails: ThumbnailService,
        settings: Optional[Settings] = None,
    ):
        self.assets_dir = Path(assets_dir)
        self.thumbnails = thumbnails
        self.settings = settings or get_settings()
        self._assets: dict[str, Asset] = {}

    def __len__(self) -> int:
        return len(self._assets)

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._assets

    def get(self, asset_id: str) -> Asset:
        asset = self._assets.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset

    def find(self, asset_id: str) -> Optional[Asset]:
        return self._assets.get(asset_id)

    def list_assets(self) -> list[Asset]:
        return sorted(self._assets.values(), key=lambda a: a.created_at)

    def as_mapping(self) -> dict[str, Asset]:
        return dict(self._assets)

    async def ingest(
        self,
        source: BinaryIO,
        filename: str,
        declared_type: Optional[AssetType] = None,
    ) -> Asset:
        """Store an uploaded file and register it as an asset."""
        if not filename:
            raise ValidationError("Uploaded file has no filename")
        asset_id = uuid.uuid4().hex
        dest = self.assets_dir / f"{asset_id}{Path(filename).suffix.lower()}"
        try:
            size = await asyncio.to_thread(
                copy_stream, source, dest, self.settings.upload_chunk_size
            )
        except OSError:
            remove_quietly(dest)
            raise
        logger.info(f"[ASSET] Stored upload {filename} ({size} bytes) as {dest.name}")
        return await self._register(
            asset_id, dest, filename, declared_type or classify_by_extension(filename)
        )

    async def register_file(
        self,
        path: Path,
        filename: str,
        asset_type: Optional[AssetType] = None,
        duration: Optional[float] = None,
    ) -> Asset:
        """Adopt a file produced on the server (GIF creation, downloads).

        The file is moved into the asset directory.
        """
        asset_id = uuid.uuid4().hex
        dest = self.assets_dir / f"{asset_id}{Path(path).suffix.lower()}"
        await asyncio.to_thread(shutil.move, str(path), str(dest))
        return await self._register(
            asset_id,
            dest,
            filename,
            asset_type or classify_by_extension(filename),
            duration_override=duration,
        )

    async def _register(
        self,
        asset_id: str,
        path: Path,
        filename: str,
        asset_type: AssetType,
        duration_override: Optional[float] = None,
    ) -> Asset:
        info = await probe_media_info(path)
        if duration_override is not None:
            duration = duration_override
        elif asset_type == "image":
            duration = self.settings.image_default_duration_s
        else:
            duration = info.duration

        thumbnail_path = await self.thumbnails.generate(
            path,
            self.assets_dir / f"{asset_id}_thumb.jpg",
            asset_type,
            info.duration,
        )

        asset = Asset(
            id=asset_id,
            type=asset_type,
            filename=filename,
            path=path,
            thumbnail_path=thumbnail_path,
            duration=duration,
            size=path.stat().st_size,
            width=0 if asset_type == "audio" else info.width,
            height=0 if asset_type == "audio" else info.height,
            created_at=_now_ms(),
        )
        self._assets[asset_id] = asset
        logger.info(
            f"[ASSET] Registered {asset_type} asset {asset_id} ({filename}, {duration:.2f}s, "
            f"{asset.width}x{asset.height})"
        )
        return asset

    def delete(self, asset_id: str) -> Asset:
        """Forget an asset and remove its files (best effort).

        Clip cascade is the session's job, see ``Session.delete_asset``.
        """
        asset = self.get(asset_id)
        del self._assets[asset_id]
        remove_quietly(asset.path, asset.thumbnail_path)
        logger.info(f"[ASSET] Deleted asset {asset_id}")
        return asset
