"""Transcribe a session's video, spot keywords and fetch a GIF for each.

Keywords are processed independently: a provider failure for one keyword is
logged and the batch continues. The response reports how many succeeded.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import httpx

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import UpstreamServiceError, UpstreamTimeoutError, ValidationError
from hyperedit.schemas.asset import Asset
from hyperedit.schemas.media import KeywordHit, Transcript
from hyperedit.services.giphy_client import GiphyClient
from hyperedit.services.keyword_extractor import extract_keywords
from hyperedit.services.transcription_service import TranscriptionService
from hyperedit.utils.temp_files import TempFileScope

if TYPE_CHECKING:
    from hyperedit.services.session_manager import Session

logger = logging.getLogger(__name__)


@dataclass
class AutoGifResult:
    transcript: Transcript
    keywords: list[KeywordHit]
    gifs: list[tuple[KeywordHit, Asset]] = field(default_factory=list)
    failed_keywords: list[str] = field(default_factory=list)

    @property
    def gif_assets(self) -> list[Asset]:
        return [asset for _, asset in self.gifs]

    @property
    def requested(self) -> int:
        return len(self.keywords)

    @property
    def succeeded(self) -> int:
        return len(self.gifs)

    @property
    def failed(self) -> int:
        return len(self.failed_keywords)


def pick_source_media(session: "Session", asset_id: Optional[str] = None) -> Path:
    """The requested asset, else the first video asset, else the working video."""
    if asset_id:
        asset = session.assets.get(asset_id)
        if asset.type == "image":
            raise ValidationError("Cannot transcribe an image asset")
        return asset.path
    for asset in session.assets.list_assets():
        if asset.type == "video":
            return asset.path
    if session.has_working_video():
        return session.working_video
    raise ValidationError("Session has no video to transcribe")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "gif"


class AutoGifService:
    def __init__(
        self,
        transcriber: TranscriptionService,
        giphy: GiphyClient,
        settings: Optional[Settings] = None,
    ):
        self.transcriber = transcriber
        self.giphy = giphy
        self.settings = settings or get_settings()

    async def run(self, session: "Session") -> AutoGifResult:
        source = pick_source_media(session)
        transcript = await self.transcriber.transcribe(source, session.root)
        keywords = extract_keywords(
            transcript, dedupe_window_s=self.settings.keyword_dedupe_window_s
        )
        logger.info(f"[GIF] Session {session.id}: {len(keywords)} keywords found")

        result = AutoGifResult(transcript=transcript, keywords=keywords)
        for hit in keywords:
            try:
                asset = await self._fetch_one(session, hit)
            except (UpstreamServiceError, UpstreamTimeoutError, httpx.HTTPError, OSError) as e:
                logger.warning(f"[GIF] Keyword '{hit.keyword}' failed: {e}")
                result.failed_keywords.append(hit.keyword)
                continue
            if asset is None:
                result.failed_keywords.append(hit.keyword)
                continue
            result.gifs.append((hit, asset))

        logger.info(
            f"[GIF] Session {session.id}: {result.succeeded}/{result.requested} keyword GIFs added"
        )
        return result

    async def _fetch_one(self, session: "Session", hit: KeywordHit) -> Optional[Asset]:
        url = await self.giphy.search(hit.keyword)
        if url is None:
            logger.info(f"[GIF] No GIF found for '{hit.keyword}'")
            return None
        async with session.lock:
            with TempFileScope(session.assets_dir, prefix=".giphy") as scope:
                dest = scope.path(_slug(hit.keyword), ".gif")
                await self.giphy.download(url, dest)
                asset = await session.assets.register_file(
                    dest,
                    f"{_slug(hit.keyword)}.gif",
                    "image",
                    duration=self.settings.keyword_gif_duration_s,
                )
                scope.release(dest)
        return asset
