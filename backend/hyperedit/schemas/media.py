"""GIF creation, transcription and keyword-GIF payloads."""

from pydantic import Field

from hyperedit.schemas.asset import Asset, AssetResponse
from hyperedit.schemas.common import CamelModel


class CreateGifRequest(CamelModel):
    source_asset_id: str
    # Unknown effects render as a plain resize
    effect: str = Field(default="pulse", max_length=32)
    duration: float = Field(default=2.0, gt=0, le=30)
    fps: int = Field(default=15, ge=1, le=50)
    width: int = Field(default=400, ge=16, le=1920)
    height: int = Field(default=400, ge=16, le=1920)


class CreateGifResponse(CamelModel):
    asset: AssetResponse


class TranscriptWord(CamelModel):
    word: str
    start: float
    end: float


class Transcript(CamelModel):
    text: str
    words: list[TranscriptWord] = Field(default_factory=list)
    duration: float = 0.0


class TranscribeRequest(CamelModel):
    asset_id: str | None = None


class KeywordHit(CamelModel):
    keyword: str
    timestamp: float
    confidence: float


class KeywordGifAsset(AssetResponse):
    """A fetched GIF asset with the keyword occurrence it illustrates."""

    asset_id: str
    keyword: str
    timestamp: float
    confidence: float

    @classmethod
    def from_hit(cls, session_id: str, hit: KeywordHit, asset: Asset) -> "KeywordGifAsset":
        base = AssetResponse.from_asset(session_id, asset)
        return cls(
            **base.model_dump(),
            asset_id=asset.id,
            keyword=hit.keyword,
            timestamp=hit.timestamp,
            confidence=hit.confidence,
        )


class TranscribeAndExtractResponse(CamelModel):
    transcript: str
    keywords: list[KeywordHit]
    gif_assets: list[KeywordGifAsset]
    requested: int
    succeeded: int
    failed: int
