"""GIF creation and transcription endpoints."""

from typing import Optional

from fastapi import APIRouter

from hyperedit.api.deps import AutoGifs, CurrentSession, Gifs, Transcriber
from hyperedit.schemas.asset import AssetResponse
from hyperedit.schemas.media import (
    CreateGifRequest,
    CreateGifResponse,
    KeywordGifAsset,
    TranscribeAndExtractResponse,
    TranscribeRequest,
    Transcript,
)
from hyperedit.services.auto_gif_service import pick_source_media

router = APIRouter()


@router.post("/session/{session_id}/create-gif", response_model=CreateGifResponse)
async def create_gif(
    session: CurrentSession, body: CreateGifRequest, gifs: Gifs
) -> CreateGifResponse:
    asset = await gifs.create(session, body)
    return CreateGifResponse(asset=AssetResponse.from_asset(session.id, asset))


@router.post("/session/{session_id}/transcribe", response_model=Transcript)
async def transcribe(
    session: CurrentSession,
    transcriber: Transcriber,
    body: Optional[TranscribeRequest] = None,
) -> Transcript:
    source = pick_source_media(session, body.asset_id if body else None)
    return await transcriber.transcribe(source, session.root)


@router.post(
    "/session/{session_id}/transcribe-and-extract",
    response_model=TranscribeAndExtractResponse,
)
async def transcribe_and_extract(
    session: CurrentSession, auto_gifs: AutoGifs
) -> TranscribeAndExtractResponse:
    """Transcribe, find keywords and add a GIF asset for each one found.

    A keyword whose GIF cannot be fetched is counted in ``failed``; the
    request still succeeds with the others.
    """
    result = await auto_gifs.run(session)
    return TranscribeAndExtractResponse(
        transcript=result.transcript.text,
        keywords=result.keywords,
        gif_assets=[
            KeywordGifAsset.from_hit(session.id, hit, asset) for hit, asset in result.gifs
        ],
        requested=result.requested,
        succeeded=result.succeeded,
        failed=result.failed,
    )
