"""Tests for Whisper transcription and keyword extraction."""

import json

import httpx
import pytest

from conftest import FakeRunner

from hyperedit.config import Settings
from hyperedit.exceptions import ConfigurationError, UpstreamServiceError
from hyperedit.schemas.media import Transcript, TranscriptWord
from hyperedit.services.keyword_extractor import extract_keywords
from hyperedit.services.transcription_service import TranscriptionService

WHISPER_PAYLOAD = {
    "text": " Today we talk about Claude and Elon Musk. ",
    "duration": 6.5,
    "words": [
        {"word": "Today", "start": 0.0, "end": 0.4},
        {"word": "we", "start": 0.4, "end": 0.5},
        {"word": "talk", "start": 0.5, "end": 0.8},
        {"word": "about", "start": 0.8, "end": 1.0},
        {"word": "Claude", "start": 1.0, "end": 1.4},
        {"word": "and", "start": 1.4, "end": 1.6},
        {"word": "Elon", "start": 1.6, "end": 1.9},
        {"word": "Musk.", "start": 1.9, "end": 2.3},
    ],
}


def _transcript(words: list[tuple[str, float]]) -> Transcript:
    return Transcript(
        text=" ".join(w for w, _ in words),
        words=[TranscriptWord(word=w, start=t, end=t + 0.3) for w, t in words],
    )


class Recorder:
    """httpx MockTransport handler returning queued responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _service(settings: Settings, handler: Recorder) -> TranscriptionService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TranscriptionService(FakeRunner(settings), settings, client=client)


class TestTranscriptionService:

    def test_extract_args(self, settings, temp_output_dir):
        service = TranscriptionService(FakeRunner(settings), settings)
        args = service.build_extract_args(temp_output_dir / "in.mp4", temp_output_dir / "a.mp3")
        assert args[args.index("-ar") + 1] == "16000"
        assert args[args.index("-ac") + 1] == "1"
        assert "-vn" in args

    @pytest.mark.asyncio
    async def test_transcribe_parses_words(self, settings, temp_output_dir):
        handler = Recorder(httpx.Response(200, json=WHISPER_PAYLOAD))
        service = _service(settings, handler)

        transcript = await service.transcribe(temp_output_dir / "in.mp4", temp_output_dir)

        assert transcript.text == "Today we talk about Claude and Elon Musk."
        assert len(transcript.words) == 8
        assert transcript.duration == 6.5
        request = handler.requests[0]
        assert request.headers["Authorization"] == "Bearer test-openai-key"
        assert b"verbose_json" in request.content
        assert b"timestamp_granularities[]" in request.content
        # Extracted audio is scratch and removed afterwards
        assert list(temp_output_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_server_error_retried(self, settings, temp_output_dir):
        handler = Recorder(
            httpx.Response(503, text="busy"),
            httpx.Response(200, json=WHISPER_PAYLOAD),
        )
        transcript = await _service(settings, handler).transcribe(
            temp_output_dir / "in.mp4", temp_output_dir
        )
        assert len(handler.requests) == 2
        assert transcript.words[0].word == "Today"

    @pytest.mark.asyncio
    async def test_server_error_exhausted(self, settings, temp_output_dir):
        handler = Recorder(httpx.Response(500, text="down"))
        with pytest.raises(UpstreamServiceError, match="whisper"):
            await _service(settings, handler).transcribe(
                temp_output_dir / "in.mp4", temp_output_dir
            )
        assert len(handler.requests) == settings.upstream_max_attempts

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, settings, temp_output_dir):
        handler = Recorder(httpx.Response(401, text="bad key"))
        with pytest.raises(UpstreamServiceError, match="401"):
            await _service(settings, handler).transcribe(
                temp_output_dir / "in.mp4", temp_output_dir
            )
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_malformed_json(self, settings, temp_output_dir):
        handler = Recorder(httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(UpstreamServiceError, match="Malformed"):
            await _service(settings, handler).transcribe(
                temp_output_dir / "in.mp4", temp_output_dir
            )

    @pytest.mark.asyncio
    async def test_missing_api_key(self, settings, temp_output_dir):
        no_key = settings.model_copy(update={"openai_api_key": ""})
        service = TranscriptionService(FakeRunner(no_key), no_key)
        with pytest.raises(ConfigurationError):
            await service.transcribe(temp_output_dir / "in.mp4", temp_output_dir)

    def test_parse_skips_bad_words(self, settings):
        service = TranscriptionService(FakeRunner(settings), settings)
        payload = json.loads(json.dumps(WHISPER_PAYLOAD))
        payload["words"].append({"word": "broken"})
        assert len(service.parse_response(payload).words) == 8

    def test_parse_requires_text(self, settings):
        service = TranscriptionService(FakeRunner(settings), settings)
        with pytest.raises(UpstreamServiceError):
            service.parse_response({"words": []})


class TestExtractKeywords:

    def test_single_words_and_phrases(self):
        transcript = Transcript(**WHISPER_PAYLOAD)
        hits = extract_keywords(transcript)
        assert [(h.keyword, h.timestamp, h.confidence) for h in hits] == [
            ("claude", 1.0, 1.0),
            ("elon musk", 1.6, 0.9),
        ]

    def test_case_and_punctuation_insensitive(self):
        hits = extract_keywords(_transcript([("YouTube,", 3.0), ("TikTok!", 4.0)]))
        assert [h.keyword for h in hits] == ["youtube", "tiktok"]

    def test_repeats_within_window_deduped(self):
        hits = extract_keywords(
            _transcript([("google", 1.0), ("google", 3.0), ("google", 7.0)]),
            dedupe_window_s=5.0,
        )
        assert [h.timestamp for h in hits] == [1.0, 7.0]

    def test_sorted_by_timestamp(self):
        hits = extract_keywords(_transcript([("tesla", 9.0), ("apple", 2.0), ("nvidia", 5.0)]))
        assert [h.keyword for h in hits] == ["apple", "nvidia", "tesla"]

    def test_no_partial_word_matches(self):
        """'metadata' must not match 'meta'."""
        assert extract_keywords(_transcript([("metadata", 1.0)])) == []
