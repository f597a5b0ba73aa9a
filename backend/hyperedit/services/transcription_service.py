"""
Transcription service using the OpenAI Whisper API.

Audio is extracted to a small mono mp3 first, then sent to the API with
word-level timestamps requested.
"""

import logging
from pathlib import Path
from typing import Optional

import httpx

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import ConfigurationError, UpstreamServiceError
from hyperedit.render.ffmpeg_runner import FFmpegRunner
from hyperedit.schemas.media import Transcript, TranscriptWord
from hyperedit.utils.retry import RetryPolicy
from hyperedit.utils.temp_files import TempFileScope

logger = logging.getLogger(__name__)


class _RetryableResponse(Exception):
    """A 5xx response worth another attempt."""


class TranscriptionService:
    """
    Service for transcribing audio/video files using the OpenAI Whisper API.
    """

    def __init__(
        self,
        runner: FFmpegRunner,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.runner = runner
        self.settings = settings or get_settings()
        self.client = client
        self.policy = RetryPolicy(
            max_attempts=self.settings.upstream_max_attempts,
            interval_s=self.settings.upstream_retry_interval_s,
            timeout_s=self.settings.transcription_timeout_s,
        )

    def build_extract_args(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            "-i", str(input_path),
            "-vn",  # No video
            "-acodec", "libmp3lame",
            "-b:a", "64k",
            "-ar", "16000",  # 16kHz sample rate
            "-ac", "1",  # Mono
            str(output_path),
        ]

    async def transcribe(self, media_path: Path, scratch_dir: Path) -> Transcript:
        """Transcribe a media file.

        Args:
            media_path: Video or audio file
            scratch_dir: Where the extracted audio is written (and removed)

        Raises:
            ConfigurationError: no OpenAI API key
            UpstreamServiceError: Whisper returned an error or bad payload
            UpstreamTimeoutError: Whisper did not answer in time
        """
        if not self.settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")

        with TempFileScope(scratch_dir, prefix=".transcribe") as scope:
            audio_path = scope.path("audio", ".mp3")
            await self.runner.run(
                self.build_extract_args(media_path, audio_path), label="extract audio"
            )
            logger.info(f"[TRANSCRIBE] Sending {audio_path.stat().st_size} bytes to Whisper")
            try:
                data = await self.policy.run(
                    lambda: self._call_openai_api(audio_path),
                    retry_on=(httpx.TransportError, _RetryableResponse),
                    what="Whisper transcription",
                )
            except (httpx.TransportError, _RetryableResponse) as e:
                raise UpstreamServiceError(str(e), service="whisper") from e
        return self.parse_response(data)

    async def _call_openai_api(self, audio_path: Path) -> dict:
        """Call the OpenAI Whisper API for transcription."""
        client = self.client or httpx.AsyncClient(timeout=self.settings.transcription_timeout_s)
        try:
            with open(audio_path, "rb") as audio_file:
                response = await client.post(
                    self.settings.whisper_url,
                    headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
                    files={"file": (audio_path.name, audio_file, "audio/mpeg")},
                    data={
                        "model": self.settings.whisper_model,
                        "response_format": "verbose_json",
                        "timestamp_granularities[]": "word",
                    },
                )
        finally:
            if self.client is None:
                await client.aclose()

        if response.status_code >= 500:
            raise _RetryableResponse(f"Whisper returned {response.status_code}")
        if response.status_code != 200:
            raise UpstreamServiceError(
                f"{response.status_code} - {response.text[:300]}", service="whisper"
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamServiceError(f"Malformed JSON: {e}", service="whisper")

    def parse_response(self, data: dict) -> Transcript:
        if not isinstance(data, dict) or not isinstance(data.get("text"), str):
            raise UpstreamServiceError("Response has no transcript text", service="whisper")

        words = []
        for w in data.get("words") or []:
            try:
                words.append(
                    TranscriptWord(word=str(w["word"]), start=float(w["start"]), end=float(w["end"]))
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"[TRANSCRIBE] Skipping malformed word entry: {w}")
        return Transcript(
            text=data["text"].strip(),
            words=words,
            duration=float(data.get("duration") or 0.0),
        )
