import json
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "HyperEdit Media Server"
    app_version: str = "0.1.0"
    environment: Literal["development", "production"] = "development"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 3333

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from a comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Sessions
    sessions_root: Path = Path(tempfile.gettempdir()) / "hyperedit-ffmpeg" / "sessions"
    session_max_age_s: int = 2 * 60 * 60
    session_sweep_interval_s: int = 30 * 60

    # File Upload
    upload_chunk_size: int = 1024 * 1024

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    # Characters of ffmpeg stderr kept for error reporting
    encoder_diagnostics_tail_chars: int = 500
    # None = encodes may run indefinitely
    encoder_timeout_s: float | None = None

    # Render settings
    render_width: int = 1920
    render_height: int = 1080
    render_fps: int = 30
    render_preview_preset: str = "ultrafast"
    render_preview_crf: int = 28
    render_export_preset: str = "medium"
    render_export_crf: int = 18
    render_audio_bitrate: str = "192k"
    render_min_duration_s: float = 0.1

    # Timeline
    min_clip_duration_s: float = 0.1
    image_default_duration_s: float = 5.0

    # Thumbnails
    thumbnail_width: int = 160
    thumbnail_height: int = 90

    # Dead air removal
    silence_threshold_db: float = -30.0
    min_silence_duration_s: float = 0.3
    min_keep_segment_s: float = 0.1
    segment_preset: str = "ultrafast"
    segment_crf: int = 18

    # Keyword GIFs
    keyword_dedupe_window_s: float = 5.0
    keyword_gif_duration_s: float = 3.0

    # Upstream services
    openai_api_key: str = ""
    whisper_model: str = "whisper-1"
    whisper_url: str = "https://api.openai.com/v1/audio/transcriptions"
    giphy_api_key: str = ""
    giphy_search_url: str = "https://api.giphy.com/v1/gifs/search"
    transcription_timeout_s: float = 300.0
    upstream_timeout_s: float = 30.0
    upstream_max_attempts: int = 3
    upstream_retry_interval_s: float = 1.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
