"""Minimal GIPHY search and download client."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from hyperedit.config import Settings, get_settings
from hyperedit.exceptions import ConfigurationError, UpstreamServiceError
from hyperedit.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)


class GiphyClient:
    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.policy = RetryPolicy(
            max_attempts=self.settings.upstream_max_attempts,
            interval_s=self.settings.upstream_retry_interval_s,
            timeout_s=self.settings.upstream_timeout_s,
        )

    async def search(self, keyword: str) -> Optional[str]:
        """Return the URL of the top G-rated GIF for ``keyword``, or None.

        Raises:
            ConfigurationError: no GIPHY API key
            UpstreamServiceError: GIPHY error or malformed payload
        """
        if not self.settings.giphy_api_key:
            raise ConfigurationError("GIPHY_API_KEY not configured")

        params = {
            "api_key": self.settings.giphy_api_key,
            "q": keyword,
            "limit": 1,
            "rating": "g",
            "lang": "en",
        }
        response = await self._get(self.settings.giphy_search_url, params=params)
        try:
            gifs = response.json()["data"]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamServiceError(f"Malformed search payload: {e}", service="giphy")
        if not gifs:
            return None
        images = gifs[0].get("images") or {}
        for rendition in ("fixed_height", "original"):
            url = (images.get(rendition) or {}).get("url")
            if url:
                return url
        return None

    async def download(self, url: str, dest: Path) -> Path:
        response = await self._get(url)
        if not response.content:
            raise UpstreamServiceError("Empty GIF download", service="giphy")
        await asyncio.to_thread(dest.write_bytes, response.content)
        return dest

    async def _get(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        async def attempt() -> httpx.Response:
            response = await self.client.get(url, params=params, follow_redirects=True)
            if response.status_code >= 500:
                response.raise_for_status()
            return response

        try:
            response = await self.policy.run(
                attempt,
                retry_on=(httpx.TransportError, httpx.HTTPStatusError),
                what="GIPHY request",
            )
        except httpx.HTTPError as e:
            raise UpstreamServiceError(str(e), service="giphy") from e
        if response.status_code != 200:
            raise UpstreamServiceError(f"HTTP {response.status_code}", service="giphy")
        return response
