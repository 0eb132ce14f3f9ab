"""
Remote media fetcher for snapshot backups.

Downloads avatars, headers and tweet media from their CDN URLs. A failed
download is logged and reported as None; one missing image never fails a
backup.
"""

import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional

import httpx

from socialvault.shared.utils.media_matcher import cdn_file_name

logger = logging.getLogger(__name__)

# Larger objects are skipped rather than buffered
MAX_MEDIA_BYTES = 50 * 1024 * 1024


@dataclass
class FetchedMedia:
    url: str
    file_name: str
    content: bytes
    content_type: Optional[str]

    @property
    def size(self) -> int:
        return len(self.content)


class MediaFetcher:
    """Fetch remote media over HTTP (httpx)."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout_seconds: float = 30.0) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True)
        return self._client

    async def fetch(self, url: str) -> Optional[FetchedMedia]:
        if not url or not url.startswith(("http://", "https://")):
            return None
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Media download failed for {url}: {e}")
            return None

        content = response.content
        if not content or len(content) > MAX_MEDIA_BYTES:
            logger.warning(f"Media download skipped for {url}: {len(content)} bytes")
            return None

        content_type = (response.headers.get("content-type") or "").split(";", 1)[0].strip() or None
        file_name = cdn_file_name(url) or "media"
        if "." not in file_name and content_type:
            file_name += mimetypes.guess_extension(content_type) or ""
        return FetchedMedia(url=url, file_name=file_name, content=content, content_type=content_type)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
