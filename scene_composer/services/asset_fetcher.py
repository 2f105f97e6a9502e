"""Downloads remote shot and audio assets into job scratch storage."""

import logging
import os
from typing import Callable

import httpx

from scene_composer.config import Settings, get_settings
from scene_composer.exceptions import FetchError

logger = logging.getLogger(__name__)


class AssetFetcher:
    """Streams assets to local files with httpx.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.download_timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        )

    async def fetch(self, url: str, dest_path: str) -> str:
        """
        Download ``url`` to ``dest_path``.

        Raises:
            FetchError: On network error, timeout, unusable URL, non-2xx status,
                empty body or a local write error
        """
        async with self._client() as client:
            return await self._fetch_with(client, url, dest_path)

    async def fetch_all(
        self,
        downloads: list[tuple[str, str]],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[str]:
        """Download ``(url, dest_path)`` pairs one after another.

        ``on_progress(done, total)`` is called after each completed file.
        """
        paths: list[str] = []
        async with self._client() as client:
            for i, (url, dest_path) in enumerate(downloads):
                paths.append(await self._fetch_with(client, url, dest_path))
                if on_progress:
                    on_progress(i + 1, len(downloads))
        return paths

    async def _fetch_with(self, client: httpx.AsyncClient, url: str, dest_path: str) -> str:
        logger.info(f"[FETCH] Downloading {url}")
        size = 0
        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    raise FetchError(
                        f"Download failed for {url}: HTTP {response.status_code}", url=url
                    )
                with open(dest_path, "wb") as f:
                    async for chunk in response.aiter_bytes(self.settings.download_chunk_size):
                        f.write(chunk)
                        size += len(chunk)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            raise FetchError(f"Download failed for {url}: {e}", url=url) from e

        if size == 0:
            if os.path.exists(dest_path):
                os.remove(dest_path)
            raise FetchError(f"Download failed for {url}: empty body", url=url)

        logger.info(f"[FETCH] Saved {size} bytes to {os.path.basename(dest_path)}")
        return dest_path
