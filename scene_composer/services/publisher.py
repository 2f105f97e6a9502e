"""Uploads rendered artifacts to durable storage."""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from scene_composer.exceptions import PublishError
from scene_composer.services.storage_service import StorageService

logger = logging.getLogger(__name__)


@dataclass
class PublishedArtifacts:
    video_url: str
    thumbnail_url: str
    video_key: str
    thumbnail_key: str


def build_storage_keys(project_id: str, scene_id: str, timestamp_ms: int) -> tuple[str, str]:
    """Storage keys for a scene's composite video and thumbnail."""
    prefix = f"projects/{project_id}/scenes/{scene_id}"
    return (
        f"{prefix}/composite-{timestamp_ms}.mp4",
        f"{prefix}/composite-thumb-{timestamp_ms}.jpg",
    )


class ArtifactPublisher:
    def __init__(self, storage: StorageService):
        self.storage = storage

    async def publish(
        self,
        video_path: str,
        thumbnail_path: str,
        *,
        project_id: str,
        scene_id: str,
        timestamp_ms: int | None = None,
    ) -> PublishedArtifacts:
        """
        Upload the composite video, then its thumbnail.

        If the thumbnail upload fails the already uploaded video is deleted so
        no orphan is left behind.

        Raises:
            PublishError: If either upload fails
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        video_key, thumbnail_key = build_storage_keys(project_id, scene_id, timestamp_ms)

        try:
            video_data = await asyncio.to_thread(Path(video_path).read_bytes)
            video_url = await asyncio.to_thread(
                self.storage.upload, video_data, video_key, "video/mp4"
            )
        except Exception as e:
            logger.error(f"[PUBLISH] Video upload failed for {video_key}: {e}")
            raise PublishError(f"Video upload failed: {e}") from e
        logger.info(f"[PUBLISH] Uploaded video to {video_key}")

        try:
            thumbnail_data = await asyncio.to_thread(Path(thumbnail_path).read_bytes)
            thumbnail_url = await asyncio.to_thread(
                self.storage.upload, thumbnail_data, thumbnail_key, "image/jpeg"
            )
        except Exception as e:
            logger.error(f"[PUBLISH] Thumbnail upload failed for {thumbnail_key}: {e}")
            try:
                await asyncio.to_thread(self.storage.delete, video_key)
            except Exception as delete_error:
                logger.warning(f"[PUBLISH] Could not delete orphaned {video_key}: {delete_error}")
            raise PublishError(f"Thumbnail upload failed: {e}") from e
        logger.info(f"[PUBLISH] Uploaded thumbnail to {thumbnail_key}")

        return PublishedArtifacts(
            video_url=video_url,
            thumbnail_url=thumbnail_url,
            video_key=video_key,
            thumbnail_key=thumbnail_key,
        )
